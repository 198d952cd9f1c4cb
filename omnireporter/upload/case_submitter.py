"""Submit a test case and upload the artifacts the dashboard asks for."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from omnireporter.api.dashboard_client import DashboardClient
from omnireporter.exceptions import (
    ArtifactUploadError,
    EmptySubmissionResponseError,
    NoBuildError,
)
from omnireporter.models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildHandle,
    PendingUpload,
    TestCaseRecord,
    TestCaseResult,
    UploadTarget,
)
from omnireporter.upload.artifact_uploader import ArtifactUploader
from omnireporter.upload.reconciler import reconcile

logger = logging.getLogger(__name__)

# Response keys holding upload targets, and the kind of artifact each declares.
_TARGET_KEYS = (
    ("screenshots", ArtifactKind.SCREENSHOT),
    ("traces", ArtifactKind.TRACE),
)


def declared_targets(test_case: dict[str, Any]) -> list[UploadTarget]:
    """Read the upload targets out of one test case entry of a response."""
    targets: list[UploadTarget] = []
    for key, kind in _TARGET_KEYS:
        for entry in test_case.get(key) or []:
            name = entry.get("name") if isinstance(entry, dict) else None
            upload_url = entry.get("upload_url") if isinstance(entry, dict) else None
            if not name or not upload_url:
                logger.warning(
                    "Ignoring malformed %s upload target: %r", kind.value, entry
                )
                continue
            targets.append(UploadTarget(name=name, upload_url=upload_url, kind=kind))
    return targets


class TestCaseSubmitter:
    """Post one test case, then upload its artifacts concurrently.

    Artifact failures are collected and raised together once every upload of
    the test case has settled, so one failing screenshot never stops the
    others and never reaches sibling test cases.
    """

    __test__ = False

    def __init__(self, client: DashboardClient, uploader: ArtifactUploader) -> None:
        """Initialize the submitter.

        Args:
            client: Dashboard API client used to post the record.
            uploader: Uploader used for every matched artifact.
        """
        self._client = client
        self._uploader = uploader

    async def submit(
        self,
        build: BuildHandle,
        record: TestCaseRecord,
        artifacts: Sequence[ArtifactDescriptor] = (),
    ) -> TestCaseResult:
        """Submit a record and upload its matched artifacts.

        Args:
            build: Handle of the build the record belongs to.
            record: The test case record.
            artifacts: Artifacts available locally for this test case.

        Returns:
            The uploaded and missing artifact names with the raw response.

        Raises:
            NoBuildError: If the build handle has no identifier.
            SubmissionError: If the dashboard rejected the record.
            EmptySubmissionResponseError: If the response has no test case.
            ArtifactUploadError: If any matched artifact failed to upload.
        """
        if build is None or not build.build_id:
            raise NoBuildError(f"No build to attach test case {record.name!r} to")

        response = await self._client.create_test_case(build.build_id, record)

        test_cases = response.get("test_cases") or []
        if not test_cases:
            logger.error(
                "No test case data received from server for %s", record.name
            )
            raise EmptySubmissionResponseError(
                f"No test case data received from server for {record.name!r}"
            )
        if len(test_cases) > 1:
            logger.warning(
                "Server returned %d test cases for %s, using the first",
                len(test_cases),
                record.name,
            )
        test_case = test_cases[0]

        reconciled = reconcile(declared_targets(test_case), artifacts)
        errors = await self._upload_all(record.name, reconciled.matched)

        if errors:
            raise ArtifactUploadError(record.name, errors)

        return TestCaseResult(
            name=record.name,
            response=test_case,
            uploaded=[pending.target.name for pending in reconciled.matched],
            missing=[target.name for target in reconciled.unmatched],
        )

    async def _upload_one(self, pending: PendingUpload) -> None:
        descriptor = pending.descriptor
        await self._uploader.upload(
            descriptor.path, pending.target, descriptor.resolved_content_type
        )
        logger.info("Uploaded %s: %s", pending.target.kind.value, pending.target.name)

    async def _upload_all(
        self, test_name: str, matched: list[PendingUpload]
    ) -> list[tuple[str, BaseException]]:
        """Upload every matched artifact and return the failures."""
        outcomes = await asyncio.gather(
            *(self._upload_one(pending) for pending in matched),
            return_exceptions=True,
        )

        errors: list[tuple[str, BaseException]] = []
        for pending, outcome in zip(matched, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(
                    "Failed to upload %s %s for test case %s: %s",
                    pending.target.kind.value,
                    pending.target.name,
                    test_name,
                    outcome,
                )
                errors.append((pending.target.name, outcome))
        return errors
