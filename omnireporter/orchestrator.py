"""Facade that test framework integrations call to report a run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from functools import partial

import aiohttp

from omnireporter.api.dashboard_client import DashboardClient
from omnireporter.build.build_manager import BuildLifecycleManager
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.exceptions import (
    BuildCompleteError,
    BuildStartError,
    ConfigurationError,
    DashboardRequestError,
    NoBuildError,
)
from omnireporter.models import (
    ArtifactDescriptor,
    BuildHandle,
    BuildState,
    TestCaseRecord,
    TestCaseResult,
)
from omnireporter.payload import normalize_status
from omnireporter.upload.artifact_uploader import ArtifactUploader
from omnireporter.upload.case_submitter import TestCaseSubmitter

logger = logging.getLogger(__name__)


def _log_auth_failure(error: DashboardRequestError) -> None:
    if error.status == 401:
        logger.error("Authentication failed. Please check your API key")


def _log_submission_outcome(test_name: str, task: asyncio.Task) -> None:
    if task.cancelled():
        logger.warning("Upload of test case %s was cancelled", test_name)
        return
    error = task.exception()
    if error is None:
        logger.info("Test case uploaded: %s", test_name)
        return
    logger.error("Failed to upload test case %s: %s", test_name, error)
    if isinstance(error, DashboardRequestError):
        _log_auth_failure(error)


class Orchestrator:
    """Report builds and test cases to the Omni dashboard.

    Use it as an async context manager, which opens the HTTP session the
    components share unless one was passed in::

        async with Orchestrator(config) as orchestrator:
            build = await orchestrator.begin_build()
            orchestrator.submit_test_case(build, record, artifacts)
            await orchestrator.end_build(build, "passed")
    """

    def __init__(
        self,
        config: ReporterConfig,
        client_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Reporter configuration passed to every component.
            client_session: Optional externally owned aiohttp session.
        """
        self._config = config
        self._session = client_session
        self._owns_session = client_session is None
        self._build_manager: BuildLifecycleManager | None = None
        self._submitter: TestCaseSubmitter | None = None
        if client_session is not None:
            self._wire(client_session)

    def _wire(self, client_session: aiohttp.ClientSession) -> None:
        client = DashboardClient(self._config, client_session)
        uploader = ArtifactUploader(client_session, timeout=self._config.upload_timeout)
        self._build_manager = BuildLifecycleManager(self._config, client)
        self._submitter = TestCaseSubmitter(client, uploader)

    async def open(self) -> None:
        """Open the HTTP session if the orchestrator owns it."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._wire(self._session)

    async def close(self) -> None:
        """Close the HTTP session if the orchestrator owns it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Orchestrator:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def build_manager(self) -> BuildLifecycleManager:
        """The lifecycle manager; only available once the session is open."""
        if self._build_manager is None:
            raise RuntimeError("Orchestrator is not open, call open() first")
        return self._build_manager

    async def begin_build(self, environment: str | None = None) -> BuildHandle:
        """Start a build.

        Raises:
            ConfigurationError: If endpoint, project or key is missing.
            BuildStartError: If the dashboard did not start the build.
        """
        try:
            return await self.build_manager.begin_build(environment)
        except ConfigurationError as e:
            logger.error("Cannot start build: %s", e)
            raise
        except BuildStartError as e:
            logger.error("Failed to start build: %s", e)
            _log_auth_failure(e)
            raise

    def attach_build(
        self, build_id: str, environment: str | None = None
    ) -> BuildHandle:
        """Report into a build that another process started."""
        return self.build_manager.attach_build(build_id, environment)

    def submit_test_case(
        self,
        build: BuildHandle | None,
        record: TestCaseRecord,
        artifacts: Sequence[ArtifactDescriptor] = (),
    ) -> asyncio.Task[TestCaseResult]:
        """Schedule the submission of a test case and its artifacts.

        Must be called from the event loop the orchestrator runs on. The
        returned task is registered with the build, so ``end_build`` waits
        for it.

        Raises:
            NoBuildError: Immediately, without any request, when there is no
                started build.
        """
        if build is None:
            raise NoBuildError(
                f"Cannot upload test case {record.name!r}: no build was started"
            )
        self.build_manager.require_in_progress(build)

        logger.info("Uploading test case: %s", record.name)
        task = asyncio.get_running_loop().create_task(
            self._submitter.submit(build, record, list(artifacts)),
            name=f"omni-test-case:{record.name}",
        )
        task.add_done_callback(partial(_log_submission_outcome, record.name))
        self.build_manager.register_submission(build, task)
        return task

    async def end_build(
        self,
        build: BuildHandle | None,
        final_status: str = "passed",
        duration: int | None = None,
        environment: str | None = None,
    ) -> BuildHandle | None:
        """Wait for all submissions of a build, then complete it.

        Args:
            build: Handle returned by ``begin_build``.
            final_status: Aggregate run status.
            duration: Run duration in milliseconds, defaults to the time
                elapsed since the build started.
            environment: Environment label, defaults to the build's.

        Returns:
            The completed build, or None when the dashboard refused to
            complete it (the failure is logged, not raised).

        Raises:
            NoBuildError: If the build never started.
        """
        if build is None:
            raise NoBuildError("No build id available to complete the build")
        if duration is None:
            duration = build.elapsed_ms()

        try:
            completed = await self.build_manager.end_build(
                build, normalize_status(final_status).value, duration, environment
            )
        except BuildCompleteError as e:
            logger.error("Failed to complete build %s: %s", build.build_id, e)
            _log_auth_failure(e)
            return None

        logger.info("Build completed: %s", completed.build_id)
        return completed

    def state(self, build: BuildHandle | None) -> BuildState:
        """Lifecycle state of a build."""
        return self.build_manager.state(build)
