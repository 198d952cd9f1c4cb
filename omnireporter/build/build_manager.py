"""Build lifecycle: start, track submissions, complete."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from omnireporter.api.dashboard_client import DashboardClient
from omnireporter.build.submission_tracker import SubmissionTracker
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.exceptions import BuildStartError, NoBuildError
from omnireporter.models import BuildHandle, BuildState, BuildSummary

logger = logging.getLogger(__name__)


@dataclass
class _BuildEntry:
    handle: BuildHandle
    state: BuildState = BuildState.IN_PROGRESS
    tracker: SubmissionTracker = field(default_factory=SubmissionTracker)
    summary: BuildSummary | None = None
    closing: bool = False
    completion: asyncio.Future[BuildHandle] | None = None


class BuildLifecycleManager:
    """Own the identity and state of the builds started by this process.

    A build is only closed once every submission registered for it has
    settled. Several builds may be open at once, each with its own waiting
    set.
    """

    def __init__(self, config: ReporterConfig, client: DashboardClient) -> None:
        """Initialize the lifecycle manager.

        Args:
            config: Reporter configuration.
            client: Dashboard API client.
        """
        self._config = config
        self._client = client
        self._builds: dict[str, _BuildEntry] = {}

    def _entry(self, handle: BuildHandle | None) -> _BuildEntry:
        if handle is None or not handle.build_id:
            raise NoBuildError("No build id available, the build was never started")
        entry = self._builds.get(handle.build_id)
        if entry is None:
            raise NoBuildError(f"Build {handle.build_id} was not started here")
        return entry

    async def begin_build(self, environment: str | None = None) -> BuildHandle:
        """Start a build and move it to in progress.

        Args:
            environment: Environment label, defaults to the configured one.

        Returns:
            Handle of the started build.

        Raises:
            ConfigurationError: If endpoint, project or key is missing.
            BuildStartError: If the dashboard did not start the build.
        """
        self._config.require_complete()
        environment = environment or self._config.environment

        build_id = await self._client.start_build(environment)
        if build_id in self._builds:
            raise BuildStartError(f"Dashboard returned build id {build_id} twice")

        handle = BuildHandle(
            build_id=build_id,
            environment=environment,
            project_id=self._config.project_id or "",
        )
        self._builds[build_id] = _BuildEntry(handle=handle)
        logger.info("Build started: %s (%s)", build_id, environment)
        return handle

    def attach_build(
        self, build_id: str, environment: str | None = None
    ) -> BuildHandle:
        """Track a build that was started by another process.

        Raises:
            ConfigurationError: If endpoint, project or key is missing.
            NoBuildError: If ``build_id`` is empty.
        """
        self._config.require_complete()
        entry = self._builds.get(build_id)
        if entry is not None:
            return entry.handle

        handle = BuildHandle(
            build_id=build_id,
            environment=environment or self._config.environment,
            project_id=self._config.project_id or "",
        )
        self._builds[build_id] = _BuildEntry(handle=handle)
        logger.info("Attached to build %s", build_id)
        return handle

    def state(self, handle: BuildHandle | None) -> BuildState:
        """Return the lifecycle state of a build."""
        if handle is None or handle.build_id not in self._builds:
            return BuildState.NOT_STARTED
        return self._builds[handle.build_id].state

    def require_in_progress(self, handle: BuildHandle | None) -> None:
        """Raise NoBuildError unless the build accepts submissions."""
        entry = self._entry(handle)
        if entry.state is not BuildState.IN_PROGRESS or entry.closing:
            raise NoBuildError(f"Build {entry.handle.build_id} is already completed")

    def register_submission(
        self, handle: BuildHandle, submission: asyncio.Future
    ) -> None:
        """Add a submission to the build's waiting set.

        Raises:
            NoBuildError: If the build is unknown or already completed.
        """
        self.require_in_progress(handle)
        self._builds[handle.build_id].tracker.register(submission)

    def summary(self, handle: BuildHandle) -> BuildSummary | None:
        """Submission counts recorded when the build was ended."""
        return self._entry(handle).summary

    async def end_build(
        self,
        handle: BuildHandle | None,
        final_status: str,
        duration: int,
        environment: str | None = None,
    ) -> BuildHandle:
        """Wait for every registered submission, then complete the build.

        The build stops accepting submissions as soon as this is called.
        Concurrent calls share one completion, and cancelling a caller does
        not cancel the completion, so a retried call still waits for every
        submission and the dashboard sees a single completion request.
        Failed submissions do not stop the build from closing.

        Raises:
            NoBuildError: If the build never started.
            BuildCompleteError: If the dashboard did not complete the build.
        """
        entry = self._entry(handle)
        if entry.state is BuildState.COMPLETED:
            logger.warning("Build %s is already completed", entry.handle.build_id)
            return entry.handle

        if entry.completion is not None and not entry.completion.done():
            logger.warning(
                "Build %s is already being completed, waiting for it",
                entry.handle.build_id,
            )
        else:
            # A finished completion here means the last attempt failed.
            entry.closing = True
            entry.completion = asyncio.ensure_future(
                self._complete(
                    entry,
                    final_status,
                    duration,
                    environment or entry.handle.environment,
                )
            )
        return await asyncio.shield(entry.completion)

    async def _complete(
        self,
        entry: _BuildEntry,
        final_status: str,
        duration: int,
        environment: str,
    ) -> BuildHandle:
        summary = await entry.tracker.wait_all()
        entry.summary = summary
        logger.info(
            "All test case submissions settled for build %s: %d succeeded, "
            "%d failed",
            entry.handle.build_id,
            summary.succeeded,
            summary.failed,
        )

        await self._client.complete_build(
            entry.handle.build_id, final_status, duration, environment
        )
        entry.state = BuildState.COMPLETED
        return entry.handle
