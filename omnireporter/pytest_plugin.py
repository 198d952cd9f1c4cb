"""pytest plugin that reports a test session to the Omni dashboard.

Reporting is off unless ``--omni-report`` is given or ``OMNI_REPORT`` is set.
A build is started when the session starts, every test is submitted as soon
as its teardown finished, and the build is completed when the session ends.
Reporting failures are logged and never change the outcome of the run.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
from collections.abc import Sequence
from datetime import datetime, timezone

import pytest

from omnireporter.config.config_manager import ConfigManager
from omnireporter.config.profiles import ProfileManager
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.const import DEFAULT_TRACE_NAME
from omnireporter.event_loop_runner import EventLoopRunner
from omnireporter.exceptions import NoBuildError, OmniReporterError
from omnireporter.models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildHandle,
    LogLine,
    Step,
    TestCaseRecord,
    TestStatus,
)
from omnireporter.orchestrator import Orchestrator
from omnireporter.payload import build_test_case_record

logger = logging.getLogger(__name__)

PLUGIN_NAME = "omnireporter-session"
ENABLE_ENV_VAR = "OMNI_REPORT"
TAGS_MARKER = "omni_tags"

_TRUTHY = {"1", "true", "yes", "y"}


class ArtifactCollector:
    """Artifacts a test attaches for upload, exposed as ``omni_artifacts``."""

    def __init__(self) -> None:
        self._artifacts: list[ArtifactDescriptor] = []

    def add(self, descriptor: ArtifactDescriptor) -> ArtifactDescriptor:
        self._artifacts.append(descriptor)
        return descriptor

    def screenshot(self, name: str, path: str | os.PathLike) -> ArtifactDescriptor:
        """Attach a PNG screenshot under the name the dashboard will declare."""
        return self.add(
            ArtifactDescriptor(
                name=name, path=os.fspath(path), kind=ArtifactKind.SCREENSHOT
            )
        )

    def trace(
        self, path: str | os.PathLike, name: str = DEFAULT_TRACE_NAME
    ) -> ArtifactDescriptor:
        """Attach a zipped execution trace."""
        return self.add(
            ArtifactDescriptor(name=name, path=os.fspath(path), kind=ArtifactKind.TRACE)
        )

    @property
    def artifacts(self) -> list[ArtifactDescriptor]:
        return list(self._artifacts)


ARTIFACTS_KEY = pytest.StashKey[ArtifactCollector]()


def _reporting_enabled(config: pytest.Config) -> bool:
    if config.getoption("omni_report"):
        return True
    return os.environ.get(ENABLE_ENV_VAR, "").lower() in _TRUTHY


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("omnireporter", "Omni dashboard reporting")
    group.addoption(
        "--omni-report",
        action="store_true",
        default=False,
        help="Report this session to the Omni dashboard.",
    )
    group.addoption("--omni-base-url", default=None, help="Dashboard API base URL.")
    group.addoption("--omni-project-id", default=None, help="Dashboard project id.")
    group.addoption(
        "--omni-environment", default=None, help="Environment label of the build."
    )
    group.addoption(
        "--omni-profile", default=None, help="Reporter profile to load settings from."
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{TAGS_MARKER}(*tags): dashboard tags for the test, e.g. '@P2', '@smoke'",
    )
    if _reporting_enabled(config):
        config.pluginmanager.register(OmniReporterPlugin(config), PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        plugin.shutdown()
        config.pluginmanager.unregister(plugin)


@pytest.fixture
def omni_artifacts(request: pytest.FixtureRequest) -> ArtifactCollector:
    """Attach screenshots and traces to the current test's dashboard entry."""
    collector = ArtifactCollector()
    request.node.stash[ARTIFACTS_KEY] = collector
    return collector


def collect_tags(item: pytest.Item) -> list[str]:
    """Tags given to a test through the ``omni_tags`` marker."""
    tags: list[str] = []
    for marker in item.iter_markers(name=TAGS_MARKER):
        tags.extend(str(tag) for tag in marker.args)
    return tags


def status_from_reports(reports: Sequence[pytest.TestReport]) -> TestStatus:
    """Failed if any phase failed, skipped if any was skipped, else passed."""
    if any(report.failed for report in reports):
        return TestStatus.FAILED
    if any(report.skipped for report in reports):
        return TestStatus.SKIPPED
    return TestStatus.PASSED


def _phase_status(report: pytest.TestReport) -> str:
    if report.failed:
        return TestStatus.FAILED.value
    if report.skipped:
        return TestStatus.SKIPPED.value
    return TestStatus.PASSED.value


def _error_details(reports: Sequence[pytest.TestReport]) -> tuple[str, str]:
    failing = next((report for report in reports if report.failed), None)
    if failing is None:
        return "", ""
    stack = failing.longreprtext
    crash = getattr(failing.longrepr, "reprcrash", None)
    if crash is not None:
        message = crash.message
    else:
        lines = stack.strip().splitlines()
        message = lines[-1] if lines else ""
    return message, stack


def record_from_reports(
    name: str,
    reports: Sequence[pytest.TestReport],
    tags: Sequence[str] = (),
    artifacts: Sequence[ArtifactDescriptor] = (),
) -> TestCaseRecord:
    """Build the dashboard record for a test from its phase reports."""
    timestamp = datetime.now(timezone.utc).isoformat()
    steps = [
        Step(
            name=report.when,
            sequence_number=index,
            duration=round(report.duration * 1000),
            status=_phase_status(report),
        )
        for index, report in enumerate(reports, start=1)
    ]
    # The last report carries the output captured across all phases.
    captured = reports[-1].capstdout if reports else ""
    stdout = [
        LogLine(timestamp=timestamp, level="INFO", message=line)
        for line in captured.splitlines()
        if line.strip()
    ]
    error_message, error_stack = _error_details(reports)
    return build_test_case_record(
        title=name,
        status=status_from_reports(reports).value,
        tags=tags,
        duration=round(sum(report.duration for report in reports) * 1000),
        steps=steps,
        stdout=stdout,
        screenshots=[a.name for a in artifacts if a.kind is ArtifactKind.SCREENSHOT],
        traces=[a.name for a in artifacts if a.kind is ArtifactKind.TRACE],
        error_message=error_message,
        error_stack=error_stack,
    )


class OmniReporterPlugin:
    """Session-scoped reporter registered when reporting is enabled."""

    def __init__(self, config: pytest.Config) -> None:
        self._pytest_config = config
        self._runner = EventLoopRunner()
        self._orchestrator: Orchestrator | None = None
        self._build: BuildHandle | None = None
        self._finish_timeout: float | None = None
        self._reports: dict[str, list[pytest.TestReport]] = {}
        self._summary: list[str] = []

    def _resolve_config(self) -> ReporterConfig:
        option = self._pytest_config.getoption
        manager = ConfigManager(ProfileManager(), profile=option("omni_profile"))
        reporter_config = manager.resolve_effective_config(
            {
                "base_url": option("omni_base_url"),
                "project_id": option("omni_project_id"),
                "environment": option("omni_environment"),
            }
        )
        reporter_config.require_complete()
        return reporter_config

    @pytest.hookimpl(trylast=True)
    def pytest_sessionstart(self, session: pytest.Session) -> None:
        try:
            reporter_config = self._resolve_config()
        except OmniReporterError as e:
            logger.error("Omni reporting disabled: %s", e)
            self._summary.append(f"Omni reporting disabled: {e}")
            return

        self._finish_timeout = reporter_config.finish_timeout
        self._runner.start()
        self._orchestrator = Orchestrator(reporter_config)
        self._runner.run(self._orchestrator.open())
        try:
            self._build = self._runner.run(self._orchestrator.begin_build())
        except OmniReporterError as e:
            self._summary.append(f"Omni build could not be started: {e}")

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if self._orchestrator is not None:
            self._reports.setdefault(report.nodeid, []).append(report)

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None):
        yield
        reports = self._reports.pop(item.nodeid, [])
        if self._orchestrator is None or not reports:
            return
        collector = item.stash.get(ARTIFACTS_KEY, None)
        artifacts = collector.artifacts if collector is not None else []
        try:
            record = record_from_reports(
                item.name, reports, collect_tags(item), artifacts
            )
        except ValueError as e:
            logger.error("Could not build dashboard record for %s: %s", item.nodeid, e)
            return
        self._runner.schedule(self._enqueue(record, artifacts))

    async def _enqueue(
        self, record: TestCaseRecord, artifacts: list[ArtifactDescriptor]
    ) -> None:
        try:
            self._orchestrator.submit_test_case(self._build, record, artifacts)
        except NoBuildError as e:
            logger.debug("Skipping dashboard upload of %s: %s", record.name, e)

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        if self._orchestrator is None:
            return
        try:
            if self._build is None:
                self._runner.run(self._orchestrator.close())
            else:
                self._finish_build("passed" if exitstatus == 0 else "failed")
        finally:
            # Stopping drains a build that outlived the finish timeout.
            self._runner.stop()

    async def _end_build_and_close(self, final_status: str) -> BuildHandle | None:
        try:
            return await self._orchestrator.end_build(self._build, final_status)
        finally:
            await self._orchestrator.close()

    def _finish_build(self, final_status: str) -> None:
        future = self._runner.schedule(self._end_build_and_close(final_status))
        try:
            completed = future.result(timeout=self._finish_timeout)
        except concurrent.futures.TimeoutError:
            logger.error(
                "Timed out after %ss waiting for build %s to complete",
                self._finish_timeout,
                self._build.build_id,
            )
            self._summary.append(f"Omni build {self._build.build_id} timed out")
            return
        except OmniReporterError as e:
            logger.error("Failed to complete build %s: %s", self._build.build_id, e)
            completed = None

        summary = self._orchestrator.build_manager.summary(self._build)
        if completed is None:
            self._summary.append(f"Omni build {self._build.build_id} not completed")
        else:
            self._summary.append(
                f"Omni build {completed.build_id} completed: "
                f"{summary.succeeded} test cases uploaded, {summary.failed} failed"
            )

    def shutdown(self) -> None:
        """Stop the background loop if the session ended without finishing."""
        if self._runner.is_running():
            self._runner.stop()

    def pytest_terminal_summary(self, terminalreporter) -> None:
        for line in self._summary:
            terminalreporter.write_line(f"[omnireporter] {line}")
