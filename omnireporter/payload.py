"""Derive test case records from raw test metadata."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path

from omnireporter.const import DEFAULT_MODULE, PRIORITY_TAG_PATTERN
from omnireporter.models import (
    ArtifactDescriptor,
    ArtifactKind,
    LogLine,
    Priority,
    ScreenshotMeta,
    Step,
    TestCaseRecord,
    TestStatus,
    TraceMeta,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def extract_priority(tags: Iterable[str]) -> tuple[Priority, list[str]]:
    """Split a priority out of a tag list.

    One leading ``@`` is stripped from every tag. The first tag that
    looks like ``P0`` to ``P3`` becomes the priority and is removed from the
    returned tags; ``P1`` is used when no tag carries a priority.

    Args:
        tags: Raw tags, for example ``["@P2", "@smoke"]``.

    Returns:
        Tuple of (priority, remaining tags).
    """
    cleaned = [tag[1:] if tag.startswith("@") else tag for tag in tags]
    priority_tag = next(
        (tag for tag in cleaned if PRIORITY_TAG_PATTERN.match(tag)), None
    )
    priority = Priority(priority_tag) if priority_tag else Priority.P1
    return priority, [tag for tag in cleaned if tag != priority.value]


def normalize_status(status: str | None) -> TestStatus:
    """Map a framework status onto passed, failed or skipped.

    Anything that is not ``passed`` or ``skipped`` (``timedOut``,
    ``interrupted``, ``error``, unknown values) is reported as failed.
    """
    if status == TestStatus.PASSED.value:
        return TestStatus.PASSED
    if status == TestStatus.SKIPPED.value:
        return TestStatus.SKIPPED
    return TestStatus.FAILED


def default_log_line(title: str, status: str | None) -> LogLine:
    """Summary log line prepended to every record."""
    raw_status = status or "unknown"
    return LogLine(
        timestamp=_now_iso(),
        level="INFO" if raw_status == TestStatus.PASSED.value else "ERROR",
        message=f"{title} {raw_status}",
    )


def build_test_case_record(
    title: str,
    status: str | None,
    tags: Iterable[str] = (),
    duration: float = 0,
    steps: Sequence[Step] = (),
    stdout: Sequence[LogLine] = (),
    screenshots: Iterable[str] = (),
    traces: Iterable[str] = (),
    error_message: str | None = None,
    error_stack: str | None = None,
) -> TestCaseRecord:
    """Build the record submitted for one finished test.

    Args:
        title: Test title, used as the record name.
        status: Raw framework status, normalized with ``normalize_status``.
        tags: Raw tags, the priority tag is extracted from them.
        duration: Test duration in milliseconds.
        steps: Ordered steps of the test.
        stdout: Log lines captured while the test ran.
        screenshots: Names of the screenshots the test produced.
        traces: Names of the traces the test produced.
        error_message: Failure message, if any.
        error_stack: Failure stack trace, if any.

    Returns:
        The immutable test case record.
    """
    priority, filtered_tags = extract_priority(tags)
    timestamp = _now_iso()
    return TestCaseRecord(
        name=title,
        module=", ".join(filtered_tags) or DEFAULT_MODULE,
        priority=priority,
        tags=filtered_tags,
        status=normalize_status(status),
        duration=duration or 0,
        steps=list(steps),
        stdout=[default_log_line(title, status), *stdout],
        screenshots=[
            ScreenshotMeta(name=name, timestamp=timestamp) for name in screenshots
        ],
        traces=[TraceMeta(name=name) for name in traces],
        error_message=error_message or "",
        error_stack_trace=error_stack or "",
    )


def artifacts_from_directory(
    folder: str | Path,
    names: Iterable[str],
    kind: ArtifactKind = ArtifactKind.SCREENSHOT,
) -> list[ArtifactDescriptor]:
    """Describe artifacts stored under a snapshot folder.

    Files that do not exist are still described, without a path, so the
    reconciler reports them as declared but unavailable.
    """
    base = Path(folder)
    descriptors = []
    for name in names:
        candidate = base / name
        descriptors.append(
            ArtifactDescriptor(
                name=name,
                path=str(candidate) if candidate.is_file() else None,
                kind=kind,
            )
        )
    return descriptors
