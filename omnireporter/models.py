"""Models for builds, test case records and artifacts.

Wire payloads sent to the dashboard are pydantic models; values that only
live inside the reporter are frozen dataclasses.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from omnireporter.const import CONTENT_TYPE_MAPPING, DEFAULT_MODULE
from omnireporter.exceptions import NoBuildError


class Priority(str, Enum):
    """Closed set of test case priorities."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class TestStatus(str, Enum):
    """Statuses the dashboard accepts for a test case."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class BuildState(str, Enum):
    """Lifecycle states for a build.

    State transitions:
    - NOT_STARTED + begin_build -> IN_PROGRESS
    - IN_PROGRESS + end_build   -> COMPLETED
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ArtifactKind(str, Enum):
    """Kinds of artifact slots the dashboard declares."""

    SCREENSHOT = "screenshot"
    TRACE = "trace"

    @property
    def content_type(self) -> str:
        """Return the MIME type uploaded for this kind of artifact."""
        return CONTENT_TYPE_MAPPING[self.value]


class LogLine(BaseModel):
    """A single log line attached to a test case."""

    timestamp: str
    level: str = "INFO"
    message: str


class Step(BaseModel):
    """An ordered step of a test case."""

    name: str
    sequence_number: int
    duration: float = 0
    status: str = TestStatus.PASSED.value


class ScreenshotMeta(BaseModel):
    """Screenshot entry of the artifact manifest."""

    name: str
    timestamp: str


class TraceMeta(BaseModel):
    """Trace entry of the artifact manifest."""

    name: str


class TestCaseRecord(BaseModel):
    """Structured result of one executed test, submitted exactly once."""

    __test__ = False

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    name: str
    module: str = DEFAULT_MODULE
    priority: Priority = Priority.P1
    tags: list[str] = []
    status: TestStatus
    duration: float = 0
    steps: list[Step] = []
    stdout: list[LogLine] = []
    screenshots: list[ScreenshotMeta] = []
    traces: list[TraceMeta] = []
    error_message: str | None = ""
    error_stack_trace: str | None = ""

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("test case name must not be empty")
        return value

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready body sent for this record."""
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class ArtifactDescriptor:
    """A locally produced artifact that may be uploaded.

    Attributes:
        name: Matching key against the names the dashboard declares.
        path: Local file path, None when the run produced no file.
        kind: Kind of artifact, used to pick the content type.
        content_type: Explicit MIME type overriding the kind default.
    """

    name: str
    path: str | None = None
    kind: ArtifactKind = ArtifactKind.SCREENSHOT
    content_type: str | None = None

    @property
    def is_available(self) -> bool:
        """Whether a local file was declared for this artifact."""
        return bool(self.path)

    @property
    def resolved_content_type(self) -> str:
        """MIME type to send with the upload."""
        return self.content_type or self.kind.content_type


@dataclass(frozen=True)
class UploadTarget:
    """A signed upload URL the dashboard issued for one artifact."""

    name: str
    upload_url: str
    kind: ArtifactKind = ArtifactKind.SCREENSHOT


@dataclass(frozen=True)
class PendingUpload:
    """A local artifact paired with the target it will be uploaded to."""

    descriptor: ArtifactDescriptor
    target: UploadTarget


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of matching declared targets against local artifacts."""

    matched: list[PendingUpload] = field(default_factory=list)
    unmatched: list[UploadTarget] = field(default_factory=list)


@dataclass(frozen=True)
class BuildHandle:
    """Identity of a started build, threaded through every later call."""

    build_id: str
    environment: str
    project_id: str
    started_at: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        if not self.build_id:
            raise NoBuildError("A build handle requires a non-empty build id")

    def elapsed_ms(self) -> int:
        """Milliseconds elapsed since the build was started."""
        return int((time.monotonic() - self.started_at) * 1000)


@dataclass(frozen=True)
class TestCaseResult:
    """Outcome of a test case submission and its artifact uploads."""

    __test__ = False

    name: str
    response: dict[str, Any]
    uploaded: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BuildSummary:
    """Counts of resolved submissions for one build."""

    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        """Number of submissions that reached a terminal state."""
        return self.succeeded + self.failed
