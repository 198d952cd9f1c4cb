"""Report test runs, test cases and their artifacts to the Omni dashboard."""

from .config.reporter_config import ReporterConfig
from .exceptions import (
    ArtifactUploadError,
    BuildCompleteError,
    BuildStartError,
    ConfigurationError,
    EmptySubmissionResponseError,
    NoBuildError,
    OmniReporterError,
    SubmissionError,
    UploadTransportError,
)
from .models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildHandle,
    Priority,
    TestCaseRecord,
    TestCaseResult,
    TestStatus,
)
from .orchestrator import Orchestrator
from .payload import build_test_case_record

__version__ = "0.3.0"

__all__ = [
    "ArtifactDescriptor",
    "ArtifactKind",
    "ArtifactUploadError",
    "BuildCompleteError",
    "BuildHandle",
    "BuildStartError",
    "ConfigurationError",
    "EmptySubmissionResponseError",
    "NoBuildError",
    "OmniReporterError",
    "Orchestrator",
    "Priority",
    "ReporterConfig",
    "SubmissionError",
    "TestCaseRecord",
    "TestCaseResult",
    "TestStatus",
    "UploadTransportError",
    "build_test_case_record",
]
