"""Exception classes for the Omni reporter."""

from __future__ import annotations


class OmniReporterError(Exception):
    """Base error for the Omni reporter."""


class ConfigurationError(OmniReporterError):
    """Raised when the base URL, project id or API key is missing."""

    def __init__(self, message: str, missing: list[str] | None = None):
        """Initialize ConfigurationError.

        Args:
            message: Human readable description of the problem.
            missing: Names of the configuration fields that are absent.
        """
        super().__init__(message)
        self.missing = missing or []


class ProfileNotFound(ConfigurationError):
    """Raised when a requested profile cannot be found on disk."""


class ProfileAlreadyExist(OmniReporterError):
    """Raised when attempting to create a profile that already exists."""


class DashboardRequestError(OmniReporterError):
    """A dashboard call failed at the transport or HTTP level."""

    def __init__(
        self, message: str, status: int | None = None, body: str | None = None
    ):
        """Initialize DashboardRequestError.

        Args:
            message: Human readable description of the failure.
            status: Upstream HTTP status, when a response was received.
            body: Upstream response body or extracted error detail.
        """
        super().__init__(message)
        self.status = status
        self.body = body


class BuildStartError(DashboardRequestError):
    """Raised when the dashboard refuses or fails to start a build."""


class BuildCompleteError(DashboardRequestError):
    """Raised when the dashboard refuses or fails to complete a build."""


class SubmissionError(DashboardRequestError):
    """Raised when posting a test case to the dashboard fails."""


class UploadTransportError(DashboardRequestError):
    """Raised when an artifact PUT fails or returns a non-2xx status."""


class NoBuildError(OmniReporterError):
    """Raised when an operation needs a started build and there is none."""


class EmptySubmissionResponseError(OmniReporterError):
    """Raised when the dashboard response holds no test case entry."""


class ArtifactUploadError(OmniReporterError):
    """Raised when one or more artifacts of a test case failed to upload."""

    def __init__(self, test_name: str, errors: list[tuple[str, BaseException]]):
        """Initialize ArtifactUploadError.

        Args:
            test_name: Name of the test case owning the artifacts.
            errors: Pairs of artifact name and the error its upload raised.
        """
        names = ", ".join(name for name, _ in errors)
        super().__init__(
            f"{len(errors)} artifact upload(s) failed for test case "
            f"{test_name!r}: {names}"
        )
        self.test_name = test_name
        self.errors = errors
