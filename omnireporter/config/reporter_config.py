"""Pydantic model for the Omni reporter configuration."""

from pydantic import BaseModel

from omnireporter.const import (
    DEFAULT_BASE_URL,
    DEFAULT_ENVIRONMENT,
    DEFAULT_FINISH_TIMEOUT_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_UPLOAD_TIMEOUT_SECONDS,
)
from omnireporter.exceptions import ConfigurationError

REQUIRED_FIELDS = ("base_url", "project_id", "api_key")


class ReporterConfig(BaseModel):
    """Configuration options for reporting to the Omni dashboard.

    Attributes:
        base_url: base URL of the dashboard API.
        project_id: dashboard project that builds are created under.
        api_key: opaque credential sent as the ``x-api-key`` header.
        environment: environment label used when none is given per build.
        request_timeout: timeout in seconds for dashboard API calls.
        upload_timeout: timeout in seconds for a single artifact upload.
        finish_timeout: seconds an integration waits for the build to close.
    """

    base_url: str | None = DEFAULT_BASE_URL
    project_id: str | None = None
    api_key: str | None = None
    environment: str = DEFAULT_ENVIRONMENT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    finish_timeout: float = DEFAULT_FINISH_TIMEOUT_SECONDS

    def missing_fields(self) -> list[str]:
        """Return the names of required fields that are unset or blank."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def require_complete(self) -> None:
        """Check that the endpoint, project and credential are all present.

        Raises:
            ConfigurationError: If any of them is absent.
        """
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Missing Omni reporter configuration: {', '.join(missing)}",
                missing=missing,
            )

    @property
    def api_root(self) -> str:
        """Base URL without a trailing slash."""
        return (self.base_url or "").rstrip("/")
