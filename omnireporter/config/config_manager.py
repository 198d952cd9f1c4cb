"""Resolve reporter configuration from profile, environment and overrides."""

from __future__ import annotations

import logging
import os
from typing import Any

from omnireporter.config.profiles import ProfileManager
from omnireporter.config.reporter_config import ReporterConfig

logger = logging.getLogger(__name__)

# Bare PROJECT_ID and API_KEY are accepted as fallbacks for existing CI setups.
_ENV_MAP: dict[str, tuple[str, ...]] = {
    "base_url": ("OMNI_BASE_URL",),
    "project_id": ("OMNI_PROJECT_ID", "PROJECT_ID"),
    "api_key": ("OMNI_API_KEY", "API_KEY"),
    "environment": ("OMNI_ENVIRONMENT",),
    "request_timeout": ("OMNI_REQUEST_TIMEOUT",),
    "upload_timeout": ("OMNI_UPLOAD_TIMEOUT",),
    "finish_timeout": ("OMNI_FINISH_TIMEOUT",),
}

_FLOAT_FIELDS = {"request_timeout", "upload_timeout", "finish_timeout"}


class ConfigManager:
    """Build the effective reporter configuration."""

    def __init__(
        self, profile_manager: ProfileManager, profile: str | None = None
    ) -> None:
        """Initialise ConfigManager.

        Args:
            profile_manager: ProfileManager instance
            profile: Name of the profile to load as the base configuration.
        """
        self.profile_manager = profile_manager
        self.profile = profile

    def _read_env_overrides(self) -> dict[str, Any]:
        """Read configuration overrides from environment variables."""
        overrides: dict[str, Any] = {}

        for field_name, env_var_names in _ENV_MAP.items():
            env_value = next(
                (os.environ[name] for name in env_var_names if os.environ.get(name)),
                None,
            )
            if env_value is None:
                continue

            if field_name in _FLOAT_FIELDS:
                try:
                    overrides[field_name] = float(env_value)
                except ValueError:
                    logger.warning(
                        "Ignoring non-numeric value %r for %s", env_value, field_name
                    )
                    continue
            else:
                overrides[field_name] = env_value

        return overrides

    def resolve_effective_config(
        self, overrides: dict[str, Any] | None = None
    ) -> ReporterConfig:
        """Resolve the effective configuration for this run.

        Args:
            overrides: Explicit values, e.g. from command line options. Entries
                set to ``None`` are ignored.

        Returns:
            The resolved ``ReporterConfig``.
        """
        base_config = self.profile_manager.get_profile(self.profile)
        merged_config = base_config.model_copy(update=self._read_env_overrides())

        if overrides:
            explicit = {
                name: value for name, value in overrides.items() if value is not None
            }
            merged_config = merged_config.model_copy(update=explicit)

        return merged_config
