"""Reporter profiles stored as YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.const import CONFIG_DIR_NAME
from omnireporter.exceptions import ProfileAlreadyExist, ProfileNotFound


class ProfileManager:
    """Manage reporter profiles stored on disk."""

    def __init__(self, home_path: Path | None = None) -> None:
        """Initialise ProfileManager."""
        self._home_path = home_path or Path.home()

    @property
    def home_path(self) -> Path:
        """Return the home path used for resolving configuration."""
        return self._home_path

    def _profiles_dir(self) -> Path:
        return self._home_path / CONFIG_DIR_NAME / "profiles"

    def _get_profile_path(self, profile: str) -> Path:
        profiles_dir = self._profiles_dir()
        profiles_dir.mkdir(parents=True, exist_ok=True)
        return profiles_dir / f"{profile}.yaml"

    def list_profiles(self) -> list[str]:
        """List available profile names.

        Returns:
            List of profile names without the ``.yaml`` suffix.
        """
        profiles_dir = self._profiles_dir()
        if not profiles_dir.exists():
            return []
        return sorted(
            path.stem
            for path in profiles_dir.iterdir()
            if path.is_file() and path.suffix == ".yaml"
        )

    def get_profile(self, profile: str | None = None) -> ReporterConfig:
        """Load a profile configuration from disk.

        Args:
            profile: Name of the profile to load, None for the defaults.

        Returns:
            Parsed reporter configuration for the profile.

        Raises:
            ProfileNotFound: If the profile YAML file does not exist.
        """
        if profile is None:
            return ReporterConfig()

        profile_path = self._get_profile_path(profile)
        try:
            with profile_path.open("r") as profile_file:
                profile_data = yaml.safe_load(profile_file) or {}
        except FileNotFoundError as exc:
            raise ProfileNotFound(f"Profile {profile!r} not found.") from exc

        return ReporterConfig(**profile_data)

    def create_profile(
        self, profile: str, values: dict[str, Any] | None = None
    ) -> ReporterConfig:
        """Create a new profile.

        Args:
            profile: Name of the profile to create.
            values: Initial field values; unset fields keep their defaults.

        Raises:
            ProfileAlreadyExist: If a profile with the same name already exists.
        """
        profile_path = self._get_profile_path(profile)
        initial = {
            name: value for name, value in (values or {}).items() if value is not None
        }
        reporter_config = ReporterConfig(**initial)

        try:
            with profile_path.open("x") as profile_file:
                yaml.safe_dump(reporter_config.model_dump(), profile_file)
        except FileExistsError as exc:
            raise ProfileAlreadyExist(f"Profile {profile!r} already exists.") from exc
        return reporter_config

    def update_profile(self, profile: str, updates: dict[str, Any]) -> ReporterConfig:
        """Update an existing profile with the provided field values.

        Fields with a value of ``None`` are ignored.

        Raises:
            ProfileNotFound: If the profile YAML file does not exist.
        """
        current = self.get_profile(profile)
        filtered_updates = {
            name: value for name, value in updates.items() if value is not None
        }
        new_config = current.model_copy(update=filtered_updates)

        with self._get_profile_path(profile).open("w") as profile_file:
            yaml.safe_dump(new_config.model_dump(), profile_file)

        return new_config
