import logging
from pathlib import Path

import pytest
import yaml

from omnireporter.config.config_manager import ConfigManager
from omnireporter.config.profiles import ProfileManager
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.const import DEFAULT_BASE_URL
from omnireporter.exceptions import (
    ConfigurationError,
    ProfileAlreadyExist,
    ProfileNotFound,
)


@pytest.fixture
def profile_manager(tmp_path: Path) -> ProfileManager:
    return ProfileManager(home_path=tmp_path)


def test_defaults():
    config = ReporterConfig()

    assert config.base_url == DEFAULT_BASE_URL
    assert config.environment == "production"
    assert config.missing_fields() == ["project_id", "api_key"]


def test_require_complete_names_missing_fields():
    config = ReporterConfig(base_url="", project_id="p")

    with pytest.raises(ConfigurationError) as exc_info:
        config.require_complete()

    assert exc_info.value.missing == ["base_url", "api_key"]
    assert "base_url" in str(exc_info.value)
    assert "api_key" in str(exc_info.value)


def test_api_root_strips_trailing_slash():
    assert ReporterConfig(base_url="https://omni.test/api/v1/").api_root == (
        "https://omni.test/api/v1"
    )


def test_create_and_get_profile(profile_manager, tmp_path: Path):
    profile_manager.create_profile(
        "ci", {"project_id": "proj-9", "api_key": "k", "environment": None}
    )

    stored = tmp_path / ".omnireporter" / "profiles" / "ci.yaml"
    assert yaml.safe_load(stored.read_text())["project_id"] == "proj-9"

    loaded = profile_manager.get_profile("ci")
    assert loaded.project_id == "proj-9"
    assert loaded.api_key == "k"
    assert loaded.environment == "production"
    assert profile_manager.list_profiles() == ["ci"]


def test_create_existing_profile_raises(profile_manager):
    profile_manager.create_profile("ci")

    with pytest.raises(ProfileAlreadyExist):
        profile_manager.create_profile("ci")


def test_get_missing_profile_raises(profile_manager):
    with pytest.raises(ProfileNotFound):
        profile_manager.get_profile("nope")


def test_update_profile_ignores_none(profile_manager):
    profile_manager.create_profile("ci", {"project_id": "p1", "api_key": "k1"})

    updated = profile_manager.update_profile(
        "ci", {"project_id": "p2", "api_key": None}
    )

    assert updated.project_id == "p2"
    assert updated.api_key == "k1"
    assert profile_manager.get_profile("ci").project_id == "p2"


def test_list_profiles_without_directory(profile_manager):
    assert profile_manager.list_profiles() == []


def test_environment_overrides_profile(profile_manager, monkeypatch):
    profile_manager.create_profile("ci", {"project_id": "from-profile"})
    monkeypatch.setenv("OMNI_PROJECT_ID", "from-env")
    monkeypatch.setenv("API_KEY", "legacy-key")
    monkeypatch.setenv("OMNI_UPLOAD_TIMEOUT", "42")

    config = ConfigManager(profile_manager, "ci").resolve_effective_config()

    assert config.project_id == "from-env"
    assert config.api_key == "legacy-key"
    assert config.upload_timeout == 42.0


def test_prefixed_variable_wins_over_bare_name(profile_manager, monkeypatch):
    monkeypatch.setenv("PROJECT_ID", "bare")
    monkeypatch.setenv("OMNI_PROJECT_ID", "prefixed")

    config = ConfigManager(profile_manager).resolve_effective_config()

    assert config.project_id == "prefixed"


def test_explicit_overrides_win_and_none_is_ignored(profile_manager, monkeypatch):
    monkeypatch.setenv("OMNI_ENVIRONMENT", "from-env")
    monkeypatch.setenv("OMNI_API_KEY", "env-key")

    config = ConfigManager(profile_manager).resolve_effective_config(
        {"environment": "cli", "api_key": None}
    )

    assert config.environment == "cli"
    assert config.api_key == "env-key"


def test_non_numeric_timeout_is_ignored(profile_manager, monkeypatch, caplog):
    monkeypatch.setenv("OMNI_REQUEST_TIMEOUT", "soon")

    with caplog.at_level(logging.WARNING):
        config = ConfigManager(profile_manager).resolve_effective_config()

    assert config.request_timeout == 30.0
    assert "request_timeout" in caplog.text


def test_missing_profile_propagates(profile_manager):
    with pytest.raises(ProfileNotFound):
        ConfigManager(profile_manager, "ghost").resolve_effective_config()
