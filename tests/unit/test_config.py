"""Unit tests — Settings.load, get_settings, override_settings."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from gatekeeper.config import Settings, get_settings, override_settings


@pytest.mark.unit
class TestSettingsLoad:
    def test_load_defaults_when_no_files(self) -> None:
        with patch.object(Path, "exists", return_value=False):
            settings = Settings.load()
        assert settings.storage.directory_name == "GateKeeper"
        assert settings.storage.allowlist_file == "whitelist.json"
        assert settings.audit.recent_capacity == 50
        assert settings.notify.per_identity_cooldown_seconds == 60.0
        assert settings.notify.global_min_interval_seconds == 3.0
        assert settings.sessions.privileged_level == "admin"

    def test_load_from_custom_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "notify:\n  per_identity_cooldown_seconds: 120\n"
            "sessions:\n  command_name: gk\n"
        )
        settings = Settings.load(config_file=config_file)
        assert settings.notify.per_identity_cooldown_seconds == 120.0
        assert settings.sessions.command_name == "gk"

    def test_empty_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert isinstance(Settings.load(config_file=config_file), Settings)

    def test_env_override(self) -> None:
        with patch.dict(os.environ, {"GATEKEEPER_AUDIT__RECENT_CAPACITY": "7"}):
            settings = Settings()
        assert settings.audit.recent_capacity == 7

    def test_capacity_bounds_enforced(self) -> None:
        with pytest.raises(ValidationError):
            Settings(audit={"recent_capacity": 0})

    def test_unknown_privileged_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(sessions={"privileged_level": "user"})


@pytest.mark.unit
class TestGetSettings:
    def test_get_settings_returns_settings_instance(self) -> None:
        import gatekeeper.config as cfg_module

        original = cfg_module._settings
        try:
            cfg_module._settings = None
            with patch.object(Path, "exists", return_value=False):
                settings = get_settings()
            assert isinstance(settings, Settings)
        finally:
            cfg_module._settings = original

    def test_override_settings(self) -> None:
        import gatekeeper.config as cfg_module

        original = cfg_module._settings
        try:
            custom = Settings(sessions={"command_name": "wl"})
            override_settings(custom)
            assert get_settings() is custom
        finally:
            cfg_module._settings = original
