"""GateKeeper — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. User config:   ~/.gatekeeper/config.yaml
    3. An explicit config file passed to ``Settings.load()``
    4. Environment variables prefixed with GATEKEEPER_

All settings are immutable after load.  The process bootstrap calls
``Settings.load()`` once and hands the instance to ``GateKeeper``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    """File names used inside each world's GateKeeper directory."""

    directory_name: str = Field(
        default="GateKeeper",
        description=(
            "Directory created inside a world folder. Single-file saves get a "
            "sibling '<save name>.<directory_name>' directory instead."
        ),
    )
    allowlist_file: str = "whitelist.json"
    legacy_allowlist_file: str = Field(
        default="whitelist.txt",
        description="Pre-JSON key/value allow-list, migrated once when found.",
    )
    name_cache_file: str = "name_cache.json"
    denied_log_file: str = "denied_log.txt"
    admin_log_file: str = "admin_log.txt"
    known_players_file: str = "known_players.txt"
    broken_suffix: str = Field(
        default="broken",
        description="Malformed files are renamed to '<file>.<broken_suffix>-<timestamp>'.",
    )


class AuditConfig(BaseModel):
    recent_capacity: Annotated[int, Field(ge=1, le=10_000)] = Field(
        default=50,
        description="Denied attempts kept in memory (oldest evicted first).",
    )
    recent_display: Annotated[int, Field(ge=1, le=100)] = Field(
        default=10,
        description="Attempts shown by 'whitelist recent'.",
    )


class NotifyConfig(BaseModel):
    per_identity_cooldown_seconds: Annotated[float, Field(ge=0.0, le=86_400.0)] = Field(
        default=60.0,
        description="Minimum gap between two operator alerts about the same identity.",
    )
    global_min_interval_seconds: Annotated[float, Field(ge=0.0, le=3600.0)] = Field(
        default=3.0,
        description="Minimum gap between any two operator alerts.",
    )


class SessionConfig(BaseModel):
    privileged_level: Literal["moderator", "admin", "owner", "server"] = Field(
        default="admin",
        description="Sessions at or above this level bypass the gate and are auto-enrolled.",
    )
    command_name: str = Field(
        default="whitelist",
        description="Name of the administrative command family, used in help and hints.",
    )


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GATEKEEPER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables."""
        data: dict[str, object] = {}

        candidates = [Path.home() / ".gatekeeper" / "config.yaml"]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)


# Module-level singleton, replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
