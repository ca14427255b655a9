"""Shared pytest fixtures for the gatekeeper test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path

import pytest

from gatekeeper.config import Settings, override_settings
from gatekeeper.gate import GateKeeper
from gatekeeper.security.models import PermissionLevel
from gatekeeper.sessions import ConnectionEvent, Session, SessionLayer
from gatekeeper.storage.config_store import ConfigStore
from gatekeeper.storage.tenant import TenantContext, resolve_tenant


# ---------------------------------------------------------------------------
# Session layer double
# ---------------------------------------------------------------------------


class FakeSessionLayer(SessionLayer):
    """In-memory host: records messages and disconnects instead of sending them."""

    def __init__(
        self,
        sessions: list[Session] | None = None,
        known: Mapping[int, str | None] | None = None,
    ) -> None:
        self.sessions: list[Session] = list(sessions or [])
        self.known: dict[int, str | None] = dict(known or {})
        self.messages: list[tuple[int, str]] = []
        self.disconnects: list[tuple[int, str]] = []

    def online_sessions(self) -> list[Session]:
        return list(self.sessions)

    def known_players(self) -> Mapping[int, str | None]:
        return dict(self.known)

    def send_message(self, session: Session, message: str) -> None:
        self.messages.append((session.slot, message))

    def disconnect(self, session: Session, reason: str) -> None:
        self.disconnects.append((session.slot, reason))
        self.sessions = [s for s in self.sessions if s.slot != session.slot]


def make_event(
    identity: int,
    name: str | None = "Player",
    address: str | None = "10.0.0.1",
    level: PermissionLevel = PermissionLevel.USER,
    slot: int = 0,
) -> ConnectionEvent:
    return ConnectionEvent(
        Session(slot=slot, identity=identity, name=name, address=address, permission_level=level)
    )


# ---------------------------------------------------------------------------
# Settings and storage
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    settings = Settings(logging={"level": "debug", "format": "console"})
    override_settings(settings)
    return settings


@pytest.fixture
def world_dir(tmp_path: Path) -> Path:
    path = tmp_path / "MyWorld"
    path.mkdir()
    return path


@pytest.fixture
def tenant(world_dir: Path, test_settings: Settings) -> TenantContext:
    return resolve_tenant("world-1", world_dir, test_settings.storage)


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@pytest.fixture
def sessions() -> FakeSessionLayer:
    return FakeSessionLayer()


@pytest.fixture
def gate(test_settings: Settings, sessions: FakeSessionLayer, world_dir: Path) -> GateKeeper:
    g = GateKeeper(settings=test_settings, sessions=sessions)
    g.switch_tenant("world-1", world_dir)
    return g


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Undo handler and level changes made by configure_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
