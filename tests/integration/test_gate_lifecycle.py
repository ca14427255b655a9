"""Integration tests — full gate lifecycle against a real world directory.

These tests wire GateKeeper, ConnectionPolicy and WhitelistCommand together
the way a host server does and check the end-to-end flow:
    connect → reject → operator alert → approve-last → reconnect admitted
plus restarts, corrupted files and concurrent access.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from conftest import FakeSessionLayer, make_event
from gatekeeper.commands import WhitelistCommand
from gatekeeper.config import Settings
from gatekeeper.connection import ConnectionPolicy
from gatekeeper.gate import GateKeeper
from gatekeeper.security.models import ConnectionOutcome, PermissionLevel
from gatekeeper.sessions import Session


def _boot(settings: Settings, sessions: FakeSessionLayer, world: Path) -> GateKeeper:
    gate = GateKeeper(settings=settings, sessions=sessions)
    gate.switch_tenant("world-1", world)
    return gate


@pytest.mark.integration
class TestApprovalFlow:
    def test_reject_alert_approve_readmit(
        self, test_settings: Settings, world_dir: Path
    ) -> None:
        op = Session(slot=0, identity=900, name="Op", permission_level=PermissionLevel.ADMIN)
        sessions = FakeSessionLayer(sessions=[op])
        gate = _boot(test_settings, sessions, world_dir)
        policy = ConnectionPolicy(gate)
        cmd = WhitelistCommand(gate)

        cmd.run(["enable"])
        cmd.run(["add", "100"])
        cmd.run(["add", "200"])

        denied = policy.on_connection_established(make_event(111, "Stranger", slot=1))
        assert denied.outcome is ConnectionOutcome.DENIED
        assert (1, "Not whitelisted. Ask an admin to run /whitelist approve 111") in sessions.disconnects
        assert any("Non-whitelisted connect: Stranger (111)" in m for _, m in sessions.messages)

        assert cmd.run(["approve-last"]).lines == ["Approved last auth: 111"]
        again = policy.on_connection_established(make_event(111, "Stranger", slot=1))
        assert again.outcome is ConnectionOutcome.ALLOWED

        doc = json.loads((world_dir / "GateKeeper" / "whitelist.json").read_text())
        assert doc == {"enabled": True, "lockdown": False, "allowed": [100, 111, 200]}

    def test_lockdown_flow(self, test_settings: Settings, world_dir: Path) -> None:
        op = Session(slot=0, identity=900, name="Op", permission_level=PermissionLevel.ADMIN)
        sessions = FakeSessionLayer(sessions=[op])
        gate = _boot(test_settings, sessions, world_dir)
        policy = ConnectionPolicy(gate)
        cmd = WhitelistCommand(gate)
        cmd.run(["enable"])
        cmd.run(["lockdown", "on"])

        decision = policy.on_connection_established(make_event(111, slot=1))
        assert decision.reason == "Server is in lockdown. Please contact an admin."
        assert sessions.messages == []
        # Approval by index still works from the recorded attempt.
        assert cmd.run(["recent", "approve", "1"]).lines == ["Approved auth: 111"]


@pytest.mark.integration
class TestRestart:
    def test_state_survives_restart(self, test_settings: Settings, world_dir: Path) -> None:
        sessions = FakeSessionLayer()
        gate = _boot(test_settings, sessions, world_dir)
        gate.set_enabled(True)
        gate.add_identity(100)
        gate.set_lockdown(True)
        gate.record_denied(111, "Stranger")

        restarted = _boot(test_settings, FakeSessionLayer(), world_dir)
        assert restarted.is_enabled() is True
        assert restarted.is_lockdown() is True
        assert restarted.list_identities() == {100}
        # The recent ring starts empty; the name cache and trail persist.
        assert restarted.recent_attempts() == []
        assert restarted.resolve_identity("stranger") == 111
        assert restarted.tenant is not None
        assert restarted.tenant.denied_log_path.read_text().count("\n") == 1

    def test_corrupt_allowlist_at_startup(self, test_settings: Settings, world_dir: Path) -> None:
        directory = world_dir / "GateKeeper"
        directory.mkdir()
        (directory / "whitelist.json").write_text('{"enabled": true, "allowed": [1,')

        gate = _boot(test_settings, FakeSessionLayer(), world_dir)
        assert gate.is_enabled() is False
        assert gate.is_allowed(111) is True
        broken = [p for p in directory.iterdir() if p.name.startswith("whitelist.json.broken-")]
        assert len(broken) == 1
        assert broken[0].read_text() == '{"enabled": true, "allowed": [1,'

        gate.set_enabled(True)
        doc = json.loads((directory / "whitelist.json").read_text())
        assert doc["enabled"] is True

    def test_single_file_save(self, test_settings: Settings, tmp_path: Path) -> None:
        save = tmp_path / "Coop.sav"
        save.write_bytes(b"\x00")
        gate = GateKeeper(settings=test_settings, sessions=FakeSessionLayer())
        gate.switch_tenant("coop", save)
        gate.add_identity(1)
        assert (tmp_path / "Coop.GateKeeper" / "whitelist.json").exists()
        assert save.read_bytes() == b"\x00"


@pytest.mark.integration
class TestConcurrency:
    def test_concurrent_admin_and_connections(
        self, test_settings: Settings, world_dir: Path
    ) -> None:
        sessions = FakeSessionLayer()
        gate = _boot(test_settings, sessions, world_dir)
        gate.set_enabled(True)
        policy = ConnectionPolicy(gate)
        cmd = WhitelistCommand(gate)
        errors: list[BaseException] = []

        def admin(offset: int) -> None:
            try:
                for i in range(25):
                    cmd.run(["add", str(offset + i)])
            except BaseException as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        def joiner(offset: int) -> None:
            try:
                for i in range(25):
                    policy.on_connection_established(make_event(offset + i, slot=offset + i))
            except BaseException as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=admin, args=(n * 1000,)) for n in range(4)]
        threads += [threading.Thread(target=joiner, args=(50_000 + n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        expected = {n * 1000 + i for n in range(4) for i in range(25)}
        assert gate.list_identities() == expected
        doc = json.loads((world_dir / "GateKeeper" / "whitelist.json").read_text())
        assert set(doc["allowed"]) == expected
        assert len(sessions.disconnects) == 100
        assert len(gate.recent_attempts()) == test_settings.audit.recent_capacity
