"""Unit tests — ConnectionPolicy.on_connection_established."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from conftest import FakeSessionLayer, make_event
from gatekeeper.connection import ConnectionPolicy
from gatekeeper.gate import GateKeeper
from gatekeeper.security.models import ConnectionOutcome, PermissionLevel
from gatekeeper.sessions import Session


@pytest.fixture
def policy(gate: GateKeeper) -> ConnectionPolicy:
    return ConnectionPolicy(gate)


@pytest.fixture
def operator(sessions: FakeSessionLayer) -> Session:
    op = Session(slot=5, identity=900, name="Op", permission_level=PermissionLevel.ADMIN)
    sessions.sessions.append(op)
    return op


@pytest.mark.unit
class TestAllowed:
    def test_open_gate_admits_anyone(
        self, policy: ConnectionPolicy, sessions: FakeSessionLayer
    ) -> None:
        decision = policy.on_connection_established(make_event(111))
        assert decision.outcome is ConnectionOutcome.ALLOWED
        assert sessions.disconnects == []

    def test_listed_identity_admitted(
        self, policy: ConnectionPolicy, gate: GateKeeper, sessions: FakeSessionLayer
    ) -> None:
        gate.set_enabled(True)
        gate.add_identity(100)
        decision = policy.on_connection_established(make_event(100))
        assert decision.allowed is True
        assert gate.recent_attempts() == []
        assert sessions.disconnects == []


@pytest.mark.unit
class TestDenied:
    def test_unlisted_identity_rejected_with_hint(
        self, policy: ConnectionPolicy, gate: GateKeeper, sessions: FakeSessionLayer
    ) -> None:
        gate.set_enabled(True)
        decision = policy.on_connection_established(make_event(111, "Stranger", slot=2))
        assert decision.outcome is ConnectionOutcome.DENIED
        assert decision.reason == "Not whitelisted. Ask an admin to run /whitelist approve 111"
        assert sessions.disconnects == [(2, decision.reason)]
        assert gate.last_denied_identity() == 111
        assert gate.resolve_identity("stranger") == 111

    def test_denial_written_to_trail(self, policy: ConnectionPolicy, gate: GateKeeper) -> None:
        gate.set_enabled(True)
        policy.on_connection_established(make_event(111, "Stranger", "5.6.7.8"))
        assert gate.tenant is not None
        line = gate.tenant.denied_log_path.read_text().strip()
        assert line.split(",")[1:] == ["111", "Stranger", "5.6.7.8"]

    def test_operators_alerted_once_per_cooldown(
        self,
        policy: ConnectionPolicy,
        gate: GateKeeper,
        sessions: FakeSessionLayer,
        operator: Session,
    ) -> None:
        gate.set_enabled(True)
        first = policy.on_connection_established(make_event(111, "Stranger", slot=1))
        second = policy.on_connection_established(make_event(111, "Stranger", slot=1))
        assert first.notified is True
        assert second.notified is False
        alerts = [m for m in sessions.messages if m[0] == operator.slot]
        assert alerts == [
            (
                5,
                "[GateKeeper] Non-whitelisted connect: Stranger (111)"
                " - approve with /whitelist approve 111 or /whitelist approve-last",
            )
        ]
        assert len(gate.recent_attempts()) == 2

    def test_global_floor_suppresses_burst(
        self, policy: ConnectionPolicy, gate: GateKeeper, operator: Session
    ) -> None:
        gate.set_enabled(True)
        with patch("gatekeeper.security.throttle.time") as mock_time:
            mock_time.time.return_value = 1000.0
            a = policy.on_connection_established(make_event(1, slot=1))
            mock_time.time.return_value = 1001.0
            b = policy.on_connection_established(make_event(2, slot=2))
            mock_time.time.return_value = 1004.0
            c = policy.on_connection_established(make_event(3, slot=3))
        assert (a.notified, b.notified, c.notified) == (True, False, True)

    def test_lockdown_rejects_silently(
        self,
        policy: ConnectionPolicy,
        gate: GateKeeper,
        sessions: FakeSessionLayer,
        operator: Session,
    ) -> None:
        gate.set_enabled(True)
        gate.set_lockdown(True)
        decision = policy.on_connection_established(make_event(111, slot=1))
        assert decision.reason == "Server is in lockdown. Please contact an admin."
        assert decision.notified is False
        assert sessions.messages == []
        assert gate.last_denied_identity() == 111
        # Lockdown does not consume the throttle.
        assert gate.should_notify(111) is True

    def test_lockdown_still_admits_listed(
        self, policy: ConnectionPolicy, gate: GateKeeper
    ) -> None:
        gate.set_enabled(True)
        gate.add_identity(100)
        gate.set_lockdown(True)
        assert policy.on_connection_established(make_event(100)).allowed is True

    def test_lockdown_with_gate_disabled_admits(
        self, policy: ConnectionPolicy, gate: GateKeeper
    ) -> None:
        gate.set_lockdown(True)
        assert policy.on_connection_established(make_event(111)).allowed is True


@pytest.mark.unit
class TestPrivileged:
    def test_admin_bypasses_and_is_enrolled(
        self, policy: ConnectionPolicy, gate: GateKeeper, sessions: FakeSessionLayer
    ) -> None:
        gate.set_enabled(True)
        decision = policy.on_connection_established(
            make_event(500, "Boss", level=PermissionLevel.ADMIN, slot=3)
        )
        assert decision.outcome is ConnectionOutcome.PRIVILEGED
        assert decision.enrolled is True
        assert gate.list_identities() == {500}
        assert sessions.disconnects == []
        assert sessions.messages == [
            (
                3,
                "[GateKeeper] Whitelist ENABLED (1 ids), lockdown OFF;"
                " you were added to the whitelist",
            )
        ]
        assert gate.tenant is not None
        assert json.loads(gate.tenant.allowlist_path.read_text())["allowed"] == [500]
        admin_line = gate.tenant.admin_log_path.read_text().strip()
        assert admin_line.endswith(",auto_enroll_privileged,500,Boss")

    def test_already_enrolled_admin_gets_status_only(
        self, policy: ConnectionPolicy, gate: GateKeeper, sessions: FakeSessionLayer
    ) -> None:
        gate.add_identity(500)
        decision = policy.on_connection_established(
            make_event(500, "Boss", level=PermissionLevel.OWNER)
        )
        assert decision.enrolled is False
        assert sessions.messages == [(0, "[GateKeeper] Whitelist DISABLED (1 ids), lockdown OFF")]

    def test_admin_admitted_during_lockdown(
        self, policy: ConnectionPolicy, gate: GateKeeper
    ) -> None:
        gate.set_enabled(True)
        gate.set_lockdown(True)
        decision = policy.on_connection_established(
            make_event(500, level=PermissionLevel.ADMIN)
        )
        assert decision.allowed is True

    def test_moderator_below_default_threshold(
        self, policy: ConnectionPolicy, gate: GateKeeper
    ) -> None:
        gate.set_enabled(True)
        decision = policy.on_connection_established(
            make_event(500, level=PermissionLevel.MODERATOR)
        )
        assert decision.outcome is ConnectionOutcome.DENIED

    def test_enrolment_write_failure_still_admits(
        self, policy: ConnectionPolicy, gate: GateKeeper
    ) -> None:
        gate.set_enabled(True)
        with patch("gatekeeper.storage.config_store.os.replace", side_effect=OSError("ro")):
            decision = policy.on_connection_established(
                make_event(500, level=PermissionLevel.ADMIN)
            )
        assert decision.allowed is True
        assert gate.is_allowed(500) is True

    def test_alert_goes_only_to_operators(
        self, policy: ConnectionPolicy, gate: GateKeeper, sessions: FakeSessionLayer
    ) -> None:
        gate.set_enabled(True)
        joining = Session(slot=1, identity=111, name="Stranger")
        sessions.sessions.append(joining)
        sessions.sessions.append(
            Session(slot=4, identity=900, name="Op", permission_level=PermissionLevel.ADMIN)
        )
        policy.on_connection_established(make_event(111, "Stranger", slot=1))
        assert [slot for slot, _ in sessions.messages] == [4]
