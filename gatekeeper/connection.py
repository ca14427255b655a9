"""Connection policy — decides each inbound connection.

Flow for one ``ConnectionEvent``:

    privileged session (>= configured level)
        → bypass the gate, auto-enrol if missing, refresh the name cache,
          send the session a status line                     → PRIVILEGED
    gate closed to this identity
        → record the attempt, refresh the name cache,
          alert online operators (unless lockdown, throttled),
          disconnect with a reason                           → DENIED
    otherwise                                                → ALLOWED

The decision and all state changes happen in one ``GateKeeper.transaction``;
alerts and disconnects go to the session layer after the lock is released.
"""

from __future__ import annotations

from gatekeeper.exceptions import AllowListWriteError
from gatekeeper.gate import GateKeeper
from gatekeeper.logging import get_logger
from gatekeeper.security.models import ConnectionDecision, ConnectionOutcome
from gatekeeper.sessions import ConnectionEvent

log = get_logger(__name__)


class ConnectionPolicy:
    """Entry point the host calls once per newly established session."""

    def __init__(self, gate: GateKeeper) -> None:
        self._gate = gate

    def on_connection_established(self, event: ConnectionEvent) -> ConnectionDecision:
        if event.permission_level >= self._gate.privileged_level:
            return self._admit_privileged(event)

        command = self._gate.settings.sessions.command_name
        notify = False
        with self._gate.transaction("on_connection_established") as state:
            if state.policy.is_allowed(event.identity, event.name):
                log.debug("connection_allowed", identity=event.identity, name=event.name)
                return ConnectionDecision(ConnectionOutcome.ALLOWED, event.identity)

            state.audit.record_denied(event.identity, event.name, event.address)
            state.names.remember(event.identity, event.name)
            lockdown = state.policy.lockdown
            throttle = self._gate.throttle
            if not lockdown and throttle.should_notify(event.identity):
                throttle.record_notified(event.identity)
                notify = True

        if lockdown:
            reason = "Server is in lockdown. Please contact an admin."
        else:
            reason = f"Not whitelisted. Ask an admin to run /{command} approve {event.identity}"
        log.info(
            "connection_denied",
            identity=event.identity,
            name=event.name,
            address=event.address,
            lockdown=lockdown,
            notified=notify,
        )

        if notify:
            self._alert_operators(event, command)
        self._gate.sessions.disconnect(event.session, reason)
        return ConnectionDecision(
            ConnectionOutcome.DENIED,
            event.identity,
            reason=reason,
            notified=notify,
        )

    def _admit_privileged(self, event: ConnectionEvent) -> ConnectionDecision:
        enrolled = False
        with self._gate.transaction("on_connection_established") as state:
            if not state.policy.contains(event.identity):
                try:
                    enrolled = state.policy.add_identity(event.identity)
                except AllowListWriteError as exc:
                    enrolled = True
                    log.error(
                        "privileged_enrolment_not_persisted",
                        identity=event.identity,
                        error=exc.message,
                    )
                state.audit.record_admin_action(
                    f"auto_enroll_privileged,{event.identity},{event.name or ''}"
                )
            state.names.remember(event.identity, event.name)
            enabled = state.policy.enabled
            lockdown = state.policy.lockdown
            count = len(state.policy.list_identities())

        log.info("privileged_connection", identity=event.identity, enrolled=enrolled)
        message = (
            f"[GateKeeper] Whitelist {'ENABLED' if enabled else 'DISABLED'}"
            f" ({count} ids), lockdown {'ON' if lockdown else 'OFF'}"
        )
        if enrolled:
            message += "; you were added to the whitelist"
        self._gate.sessions.send_message(event.session, message)
        return ConnectionDecision(ConnectionOutcome.PRIVILEGED, event.identity, enrolled=enrolled)

    def _alert_operators(self, event: ConnectionEvent, command: str) -> None:
        message = (
            f"[GateKeeper] Non-whitelisted connect: {event.name or '<unknown>'} ({event.identity})"
            f" - approve with /{command} approve {event.identity} or /{command} approve-last"
        )
        operators = [
            s
            for s in self._gate.sessions.privileged_sessions(self._gate.privileged_level)
            if s.slot != event.session.slot
        ]
        self._gate.sessions.broadcast(operators, message)
