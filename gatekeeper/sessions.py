"""Session layer boundary — what GateKeeper needs from the host server.

The host's networking stack authenticates connections and owns sessions.
GateKeeper only needs a narrow view of it:

    - which sessions are online (for alerts, kicks and name lookups)
    - the world's historical identity → name records
    - a way to message a session and to disconnect one with a reason

Swap the backend by implementing ``SessionLayer``:
  - NullSessionLayer → default (nobody online, no history); used by the CLI
  - <host adapter>   → wraps the game server's client table
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from gatekeeper.logging import get_logger
from gatekeeper.security.models import PermissionLevel

log = get_logger(__name__)


@dataclass(frozen=True)
class Session:
    """A connected client as seen by GateKeeper."""

    slot: int
    identity: int
    name: str | None = None
    address: str | None = None
    permission_level: PermissionLevel = PermissionLevel.USER


@dataclass(frozen=True)
class ConnectionEvent:
    """Delivered once per new session, after the host authenticated it."""

    session: Session

    @property
    def identity(self) -> int:
        return self.session.identity

    @property
    def name(self) -> str | None:
        return self.session.name

    @property
    def address(self) -> str | None:
        return self.session.address

    @property
    def permission_level(self) -> PermissionLevel:
        return self.session.permission_level


class SessionLayer(ABC):
    """Abstract view of the host server's sessions.

    Implementations are called outside GateKeeper's lock and may block
    briefly; they must not call back into GateKeeper synchronously.
    """

    @abstractmethod
    def online_sessions(self) -> list[Session]:
        """Return the currently connected sessions."""

    @abstractmethod
    def known_players(self) -> Mapping[int, str | None]:
        """Return the world's historical identity → name records."""

    @abstractmethod
    def send_message(self, session: Session, message: str) -> None:
        """Deliver a chat/status line to *session*."""

    @abstractmethod
    def disconnect(self, session: Session, reason: str) -> None:
        """Terminate *session*, showing *reason* to the player."""

    def privileged_sessions(self, threshold: PermissionLevel) -> list[Session]:
        return [s for s in self.online_sessions() if s.permission_level >= threshold]

    def broadcast(self, sessions: list[Session], message: str) -> None:
        for session in sessions:
            self.send_message(session, message)


class NullSessionLayer(SessionLayer):
    """No sessions, no history; messages and disconnects are only logged."""

    def online_sessions(self) -> list[Session]:
        return []

    def known_players(self) -> Mapping[int, str | None]:
        return {}

    def send_message(self, session: Session, message: str) -> None:
        log.debug("session_message_dropped", slot=session.slot, message=message)

    def disconnect(self, session: Session, reason: str) -> None:
        log.debug("session_disconnect_dropped", slot=session.slot, reason=reason)
