"""GateKeeper service — one lock domain over all per-world state.

The process bootstrap constructs exactly one ``GateKeeper`` and hands it to
both the connection handler (``ConnectionPolicy``) and the command handler
(``WhitelistCommand``).  There is no module-level instance.

State bundle (guarded by a single re-entrant lock):

    GateState
      ├── ctx       TenantContext  (resolved paths of the active world)
      ├── policy    AccessPolicy   (authoritative allow-list)
      ├── audit     AuditLog       (recent ring + on-disk trails)
      └── names     NameCache      (advisory identity ↔ name)
    NotificationThrottle           (process lifetime, survives world switches)

Multi-step operations take the lock once through ``transaction()`` so that
"check allow-list, record attempt, consult throttle" is atomic with respect
to concurrent admin commands.  Calls into the host session layer are made
outside the lock.

World changes are explicit: the host calls ``switch_tenant()`` when a world
is loaded.  Switching discards the previous world's in-memory state and
reloads everything from the new world's directory.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gatekeeper.config import Settings, get_settings
from gatekeeper.exceptions import IdentityNotFoundError, TenantNotResolvedError
from gatekeeper.logging import get_logger, tenant_context
from gatekeeper.security.audit import AuditLog
from gatekeeper.security.models import AllowListDocument, Attempt, PermissionLevel
from gatekeeper.security.policy import AccessPolicy
from gatekeeper.security.throttle import NotificationThrottle
from gatekeeper.sessions import NullSessionLayer, SessionLayer
from gatekeeper.storage.config_store import ConfigStore
from gatekeeper.storage.name_cache import NameCache
from gatekeeper.storage.tenant import TenantContext, resolve_tenant

log = get_logger(__name__)


@dataclass
class GateState:
    """Everything scoped to the active world."""

    ctx: TenantContext
    policy: AccessPolicy
    audit: AuditLog
    names: NameCache


@dataclass(frozen=True)
class GateStatus:
    tenant_id: str
    directory: Path
    enabled: bool
    lockdown: bool
    allowed_count: int


class GateKeeper:
    """Thread-safe facade over the active world's access-control state."""

    def __init__(
        self,
        settings: Settings | None = None,
        sessions: SessionLayer | None = None,
        store: ConfigStore | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._sessions = sessions or NullSessionLayer()
        self._store = store or ConfigStore()
        self._lock = threading.RLock()
        self._state: GateState | None = None
        self._throttle = NotificationThrottle(
            global_min_interval=self._settings.notify.global_min_interval_seconds,
            per_identity_cooldown=self._settings.notify.per_identity_cooldown_seconds,
        )

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def sessions(self) -> SessionLayer:
        return self._sessions

    @property
    def throttle(self) -> NotificationThrottle:
        return self._throttle

    @property
    def privileged_level(self) -> PermissionLevel:
        return PermissionLevel.parse(self._settings.sessions.privileged_level)

    @property
    def tenant(self) -> TenantContext | None:
        with self._lock:
            return self._state.ctx if self._state else None

    def switch_tenant(self, tenant_id: str, storage_root: Path | str) -> TenantContext:
        """Make *tenant_id* the active world, loading its state from disk.

        Re-selecting the active world is a no-op and does not touch the disk.
        """
        with self._lock:
            if self._state is not None and self._state.ctx.same_tenant(tenant_id, storage_root):
                return self._state.ctx
            ctx = resolve_tenant(tenant_id, storage_root, self._settings.storage)
            with tenant_context(tenant_id):
                policy = AccessPolicy.open(ctx, self._store)
                self._state = GateState(
                    ctx=ctx,
                    policy=policy,
                    audit=AuditLog(ctx, capacity=self._settings.audit.recent_capacity),
                    names=NameCache.load(ctx.name_cache_path),
                )
                log.info(
                    "tenant_switched",
                    directory=str(ctx.directory),
                    enabled=policy.enabled,
                    lockdown=policy.lockdown,
                    allowed=len(policy.list_identities()),
                )
            return ctx

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[GateState]:
        """Hold the lock and yield the active world's state."""
        with self._lock:
            if self._state is None:
                raise TenantNotResolvedError(operation)
            with tenant_context(self._state.ctx.tenant_id):
                yield self._state

    # ------------------------------------------------------------------
    # Access policy
    # ------------------------------------------------------------------

    def is_enabled(self) -> bool:
        with self.transaction("is_enabled") as state:
            return state.policy.enabled

    def is_lockdown(self) -> bool:
        with self.transaction("is_lockdown") as state:
            return state.policy.lockdown

    def is_allowed(self, identity: int, name: str | None = None) -> bool:
        with self.transaction("is_allowed") as state:
            return state.policy.is_allowed(identity, name)

    def set_enabled(self, value: bool) -> None:
        with self.transaction("set_enabled") as state:
            state.policy.set_enabled(value)

    def set_lockdown(self, value: bool) -> None:
        with self.transaction("set_lockdown") as state:
            state.policy.set_lockdown(value)

    def add_identity(self, identity: int) -> bool:
        with self.transaction("add_identity") as state:
            return state.policy.add_identity(identity)

    def remove_identity(self, identity: int) -> bool:
        with self.transaction("remove_identity") as state:
            return state.policy.remove_identity(identity)

    def list_identities(self) -> set[int]:
        with self.transaction("list_identities") as state:
            return state.policy.list_identities()

    def status(self) -> GateStatus:
        with self.transaction("status") as state:
            return GateStatus(
                tenant_id=state.ctx.tenant_id,
                directory=state.ctx.directory,
                enabled=state.policy.enabled,
                lockdown=state.policy.lockdown,
                allowed_count=len(state.policy.list_identities()),
            )

    def reload(self) -> AllowListDocument:
        """Re-read the allow-list from disk.

        Raises:
            ConfigCorruptError: the file is missing or malformed; the current
                in-memory state is kept.
        """
        with self.transaction("reload") as state:
            doc = self._store.reload(state.ctx)
            state.policy.replace(doc)
            return doc.snapshot()

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def record_denied(
        self,
        identity: int,
        name: str | None = None,
        address: str | None = None,
    ) -> Attempt:
        """Record a denied attempt and refresh the name cache from it."""
        with self.transaction("record_denied") as state:
            attempt = state.audit.record_denied(identity, name, address)
            state.names.remember(identity, name)
            return attempt

    def recent_attempts(self) -> list[Attempt]:
        with self.transaction("recent_attempts") as state:
            return state.audit.recent_attempts()

    def last_denied_identity(self) -> int | None:
        with self.transaction("last_denied_identity") as state:
            return state.audit.last_denied_identity()

    def record_admin_action(self, line: str) -> None:
        with self.transaction("record_admin_action") as state:
            state.audit.record_admin_action(line)

    def export_known_identities(self) -> tuple[int, Path]:
        """Dump the world's historical identity → name records to a file."""
        known = dict(self._sessions.known_players())
        with self.transaction("export_known_identities") as state:
            return state.audit.export_known_identities(known), state.ctx.known_players_path

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def should_notify(self, identity: int, per_identity_cooldown: float | None = None) -> bool:
        with self._lock:
            return self._throttle.should_notify(identity, per_identity_cooldown)

    def record_notified(self, identity: int) -> None:
        with self._lock:
            self._throttle.record_notified(identity)

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def remember_name(self, identity: int, name: str | None) -> None:
        with self.transaction("remember_name") as state:
            state.names.remember(identity, name)

    def resolve_identity(self, name: str) -> int:
        """Map a player name to an identity, first match wins.

        Order: online sessions, the world's player records, the name cache.
        Matching is exact and case-insensitive.

        Raises:
            IdentityNotFoundError: no source knows the name.
        """
        wanted = name.strip().lower()
        for session in self._sessions.online_sessions():
            if session.name and session.name.lower() == wanted:
                return session.identity
        for identity, known in self._sessions.known_players().items():
            if known and known.lower() == wanted:
                return identity
        with self.transaction("resolve_identity") as state:
            cached = state.names.resolve_identity(wanted)
        if cached is None:
            raise IdentityNotFoundError(name)
        return cached

    def resolve_name(self, identity: int) -> str | None:
        """Best-known name for *identity*, using the same source order."""
        for session in self._sessions.online_sessions():
            if session.identity == identity and session.name:
                return session.name
        known = self._sessions.known_players().get(identity)
        if known:
            return known
        with self.transaction("resolve_name") as state:
            return state.names.resolve_name(identity)
