"""Security layer — Access policy.

In-memory authority for one world's allow-list.  Two independent flags plus
the identity set, nothing else:

    enabled=False  → gate open, every identity is allowed
    enabled=True   → only identities in ``allowed`` may join
    lockdown       → never changes allow/deny; only silences operator alerts
                     and changes the wording of the rejection reason

The gate defaults to *open* so an operator cannot lock themselves out before
enrolling anyone.

Every state-changing call rewrites the whole document through ConfigStore.
Calls that change nothing do not touch the disk.  If the write fails the
in-memory change stands and ``AllowListWriteError`` propagates.

Not thread-safe on its own: ``GateKeeper`` serialises all access.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gatekeeper.logging import get_logger
from gatekeeper.security.models import AllowListDocument

if TYPE_CHECKING:
    from gatekeeper.storage.config_store import ConfigStore
    from gatekeeper.storage.tenant import TenantContext

log = get_logger(__name__)


class AccessPolicy:
    """Allow/deny decisions and allow-list mutations for one world."""

    def __init__(
        self,
        ctx: TenantContext,
        store: ConfigStore,
        document: AllowListDocument | None = None,
    ) -> None:
        self._ctx = ctx
        self._store = store
        self._doc = document if document is not None else AllowListDocument()

    @classmethod
    def open(cls, ctx: TenantContext, store: ConfigStore) -> "AccessPolicy":
        """Initialise the world's document on disk and wrap it."""
        return cls(ctx, store, store.initialize(ctx))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._doc.enabled

    @property
    def lockdown(self) -> bool:
        return self._doc.lockdown

    def is_allowed(self, identity: int, name: str | None = None) -> bool:
        """Return whether *identity* may join.  *name* is never consulted."""
        if not self._doc.enabled:
            return True
        return identity in self._doc.allowed

    def contains(self, identity: int) -> bool:
        return identity in self._doc.allowed

    def list_identities(self) -> set[int]:
        return set(self._doc.allowed)

    def document(self) -> AllowListDocument:
        return self._doc.snapshot()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_enabled(self, value: bool) -> None:
        self._doc.enabled = value
        log.info("allowlist_enabled_set", enabled=value)
        self._save()

    def set_lockdown(self, value: bool) -> None:
        self._doc.lockdown = value
        log.info("allowlist_lockdown_set", lockdown=value)
        self._save()

    def add_identity(self, identity: int) -> bool:
        """Add *identity*; returns False (and writes nothing) if already present."""
        if identity in self._doc.allowed:
            return False
        self._doc.allowed.add(identity)
        log.info("identity_added", identity=identity, allowed=len(self._doc.allowed))
        self._save()
        return True

    def remove_identity(self, identity: int) -> bool:
        """Remove *identity*; returns False (and writes nothing) if absent."""
        if identity not in self._doc.allowed:
            return False
        self._doc.allowed.discard(identity)
        log.info("identity_removed", identity=identity, allowed=len(self._doc.allowed))
        self._save()
        return True

    def replace(self, document: AllowListDocument) -> None:
        """Adopt a freshly reloaded document without writing it back."""
        self._doc = document.snapshot()

    def _save(self) -> None:
        self._store.save(self._ctx, self._doc)
