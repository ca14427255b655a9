"""GateKeeper — Exception hierarchy.

All exceptions raised by the gate inherit from GateKeeperError so that callers
can catch the full family with a single except clause when needed.

Hierarchy:
    GateKeeperError
    ├── TenantError
    │   └── TenantNotResolvedError
    ├── StorageError
    │   ├── ConfigCorruptError
    │   ├── AllowListWriteError
    │   └── AdvisoryWriteError
    ├── ResolutionError
    │   └── IdentityNotFoundError
    └── CommandError
        └── CommandUsageError

Authoritative vs advisory storage:
    ``AllowListWriteError`` means an operator-visible mutation may not survive
    a restart and is always surfaced to the administrative caller.
    ``AdvisoryWriteError`` covers the audit trails and the name cache; it is
    caught at the component boundary and only ever logged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class GateKeeperError(Exception):
    """Base exception for all GateKeeper errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Tenant layer
# ---------------------------------------------------------------------------


class TenantError(GateKeeperError):
    """Base for tenant resolution errors."""


class TenantNotResolvedError(TenantError):
    """An operation needs world-scoped state but no world has been selected."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot run '{operation}': no world is active (call switch_tenant first)",
            context={"operation": operation},
        )
        self.operation = operation


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(GateKeeperError):
    """Base for all on-disk state errors."""


class ConfigCorruptError(StorageError):
    """The allow-list document on disk could not be parsed.

    By the time this is raised the broken file has already been moved aside
    to ``broken_path``.
    """

    def __init__(self, path: Path, reason: str, broken_path: Path | None = None) -> None:
        super().__init__(
            f"Malformed allow-list '{path}': {reason}"
            + (f" (moved to '{broken_path.name}')" if broken_path else ""),
            context={
                "path": str(path),
                "reason": reason,
                "broken_path": str(broken_path) if broken_path else None,
            },
        )
        self.path = path
        self.reason = reason
        self.broken_path = broken_path


class AllowListWriteError(StorageError):
    """Persisting the authoritative allow-list failed.

    The in-memory change has already been applied and is not rolled back.
    """

    def __init__(self, path: Path, cause: Exception, changed: bool = True) -> None:
        super().__init__(
            f"Failed to write allow-list '{path}': {cause}",
            context={"path": str(path), "cause": str(cause), "changed": changed},
        )
        self.path = path
        self.cause = cause
        self.changed = changed


class AdvisoryWriteError(StorageError):
    """An audit trail, admin trail, export or name cache write failed."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(
            f"Failed to write '{path}': {cause}",
            context={"path": str(path), "cause": str(cause)},
        )
        self.path = path
        self.cause = cause


# ---------------------------------------------------------------------------
# Resolution layer
# ---------------------------------------------------------------------------


class ResolutionError(GateKeeperError):
    """Base for identity lookup errors."""


class IdentityNotFoundError(ResolutionError):
    """A player name could not be mapped to an identity handle."""

    def __init__(self, token: str) -> None:
        super().__init__(
            f"Could not resolve '{token}' to an identity",
            context={"token": token},
        )
        self.token = token


# ---------------------------------------------------------------------------
# Command layer
# ---------------------------------------------------------------------------


class CommandError(GateKeeperError):
    """Base for administrative command errors."""


class CommandUsageError(CommandError):
    """A subcommand was invoked with missing or malformed arguments."""

    def __init__(self, usage: str) -> None:
        super().__init__(f"Usage: {usage}", context={"usage": usage})
        self.usage = usage
