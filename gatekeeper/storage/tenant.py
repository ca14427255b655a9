"""Storage layer — World (tenant) path resolution.

Every world gets its own GateKeeper directory, so no two worlds ever share an
allow-list, audit trail or name cache:

    <worlds>/MyWorld/            (folder save)  → <worlds>/MyWorld/GateKeeper/
    <worlds>/MyWorld.zip         (file save)    → <worlds>/MyWorld.GateKeeper/

Resolution is pure path arithmetic; it neither reads nor creates anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from gatekeeper.config import StorageConfig


@dataclass(frozen=True)
class TenantContext:
    """Resolved storage location for one world."""

    tenant_id: str
    storage_root: Path
    directory: Path
    storage: StorageConfig

    @property
    def allowlist_path(self) -> Path:
        return self.directory / self.storage.allowlist_file

    @property
    def legacy_allowlist_path(self) -> Path:
        return self.directory / self.storage.legacy_allowlist_file

    @property
    def name_cache_path(self) -> Path:
        return self.directory / self.storage.name_cache_file

    @property
    def denied_log_path(self) -> Path:
        return self.directory / self.storage.denied_log_file

    @property
    def admin_log_path(self) -> Path:
        return self.directory / self.storage.admin_log_file

    @property
    def known_players_path(self) -> Path:
        return self.directory / self.storage.known_players_file

    def same_tenant(self, tenant_id: str, storage_root: Path | str) -> bool:
        return (
            self.tenant_id == tenant_id
            and self.storage_root == Path(storage_root).expanduser()
        )


def resolve_tenant(
    tenant_id: str,
    storage_root: Path | str,
    storage: StorageConfig | None = None,
) -> TenantContext:
    """Map a world id and its save location to a dedicated directory.

    A save that is a directory hosts the GateKeeper directory inside it; a
    single-file save gets a sibling named after the save without extension.
    A root that does not exist yet is treated as a folder save.
    """
    storage = storage or StorageConfig()
    root = Path(storage_root).expanduser()
    if root.is_file():
        directory = root.parent / f"{root.stem}.{storage.directory_name}"
    else:
        directory = root / storage.directory_name
    return TenantContext(
        tenant_id=tenant_id,
        storage_root=root,
        directory=directory,
        storage=storage,
    )
