"""Storage layer — Allow-list document persistence.

``ConfigStore`` owns ``whitelist.json`` for a resolved world:

    store = ConfigStore()
    doc = store.initialize(ctx)        # first resolution: migrate / create on disk
    store.save(ctx, doc)               # full rewrite, atomic replace
    doc = store.reload(ctx)            # explicit operator reload

Corruption handling is non-destructive.  A file that fails to parse is
renamed to ``whitelist.json.broken-<timestamp>`` and never deleted:

    - ``initialize`` / ``load`` fall back to defaults (or the caller-supplied
      fallback document) and carry on.
    - ``reload`` raises ``ConfigCorruptError`` so the caller keeps its current
      in-memory state.
"""

from __future__ import annotations

import os
import time
from pathlib import Path

from pydantic import ValidationError

from gatekeeper.exceptions import AllowListWriteError, ConfigCorruptError, StorageError
from gatekeeper.logging import get_logger
from gatekeeper.security.models import AllowListDocument
from gatekeeper.storage.tenant import TenantContext

log = get_logger(__name__)


class ConfigStore:
    """Loads, saves and recovers the per-world allow-list document."""

    def initialize(self, ctx: TenantContext) -> AllowListDocument:
        """Load the document for a freshly resolved world.

        Creates the GateKeeper directory and writes a default document when
        none exists, so the on-disk state is inspectable right away.  A
        legacy ``whitelist.txt`` is migrated first when present.

        If the directory or file cannot be created the defaults are still
        returned; the failure is logged and the next mutation reports it as
        ``AllowListWriteError``.
        """
        path = ctx.allowlist_path
        try:
            present = path.exists()
        except OSError as exc:
            raise StorageError(
                f"Cannot access world directory '{ctx.directory}': {exc}",
                context={"path": str(ctx.directory), "cause": str(exc)},
            ) from exc
        if not present:
            doc = self._migrate_legacy(ctx) or AllowListDocument()
            try:
                self.save(ctx, doc)
            except AllowListWriteError as exc:
                log.error("allowlist_initial_write_failed", path=str(path), error=str(exc))
            return doc
        return self.load(ctx)

    def load(
        self,
        ctx: TenantContext,
        fallback: AllowListDocument | None = None,
    ) -> AllowListDocument:
        """Read the document, recovering from corruption.

        A missing file yields defaults without writing anything.  A malformed
        file is renamed aside and *fallback* (or blank defaults) is returned.
        """
        default = fallback.snapshot() if fallback is not None else AllowListDocument()
        path = ctx.allowlist_path
        if not path.exists():
            return default
        try:
            return self._read(ctx)
        except ConfigCorruptError as exc:
            log.warning(
                "allowlist_corrupt_defaults_used",
                path=str(path),
                broken_path=exc.context.get("broken_path"),
                reason=exc.reason,
            )
            return default
        except StorageError as exc:
            log.error("allowlist_read_failed", path=str(path), error=exc.message)
            return default

    def reload(self, ctx: TenantContext) -> AllowListDocument:
        """Re-read the document for an explicit operator reload.

        Raises:
            ConfigCorruptError: the file is missing or malformed.  A malformed
                file has been renamed aside; the caller must keep its state.
            StorageError: the file exists but could not be read.
        """
        path = ctx.allowlist_path
        if not path.exists():
            raise ConfigCorruptError(path, "file not found")
        doc = self._read(ctx)
        log.info("allowlist_reloaded", path=str(path), allowed=len(doc.allowed))
        return doc

    def save(self, ctx: TenantContext, doc: AllowListDocument) -> None:
        """Rewrite the whole document.

        The content goes to a temporary sibling first and is then moved over
        the target, so a concurrent whole-file reader never sees a partial
        document.

        Raises:
            AllowListWriteError: the directory or file could not be written.
        """
        path = ctx.allowlist_path
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            ctx.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(doc.to_json(), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            log.error(
                "allowlist_write_failed",
                path=str(path),
                error=str(exc),
                hint="in-memory state differs from disk until the next successful write",
            )
            raise AllowListWriteError(path, exc) from exc
        log.debug("allowlist_saved", path=str(path), allowed=len(doc.allowed))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _read(self, ctx: TenantContext) -> AllowListDocument:
        path = ctx.allowlist_path
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            broken = rename_broken(path, ctx.storage.broken_suffix)
            raise ConfigCorruptError(path, f"not valid UTF-8: {exc}", broken) from exc
        except OSError as exc:
            raise StorageError(
                f"Failed to read allow-list '{path}': {exc}",
                context={"path": str(path), "cause": str(exc)},
            ) from exc
        try:
            return AllowListDocument.from_json(text)
        except ValidationError as exc:
            broken = rename_broken(path, ctx.storage.broken_suffix)
            reason = exc.errors()[0]["msg"] if exc.errors() else str(exc)
            raise ConfigCorruptError(path, reason, broken) from exc

    def _migrate_legacy(self, ctx: TenantContext) -> AllowListDocument | None:
        """Convert a pre-JSON ``whitelist.txt`` into a document, if present."""
        legacy = ctx.legacy_allowlist_path
        if not legacy.exists():
            return None
        try:
            doc = parse_legacy_allowlist(legacy.read_text(encoding="utf-8", errors="replace"))
        except OSError as exc:
            log.warning("legacy_allowlist_unreadable", path=str(legacy), error=str(exc))
            return None
        migrated = legacy.with_name(legacy.name + ".migrated")
        try:
            legacy.rename(migrated)
        except OSError as exc:
            log.warning("legacy_allowlist_rename_failed", path=str(legacy), error=str(exc))
        log.info(
            "legacy_allowlist_migrated",
            path=str(legacy),
            enabled=doc.enabled,
            lockdown=doc.lockdown,
            allowed=len(doc.allowed),
        )
        return doc


def parse_legacy_allowlist(text: str) -> AllowListDocument:
    """Parse the old line-based format.

    Recognised lines: ``enabled=true|false``, ``lockdown=true|false``,
    ``auth:<id>``.  ``name:<name>`` lines are dropped: names never grant
    access.  Blank lines, ``#`` comments and unparseable ids are skipped.
    """
    doc = AllowListDocument()
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        lowered = line.lower()
        if lowered in ("enabled=true", "enabled=false"):
            doc.enabled = lowered.endswith("true")
            continue
        if lowered in ("lockdown=true", "lockdown=false"):
            doc.lockdown = lowered.endswith("true")
            continue
        key, sep, value = line.partition(":")
        if not sep or key.strip().lower() != "auth":
            continue
        try:
            doc.allowed.add(int(value.strip()))
        except ValueError:
            continue
    return doc


def rename_broken(path: Path, suffix: str = "broken") -> Path | None:
    """Move a malformed file aside as ``<name>.<suffix>-<YYYYmmdd-HHMMSS>``.

    Returns the new path, or None if the rename itself failed (the original
    file is then left where it was).
    """
    stamp = time.strftime("%Y%m%d-%H%M%S")
    target = path.with_name(f"{path.name}.{suffix}-{stamp}")
    counter = 1
    while target.exists():
        target = path.with_name(f"{path.name}.{suffix}-{stamp}-{counter}")
        counter += 1
    try:
        path.rename(target)
    except OSError as exc:
        log.error("broken_file_rename_failed", path=str(path), error=str(exc))
        return None
    log.warning("broken_file_renamed", path=str(path), renamed_to=target.name)
    return target
