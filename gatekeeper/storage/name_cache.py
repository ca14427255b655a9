"""Storage layer — Best-effort identity ↔ name cache.

Remembers the last name each identity connected with so operators can type
``whitelist approve Alice`` for someone who is no longer online.  The cache
is advisory: it never affects allow/deny, a corrupt file is silently
discarded, and write failures are logged and swallowed.

File format (``name_cache.json``)::

    {
      "by_identity": {"76561198000000000": "Alice"},
      "by_name": {"alice": 76561198000000000}
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gatekeeper.exceptions import AdvisoryWriteError
from gatekeeper.logging import get_logger

log = get_logger(__name__)


class NameCacheDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    by_identity: dict[int, str] = Field(default_factory=dict)
    by_name: dict[str, int] = Field(default_factory=dict)


class NameCache:
    """Bidirectional last-write-wins mapping, persisted on every change."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._by_identity: dict[int, str] = {}
        self._by_name: dict[str, int] = {}

    @classmethod
    def load(cls, path: Path) -> "NameCache":
        """Load the cache from *path*; any problem yields an empty cache."""
        cache = cls(path)
        try:
            doc = NameCacheDocument.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return cache
        except (OSError, ValueError, ValidationError) as exc:
            log.debug("name_cache_discarded", path=str(path), error=str(exc))
            return cache
        cache._by_identity = dict(doc.by_identity)
        cache._by_name = {name.lower(): identity for name, identity in doc.by_name.items()}
        return cache

    def __len__(self) -> int:
        return len(self._by_identity)

    def remember(self, identity: int, name: str | None) -> bool:
        """Associate *identity* with *name* in both directions.

        Returns True if the cache changed.  Empty names are ignored.
        """
        if not name or not name.strip():
            return False
        name = name.strip()
        key = name.lower()
        if self._by_identity.get(identity) == name and self._by_name.get(key) == identity:
            return False

        previous = self._by_identity.get(identity)
        if previous is not None and self._by_name.get(previous.lower()) == identity:
            del self._by_name[previous.lower()]
        self._by_identity[identity] = name
        self._by_name[key] = identity
        self._persist()
        return True

    def resolve_name(self, identity: int) -> str | None:
        return self._by_identity.get(identity)

    def resolve_identity(self, name: str) -> int | None:
        return self._by_name.get(name.strip().lower())

    def entries(self) -> dict[int, str]:
        return dict(self._by_identity)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self._path is None:
            return
        try:
            self._write(self._path)
        except AdvisoryWriteError as exc:
            log.warning("name_cache_write_failed", path=str(self._path), error=str(exc.cause))

    def _write(self, path: Path) -> None:
        doc = {
            "by_identity": {str(k): v for k, v in sorted(self._by_identity.items())},
            "by_name": dict(sorted(self._by_name.items())),
        }
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(doc, indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise AdvisoryWriteError(path, exc) from exc
