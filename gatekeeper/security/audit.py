"""Security layer — Denied-attempt and admin-action audit trail.

Two trails per world, both append-only text files:

    denied_log.txt   <epoch-ms>,<identity>,<name>,<address>
    admin_log.txt    <epoch-ms>,<free text>

Denied attempts are also kept in a bounded in-memory ring (oldest evicted
first) that backs ``whitelist recent`` and ``whitelist approve-last``.  The
ring starts empty on every process start; the file is the full history.

Writing to either trail is best-effort.  A denial has already happened by
the time it is recorded, so a failed append is logged and swallowed.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from gatekeeper.exceptions import AdvisoryWriteError
from gatekeeper.logging import get_logger
from gatekeeper.security.models import Attempt

if TYPE_CHECKING:
    from gatekeeper.storage.tenant import TenantContext

log = get_logger(__name__)

_DEFAULT_CAPACITY = 50


class AuditLog:
    """Recent denied attempts (ring) plus the on-disk trails for one world."""

    def __init__(self, ctx: TenantContext | None = None, capacity: int = _DEFAULT_CAPACITY) -> None:
        self._ctx = ctx
        self._capacity = capacity
        self._recent: deque[Attempt] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Denied attempts
    # ------------------------------------------------------------------

    def record_denied(
        self,
        identity: int,
        name: str | None = None,
        address: str | None = None,
    ) -> Attempt:
        attempt = Attempt(identity=identity, name=name, address=address)
        self._recent.append(attempt)
        if self._ctx is not None:
            self._append_best_effort(self._ctx.denied_log_path, attempt.to_line())
        return attempt

    def recent_attempts(self) -> list[Attempt]:
        """Snapshot of the ring, oldest first."""
        return list(self._recent)

    def last_denied_identity(self) -> int | None:
        return self._recent[-1].identity if self._recent else None

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def record_admin_action(self, line: str) -> None:
        if self._ctx is None:
            return
        stamp = int(time.time() * 1000)
        self._append_best_effort(self._ctx.admin_log_path, f"{stamp},{line}")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_known_identities(self, known: Mapping[int, str | None]) -> int:
        """Write *known* (identity → name) to ``known_players.txt``.

        Entries without a name are skipped.  Returns the number of lines
        written, or 0 if the file could not be written.
        """
        if self._ctx is None:
            return 0
        path = self._ctx.known_players_path
        rows = [(identity, name) for identity, name in known.items() if name]
        body = "# auth,name\n" + "".join(f"{identity},{name}\n" for identity, name in rows)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(body, encoding="utf-8")
        except OSError as exc:
            log.warning("known_players_export_failed", path=str(path), error=str(exc))
            return 0
        log.info("known_players_exported", path=str(path), count=len(rows))
        return len(rows)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append_best_effort(self, path: Path, line: str) -> None:
        try:
            append_line(path, line)
        except AdvisoryWriteError as exc:
            log.warning("audit_append_failed", path=str(path), error=str(exc.cause))


def append_line(path: Path, line: str) -> None:
    """Append one line to *path*, creating parent directories as needed."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as exc:
        raise AdvisoryWriteError(path, exc) from exc


def read_denied_trail(path: Path, limit: int | None = None) -> list[Attempt]:
    """Parse the on-disk denied trail, oldest first.

    Unparseable lines are skipped.  With *limit*, only the last *limit*
    attempts are returned.
    """
    if not path.exists():
        return []
    attempts: list[Attempt] = []
    with path.open(encoding="utf-8", errors="replace") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                attempts.append(Attempt.from_line(line))
            except ValueError:
                log.debug("denied_trail_line_skipped", path=str(path), line=line.rstrip())
    if limit is not None:
        attempts = attempts[-limit:] if limit > 0 else []
    return attempts
