"""Administrative command family — ``/whitelist <subcommand> ...``.

The host's chat/console parser tokenises the operator's text, checks that
the caller is an administrator, and hands the tokens to
``WhitelistCommand.run``.  Every subcommand maps onto one GateKeeper call;
the result is a list of output lines for the host to print.

Subcommands:
    help
    enable | disable | status | reload
    lockdown [on|off|status]
    list | online | recent | approve-last | export
    recent approve <index>
    add | approve <identity-or-name>
    remove | deny <identity-or-name>

Errors never escape: every ``GateKeeperError`` becomes an ``ERROR:`` line
and ``CommandResult.ok`` is False.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from gatekeeper.exceptions import (
    AllowListWriteError,
    CommandUsageError,
    GateKeeperError,
    IdentityNotFoundError,
)
from gatekeeper.gate import GateKeeper
from gatekeeper.logging import get_logger

log = get_logger(__name__)


@dataclass
class CommandResult:
    lines: list[str] = field(default_factory=list)
    ok: bool = True
    unsaved: AllowListWriteError | None = None

    def add(self, line: str) -> None:
        self.lines.append(line)


class WhitelistCommand:
    """Dispatches pre-tokenised ``whitelist`` subcommands to a GateKeeper."""

    def __init__(self, gate: GateKeeper) -> None:
        self._gate = gate
        self._name = gate.settings.sessions.command_name
        self._handlers: dict[str, Callable[[list[str], CommandResult], None]] = {
            "help": self._help,
            "enable": self._enable,
            "disable": self._disable,
            "status": self._status,
            "reload": self._reload,
            "lockdown": self._lockdown,
            "list": self._list,
            "online": self._online,
            "recent": self._recent,
            "approve-last": self._approve_last,
            "export": self._export,
            "add": self._add,
            "approve": self._add,
            "remove": self._remove,
            "deny": self._remove,
        }

    @property
    def name(self) -> str:
        return self._name

    def run(self, args: Sequence[str], caller: str | None = None) -> CommandResult:
        result = CommandResult()
        if not args:
            self._help([], result)
            return result
        sub = args[0].lower()
        handler = self._handlers.get(sub, self._help)
        try:
            handler(list(args[1:]), result)
        except AllowListWriteError as exc:
            result.ok = False
            result.add(f"ERROR: change applied in memory but not saved: {exc.cause}")
        except GateKeeperError as exc:
            result.ok = False
            result.add(f"ERROR: {exc.message}")
        if result.unsaved is not None:
            result.ok = False
            result.add(f"ERROR: change applied in memory but not saved: {result.unsaved.cause}")
        log.debug("command_run", subcommand=sub, caller=caller, ok=result.ok)
        return result

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _help(self, args: list[str], out: CommandResult) -> None:
        n = self._name
        out.add(f"/{n} enable|disable|status|reload|lockdown [on|off|status]")
        out.add(f"/{n} list|online|recent|approve-last|export")
        out.add(f"/{n} add <auth|name> (name resolves to auth if known)")
        out.add(f"/{n} remove <auth|name> (deny is alias; removing by name resolves to auth)")
        out.add(f"/{n} recent approve <index>")

    def _enable(self, args: list[str], out: CommandResult) -> None:
        self._apply(out, lambda: self._gate.set_enabled(True))
        self._gate.record_admin_action("enable")
        out.add("GateKeeper whitelist enabled")

    def _disable(self, args: list[str], out: CommandResult) -> None:
        self._apply(out, lambda: self._gate.set_enabled(False))
        self._gate.record_admin_action("disable")
        out.add("GateKeeper whitelist disabled")

    def _status(self, args: list[str], out: CommandResult) -> None:
        status = self._gate.status()
        out.add(f"Whitelist is {'ENABLED' if status.enabled else 'DISABLED'}")
        out.add(f"Lockdown is {'ON' if status.lockdown else 'OFF'}")
        out.add(f"Auth IDs: {status.allowed_count}")

    def _reload(self, args: list[str], out: CommandResult) -> None:
        doc = self._gate.reload()
        out.add(
            f"OK: reloaded {len(doc.allowed)} auth IDs"
            f" (enabled={str(doc.enabled).lower()}, lockdown={str(doc.lockdown).lower()})"
        )

    def _lockdown(self, args: list[str], out: CommandResult) -> None:
        mode = args[0].lower() if args else "status"
        if mode == "status":
            out.add(f"Lockdown is {'ON' if self._gate.is_lockdown() else 'OFF'}")
        elif mode == "on":
            self._apply(out, lambda: self._gate.set_lockdown(True))
            self._gate.record_admin_action("lockdown_on")
            out.add("Lockdown enabled: only whitelisted players can join; notifications suppressed.")
        elif mode == "off":
            self._apply(out, lambda: self._gate.set_lockdown(False))
            self._gate.record_admin_action("lockdown_off")
            out.add("Lockdown disabled.")
        else:
            raise CommandUsageError(f"/{self._name} lockdown [on|off|status]")

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _list(self, args: list[str], out: CommandResult) -> None:
        identities = sorted(self._gate.list_identities())
        out.add(f"Auth IDs ({len(identities)}):")
        for identity in identities:
            name = self._gate.resolve_name(identity)
            out.add(f" - {identity}" + (f" => {name}" if name else ""))

    def _online(self, args: list[str], out: CommandResult) -> None:
        sessions = self._gate.sessions.online_sessions()
        if not sessions:
            out.add("No players online.")
            return
        for s in sessions:
            out.add(
                f"#{s.slot + 1}: {s.name or '<unknown>'} ({s.identity})"
                f" perm={s.permission_level.name}"
            )

    def _recent(self, args: list[str], out: CommandResult) -> None:
        if args and args[0].lower() == "approve":
            self._recent_approve(args[1:], out)
            return
        attempts = self._gate.recent_attempts()
        if not attempts:
            out.add("No recent denied attempts.")
            return
        now = time.time()
        start = max(0, len(attempts) - self._gate.settings.audit.recent_display)
        for index in range(start, len(attempts)):
            a = attempts[index]
            age = int(now - a.timestamp)
            line = f"{index + 1}. {a.name or '<unknown>'} ({a.identity}) {age}s ago"
            if a.address:
                line += f" [{a.address}]"
            out.add(line)
        out.add(
            f"Shown {len(attempts) - start}/{len(attempts)}."
            f" Use '/{self._name} recent approve <index>' to approve."
        )

    def _export(self, args: list[str], out: CommandResult) -> None:
        count, path = self._gate.export_known_identities()
        out.add(f"Exported {count} known players to {path}")

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def _recent_approve(self, args: list[str], out: CommandResult) -> None:
        usage = f"/{self._name} recent approve <index>"
        if not args:
            raise CommandUsageError(usage)
        try:
            index = int(args[0])
        except ValueError:
            raise CommandUsageError(usage) from None
        attempts = self._gate.recent_attempts()
        if index < 1 or index > len(attempts):
            out.ok = False
            out.add("Index out of range")
            return
        identity = attempts[index - 1].identity
        added = self._apply(out, lambda: self._gate.add_identity(identity))
        if added:
            self._gate.record_admin_action(f"approve_recent,{identity}")
        out.add(f"{'Approved' if added else 'Already whitelisted'} auth: {identity}")

    def _approve_last(self, args: list[str], out: CommandResult) -> None:
        identity = self._gate.last_denied_identity()
        if identity is None:
            out.add("No recent denied attempts.")
            return
        added = self._apply(out, lambda: self._gate.add_identity(identity))
        if added:
            self._gate.record_admin_action(f"approve_last,{identity}")
        out.add(f"{'Approved' if added else 'Already whitelisted'} last auth: {identity}")

    def _add(self, args: list[str], out: CommandResult) -> None:
        if not args:
            raise CommandUsageError(f"/{self._name} add <auth|name>")
        token = args[0]
        identity, by_name = self._parse_target(token)
        if identity is None:
            out.ok = False
            out.add(
                f"Could not resolve name '{token}' to a SteamID."
                " Ask them to connect once or provide their SteamID."
            )
            return
        added = self._apply(out, lambda: self._gate.add_identity(identity))
        if added:
            self._gate.record_admin_action(f"add,{identity}")
        label = f' from name "{token}"' if by_name else ""
        out.add(f"{'Added' if added else 'Already present'} auth{label}: {identity}")

    def _remove(self, args: list[str], out: CommandResult) -> None:
        if not args:
            raise CommandUsageError(f"/{self._name} remove <auth|name>")
        token = args[0]
        identity, _ = self._parse_target(token)
        if identity is None:
            out.ok = False
            out.add(f"Could not resolve '{token}' to a SteamID")
            return
        removed = self._apply(out, lambda: self._gate.remove_identity(identity))
        out.add(f"{'Removed' if removed else 'Not present'} auth: {identity}")
        if not removed:
            return
        self._gate.record_admin_action(f"remove,{identity}")
        for session in self._gate.sessions.online_sessions():
            if session.identity != identity:
                continue
            self._gate.sessions.disconnect(session, "Removed from whitelist")
            self._gate.record_admin_action(f"kick_on_remove,{identity},{session.name or ''}")
            out.add(f"Kicked {session.name or '<unknown>'} ({identity})")

    def _apply(self, out: CommandResult, mutate: Callable[[], bool | None]) -> bool:
        """Run an allow-list mutation; returns whether it changed anything.

        A failed save leaves the in-memory change in place, so the handler
        carries on (admin trail, kicks, output) and ``run`` reports the
        failure afterwards.
        """
        try:
            return mutate() is not False
        except AllowListWriteError as exc:
            out.unsaved = exc
            return exc.changed

    def _parse_target(self, token: str) -> tuple[int | None, bool]:
        """Return ``(identity, resolved_by_name)`` for an operator token."""
        try:
            return int(token), False
        except ValueError:
            pass
        try:
            return self._gate.resolve_identity(token), True
        except IdentityNotFoundError:
            return None, True
