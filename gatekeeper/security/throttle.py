"""Security layer — Operator notification throttle.

Two-tier cooldown for "a non-allowed player tried to join" alerts:

    - per identity: the same rejected identity alerts at most once per
      ``per_identity_cooldown`` seconds
    - global: no alert at all within ``global_min_interval`` seconds of the
      previous one, so a flood of distinct identities cannot spam operators

State is in-memory only and resets with the process.

Usage::

    throttle = NotificationThrottle(global_min_interval=3.0)
    if throttle.should_notify(identity, per_identity_cooldown=60.0):
        broadcast(...)
        throttle.record_notified(identity)
"""

from __future__ import annotations

import time

from gatekeeper.logging import get_logger

log = get_logger(__name__)

# Matches NotifyConfig defaults.
_DEFAULT_GLOBAL_MIN_INTERVAL = 3.0
_DEFAULT_PER_IDENTITY_COOLDOWN = 60.0


class NotificationThrottle:
    """Per-identity plus global cooldown for operator alerts."""

    def __init__(
        self,
        global_min_interval: float = _DEFAULT_GLOBAL_MIN_INTERVAL,
        per_identity_cooldown: float = _DEFAULT_PER_IDENTITY_COOLDOWN,
    ) -> None:
        self._global_min_interval = global_min_interval
        self._per_identity_cooldown = per_identity_cooldown
        self._last_notified: dict[int, float] = {}
        self._last_global: float | None = None
        # Longest per-identity cooldown asked for so far; bounds pruning.
        self._longest_cooldown = per_identity_cooldown

    def should_notify(
        self,
        identity: int,
        per_identity_cooldown: float | None = None,
    ) -> bool:
        """Return True if an alert about *identity* may be sent now."""
        if per_identity_cooldown is None:
            cooldown = self._per_identity_cooldown
        else:
            cooldown = per_identity_cooldown
            self._longest_cooldown = max(self._longest_cooldown, cooldown)
        now = time.time()
        if self._last_global is not None and now - self._last_global < self._global_min_interval:
            return False
        last = self._last_notified.get(identity)
        if last is None:
            return True
        return now - last > cooldown

    def record_notified(self, identity: int) -> None:
        """Mark that an alert about *identity* was actually sent."""
        now = time.time()
        self._prune(now)
        self._last_notified[identity] = now
        self._last_global = now
        log.debug("notification_recorded", identity=identity)

    def __len__(self) -> int:
        """Number of identities with a remembered alert time."""
        return len(self._last_notified)

    def _prune(self, now: float) -> None:
        expired = [
            identity
            for identity, last in self._last_notified.items()
            if now - last > self._longest_cooldown
        ]
        for identity in expired:
            del self._last_notified[identity]

    def reset(self, identity: int | None = None) -> None:
        """Forget notification history for *identity*, or entirely."""
        if identity is None:
            self._last_notified.clear()
            self._last_global = None
        else:
            self._last_notified.pop(identity, None)
