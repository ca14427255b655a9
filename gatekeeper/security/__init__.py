"""Security layer — Access policy, audit trail, notification throttle."""

from gatekeeper.security.models import (
    AllowListDocument,
    Attempt,
    ConnectionDecision,
    ConnectionOutcome,
    PermissionLevel,
)
from gatekeeper.security.audit import AuditLog
from gatekeeper.security.policy import AccessPolicy
from gatekeeper.security.throttle import NotificationThrottle

__all__ = [
    "AccessPolicy",
    "AllowListDocument",
    "Attempt",
    "AuditLog",
    "ConnectionDecision",
    "ConnectionOutcome",
    "NotificationThrottle",
    "PermissionLevel",
]
