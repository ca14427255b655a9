"""Security layer — Allow-list document, attempt records and decision types.

Defines the gate's core types:
  - ``PermissionLevel``    — session permission ladder supplied by the host
  - ``AllowListDocument``  — the authoritative per-world document on disk
  - ``Attempt``            — frozen record of one denied connection
  - ``ConnectionOutcome``  — ALLOWED / PRIVILEGED / DENIED
  - ``ConnectionDecision`` — what ``on_connection_established`` decided

Identity handles are opaque 64-bit integers.  They are never validated or
interpreted beyond equality.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, Strict, field_serializer


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PermissionLevel(IntEnum):
    """Permission ladder of a connected session (higher is more privileged)."""

    USER = 1
    MODERATOR = 2
    ADMIN = 3
    OWNER = 4
    SERVER = 5

    @classmethod
    def parse(cls, value: str) -> "PermissionLevel":
        return cls[value.strip().upper()]


class ConnectionOutcome(str, Enum):
    ALLOWED = "allowed"
    PRIVILEGED = "privileged"
    DENIED = "denied"


# ---------------------------------------------------------------------------
# Allow-list document
# ---------------------------------------------------------------------------


class AllowListDocument(BaseModel):
    """``{enabled, lockdown, allowed}`` as persisted in ``whitelist.json``.

    ``allowed`` is a set; the serialised form is a sorted list so rewrites
    of an unchanged document are byte-identical.  Members must be JSON
    integers: ``true`` or ``"12"`` make the document malformed rather than
    being coerced.
    """

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    lockdown: bool = False
    allowed: set[Annotated[int, Strict()]] = Field(default_factory=set)

    @field_serializer("allowed")
    def _serialize_allowed(self, allowed: set[int]) -> list[int]:
        return sorted(allowed)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> "AllowListDocument":
        """Parse a document; raises ``ValueError`` on malformed content."""
        return cls.model_validate_json(text)

    def snapshot(self) -> "AllowListDocument":
        return self.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Attempt record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attempt:
    """Immutable record of a denied connection."""

    identity: int
    name: str | None = None
    address: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)

    def to_line(self) -> str:
        """Render as one denied-trail line: ``ms,identity,name,address``."""
        return f"{self.timestamp_ms},{self.identity},{self.name or ''},{self.address or ''}"

    @classmethod
    def from_line(cls, line: str) -> "Attempt":
        ms, identity, rest = line.rstrip("\n").split(",", 2)
        # Split the address off the right so a comma in a name survives.
        name, _, address = rest.rpartition(",")
        return cls(
            identity=int(identity),
            name=name or None,
            address=address or None,
            timestamp=int(ms) / 1000.0,
        )


# ---------------------------------------------------------------------------
# Connection decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionDecision:
    """Result of evaluating one inbound connection."""

    outcome: ConnectionOutcome
    identity: int
    reason: str | None = None
    notified: bool = False
    enrolled: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome is not ConnectionOutcome.DENIED
