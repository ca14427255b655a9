"""GateKeeper — Connection-time access control for multiplayer servers.

GateKeeper decides, when a session connects, whether its identity may join
the currently loaded world, and keeps the durable state that decision
depends on.

Layers (bottom to top):
    1. Storage    — tenant paths, allow-list document, name cache
    2. Security   — access policy, audit trail, notification throttle
    3. Service    — GateKeeper (single lock domain), connection policy
    4. Operators  — ``whitelist`` command family, ``gatekeeper`` CLI
"""

__version__ = "0.1.0"
__author__ = "GateKeeper Contributors"
__license__ = "Apache-2.0"

from gatekeeper.connection import ConnectionPolicy
from gatekeeper.gate import GateKeeper

__all__ = [
    "__version__",
    "ConnectionPolicy",
    "GateKeeper",
]
