"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - RecordKey is "<team> -- <writer> -- <session>" and never includes the file suffix
    - StorePath is relative to the repository root, no leading slash
    - Ratings are bounded MIN_RATING..MAX_RATING; None means "unset", never 0
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

RecordKey = NewType("RecordKey", str)       # "<team> -- <writer> -- <session>"
StorePath = NewType("StorePath", str)       # "roundtable/<key>.txt"


# ─── Constants ───────────────────────────────────────────────────

KEY_SEPARATOR = " -- "
DATA_SUFFIX = ".txt"
REGISTRY_SUFFIX = ".json"
REGISTRY_DIRNAME = "_teams"
MIN_RATING = 0
MAX_RATING = 10


# ─── Enums ───────────────────────────────────────────────────────

class Emoji(str, Enum):
    """Reaction emoji offered on every status card."""
    THUMBS_UP = "👍"
    CHECK = "✅"
    HEART = "❤️"


class SyncPhase(str, Enum):
    """Sync engine lifecycle. LOCKED is published when the passphrase gate fails."""
    IDLE = "idle"
    SYNCING = "syncing"
    BACKOFF = "backoff"
    LOCKED = "locked"


class GateStatus(str, Enum):
    """Outcome of the passphrase gate for one team."""
    OPEN = "open"
    VERIFIED = "verified"
    LOCKED = "locked"
