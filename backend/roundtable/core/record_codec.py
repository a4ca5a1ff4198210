"""Record Codec: line-oriented KEY=value status records with an embedded reaction sub-document.

Invariants:
    - decode_record never raises: unknown keys ignored, blank/# lines skipped,
      unparseable numbers become None, bad base64/JSON becomes empty values
    - Free text and reactions travel base64-encoded so every field stays on one line
    - decode_record(encode_record(r)) == r for every valid StatusRecord
    - replace_reactions touches only the REACTIONS_B64 line, leaving every other line as stored

Design Decisions:
    - Reactions embedded in the owner's record: a single CAS write updates both
      the human-authored fields and the reaction state atomically
    - Ratings serialized only when set; a missing FEELING decodes to None, a stored 0 decodes to 0
"""

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field

from roundtable.core.domain_types import (
    DATA_SUFFIX, KEY_SEPARATOR, REGISTRY_DIRNAME, REGISTRY_SUFFIX,
    RecordKey, StorePath,
)

logger = logging.getLogger(__name__)

_REACTIONS_LINE = re.compile(r"^\s*REACTIONS_B64\s*=", re.IGNORECASE)


@dataclass
class ReactionState:
    """One writer's own reaction flags: by_target[target_key][emoji] -> bool."""
    updated_at: str | None = None
    by_target: dict[str, dict[str, bool]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"updated_at": self.updated_at, "by_target": self.by_target}

    @classmethod
    def from_dict(cls, data: object) -> "ReactionState":
        """Lenient load: non-dict payloads and non-dict targets are dropped."""
        if not isinstance(data, dict):
            return cls()
        raw_targets = data.get("by_target")
        by_target: dict[str, dict[str, bool]] = {}
        if isinstance(raw_targets, dict):
            for target, flags in raw_targets.items():
                if isinstance(flags, dict):
                    by_target[str(target)] = {
                        str(emoji): bool(on) for emoji, on in flags.items()
                    }
        updated_at = data.get("updated_at")
        return cls(
            updated_at=str(updated_at) if updated_at is not None else None,
            by_target=by_target,
        )


@dataclass
class StatusRecord:
    """One writer's status for one (team, session)."""
    team: str = ""
    name: str = ""
    session: str = ""
    feeling: int | None = None
    productivity: int | None = None
    update: str = ""
    updated_at: str = ""
    reactions: ReactionState = field(default_factory=ReactionState)

    @property
    def key(self) -> RecordKey:
        return record_key(self.team, self.name, self.session)


# -- Base64 helpers --------------------------------------------------------------

def to_b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def from_b64(payload: str) -> str:
    """Decode UTF-8 base64; invalid input yields "" instead of raising."""
    try:
        return base64.b64decode(payload.replace("\n", ""), validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return ""


# -- Naming ----------------------------------------------------------------------

def record_key(team: str, name: str, session: str) -> RecordKey:
    return RecordKey(f"{team}{KEY_SEPARATOR}{name}{KEY_SEPARATOR}{session}".strip())


def record_path(store_dir: str, team: str, name: str, session: str) -> StorePath:
    filename = f"{record_key(team, name, session)}{DATA_SUFFIX}"
    root = store_dir.strip("/")
    return StorePath(f"{root}/{filename}" if root else filename)


def registry_dir(store_dir: str) -> str:
    root = store_dir.strip("/")
    return f"{root}/{REGISTRY_DIRNAME}" if root else REGISTRY_DIRNAME


def registry_path(store_dir: str, team: str) -> StorePath:
    safe = re.sub(r"[\\/]", "-", team)
    return StorePath(f"{registry_dir(store_dir)}/{safe}{REGISTRY_SUFFIX}")


def key_from_filename(filename: str) -> RecordKey:
    """Strip the data suffix (case-insensitive) from a listed filename."""
    if filename.lower().endswith(DATA_SUFFIX):
        filename = filename[: -len(DATA_SUFFIX)]
    return RecordKey(filename)


def split_key(key: str) -> tuple[str, str, str] | None:
    """Split a record key into (team, writer, session); None if not three parts."""
    parts = [p.strip() for p in key.split(KEY_SEPARATOR)]
    if len(parts) < 3:
        return None
    return parts[0], parts[1], parts[2]


# -- Encoding --------------------------------------------------------------------

def _quote(value: str) -> str:
    # TEAM/NAME/SESSION are single-line identifiers; newlines would split the record
    return '"' + value.replace("\r", " ").replace("\n", " ") + '"'


def encode_reactions(state: ReactionState) -> str:
    return to_b64(json.dumps(state.to_dict(), ensure_ascii=False, sort_keys=True))


def encode_record(record: StatusRecord) -> str:
    """Serialize a record; trailing newline included."""
    lines = [
        f"TEAM={_quote(record.team)}",
        f"NAME={_quote(record.name)}",
        f"SESSION={_quote(record.session)}",
    ]
    if record.feeling is not None:
        lines.append(f"FEELING={int(record.feeling)}")
    if record.productivity is not None:
        lines.append(f"PRODUCTIVITY={int(record.productivity)}")
    lines.append(f"UPDATED_AT={_quote(record.updated_at)}")
    lines.append(f'UPDATE_B64="{to_b64(record.update or "")}"')
    if record.reactions.updated_at is not None or record.reactions.by_target:
        lines.append(f'REACTIONS_B64="{encode_reactions(record.reactions)}"')
    return "\n".join(lines) + "\n"


def replace_reactions(text: str | None, state: ReactionState) -> str:
    """Rewrite (or append) the REACTIONS_B64 line of an existing body."""
    lines = (text or "").splitlines()
    encoded = f'REACTIONS_B64="{encode_reactions(state)}"'
    for i, line in enumerate(lines):
        if _REACTIONS_LINE.match(line):
            lines[i] = encoded
            break
    else:
        lines.append(encoded)
    return "\n".join(lines) + "\n"


# -- Decoding --------------------------------------------------------------------

def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_rating(value: str) -> int | None:
    try:
        number = float(value)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number)


def _parse_reactions(payload: str) -> ReactionState:
    decoded = from_b64(payload)
    if not decoded:
        return ReactionState()
    try:
        return ReactionState.from_dict(json.loads(decoded))
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable reactions payload")
        return ReactionState()


def decode_record(text: str | None) -> StatusRecord:
    """Forgiving parse of a stored body into a StatusRecord."""
    record = StatusRecord()
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip().upper()
        value = _unquote(value.strip())
        if key == "TEAM":
            record.team = value
        elif key == "NAME":
            record.name = value
        elif key == "SESSION":
            record.session = value
        elif key == "FEELING":
            record.feeling = _parse_rating(value)
        elif key == "PRODUCTIVITY":
            record.productivity = _parse_rating(value)
        elif key == "UPDATED_AT":
            record.updated_at = value
        elif key == "UPDATE_B64":
            record.update = from_b64(value)
        elif key == "UPDATE":
            record.update = value
        elif key == "REACTIONS_B64":
            record.reactions = _parse_reactions(value)
    return record
