"""Team Registry: registry entries, roster discovery, passphrase gate, filename filters.

Invariants:
    - One registry entry per team; empty passphrase means the team is open
    - Discovered teams = registry teams ∪ legacy teams inferred from data filenames, sorted
    - Gate is LOCKED only when the registry entry carries a passphrase and the
      entered one is missing or different
    - Filename matching is case-insensitive on team and session, like the board filter
    - Registry lookups for the gate are case-insensitive too, so a differently
      cased team name never bypasses a protected entry

Design Decisions:
    - Gate returns GateStatus for the sync loop (locked is a state, not an error);
      require_passphrase raises for user-initiated destructive actions
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

from roundtable.core.domain_types import DATA_SUFFIX, KEY_SEPARATOR, GateStatus
from roundtable.core.errors import PassphraseMismatchError, PassphraseRequiredError
from roundtable.core.record_codec import key_from_filename, split_key


@dataclass(frozen=True)
class TeamRegistryEntry:
    team: str
    passphrase: str = ""
    created_at: str = ""
    created_by: str = ""

    @property
    def protected(self) -> bool:
        return bool(self.passphrase)

    def to_json(self) -> str:
        payload = {
            "team": self.team,
            "passphrase": self.passphrase,
            "created_at": self.created_at,
            "created_by": self.created_by,
        }
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def parse_registry_entry(text: str | None) -> TeamRegistryEntry | None:
    """Parse a registry JSON body; None when unreadable or missing `team`."""
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not data.get("team"):
        return None
    return TeamRegistryEntry(
        team=str(data["team"]),
        passphrase=str(data.get("passphrase") or ""),
        created_at=str(data.get("created_at") or ""),
        created_by=str(data.get("created_by") or ""),
    )


def legacy_teams(filenames: Iterable[str]) -> set[str]:
    """Team names inferred from "<team> -- <writer> -- <session>.txt" filenames."""
    teams = set()
    for name in filenames:
        team = key_from_filename(name).split(KEY_SEPARATOR)[0].strip()
        if team:
            teams.add(team)
    return teams


def discover_teams(
    registry: Mapping[str, TeamRegistryEntry], filenames: Iterable[str],
) -> list[str]:
    return sorted(set(registry) | legacy_teams(filenames))


# -- Passphrase gate -------------------------------------------------------------

def find_entry(
    registry: Mapping[str, TeamRegistryEntry], team: str,
) -> TeamRegistryEntry | None:
    """Registry entry for `team`, matched case-insensitively like the filename filters."""
    entry = registry.get(team)
    if entry is not None:
        return entry
    folded = team.casefold()
    return next(
        (e for name, e in registry.items() if name.casefold() == folded), None,
    )


def check_passphrase(
    registry: Mapping[str, TeamRegistryEntry], team: str, entered: str | None,
) -> GateStatus:
    entry = find_entry(registry, team)
    if entry is None or not entry.protected:
        return GateStatus.OPEN
    if (entered or "").strip() == entry.passphrase:
        return GateStatus.VERIFIED
    return GateStatus.LOCKED


def require_passphrase(
    registry: Mapping[str, TeamRegistryEntry], team: str, entered: str | None,
) -> None:
    """Raise unless the team is open or the passphrase matches."""
    if check_passphrase(registry, team, entered) is not GateStatus.LOCKED:
        return
    if not (entered or "").strip():
        raise PassphraseRequiredError(team)
    raise PassphraseMismatchError(team)


# -- Filename filters ------------------------------------------------------------

def is_team_file(filename: str, team: str) -> bool:
    return filename.lower().startswith(team.lower() + KEY_SEPARATOR)


def is_session_file(filename: str, team: str, session: str | None) -> bool:
    """Team match plus, when a session is given, a session-suffix match."""
    if not is_team_file(filename, team):
        return False
    if not session:
        return True
    return filename.lower().endswith(f"{KEY_SEPARATOR}{session}{DATA_SUFFIX}".lower())


def sessions_for_team(filenames: Iterable[str], team: str) -> list[str]:
    sessions = set()
    for name in filenames:
        parts = split_key(key_from_filename(name))
        if parts and parts[0] == team:
            sessions.add(parts[2])
    return sorted(sessions)


def default_session(today: date) -> str:
    return today.strftime("%Y-%m-%d")
