"""Team registry tests: entry parsing, discovery, passphrase gate, filename filters."""

from datetime import date

import pytest

from roundtable.core.domain_types import GateStatus
from roundtable.core.errors import PassphraseMismatchError, PassphraseRequiredError
from roundtable.core.team_registry import (
    TeamRegistryEntry,
    check_passphrase,
    default_session,
    discover_teams,
    find_entry,
    is_session_file,
    is_team_file,
    legacy_teams,
    parse_registry_entry,
    require_passphrase,
    sessions_for_team,
)

REGISTRY = {
    "Alpha": TeamRegistryEntry(team="Alpha", passphrase="s3cret"),
    "Beta": TeamRegistryEntry(team="Beta"),
}


def test_entry_json_round_trip():
    entry = TeamRegistryEntry(
        team="Alpha", passphrase="pw", created_at="2026-10-19T09:00:00+00:00",
        created_by="Ada",
    )
    assert parse_registry_entry(entry.to_json()) == entry


@pytest.mark.parametrize("body", [None, "", "not json", "[]", '{"passphrase": "x"}'])
def test_unreadable_entries_parse_as_none(body):
    assert parse_registry_entry(body) is None


def test_discover_teams_unions_registry_and_legacy_filenames():
    filenames = [
        "Gamma -- Ada -- s1.txt",
        "Alpha -- Bo -- s1.txt",
    ]
    assert discover_teams(REGISTRY, filenames) == ["Alpha", "Beta", "Gamma"]


def test_legacy_teams_from_filenames():
    assert legacy_teams(["Gamma -- Ada -- s1.txt", "Delta -- Bo -- s2.TXT"]) == {"Gamma", "Delta"}


# --- Passphrase gate -----------------------------------------------------------

def test_open_team_without_entry_or_passphrase():
    assert check_passphrase(REGISTRY, "Beta", None) is GateStatus.OPEN
    assert check_passphrase(REGISTRY, "Unknown", "anything") is GateStatus.OPEN


def test_protected_team_verified_with_matching_passphrase():
    assert check_passphrase(REGISTRY, "Alpha", " s3cret ") is GateStatus.VERIFIED


def test_protected_team_locked_when_missing_or_wrong():
    assert check_passphrase(REGISTRY, "Alpha", None) is GateStatus.LOCKED
    assert check_passphrase(REGISTRY, "Alpha", "nope") is GateStatus.LOCKED


def test_require_passphrase_distinguishes_missing_from_wrong():
    require_passphrase(REGISTRY, "Alpha", "s3cret")
    require_passphrase(REGISTRY, "Beta", None)
    with pytest.raises(PassphraseRequiredError):
        require_passphrase(REGISTRY, "Alpha", "")
    with pytest.raises(PassphraseMismatchError):
        require_passphrase(REGISTRY, "Alpha", "nope")


# --- Filename filters ----------------------------------------------------------

def test_team_filter_is_case_insensitive_and_exact_on_separator():
    assert is_team_file("alpha -- Ada -- s1.txt", "Alpha")
    assert not is_team_file("Alphabet -- Ada -- s1.txt", "Alpha")


def test_session_filter():
    assert is_session_file("Alpha -- Ada -- 2026-10-19.txt", "Alpha", "2026-10-19")
    assert not is_session_file("Alpha -- Ada -- 2026-10-18.txt", "Alpha", "2026-10-19")
    assert is_session_file("Alpha -- Ada -- 2026-10-18.txt", "Alpha", None)


def test_sessions_for_team_sorted_and_distinct():
    filenames = [
        "Alpha -- Ada -- 2026-10-19.txt",
        "Alpha -- Bo -- 2026-10-19.txt",
        "Alpha -- Ada -- 2026-10-12.txt",
        "Beta -- Cy -- 2026-10-01.txt",
    ]
    assert sessions_for_team(filenames, "Alpha") == ["2026-10-12", "2026-10-19"]


def test_default_session_is_iso_date():
    assert default_session(date(2026, 3, 7)) == "2026-03-07"


def test_gate_lookup_ignores_team_name_case():
    assert check_passphrase(REGISTRY, "alpha", None) is GateStatus.LOCKED
    assert check_passphrase(REGISTRY, "ALPHA", "s3cret") is GateStatus.VERIFIED
    with pytest.raises(PassphraseRequiredError):
        require_passphrase(REGISTRY, "alpha", "")


def test_find_entry_prefers_exact_match():
    registry = {
        "Alpha": TeamRegistryEntry(team="Alpha", passphrase="a"),
        "alpha": TeamRegistryEntry(team="alpha", passphrase="b"),
    }
    assert find_entry(registry, "alpha").passphrase == "b"
    assert find_entry(registry, "ALPHA") is not None
    assert find_entry(registry, "Gamma") is None
