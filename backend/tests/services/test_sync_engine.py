"""Sync engine tests: one cycle at a time against the Contents API fake.

Tests cover:
    - Team/session filtering, reaction totals, discovered teams and sessions
    - Unchanged records served from the ETag cache (same parsed object)
    - Throttle backoff progression and reset on success
    - Passphrase gate: locked teams publish an empty snapshot, fetch nothing
    - One unreadable record never blocks the rest
    - Non-reentrancy and remembered out-of-band requests
"""

import asyncio
from datetime import datetime, timezone

from roundtable.core.domain_types import GateStatus, SyncPhase
from roundtable.core.errors import StoreAPIError
from roundtable.core.reaction_aggregator import empty_totals
from roundtable.core.record_codec import (
    ReactionState, StatusRecord, encode_record, record_path, registry_path,
)
from roundtable.core.team_registry import TeamRegistryEntry
from roundtable.services.sync_engine import SyncEngine

DIR = "roundtable"
SESSION = "2026-10-19"
FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def _engine(store, local_state, **kwargs) -> SyncEngine:
    params = dict(store_dir=DIR, team="Alpha", session=SESSION, clock=lambda: FIXED_NOW)
    params.update(kwargs)
    return SyncEngine(store, local_state, **params)


def _put_record(fake_api, team, name, session=SESSION, **fields) -> str:
    record = StatusRecord(team=team, name=name, session=session, **fields)
    path = record_path(DIR, team, name, session)
    fake_api.put_file(path, encode_record(record))
    return path


# --- Publishing ----------------------------------------------------------------

async def test_cycle_publishes_active_team_and_session(store, fake_api, local_state):
    target = f"Alpha -- Ada -- {SESSION}"
    _put_record(fake_api, "Alpha", "Ada", feeling=7, update="hi")
    _put_record(fake_api, "Alpha", "Bo", reactions=ReactionState(
        updated_at="t", by_target={target: {"👍": True}},
    ))
    _put_record(fake_api, "Alpha", "Cy", session="2026-10-12")
    _put_record(fake_api, "Beta", "Di")

    engine = _engine(store, local_state)
    assert await engine.sync_once() is True

    snap = engine.snapshot
    assert sorted(snap.roster) == ["Ada", "Bo"]
    assert snap.find(target).record.feeling == 7
    assert snap.totals[target] == {**empty_totals(), "👍": 1}
    assert snap.teams == ["Alpha", "Beta"]
    assert snap.sessions == ["2026-10-12", SESSION]
    assert snap.gate is GateStatus.OPEN
    assert snap.phase is SyncPhase.IDLE
    assert snap.refreshed_at == FIXED_NOW
    assert engine.last_error is None


async def test_unchanged_records_reuse_parsed_objects(store, fake_api, local_state):
    path = _put_record(fake_api, "Alpha", "Ada")
    engine = _engine(store, local_state)

    await engine.sync_once()
    first = engine.snapshot.records[0].record
    await engine.sync_once()
    second = engine.snapshot.records[0].record

    assert second is first
    assert fake_api.count("GET", path, 304) == 1


async def test_empty_store_publishes_empty_board(store, local_state):
    engine = _engine(store, local_state)
    assert await engine.sync_once()
    assert engine.snapshot.records == []
    assert engine.snapshot.teams == []


async def test_registry_teams_are_discovered(store, fake_api, local_state):
    fake_api.put_file(registry_path(DIR, "Gamma"), TeamRegistryEntry(team="Gamma").to_json())
    fake_api.put_file(registry_path(DIR, "Broken"), "{not json")
    engine = _engine(store, local_state)
    await engine.sync_once()
    assert engine.snapshot.teams == ["Gamma"]
    assert "Gamma" in engine.registry


# --- Backoff -------------------------------------------------------------------

async def test_throttle_backoff_progression_and_reset(store, fake_api, local_state):
    _put_record(fake_api, "Alpha", "Ada")
    engine = _engine(store, local_state)

    seen = []
    for _ in range(3):
        fake_api.fail_next("GET", 429)
        await engine.sync_once()
        seen.append((engine.backoff_ms, engine.scheduled_delay_ms, engine.phase))
    assert seen == [
        (5_000, 15_000, SyncPhase.BACKOFF),
        (10_000, 20_000, SyncPhase.BACKOFF),
        (20_000, 30_000, SyncPhase.BACKOFF),
    ]

    await engine.sync_once()
    assert engine.backoff_ms == 0
    assert engine.scheduled_delay_ms == 10_000
    assert engine.phase is SyncPhase.IDLE


async def test_backoff_capped_at_ceiling(store, fake_api, local_state):
    engine = _engine(store, local_state, backoff_ceiling_ms=12_000)
    for _ in range(4):
        fake_api.fail_next("GET", 403)
        await engine.sync_once()
    assert engine.backoff_ms == 12_000


async def test_minimum_poll_interval_enforced(store, local_state):
    engine = _engine(store, local_state, poll_interval_ms=100, min_poll_interval_ms=2_000)
    await engine.sync_once()
    assert engine.scheduled_delay_ms == 2_000


async def test_non_throttle_failure_sets_error_without_backoff(store, fake_api, local_state):
    engine = _engine(store, local_state)
    fake_api.fail_next("GET", 401)
    assert await engine.sync_once() is True
    assert engine.backoff_ms == 0
    assert engine.last_error
    assert engine.phase is SyncPhase.IDLE
    assert engine.scheduled_delay_ms == 10_000


# --- Passphrase gate -----------------------------------------------------------

async def test_locked_team_publishes_empty_snapshot(store, fake_api, local_state):
    fake_api.put_file(
        registry_path(DIR, "Alpha"),
        TeamRegistryEntry(team="Alpha", passphrase="pw").to_json(),
    )
    path = _put_record(fake_api, "Alpha", "Ada")
    engine = _engine(store, local_state)
    engine.backoff_ms = 5_000

    await engine.sync_once()

    assert engine.snapshot.gate is GateStatus.LOCKED
    assert engine.snapshot.records == []
    assert engine.snapshot.teams == ["Alpha"]
    assert engine.phase is SyncPhase.LOCKED
    assert engine.backoff_ms == 0
    assert fake_api.count("GET", path) == 0


async def test_cached_passphrase_unlocks_team(store, fake_api, local_state):
    fake_api.put_file(
        registry_path(DIR, "Alpha"),
        TeamRegistryEntry(team="Alpha", passphrase="pw").to_json(),
    )
    _put_record(fake_api, "Alpha", "Ada")
    await local_state.set_passphrase("Alpha", "pw")

    engine = _engine(store, local_state)
    await engine.sync_once()

    assert engine.snapshot.gate is GateStatus.VERIFIED
    assert engine.snapshot.roster == ["Ada"]


# --- Fault isolation -----------------------------------------------------------

async def test_unreadable_record_is_skipped(store, fake_api, local_state):
    _put_record(fake_api, "Alpha", "Ada")
    bad = _put_record(fake_api, "Alpha", "Bo")
    original_read = store.read

    async def flaky_read(path, parse=None):
        if path == bad:
            raise StoreAPIError("boom", status_code=500)
        return await original_read(path, parse)

    store.read = flaky_read
    engine = _engine(store, local_state)
    await engine.sync_once()

    assert engine.snapshot.roster == ["Ada"]
    assert engine.last_error is None


async def test_record_deleted_between_list_and_read(store, fake_api, local_state):
    _put_record(fake_api, "Alpha", "Ada")
    gone = _put_record(fake_api, "Alpha", "Bo")
    original_list = store.list_dir

    async def list_then_delete(directory, suffix):
        entries = await original_list(directory, suffix)
        fake_api.files.pop(gone, None)
        return entries

    store.list_dir = list_then_delete
    engine = _engine(store, local_state)
    await engine.sync_once()
    assert engine.snapshot.roster == ["Ada"]


# --- Concurrency ---------------------------------------------------------------

async def test_overlapping_trigger_is_a_noop(store, fake_api, local_state):
    _put_record(fake_api, "Alpha", "Ada")
    engine = _engine(store, local_state)
    first, second = await asyncio.gather(engine.sync_once(), engine.sync_once())
    assert (first, second) == (True, False)
    assert fake_api.count("GET", DIR) == 1


async def test_request_during_cycle_is_remembered(store, local_state):
    engine = _engine(store, local_state)
    engine._running = True
    original_list = store.list_dir
    observed = []

    async def list_and_request(directory, suffix):
        observed.append(engine.syncing)
        engine.request_sync(123)
        return await original_list(directory, suffix)

    store.list_dir = list_and_request
    await engine.sync_once()
    await engine.stop()

    assert observed[0] is True
    assert engine.scheduled_delay_ms == 123


async def test_start_runs_first_cycle_and_stop_halts(store, fake_api, local_state):
    _put_record(fake_api, "Alpha", "Ada")
    engine = _engine(store, local_state)
    engine.start()
    for _ in range(200):
        if engine.snapshot.refreshed_at is not None:
            break
        await asyncio.sleep(0.01)
    await engine.stop()

    assert engine.snapshot.roster == ["Ada"]
    assert engine.scheduled_delay_ms == 10_000


async def test_select_switches_team_on_next_cycle(store, fake_api, local_state):
    _put_record(fake_api, "Beta", "Di")
    engine = _engine(store, local_state)
    engine.select(team="Beta")
    await engine.sync_once()
    assert engine.snapshot.team == "Beta"
    assert engine.snapshot.roster == ["Di"]


async def test_retry_after_hint_lengthens_backoff(store, fake_api, local_state):
    engine = _engine(store, local_state)
    fake_api.fail_next("GET", 429, headers={"Retry-After": "30"})
    await engine.sync_once()
    assert engine.backoff_ms == 30_000
    assert engine.scheduled_delay_ms == 40_000


async def test_differently_cased_team_stays_locked(store, fake_api, local_state):
    fake_api.put_file(
        registry_path(DIR, "Alpha"),
        TeamRegistryEntry(team="Alpha", passphrase="pw").to_json(),
    )
    path = _put_record(fake_api, "Alpha", "Ada", update="private")
    engine = _engine(store, local_state, team="alpha")

    await engine.sync_once()

    assert engine.snapshot.gate is GateStatus.LOCKED
    assert engine.snapshot.records == []
    assert fake_api.count("GET", path) == 0


async def test_passphrase_cached_under_registry_spelling_unlocks(store, fake_api, local_state):
    fake_api.put_file(
        registry_path(DIR, "Alpha"),
        TeamRegistryEntry(team="Alpha", passphrase="pw").to_json(),
    )
    _put_record(fake_api, "Alpha", "Ada")
    await local_state.set_passphrase("Alpha", "pw")
    engine = _engine(store, local_state, team="alpha")

    await engine.sync_once()

    assert engine.snapshot.gate is GateStatus.VERIFIED
    assert engine.snapshot.roster == ["Ada"]
