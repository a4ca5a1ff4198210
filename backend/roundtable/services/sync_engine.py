"""Sync Engine: polling loop that refreshes the board from the content store.

Invariants:
    - At most one cycle in flight: a trigger while syncing is a no-op
    - Cycle order: list team dir -> registry scan -> passphrase gate -> record fetches
      -> aggregation -> publish; record fetches run concurrently and all finish
      before aggregation
    - Locked team: publish an empty LOCKED snapshot, fetch nothing else
    - Throttled (403/429): backoff = floor, then doubles up to ceiling;
      a Retry-After hint raises the backoff to at least that long (still capped);
      any non-throttled success (including LOCKED) resets it to 0
    - The next cycle is scheduled in `finally`, whatever the outcome, at
      max(min_poll, poll_interval) + backoff
    - No exception escapes a cycle; one unreadable record never blocks the rest

Design Decisions:
    - asyncio.Lock used try-acquire style as the non-reentrant guard
    - Next-cycle timer is an asyncio.Task replaced on each reschedule
    - An out-of-band request during a cycle is remembered and honoured by
      that cycle's reschedule instead of being dropped
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from roundtable.core.backoff import next_backoff, next_poll_delay_ms
from roundtable.core.domain_types import (
    DATA_SUFFIX, REGISTRY_SUFFIX, GateStatus, RecordKey, SyncPhase,
)
from roundtable.core.errors import (
    AuthFailureError, RateLimitedError, RoundTableError,
)
from roundtable.core.reaction_aggregator import ReactionTotals, aggregate_reactions
from roundtable.core.record_codec import (
    StatusRecord, decode_record, key_from_filename, registry_dir,
)
from roundtable.core.repository_protocols import LocalStateRepository, ObjectStore
from roundtable.core.team_registry import (
    TeamRegistryEntry, check_passphrase, discover_teams, find_entry,
    is_session_file, parse_registry_entry, sessions_for_team,
)

logger = logging.getLogger(__name__)


@dataclass
class BoardRecord:
    key: RecordKey
    path: str
    record: StatusRecord


@dataclass
class BoardSnapshot:
    """Everything one cycle publishes for presentation."""
    team: str
    session: str
    phase: SyncPhase = SyncPhase.IDLE
    gate: GateStatus = GateStatus.OPEN
    records: list[BoardRecord] = field(default_factory=list)
    totals: ReactionTotals = field(default_factory=dict)
    teams: list[str] = field(default_factory=list)
    sessions: list[str] = field(default_factory=list)
    refreshed_at: datetime | None = None

    @property
    def roster(self) -> list[str]:
        return [r.record.name for r in self.records if r.record.name]

    def find(self, key: str) -> BoardRecord | None:
        return next((r for r in self.records if r.key == key), None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Owns the poll loop, backoff state and the published snapshot."""

    def __init__(
        self,
        store: ObjectStore,
        local_state: LocalStateRepository,
        *,
        store_dir: str,
        team: str,
        session: str,
        poll_interval_ms: int = 10_000,
        min_poll_interval_ms: int = 2_000,
        backoff_floor_ms: int = 5_000,
        backoff_ceiling_ms: int = 60_000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.local_state = local_state
        self.store_dir = store_dir
        self.team = team
        self.session = session
        self.poll_interval_ms = poll_interval_ms
        self.min_poll_interval_ms = min_poll_interval_ms
        self.backoff_floor_ms = backoff_floor_ms
        self.backoff_ceiling_ms = backoff_ceiling_ms
        self.clock = clock

        self.backoff_ms = 0
        self.phase = SyncPhase.IDLE
        self.last_error: str | None = None
        self.registry: dict[str, TeamRegistryEntry] = {}
        self.snapshot = BoardSnapshot(team=team, session=session)
        self.scheduled_delay_ms: int | None = None

        self._guard = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._resync_delay_ms: int | None = None
        self._running = False

    # -- Lifecycle ---------------------------------------------------------------

    def start(self) -> None:
        self._running = True
        self._schedule(0)

    async def stop(self) -> None:
        """Stop polling; an in-flight cycle runs to completion first."""
        self._running = False
        async with self._guard:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def syncing(self) -> bool:
        return self._guard.locked()

    def select(self, team: str | None = None, session: str | None = None) -> None:
        """Switch the active (team, session); takes effect on the next cycle."""
        if team:
            self.team = team
        if session:
            self.session = session

    def request_sync(self, delay_ms: int = 0) -> None:
        """Out-of-band refresh, e.g. after a successful local write."""
        if not self._running:
            return
        if self.syncing:
            self._resync_delay_ms = delay_ms
            return
        self._schedule(delay_ms)

    # -- Cycle -------------------------------------------------------------------

    async def sync_once(self) -> bool:
        """Run one cycle. Returns False when skipped because one is in flight."""
        if self._guard.locked():
            return False
        async with self._guard:
            self.phase = SyncPhase.SYNCING
            try:
                locked = await self._cycle()
                self.backoff_ms = 0
                self.last_error = None
                self.phase = SyncPhase.LOCKED if locked else SyncPhase.IDLE
            except RateLimitedError as e:
                self.backoff_ms = next_backoff(
                    self.backoff_ms, self.backoff_floor_ms, self.backoff_ceiling_ms,
                    retry_after_ms=e.context.retry_after_ms,
                )
                self.last_error = e.message
                self.phase = SyncPhase.BACKOFF
                logger.warning(
                    "Sync throttled, backing off",
                    extra={"backoff_ms": self.backoff_ms, "team": self.team},
                )
            except RoundTableError as e:
                self.last_error = e.message
                self.phase = SyncPhase.IDLE
                logger.error(
                    f"Sync failed: {e.message}",
                    extra={"error_code": e.code, "team": self.team},
                )
            except Exception as e:
                self.last_error = str(e)
                self.phase = SyncPhase.IDLE
                logger.error(f"Unexpected sync failure: {e}", exc_info=True)
            finally:
                self.snapshot.phase = self.phase
                self._reschedule_after_cycle()
        return True

    async def _cycle(self) -> bool:
        """One refresh. Returns True when the active team is locked."""
        team, session = self.team, self.session
        files = await self.store.list_dir(self.store_dir, DATA_SUFFIX)
        filenames = [f.name for f in files]

        self.registry = await self._load_registry()
        teams = discover_teams(self.registry, filenames)

        known = find_entry(self.registry, team)
        entered = await self.local_state.get_passphrase(known.team if known else team)
        gate = check_passphrase(self.registry, team, entered)
        if gate is GateStatus.LOCKED:
            self._publish(BoardSnapshot(
                team=team, session=session, gate=gate, teams=teams,
                sessions=sessions_for_team(filenames, team),
                refreshed_at=self.clock(),
            ))
            logger.info("Team locked, skipping record fetch", extra={"team": team})
            return True

        targets = [f for f in files if is_session_file(f.name, team, session)]
        results = await asyncio.gather(
            *(self.store.read(f.path, parse=decode_record) for f in targets),
            return_exceptions=True,
        )
        records = []
        for entry, result in zip(targets, results):
            if isinstance(result, (RateLimitedError, AuthFailureError)):
                raise result
            if isinstance(result, RoundTableError):
                logger.warning(
                    f"Skipping unreadable record: {result.message}",
                    extra={"path": entry.path},
                )
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                continue
            records.append(BoardRecord(
                key=key_from_filename(entry.name), path=entry.path, record=result.value,
            ))

        self._publish(BoardSnapshot(
            team=team,
            session=session,
            gate=gate,
            records=records,
            totals=aggregate_reactions(r.record for r in records),
            teams=teams,
            sessions=sessions_for_team(filenames, team),
            refreshed_at=self.clock(),
        ))
        logger.info(
            "Board synced",
            extra={"team": team, "session": session, "records": len(records)},
        )
        return False

    async def _load_registry(self) -> dict[str, TeamRegistryEntry]:
        items = await self.store.list_dir(registry_dir(self.store_dir), REGISTRY_SUFFIX)
        results = await asyncio.gather(
            *(self.store.read(it.path, parse=parse_registry_entry) for it in items),
            return_exceptions=True,
        )
        registry: dict[str, TeamRegistryEntry] = {}
        for item, result in zip(items, results):
            if isinstance(result, (RateLimitedError, AuthFailureError)):
                raise result
            if isinstance(result, BaseException):
                logger.warning(
                    f"Skipping registry entry: {result}", extra={"path": item.path},
                )
                continue
            if result is not None and result.value is not None:
                registry[result.value.team] = result.value
        return registry

    def _publish(self, snapshot: BoardSnapshot) -> None:
        snapshot.phase = self.phase
        self.snapshot = snapshot

    # -- Scheduling --------------------------------------------------------------

    def next_delay_ms(self) -> int:
        return next_poll_delay_ms(
            self.poll_interval_ms, self.min_poll_interval_ms, self.backoff_ms,
        )

    def _reschedule_after_cycle(self) -> None:
        if self._resync_delay_ms is not None:
            delay, self._resync_delay_ms = self._resync_delay_ms, None
        else:
            delay = self.next_delay_ms()
        self.scheduled_delay_ms = delay
        if self._running:
            self._schedule(delay)

    def _schedule(self, delay_ms: int) -> None:
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._sleep_then_sync(delay_ms))

    async def _sleep_then_sync(self, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        await self.sync_once()
