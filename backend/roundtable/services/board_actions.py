"""Board Actions: user-initiated mutations routed through the write coordinator.

Invariants:
    - Only the writer's own record is ever written by save_update/toggle_reaction
    - save_update preserves the record's existing reactions; toggles preserve
      every other line of the record
    - A reaction toggle on a missing own record creates it with unset ratings
    - Destructive actions require the team passphrase (if the team has one);
      re-registering a protected team is one of them
    - Every successful mutation requests an out-of-band re-sync
    - Failures raise to the caller (API layer), never into the sync loop's status

Design Decisions:
    - The writer's own reaction state lives here and stays authoritative until a
      snapshot carries reactions at least as new as it, so neither a sync landing
      mid-debounce nor a stale snapshot after the write can revert local toggles
    - Bulk delete collects per-file failures instead of aborting halfway
"""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from roundtable.core.domain_types import (
    DATA_SUFFIX, MAX_RATING, MIN_RATING, Emoji, GateStatus, RecordKey,
)
from roundtable.core.errors import (
    PassphraseMismatchError, RoundTableError, ValidationError,
)
from roundtable.core.reaction_aggregator import apply_local_toggle, toggle_reaction
from roundtable.core.record_codec import (
    ReactionState, StatusRecord, decode_record, encode_record, record_key,
    record_path, registry_path, replace_reactions,
)
from roundtable.core.repository_protocols import LocalStateRepository, ObjectStore
from roundtable.core.team_registry import (
    TeamRegistryEntry, check_passphrase, find_entry, is_session_file,
    is_team_file, parse_registry_entry, require_passphrase,
)
from roundtable.services.sync_engine import SyncEngine
from roundtable.services.write_coordinator import ReactionWriter, WriteCoordinator

logger = logging.getLogger(__name__)


@dataclass
class DeleteReport:
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_rating(value: int | None, field_name: str) -> None:
    if value is not None and not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(
            f"{field_name} must be between {MIN_RATING} and {MAX_RATING}", field_name,
        )


class BoardActions:
    """Save, react, register, unlock and delete on behalf of the local user."""

    def __init__(
        self,
        store: ObjectStore,
        coordinator: WriteCoordinator,
        reaction_writer: ReactionWriter,
        engine: SyncEngine,
        local_state: LocalStateRepository,
        *,
        store_dir: str,
        now_iso: Callable[[], str] = _utcnow_iso,
    ):
        self.store = store
        self.coordinator = coordinator
        self.reaction_writer = reaction_writer
        self.engine = engine
        self.local_state = local_state
        self.store_dir = store_dir
        self.now_iso = now_iso
        self._my_reactions: dict[RecordKey, ReactionState] = {}

    # -- Status updates ----------------------------------------------------------

    async def save_update(
        self,
        name: str,
        session: str | None,
        feeling: int | None,
        productivity: int | None,
        update: str,
    ) -> StatusRecord:
        """Write the caller's own record for the active team."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter your name before saving.", "name")
        _check_rating(feeling, "feeling")
        _check_rating(productivity, "productivity")
        team = self.engine.team
        session = (session or "").strip() or self.engine.session
        record = StatusRecord(
            team=team, name=name, session=session,
            feeling=feeling, productivity=productivity,
            update=(update or "").strip(), updated_at=self.now_iso(),
        )

        def mutate(current: str | None) -> str:
            if current is not None:
                record.reactions = decode_record(current).reactions
            return encode_record(record)

        path = record_path(self.store_dir, team, name, session)
        await self.coordinator.upsert(
            path, mutate, f"Round Table: update for {name} ({team} - {session})",
        )
        logger.info("Saved status update", extra={"team": team, "session": session})
        self.engine.request_sync()
        return record

    # -- Reactions ---------------------------------------------------------------

    def toggle_reaction(self, name: str, target: str, emoji: str) -> dict[str, int]:
        """Flip the caller's flag on `target`; the write is debounced.

        Returns the optimistic totals for `target`.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter your name to react.", "name")
        if emoji not in {e.value for e in Emoji}:
            raise ValidationError(f"Unsupported reaction {emoji!r}", "emoji")
        team, session = self.engine.team, self.engine.session
        key = record_key(team, name, session)

        state = self._own_reactions(key)
        now_on = toggle_reaction(state, target, emoji, self.now_iso())
        apply_local_toggle(self.engine.snapshot.totals, target, emoji, now_on)

        def mutate(current: str | None) -> str:
            if current is None:
                current = encode_record(StatusRecord(
                    team=team, name=name, session=session, updated_at=self.now_iso(),
                ))
            return replace_reactions(current, state)

        self.reaction_writer.schedule(
            record_path(self.store_dir, team, name, session),
            mutate,
            f"Round Table: reactions update for {name} ({team} - {session})",
        )
        return self.engine.snapshot.totals[target]

    def _own_reactions(self, key: RecordKey) -> ReactionState:
        """Local state unless the published record has caught up with it."""
        local = self._my_reactions.get(key)
        mine = self.engine.snapshot.find(key)
        synced = mine.record.reactions if mine else None
        if local is not None:
            if self.reaction_writer.pending or synced is None:
                return local
            if (synced.updated_at or "") < (local.updated_at or ""):
                return local
        state = copy.deepcopy(synced) if synced else ReactionState()
        self._my_reactions[key] = state
        return state

    # -- Teams -------------------------------------------------------------------

    async def register_team(
        self, team: str, passphrase: str, created_by: str,
    ) -> TeamRegistryEntry:
        """Create a team, or update one whose passphrase this device holds."""
        team = self._canonical_team((team or "").strip())
        if not team:
            raise ValidationError("Team name is required.", "team")
        cached = await self.local_state.get_passphrase(team)
        entry = TeamRegistryEntry(
            team=team,
            passphrase=(passphrase or "").strip(),
            created_at=self.now_iso(),
            created_by=(created_by or "").strip() or "facilitator",
        )

        def mutate(current: str | None) -> str:
            nonlocal entry
            existing = parse_registry_entry(current)
            if existing is not None:
                require_passphrase({team: existing}, team, cached)
                entry = replace(
                    entry,
                    created_at=existing.created_at or entry.created_at,
                    created_by=existing.created_by or entry.created_by,
                )
            return entry.to_json()

        await self.coordinator.upsert(
            registry_path(self.store_dir, team),
            mutate,
            f"Round Table: register team {team}",
        )
        await self.local_state.set_passphrase(team, entry.passphrase)
        self.engine.select(team=team)
        self.engine.request_sync()
        return entry

    async def submit_passphrase(self, team: str, passphrase: str) -> GateStatus:
        """Verify against the last synced registry and cache on success."""
        team = self._canonical_team(team)
        status = check_passphrase(self.engine.registry, team, passphrase)
        if status is GateStatus.LOCKED:
            raise PassphraseMismatchError(team)
        await self.local_state.set_passphrase(team, (passphrase or "").strip())
        self.engine.request_sync()
        return status

    async def delete_session(self, session: str) -> DeleteReport:
        team = self.engine.team
        session = (session or "").strip()
        if not session:
            raise ValidationError("Pick a session to delete.", "session")
        await self._require_unlocked(team)
        files = await self.store.list_dir(self.store_dir, DATA_SUFFIX)
        targets = [f.path for f in files if is_session_file(f.name, team, session)]
        report = await self._delete_paths(
            targets, f"Round Table: delete session {session} ({team})",
        )
        self.engine.request_sync()
        return report

    async def delete_team(self, team: str) -> DeleteReport:
        team = self._canonical_team((team or "").strip())
        if not team:
            raise ValidationError("Pick a team to delete.", "team")
        await self._require_unlocked(team)
        files = await self.store.list_dir(self.store_dir, DATA_SUFFIX)
        targets = [f.path for f in files if is_team_file(f.name, team)]
        targets.append(registry_path(self.store_dir, team))
        report = await self._delete_paths(targets, f"Round Table: delete team {team}")
        self.engine.request_sync()
        return report

    def _canonical_team(self, team: str) -> str:
        """Registry spelling of `team` when one exists under different case."""
        entry = find_entry(self.engine.registry, team) if team else None
        return entry.team if entry else team

    async def _require_unlocked(self, team: str) -> None:
        stored = await self.local_state.get_passphrase(self._canonical_team(team))
        require_passphrase(self.engine.registry, team, stored)

    async def _delete_paths(self, paths: list[str], message: str) -> DeleteReport:
        report = DeleteReport()
        for path in paths:
            try:
                current = await self.store.fetch(path)
                if current is None:
                    continue
                await self.store.delete(path, current.sha, message)
                report.deleted.append(path)
            except RoundTableError as e:
                logger.warning(
                    f"Delete failed: {e.message}",
                    extra={"path": path, "error_code": e.code},
                )
                report.failed[path] = e.code
        return report
