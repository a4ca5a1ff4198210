"""Speaker Service: persists the facilitator's speaker queue around the pure state machine.

Invariants:
    - Roster is always the writer names of the latest published snapshot
    - Every transition is load -> pure transition -> save, scoped to (team, session)
"""

import random

from roundtable.core import speaker_queue
from roundtable.core.repository_protocols import LocalStateRepository
from roundtable.core.speaker_queue import SpeakerQueueState
from roundtable.services.sync_engine import SyncEngine


class SpeakerService:
    def __init__(
        self,
        engine: SyncEngine,
        local_state: LocalStateRepository,
        rng: random.Random | None = None,
    ):
        self.engine = engine
        self.local_state = local_state
        self.rng = rng or random.Random()

    def _scope(self) -> tuple[str, str]:
        return self.engine.team, self.engine.session

    async def current(self) -> tuple[SpeakerQueueState, list[str]]:
        """Stored state re-sequenced against the roster, plus display order."""
        roster = self.engine.snapshot.roster
        state = await self.local_state.load_speaker_state(*self._scope())
        return (
            speaker_queue.resequence(state, roster),
            speaker_queue.display_order(state, roster),
        )

    async def advance(self) -> SpeakerQueueState:
        team, session = self._scope()
        state = await self.local_state.load_speaker_state(team, session)
        new_state = speaker_queue.advance(state, self.engine.snapshot.roster, self.rng)
        await self.local_state.save_speaker_state(team, session, new_state)
        return new_state

    async def finish_current(self) -> SpeakerQueueState:
        team, session = self._scope()
        state = await self.local_state.load_speaker_state(team, session)
        new_state = speaker_queue.finish_current(state)
        await self.local_state.save_speaker_state(team, session, new_state)
        return new_state

    async def reset(self) -> SpeakerQueueState:
        team, session = self._scope()
        new_state = speaker_queue.reset()
        await self.local_state.save_speaker_state(team, session, new_state)
        return new_state
