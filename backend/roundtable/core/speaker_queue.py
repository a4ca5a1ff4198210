"""Speaker Queue: facilitator-owned ordering of who has and has not spoken.

Invariants:
    - At most one speaker; the speaker is never also in `spoken`
    - `spoken` holds each writer at most once (finish_current is idempotent)
    - Roster changes re-sequence stably: missing writers dropped, new writers
      appended, relative order of everyone else preserved
    - Only advance() reshuffles, and only the still-pending writers

Design Decisions:
    - Pure functions over a dataclass: the RNG is a parameter, callers
      persist the returned state (local DB), nothing is synchronized remotely
    - Functions return new states instead of mutating, so a failed persist
      leaves the caller's previous state intact
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass
class SpeakerQueueState:
    spoken: list[str] = field(default_factory=list)
    speaking_now: str | None = None
    ready_order: list[str] = field(default_factory=list)

    @property
    def started(self) -> bool:
        return bool(self.spoken or self.speaking_now or self.ready_order)

    def to_dict(self) -> dict:
        return {
            "spoken": list(self.spoken),
            "speaking_now": self.speaking_now,
            "ready_order": list(self.ready_order),
        }

    @classmethod
    def from_dict(cls, data: object) -> "SpeakerQueueState":
        if not isinstance(data, dict):
            return cls()
        speaking = data.get("speaking_now")
        return cls(
            spoken=[str(n) for n in data.get("spoken") or []],
            speaking_now=str(speaking) if speaking else None,
            ready_order=[str(n) for n in data.get("ready_order") or []],
        )


def reset() -> SpeakerQueueState:
    return SpeakerQueueState()


def _pending(state: SpeakerQueueState, roster: Sequence[str]) -> list[str]:
    spoken = set(state.spoken)
    return [name for name in dict.fromkeys(roster) if name not in spoken]


def advance(
    state: SpeakerQueueState, roster: Sequence[str], rng: random.Random,
) -> SpeakerQueueState:
    """Pick the next speaker from a fresh shuffle of writers who have not spoken.

    A no-op while someone is still speaking. With nobody left, the speaker is
    cleared and the ready order emptied.
    """
    if state.speaking_now is not None:
        return resequence(state, roster)
    pending = _pending(state, roster)
    if not pending:
        return SpeakerQueueState(spoken=list(state.spoken))
    rng.shuffle(pending)
    return SpeakerQueueState(
        spoken=list(state.spoken),
        speaking_now=pending[0],
        ready_order=pending,
    )


def finish_current(state: SpeakerQueueState) -> SpeakerQueueState:
    """Move the speaker into `spoken` (once) and clear the speaker slot."""
    if state.speaking_now is None:
        return SpeakerQueueState(
            spoken=list(state.spoken),
            ready_order=list(state.ready_order),
        )
    current = state.speaking_now
    spoken = list(state.spoken)
    if current not in spoken:
        spoken.append(current)
    return SpeakerQueueState(
        spoken=spoken,
        speaking_now=None,
        ready_order=[n for n in state.ready_order if n != current],
    )


def resequence(
    state: SpeakerQueueState, roster: Sequence[str],
) -> SpeakerQueueState:
    """Reconcile the stored order with the current roster without reshuffling."""
    pending = _pending(state, roster)
    pending_set = set(pending)
    kept = [n for n in dict.fromkeys(state.ready_order) if n in pending_set]
    kept_set = set(kept)
    appended = [n for n in pending if n not in kept_set]
    speaking = state.speaking_now if state.speaking_now in pending_set else None
    return SpeakerQueueState(
        spoken=list(state.spoken),
        speaking_now=speaking,
        ready_order=kept + appended,
    )


def display_order(
    state: SpeakerQueueState, roster: Sequence[str],
) -> list[str]:
    """Speaker first, then the ready order, then those who already spoke."""
    current = resequence(state, roster)
    head = [current.speaking_now] if current.speaking_now else []
    ready = [n for n in current.ready_order if n != current.speaking_now]
    present = set(roster)
    return head + ready + [n for n in current.spoken if n in present]
