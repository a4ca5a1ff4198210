"""Reaction Aggregator: team-wide reaction totals derived from per-writer flags.

Invariants:
    - count(target, emoji) == number of distinct writer records flagging it true
    - Recomputed from scratch every cycle: no persisted running totals
    - Result is independent of the order records were fetched in
    - Every target in the result carries every default emoji (zero-filled)

Design Decisions:
    - Each fetched record is one writer's file, so counting records counts writers
"""

from collections.abc import Iterable

from roundtable.core.domain_types import Emoji
from roundtable.core.record_codec import ReactionState, StatusRecord

ReactionTotals = dict[str, dict[str, int]]

DEFAULT_EMOJI: tuple[str, ...] = tuple(e.value for e in Emoji)


def empty_totals() -> dict[str, int]:
    return {emoji: 0 for emoji in DEFAULT_EMOJI}


def aggregate_reactions(records: Iterable[StatusRecord]) -> ReactionTotals:
    """Sum every writer's own flags into {target: {emoji: count}}."""
    totals: ReactionTotals = {}
    for record in records:
        for target, flags in record.reactions.by_target.items():
            entry = totals.setdefault(target, empty_totals())
            for emoji, on in flags.items():
                if on:
                    entry[emoji] = entry.get(emoji, 0) + 1
    return totals


def toggle_reaction(
    state: ReactionState, target: str, emoji: str, now_iso: str,
) -> bool:
    """Flip one flag on the writer's own state. Returns the new flag value."""
    flags = state.by_target.setdefault(target, {})
    flags[emoji] = not flags.get(emoji, False)
    state.updated_at = now_iso
    return flags[emoji]


def apply_local_toggle(
    totals: ReactionTotals, target: str, emoji: str, now_on: bool,
) -> int:
    """Optimistically adjust a published total before the next sync recomputes it."""
    entry = totals.setdefault(target, empty_totals())
    entry[emoji] = max(0, entry.get(emoji, 0) + (1 if now_on else -1))
    return entry[emoji]
