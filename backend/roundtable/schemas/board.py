"""Board Schemas: Pydantic request bodies and snapshot serialization.

Invariants:
    - Ratings 0-10 or null; names and teams stripped and non-empty
    - Free text capped at 10000 chars
    - Reaction emoji restricted to the board's fixed set
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from roundtable.core.reaction_aggregator import empty_totals
from roundtable.core.speaker_queue import SpeakerQueueState
from roundtable.services.sync_engine import BoardSnapshot


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("cannot be empty or whitespace")
    return v


class StatusUpdateIn(BaseModel):
    """Save the caller's own status for the active team."""
    name: str = Field(min_length=1, max_length=100)
    session: str | None = Field(None, max_length=100)
    feeling: int | None = Field(None, ge=0, le=10)
    productivity: int | None = Field(None, ge=0, le=10)
    update: str = Field("", max_length=10_000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class ReactionToggleIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    target: str = Field(min_length=1, max_length=400)
    emoji: Literal["👍", "✅", "❤️"]

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class TeamCreateIn(BaseModel):
    team: str = Field(min_length=1, max_length=200)
    passphrase: str = Field("", max_length=200)
    created_by: str = Field("", max_length=100)

    @field_validator("team")
    @classmethod
    def strip_team(cls, v: str) -> str:
        return _strip_required(v)


class PassphraseIn(BaseModel):
    passphrase: str = Field("", max_length=200)


class SelectionIn(BaseModel):
    """Switch the active team and/or session filter."""
    team: str | None = Field(None, max_length=200)
    session: str | None = Field(None, max_length=100)


def snapshot_to_dict(
    snapshot: BoardSnapshot, *, backoff_ms: int, last_error: str | None,
) -> dict:
    return {
        "team": snapshot.team,
        "session": snapshot.session,
        "phase": snapshot.phase.value,
        "gate": snapshot.gate.value,
        "backoff_ms": backoff_ms,
        "last_error": last_error,
        "refreshed_at": (
            snapshot.refreshed_at.isoformat() if snapshot.refreshed_at else None
        ),
        "teams": snapshot.teams,
        "sessions": snapshot.sessions,
        "records": [
            {
                "key": r.key,
                "team": r.record.team,
                "name": r.record.name,
                "session": r.record.session,
                "feeling": r.record.feeling,
                "productivity": r.record.productivity,
                "update": r.record.update,
                "updated_at": r.record.updated_at,
                "reactions": snapshot.totals.get(r.key) or empty_totals(),
            }
            for r in snapshot.records
        ],
    }


def speaker_to_dict(state: SpeakerQueueState, order: list[str] | None = None) -> dict:
    data = state.to_dict()
    if order is not None:
        data["display_order"] = order
    return data
