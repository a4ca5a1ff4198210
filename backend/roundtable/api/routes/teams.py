"""Team Routes: registry listing, team creation, passphrase unlock, team deletion.

Invariants:
    - Team list comes from the last sync (registry ∪ legacy filenames)
    - Passphrases are checked against the registry and cached on this device only
"""

import logging

from fastapi import APIRouter, Depends, status

from roundtable.api.deps import get_runtime
from roundtable.schemas.board import PassphraseIn, TeamCreateIn
from roundtable.services.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/teams", tags=["teams"])


@router.get("")
async def list_teams(runtime: Runtime = Depends(get_runtime)):
    engine = runtime.engine
    return {
        "teams": [
            {
                "team": team,
                "protected": bool(
                    engine.registry.get(team) and engine.registry[team].protected
                ),
            }
            for team in engine.snapshot.teams
        ],
        "active": engine.team,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreateIn, runtime: Runtime = Depends(get_runtime),
):
    entry = await runtime.actions.register_team(
        body.team, body.passphrase, body.created_by,
    )
    return {
        "team": entry.team,
        "protected": entry.protected,
        "created_at": entry.created_at,
        "created_by": entry.created_by,
    }


@router.post("/{team}/passphrase")
async def submit_passphrase(
    team: str, body: PassphraseIn, runtime: Runtime = Depends(get_runtime),
):
    gate = await runtime.actions.submit_passphrase(team, body.passphrase)
    return {"team": team, "gate": gate.value}


@router.delete("/{team}")
async def delete_team(team: str, runtime: Runtime = Depends(get_runtime)):
    """Delete every record of `team` across all sessions, plus its registry entry."""
    report = await runtime.actions.delete_team(team)
    return {"deleted": report.deleted, "failed": report.failed}
