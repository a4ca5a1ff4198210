"""Board Routes: snapshot reads, manual sync, status saves and reactions.

Invariants:
    - GET /board never touches the store; it returns the last published snapshot
    - POST /board/sync runs a cycle inline unless one is already in flight
    - Save failures are returned on this request, not folded into sync status
"""

import logging

from fastapi import APIRouter, Depends, status

from roundtable.api.deps import get_runtime
from roundtable.schemas.board import (
    ReactionToggleIn, SelectionIn, StatusUpdateIn, snapshot_to_dict,
)
from roundtable.services.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/board", tags=["board"])


def _board(runtime: Runtime) -> dict:
    engine = runtime.engine
    return snapshot_to_dict(
        engine.snapshot, backoff_ms=engine.backoff_ms, last_error=engine.last_error,
    )


@router.get("")
async def get_board(runtime: Runtime = Depends(get_runtime)):
    """Latest published snapshot for the active team and session."""
    return _board(runtime)


@router.post("/sync")
async def sync_now(runtime: Runtime = Depends(get_runtime)):
    ran = await runtime.engine.sync_once()
    return {"ran": ran, "board": _board(runtime)}


@router.put("/selection")
async def select_board(
    body: SelectionIn, runtime: Runtime = Depends(get_runtime),
):
    """Switch active team/session and refresh immediately."""
    runtime.engine.select(team=body.team, session=body.session)
    await runtime.engine.sync_once()
    return _board(runtime)


@router.post("/updates", status_code=status.HTTP_201_CREATED)
async def save_update(
    body: StatusUpdateIn, runtime: Runtime = Depends(get_runtime),
):
    record = await runtime.actions.save_update(
        body.name, body.session, body.feeling, body.productivity, body.update,
    )
    return {
        "key": record.key,
        "team": record.team,
        "name": record.name,
        "session": record.session,
        "feeling": record.feeling,
        "productivity": record.productivity,
        "update": record.update,
        "updated_at": record.updated_at,
    }


@router.post("/reactions", status_code=status.HTTP_202_ACCEPTED)
async def toggle_reaction(
    body: ReactionToggleIn, runtime: Runtime = Depends(get_runtime),
):
    """Flip one reaction; persisted by a debounced write."""
    totals = runtime.actions.toggle_reaction(body.name, body.target, body.emoji)
    return {"target": body.target, "totals": totals}


@router.delete("/sessions/{session}")
async def delete_session(
    session: str, runtime: Runtime = Depends(get_runtime),
):
    """Delete every record of `session` in the active team."""
    report = await runtime.actions.delete_session(session)
    return {"deleted": report.deleted, "failed": report.failed}
