"""Speaker Routes: facilitator's speaker queue for the active team and session."""

from fastapi import APIRouter, Depends

from roundtable.api.deps import get_runtime
from roundtable.schemas.board import speaker_to_dict
from roundtable.services.runtime import Runtime

router = APIRouter(prefix="/api/v1/speaker", tags=["speaker"])


@router.get("")
async def get_speaker_queue(runtime: Runtime = Depends(get_runtime)):
    state, order = await runtime.speaker.current()
    return speaker_to_dict(state, order)


@router.post("/advance")
async def advance_speaker(runtime: Runtime = Depends(get_runtime)):
    return speaker_to_dict(await runtime.speaker.advance())


@router.post("/finish")
async def finish_speaker(runtime: Runtime = Depends(get_runtime)):
    return speaker_to_dict(await runtime.speaker.finish_current())


@router.post("/reset")
async def reset_speaker(runtime: Runtime = Depends(get_runtime)):
    return speaker_to_dict(await runtime.speaker.reset())
