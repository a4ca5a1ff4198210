"""Health & Readiness Probes.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the local state database is unreachable
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from roundtable.api.deps import get_runtime
from roundtable.services.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness check. Returns 200 if the process is up."""
    return {"status": "healthy", "service": "roundtable-sync", "version": "1.0.0"}


@router.get("/ready")
async def readiness_check(runtime: Runtime = Depends(get_runtime)):
    """Readiness check: local database plus last sync error, if any."""
    db_ok = await runtime.db.health_check()
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "local_state_unavailable"},
        )
    return {
        "status": "ready",
        "checks": {
            "database": "healthy",
            "sync_phase": runtime.engine.phase.value,
            "last_sync_error": runtime.engine.last_error,
        },
    }
