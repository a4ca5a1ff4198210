"""Round Table API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map RoundTableError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Runtime (cache, store client, sync engine, local DB) built and started in
      the lifespan, closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roundtable.api.error_handlers import register_error_handlers
from roundtable.api.routes import board, health, speaker, teams
from roundtable.config import get_settings
from roundtable.infrastructure.observability import setup_logging
from roundtable.services.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    if not settings.store_token:
        logger.warning("RT_STORE_TOKEN is not set; writes will be rejected by the store")
    runtime = build_runtime(settings)
    await runtime.open()
    app.state.runtime = runtime
    logger.info("Round Table API started")
    yield
    await runtime.close()
    logger.info("Round Table API shutting down")


app = FastAPI(title="Round Table Sync API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(board.router)
app.include_router(teams.router)
app.include_router(speaker.router)

register_error_handlers(app)
