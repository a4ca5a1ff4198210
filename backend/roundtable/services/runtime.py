"""Runtime: explicitly constructed owner of every piece of process-wide state.

Invariants:
    - One ETag cache, one store client, one sync engine per Runtime
    - Created at startup, passed by reference; nothing lives in module globals
    - close() stops polling, drains pending reaction writes, then closes IO

Design Decisions:
    - build_runtime(settings, transport=...) lets tests swap in httpx.MockTransport
      and an in-memory database without patching
"""

import logging
import random
from dataclasses import dataclass
from datetime import date

import httpx

from roundtable.config import Settings
from roundtable.core.team_registry import default_session
from roundtable.infrastructure.contents_client import ContentsClient
from roundtable.infrastructure.database import DatabaseSessionManager
from roundtable.infrastructure.etag_cache import EtagCache
from roundtable.services.board_actions import BoardActions
from roundtable.services.local_state import SqlLocalStateRepository
from roundtable.services.speaker_service import SpeakerService
from roundtable.services.sync_engine import SyncEngine
from roundtable.services.write_coordinator import ReactionWriter, WriteCoordinator

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    cache: EtagCache
    client: ContentsClient
    db: DatabaseSessionManager
    local_state: SqlLocalStateRepository
    coordinator: WriteCoordinator
    reaction_writer: ReactionWriter
    engine: SyncEngine
    actions: BoardActions
    speaker: SpeakerService

    async def open(self, start_polling: bool = True) -> None:
        await self.db.create_all()
        if start_polling:
            self.engine.start()
        logger.info("Runtime started", extra={"team": self.engine.team})

    async def close(self) -> None:
        await self.engine.stop()
        await self.reaction_writer.flush()
        await self.client.aclose()
        await self.db.dispose()
        logger.info("Runtime stopped")


def build_runtime(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
    today: date | None = None,
) -> Runtime:
    cache = EtagCache()
    client = ContentsClient(
        owner=settings.store_owner,
        repo=settings.store_repo,
        branch=settings.store_branch,
        token=settings.store_token,
        cache=cache,
        api_url=settings.store_api_url,
        committer_name=settings.committer_name,
        committer_email=settings.committer_email,
        timeout_seconds=settings.store_timeout_seconds,
        transport=transport,
    )
    db = DatabaseSessionManager(settings.database_url)
    local_state = SqlLocalStateRepository(db)
    engine = SyncEngine(
        client,
        local_state,
        store_dir=settings.store_dir,
        team=settings.team_name,
        session=default_session(today or date.today()),
        poll_interval_ms=settings.poll_interval_ms,
        min_poll_interval_ms=settings.min_poll_interval_ms,
        backoff_floor_ms=settings.backoff_floor_ms,
        backoff_ceiling_ms=settings.backoff_ceiling_ms,
    )
    coordinator = WriteCoordinator(client)
    reaction_writer = ReactionWriter(
        coordinator,
        settings.reaction_debounce_ms,
        on_done=lambda: engine.request_sync(settings.resync_delay_ms),
    )
    actions = BoardActions(
        client, coordinator, reaction_writer, engine, local_state,
        store_dir=settings.store_dir,
    )
    return Runtime(
        settings=settings,
        cache=cache,
        client=client,
        db=db,
        local_state=local_state,
        coordinator=coordinator,
        reaction_writer=reaction_writer,
        engine=engine,
        actions=actions,
        speaker=SpeakerService(engine, local_state, rng),
    )
