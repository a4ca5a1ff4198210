"""Optimistic Write Coordinator: read-version, CAS-write, retry once on conflict.

Invariants:
    - Every mutation is fetch -> mutate -> CAS write with the observed sha
    - Absence on fetch means "create" (write without sha), never an error
    - Exactly one retry on VersionConflictError, re-fetching and re-applying
      the mutation to the winner's content; a second conflict propagates
    - Debounced reaction writes: a new toggle cancels a not-yet-fired write;
      a fired write is never cancelled and always requests a re-sync when done

Design Decisions:
    - mutate receives the current body (or None) so a retry merges onto the
      concurrent winner instead of overwriting it
    - Debounce handle is an asyncio.Task owned by ReactionWriter: cancel and
      replace, never queue a second write
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from roundtable.core.errors import RoundTableError, VersionConflictError
from roundtable.core.repository_protocols import ObjectStore

logger = logging.getLogger(__name__)

Mutation = Callable[[str | None], str]


class WriteCoordinator:
    """CAS upserts against an ObjectStore with a bounded conflict retry."""

    def __init__(self, store: ObjectStore, max_conflict_retries: int = 1):
        self.store = store
        self.max_conflict_retries = max_conflict_retries

    async def upsert(self, path: str, mutate: Mutation, message: str) -> str:
        """Apply `mutate` to the current body at `path` and CAS-write it. Returns new sha."""
        for attempt in range(self.max_conflict_retries + 1):
            current = await self.store.fetch(path)
            body = mutate(current.text if current else None)
            sha = current.sha if current else None
            try:
                return await self.store.write(path, body, sha, message)
            except VersionConflictError:
                if attempt >= self.max_conflict_retries:
                    logger.warning(
                        f"Version conflict persisted after {attempt + 1} attempts",
                        extra={"path": path, "attempt": attempt + 1},
                    )
                    raise
                logger.warning(
                    "Version conflict, refetching and retrying",
                    extra={"path": path, "attempt": attempt + 1},
                )
        raise AssertionError("unreachable")  # pragma: no cover


class ReactionWriter:
    """Debounced, single-slot scheduler for one writer's reaction upserts."""

    def __init__(
        self,
        coordinator: WriteCoordinator,
        debounce_ms: int,
        on_done: Callable[[], Awaitable[None] | None] | None = None,
    ):
        self.coordinator = coordinator
        self.debounce_ms = debounce_ms
        self.on_done = on_done
        self.last_error: RoundTableError | None = None
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a write is waiting out its quiet period or running."""
        return self._timer is not None or bool(self._inflight)

    def schedule(self, path: str, mutate: Mutation, message: str) -> None:
        """(Re)start the quiet period; the latest call's mutation wins."""
        if self._timer is not None:
            self._timer.cancel()
        task = asyncio.create_task(self._fire_after_quiet(path, mutate, message))
        self._timer = task
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def flush(self) -> None:
        """Wait for every scheduled or running write to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _fire_after_quiet(self, path: str, mutate: Mutation, message: str) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        # past this point the write has fired and must not be cancelled by schedule()
        if self._timer is asyncio.current_task():
            self._timer = None
        try:
            await self.coordinator.upsert(path, mutate, message)
            self.last_error = None
        except RoundTableError as e:
            self.last_error = e
            logger.warning(
                f"Reaction write failed: {e.message}",
                extra={"path": path, "error_code": e.code},
            )
        finally:
            if self.on_done is not None:
                result = self.on_done()
                if asyncio.iscoroutine(result):
                    await result
