"""Database Session Manager: async SQLite sessions for device-local state.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Tables created on startup via create_all (local projection, no migrations)
    - SQLAlchemy exceptions mapped to LocalStateError

Design Decisions:
    - One manager per Runtime, disposed on shutdown; tests use an in-memory URL
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from roundtable.core.errors import ErrorCategory, ErrorSeverity, RoundTableError
from roundtable.db.base import Base
import roundtable.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


class LocalStateError(RoundTableError):
    """Local SQLite operation failed."""
    def __init__(self, message: str):
        super().__init__(
            f"Local state operation failed: {message}",
            "LOCAL_STATE_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, None, 500,
        )


class DatabaseSessionManager:
    """Manages async database sessions with rollback and health checks."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise LocalStateError(type(e).__name__) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for the readiness check)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
