"""Database connection and session management.

A :class:`DatabaseManager` is created per run. It lazily builds the async
engine, hands out one transaction-scoped session per unit of work, guards
the run with an advisory lock and disposes everything when the run ends.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from polymarket_insider_finder.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def normalize_async_database_url(database_url: str) -> str:
    """Swap a sync PostgreSQL URL for its asyncpg form."""
    if database_url.startswith("postgresql://"):
        logger.warning(
            "Database URL uses sync dialect 'postgresql://'; using async driver 'postgresql+asyncpg://'."
        )
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def advisory_lock_key(name: str) -> int:
    """Map a lock name onto a signed 64-bit key for pg_try_advisory_lock."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class DatabaseManager:
    """Owns the engine and sessions for one run.

    Example:
        ```python
        db = DatabaseManager(settings.database.url)
        try:
            async with db.get_async_session() as session:
                wallets = await WalletRepository(session).list_all()
        finally:
            await db.dispose_async()
        ```
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        """Initialize database manager.

        Args:
            database_url: Database connection URL.
            pool_size: Connection pool size (ignored for SQLite).
            max_overflow: Maximum overflow connections (ignored for SQLite).
            echo: Echo SQL statements for debugging.
        """
        self.database_url = normalize_async_database_url(database_url)
        self._engine_options: dict[str, Any] = {"echo": echo}
        if not self.is_sqlite:
            self._engine_options.update(pool_size=pool_size, max_overflow=max_overflow)

        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, **self._engine_options)
        return self._engine

    def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self._sessions = async_sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._sessions

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session that commits on clean exit and rolls back on error.

        Yields:
            SQLAlchemy AsyncSession instance.
        """
        async with self._session_factory()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def advisory_lock(self, name: str) -> AsyncGenerator[bool, None]:
        """Hold a session-level advisory lock keyed by ``name``.

        Yields True if the lock was acquired. SQLite has no advisory locks, so
        the lock is always reported as held there.
        """
        if self.is_sqlite:
            yield True
            return

        key = advisory_lock_key(name)
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key})
            acquired = bool(result.scalar())
            try:
                yield acquired
            finally:
                if acquired:
                    await conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
                    await conn.commit()

    async def init_schema_async(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized")

    async def dispose_async(self) -> None:
        """Dispose of all async database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None
        logger.info("Async database connections disposed")
