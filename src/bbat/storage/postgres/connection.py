"""Per-request database sessions for request scopes.

``SessionPool`` is the ``ConnectionPool`` used in production: it owns one
asyncpg-backed ``AsyncEngine`` and hands every request its own
``AsyncSession``.  Sessions are never shared between requests.  Commit and
rollback belong to the request scope; the pool only opens and closes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from bbat.core.config import DatabaseConfig

logger = logging.getLogger(__name__)


class SessionPool:
    """Engine plus session factory; one ``AsyncSession`` per request."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> SessionPool:
        """Build the engine described by *config*.

        ``pool_size == 0`` disables pooling (``NullPool``), which suits
        one-off commands and tests.
        """
        if config.pool_size == 0:
            options: dict = {"poolclass": NullPool}
        else:
            options = {
                "pool_size": config.pool_size,
                "max_overflow": config.max_overflow,
                "pool_timeout": config.pool_timeout,
                "pool_recycle": config.pool_recycle,
            }
        engine = create_async_engine(config.url, echo=config.echo, **options)
        # Credentials stay out of the log
        logger.info("Opened engine for %s (pool_size=%s)", config.url.split("@")[-1], config.pool_size)
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncSession]:
        """Yield a fresh session; it is closed on exit, discarding anything uncommitted."""
        session = self._sessions()
        try:
            yield session
        finally:
            await session.close()

    async def dispose(self) -> None:
        await self._engine.dispose()
        logger.info("Engine disposed.")
