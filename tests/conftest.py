"""Shared fixtures for the bbat test suite."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pytest

from bbat.bus.bus import BusHandle, LocalBus
from bbat.core.config import Settings


# ---------------------------------------------------------------------------
# In-memory transactional store
# ---------------------------------------------------------------------------

class MemoryDatabase:
    """Committed rows plus commit/rollback counters."""

    def __init__(self) -> None:
        self.rows: dict[str, Any] = {}
        self.commits = 0
        self.rollbacks = 0


class MemoryConnection:
    """One transaction: writes are staged until ``commit()``."""

    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db
        self.pending: dict[str, Any] = {}
        self.closed = False

    def write(self, key: str, value: Any) -> None:
        self.pending[key] = value

    def read(self, key: str) -> Any:
        if key in self.pending:
            return self.pending[key]
        return self._db.rows.get(key)

    async def commit(self) -> None:
        self._db.rows.update(self.pending)
        self.pending.clear()
        self._db.commits += 1

    async def rollback(self) -> None:
        self.pending.clear()
        self._db.rollbacks += 1


class MemoryPool:
    """``ConnectionPool`` handing out a fresh ``MemoryConnection`` per request."""

    def __init__(self, db: MemoryDatabase | None = None) -> None:
        self.db = db or MemoryDatabase()
        self.connections: list[MemoryConnection] = []

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[MemoryConnection]:
        conn = MemoryConnection(self.db)
        self.connections.append(conn)
        try:
            yield conn
        finally:
            conn.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def bus() -> LocalBus:
    """A fresh, unfrozen bus."""
    return LocalBus()


@pytest.fixture
def memory_db() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def pool(memory_db: MemoryDatabase) -> MemoryPool:
    return MemoryPool(memory_db)


@pytest.fixture
def connection(memory_db: MemoryDatabase) -> MemoryConnection:
    return MemoryConnection(memory_db)


@pytest.fixture
def handle(bus: LocalBus, connection: MemoryConnection) -> BusHandle:
    """A bus handle bound to a context over ``connection``."""
    return bus.create_context(connection, session={"user": "tester"})


@pytest.fixture
def settings() -> Settings:
    return Settings()
