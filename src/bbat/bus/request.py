"""Request scope: one connection, one transaction, one execution context.

This is what the HTTP layer wraps around every inbound request::

    async with request_scope(bus, pool, session=session) as handle:
        return await handle.exec(debts.procedures.get, debt_id)

Normal exit commits.  Any exception raised anywhere in the call graph
rolls the one shared transaction back and is re-raised, so a deep failure
invalidates every write made earlier in the same request.  There is no
partial commit.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from bbat.observability.logger import bind_request

from .bus import BusHandle, LocalBus
from .context import ConnectionPool, StaticServices

logger = logging.getLogger(__name__)


@asynccontextmanager
async def request_scope(
    bus: LocalBus,
    pool: ConnectionPool,
    *,
    session: Any | None = None,
    services: StaticServices | None = None,
    request_id: str | None = None,
) -> AsyncIterator[BusHandle]:
    """Yield a bus handle whose context owns a fresh transaction."""
    async with pool.connection() as connection:
        handle = bus.create_context(
            connection,
            session=session,
            services=services,
            request_id=request_id,
        )
        with bind_request(handle.context.request_id):
            try:
                yield handle
            except BaseException:
                logger.info("Rolling back request %s", handle.context.request_id)
                await connection.rollback()
                raise
            await connection.commit()
