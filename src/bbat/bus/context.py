"""Execution context: the request-scoped bundle threaded through every call.

One ``ExecutionContext`` exists per external request.  It is passed by
reference, never copied, to every handler and subscriber reached from
that request, so nested calls reuse the same transaction and session.
Handlers receive it as an explicit argument; there is no ambient or
thread-local lookup.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from bbat.core.ids import new_id

if TYPE_CHECKING:
    from bbat.core.config import Settings

    from .bus import BusHandle


# ---------------------------------------------------------------------------
# Persistence boundary
# ---------------------------------------------------------------------------

@runtime_checkable
class Connection(Protocol):
    """One connection running one transaction.

    The bus never opens or closes connections; it only carries this handle.
    ``sqlalchemy.ext.asyncio.AsyncSession`` satisfies the protocol.
    """

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


@runtime_checkable
class ConnectionPool(Protocol):
    """Source of per-request connections."""

    def connection(self) -> AbstractAsyncContextManager[Connection]: ...


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StaticServices:
    """Process-wide services shared by every request."""

    config: Settings | None = None
    storage: Any | None = None
    extras: dict[str, Any] = field(default_factory=dict)


class ExecutionContext:
    """Transaction handle, session and static services for one request."""

    def __init__(
        self,
        transaction: Any,
        session: Any | None = None,
        services: StaticServices | None = None,
        request_id: str | None = None,
    ) -> None:
        self.transaction = transaction
        self.session = session
        self.services = services or StaticServices()
        self.request_id = request_id or new_id()
        self._bus: BusHandle | None = None

    @property
    def bus(self) -> BusHandle:
        """The bus handle bound to this context."""
        if self._bus is None:
            raise RuntimeError("Execution context is not bound to a bus")
        return self._bus

    def bind(self, bus: BusHandle) -> None:
        if self._bus is not None:
            raise RuntimeError("Execution context is already bound to a bus")
        self._bus = bus

    def __repr__(self) -> str:
        return f"ExecutionContext(request_id={self.request_id})"
