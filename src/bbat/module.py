"""Module definitions.

A module is a name, a one-time ``setup`` that wires its handlers and
subscriptions into the bus, and an optional route factory for the HTTP
layer::

    debts = create_module(
        name="debts",
        setup=setup_debts,
        routes=debt_routes,
        requires=[payers_defs.get_payer_profile],
    )
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar, Union

import structlog

from bbat.bus.bus import BusHandle, LocalBus
from bbat.bus.context import ConnectionPool, StaticServices
from bbat.bus.interface import Interface
from bbat.bus.procedure import Procedure
from bbat.bus.request import request_scope
from bbat.core.config import Settings

T = TypeVar("T")


@dataclass(frozen=True)
class ModuleDeps:
    """Shared dependencies handed to every module's setup."""

    bus: LocalBus
    config: Settings
    pool: ConnectionPool | None = None
    storage: Any | None = None
    logger: structlog.stdlib.BoundLogger | None = None

    @property
    def services(self) -> StaticServices:
        return StaticServices(config=self.config, storage=self.storage)


@dataclass(frozen=True)
class RouterFactoryContext:
    config: Settings


class ModuleRoute(Generic[T]):
    """What a route factory gets: module data plus a way into the bus.

    Route handlers only translate HTTP data into bus calls::

        async with route.request(session=session) as bus:
            return await bus.exec(defs.get_debt, debt_id)
    """

    def __init__(
        self,
        module: T,
        bus: LocalBus,
        pool: ConnectionPool | None,
        services: StaticServices,
    ) -> None:
        self.module = module
        self.bus = bus
        self._pool = pool
        self._services = services

    def request(
        self,
        *,
        session: Any | None = None,
        request_id: str | None = None,
    ) -> AbstractAsyncContextManager[BusHandle]:
        """Open a request scope (transaction + context) on the shared pool."""
        if self._pool is None:
            raise RuntimeError("No connection pool configured")
        return request_scope(
            self.bus,
            self._pool,
            session=session,
            services=self._services,
            request_id=request_id,
        )


RouterFactory = Callable[[ModuleRoute[Any], RouterFactoryContext], Any]
Requirement = Union[Procedure, Interface]


@dataclass(frozen=True)
class ModuleDefinition(Generic[T]):
    name: str
    setup: Callable[[ModuleDeps], Union[Awaitable[T], T]]
    routes: RouterFactory | None = None
    # Untagged registrations that must exist once every module is set up
    requires: tuple[Requirement, ...] = ()


def create_module(
    name: str,
    setup: Callable[[ModuleDeps], Union[Awaitable[T], T]],
    routes: RouterFactory | None = None,
    requires: Sequence[Requirement] = (),
) -> ModuleDefinition[T]:
    return ModuleDefinition(
        name=name,
        setup=setup,
        routes=routes,
        requires=tuple(requires),
    )
