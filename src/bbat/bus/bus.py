"""Local service bus.

``LocalBus`` owns the handler/variant table, the event broker and the
dispatcher.  Modules register against it during setup; after boot it is
frozen.  For each external request the HTTP layer calls
``create_context()`` and gets back a ``BusHandle``: the surface domain code
receives as ``bus``, bound to that request's execution context.

Usage::

    bus = LocalBus()
    bus.provide(counter, {"increment": lambda n, ctx, bus: n + 1})
    bus.freeze()

    handle = bus.create_context(transaction)
    await handle.exec(counter.procedures.increment, 41)   # 42
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable

from bbat.core.errors import (
    IncompleteImplementation,
    NoSuchHandler,
    UnknownProcedure,
)
from bbat.core.result import Err, Ok, Result

from .broker import EventBroker, Subscriber
from .context import ExecutionContext, StaticServices
from .dispatcher import Dispatcher
from .interface import Interface
from .procedure import Event, Procedure
from .registry import Handler, HandlerRegistry, format_key

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class LocalBus:
    """In-process typed service bus.

    Independent instances share nothing, so tests can build as many as
    they need.
    """

    def __init__(self) -> None:
        self._registry = HandlerRegistry()
        self._broker = EventBroker()
        self._dispatcher = Dispatcher(self._registry)

    # ------------------------------------------------------------------
    # Registration (module setup only)
    # ------------------------------------------------------------------

    def register(
        self,
        procedure: Procedure,
        handler: Handler,
        tag: str | None = None,
        *,
        override: bool = False,
    ) -> None:
        """Bind *handler* to *procedure*, optionally under a variant *tag*."""
        self._registry.register(procedure, handler, tag, override=override)

    def provide(self, interface: Interface, implementations: Any) -> None:
        """Bind a handler for every procedure of *interface*.

        *implementations* is a ``{procedure_name: handler}`` mapping or an
        object with one attribute per procedure.
        """
        self._registry.register_all(_bindings(interface, implementations))

    def provide_named(self, interface: Interface, tag: str, implementations: Any) -> None:
        """Like ``provide``, but registered under the variant *tag*."""
        if not isinstance(tag, str) or not tag:
            raise ValueError(f"Variant tag must be a non-empty string, got {tag!r}")
        self._registry.register_all(_bindings(interface, implementations), tag)
        logger.debug("Registered variant %s of interface %s", tag, interface.name)

    def on(self, event: Event, subscriber: Subscriber) -> None:
        """Subscribe to *event*; subscribers run in registration order."""
        self._broker.subscribe(event, subscriber)

    def freeze(self) -> None:
        """Close registrations.  Called once boot completes."""
        self._registry.freeze()
        self._broker.freeze()
        logger.info(
            "Bus frozen with %d handler(s) and %d subscribed event(s)",
            len(self._registry),
            len(self._broker.events()),
        )

    @property
    def frozen(self) -> bool:
        return self._registry.frozen

    # ------------------------------------------------------------------
    # Contexts
    # ------------------------------------------------------------------

    def create_context(
        self,
        transaction: Any,
        session: Any | None = None,
        services: StaticServices | None = None,
        request_id: str | None = None,
    ) -> BusHandle:
        """Create the execution context for one request and bind a handle to it."""
        context = ExecutionContext(
            transaction,
            session=session,
            services=services,
            request_id=request_id,
        )
        handle = BusHandle(self, context)
        context.bind(handle)
        return handle

    # ------------------------------------------------------------------
    # Dispatch (used by BusHandle)
    # ------------------------------------------------------------------

    async def exec(
        self,
        context: ExecutionContext,
        procedure: Procedure,
        payload: Any = None,
        tag: str | None = None,
    ) -> Any:
        return await self._dispatcher.exec(context, procedure, payload, tag)

    async def emit(self, context: ExecutionContext, event: Event, payload: Any = None) -> None:
        await self._broker.emit(context, event, payload)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def handler_for(self, procedure: Procedure, tag: str | None = None) -> Handler:
        """Return the raw registered handler (for unit-testing it directly)."""
        return self._registry.resolve(procedure, tag)

    def has_handler(self, procedure: Procedure, tag: str | None = None) -> bool:
        return self._registry.has(procedure, tag)

    def has_variant(self, interface: Interface, tag: str) -> bool:
        return self._registry.has_variant(interface.name, tag)

    def variants(self, interface: Interface) -> list[str]:
        """Variant tags registered for *interface*, in registration order."""
        return self._registry.variants(interface.name)

    def subscribers(self, event: Event) -> tuple[Subscriber, ...]:
        return self._broker.subscribers(event)

    def describe(self) -> dict[str, Any]:
        """Snapshot of the wiring: procedures (with tags) and events."""
        procedures = []
        for key in self._registry.keys():
            procedure = self._registry.procedure_for(key)
            procedures.append({
                "procedure": procedure.qualified_name,
                "tag": key[2],
                "key": format_key(key),
                "payload": repr(procedure.payload),
                "response": repr(procedure.response),
            })
        return {
            "procedures": procedures,
            "events": self._broker.events(),
        }

    def get_metrics(self) -> dict[str, Any]:
        return {
            "handlers": len(self._registry),
            "calls_dispatched": self._dispatcher.calls_dispatched,
            "error_counts": self._dispatcher.get_error_counts(),
            "events_emitted": self._broker.events_emitted,
        }


class BusHandle:
    """Bus surface bound to one execution context.

    Every handler invoked through a handle receives that same handle, so a
    nested ``exec`` reuses the caller's transaction and session.
    """

    def __init__(self, bus: LocalBus, context: ExecutionContext) -> None:
        self._bus = bus
        self._context = context

    @property
    def context(self) -> ExecutionContext:
        return self._context

    # -- calls -------------------------------------------------------------

    async def exec(self, procedure: Procedure, payload: Any = None) -> Any:
        return await self._bus.exec(self._context, procedure, payload)

    async def exec_named(self, procedure: Procedure, tag: str, payload: Any = None) -> Any:
        """Call the implementation registered under *tag*."""
        return await self._bus.exec(self._context, procedure, payload, tag)

    def exec_t(self, procedure: Procedure) -> Callable[..., Task]:
        """Deferred form: ``exec_t(p)(payload)`` is a task; ``await task()`` runs it."""

        def bind(payload: Any = None) -> Task:
            return lambda: self.exec(procedure, payload)

        return bind

    def exec_te(self, procedure: Procedure) -> Callable[..., Callable[[], Awaitable[Result[Any]]]]:
        """Two-track form: awaiting the task yields ``Ok`` or ``Err``, never raises."""

        def bind(payload: Any = None) -> Callable[[], Awaitable[Result[Any]]]:
            async def task() -> Result[Any]:
                try:
                    return Ok(await self.exec(procedure, payload))
                except Exception as exc:
                    return Err(exc)

            return task

        return bind

    async def emit(self, event: Event, payload: Any = None) -> None:
        await self._bus.emit(self._context, event, payload)

    def get_interface(self, interface: Interface, tag: str | None = None) -> InterfaceProxy:
        """Proxy whose attribute calls go to *tag*'s implementation only.

        Raises ``NoSuchHandler`` right away when nothing is registered for
        *interface* under *tag*.
        """
        if tag is not None and not self._bus.has_variant(interface, tag):
            raise NoSuchHandler(f"{interface.name}:{tag}")
        return InterfaceProxy(self, interface, tag)

    # -- registration --------------------------------------------------------

    def on(self, event: Event, subscriber: Subscriber) -> None:
        self._bus.on(event, subscriber)

    def register(self, procedure: Procedure, handler: Handler, tag: str | None = None) -> None:
        self._bus.register(procedure, handler, tag)

    def provide(self, interface: Interface, implementations: Any) -> None:
        self._bus.provide(interface, implementations)

    def provide_named(self, interface: Interface, tag: str, implementations: Any) -> None:
        self._bus.provide_named(interface, tag, implementations)

    def __repr__(self) -> str:
        return f"BusHandle({self._context.request_id})"


class InterfaceProxy:
    """Attribute-per-procedure view of an interface, bound to one handle."""

    def __init__(self, handle: BusHandle, interface: Interface, tag: str | None) -> None:
        self._handle = handle
        self._interface = interface
        self._tag = tag

    def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._interface.procedures:
            raise UnknownProcedure(
                f"Interface '{self._interface.name}' has no procedure '{name}'"
            )
        procedure = self._interface.procedures[name]

        async def call(payload: Any = None) -> Any:
            if self._tag is None:
                return await self._handle.exec(procedure, payload)
            return await self._handle.exec_named(procedure, self._tag, payload)

        call.__name__ = name
        return call

    def __dir__(self) -> list[str]:
        return list(self._interface.procedures)

    def __repr__(self) -> str:
        tag = f", tag={self._tag}" if self._tag else ""
        return f"InterfaceProxy({self._interface.name}{tag})"


def _bindings(interface: Interface, implementations: Any) -> list[tuple[Procedure, Handler]]:
    return [
        (interface.procedures[name], handler)
        for name, handler in _collect(interface, implementations).items()
    ]


def _collect(interface: Interface, implementations: Any) -> dict[str, Handler]:
    names = list(interface.procedures)

    if isinstance(implementations, Mapping):
        unknown = [key for key in implementations if key not in interface.procedures]
        if unknown:
            raise UnknownProcedure(
                f"Interface '{interface.name}' has no procedure(s) {', '.join(sorted(unknown))}"
            )
        handlers = dict(implementations)
    else:
        handlers = {
            name: getattr(implementations, name)
            for name in names
            if callable(getattr(implementations, name, None))
        }

    missing = [name for name in names if name not in handlers]
    if missing:
        raise IncompleteImplementation(
            f"Implementation of '{interface.name}' is missing {', '.join(missing)}"
        )
    return handlers
