"""Event broker: ordered subscriber lists per event.

Subscribers are awaited one after another, in registration order, inside
the emitting call's execution context, so their writes share the
emitter's transaction.

Failure policy is fail-fast: the first subscriber to raise stops the
remaining ones and the error propagates unchanged to the emitter, which
rolls back the enclosing request like any failed ``exec``.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable

from bbat.core.errors import ContractViolation, RegistryFrozen

from .procedure import Event
from .schema import Failure

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)

Subscriber = Callable[..., Any]


class EventBroker:
    """Write-once-at-boot event → subscribers table."""

    def __init__(self) -> None:
        # qualified event name → subscribers in registration order
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._frozen = False
        self._events_emitted: int = 0

    def subscribe(self, event: Event, subscriber: Subscriber) -> None:
        """Append *subscriber* to *event*'s list."""
        if self._frozen:
            raise RegistryFrozen(
                f"Cannot subscribe to {event.qualified_name}: registrations are closed"
            )
        self._subscribers[event.qualified_name].append(subscriber)

    def freeze(self) -> None:
        self._frozen = True

    def subscribers(self, event: Event) -> tuple[Subscriber, ...]:
        return tuple(self._subscribers.get(event.qualified_name, ()))

    def events(self) -> dict[str, int]:
        """``{event_name: subscriber_count}`` for every subscribed event."""
        return {name: len(subs) for name, subs in self._subscribers.items()}

    @property
    def events_emitted(self) -> int:
        return self._events_emitted

    async def emit(self, context: ExecutionContext, event: Event, payload: Any = None) -> None:
        """Validate *payload* once, then await every subscriber in order."""
        decoded = event.payload.decode(payload)
        if isinstance(decoded, Failure):
            raise ContractViolation(event.qualified_name, "payload", decoded.errors)

        subscribers = self.subscribers(event)
        logger.debug(
            "Emitting %s to %d subscriber(s)", event.qualified_name, len(subscribers)
        )
        self._events_emitted += 1

        for subscriber in subscribers:
            result = subscriber(decoded.value, context, context.bus)
            if inspect.isawaitable(result):
                await result
