"""Procedure dispatcher.

``Dispatcher.exec`` is the single code path behind every procedure call:

1. decode the payload against the procedure's payload schema;
2. resolve the handler for ``(interface, procedure, tag)``;
3. invoke it as ``handler(payload, context, context.bus)``;
4. decode the return value against the response schema.

A payload failure raises ``ContractViolation`` before the handler runs.  A
response failure raises ``ContractViolation`` after the handler ran; its
side effects stay in the transaction (which the caller will roll back) but
the malformed value never reaches the caller.  Errors raised by handlers
propagate unchanged; the dispatcher never retries.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from bbat.core.errors import ContractViolation

from .procedure import Procedure
from .registry import HandlerRegistry, format_key, handler_key
from .schema import Failure

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


class Dispatcher:
    """Validates, resolves and invokes procedure handlers."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry
        self._calls_dispatched: int = 0
        self._error_counts: dict[str, int] = defaultdict(int)

    async def exec(
        self,
        context: ExecutionContext,
        procedure: Procedure,
        payload: Any = None,
        tag: str | None = None,
    ) -> Any:
        name = format_key(handler_key(procedure, tag))

        decoded = procedure.payload.decode(payload)
        if isinstance(decoded, Failure):
            self._error_counts[name] += 1
            raise ContractViolation(name, "payload", decoded.errors)

        handler = self._registry.resolve(procedure, tag)

        logger.debug("Calling %s", name, extra={"request_id": context.request_id})
        self._calls_dispatched += 1

        try:
            result = handler(decoded.value, context, context.bus)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self._error_counts[name] += 1
            raise

        response = procedure.response.decode(result)
        if isinstance(response, Failure):
            self._error_counts[name] += 1
            logger.warning(
                "Handler for %s returned a value violating its response schema: %s",
                name,
                "; ".join(response.errors),
            )
            raise ContractViolation(name, "response", response.errors)

        return response.value

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def calls_dispatched(self) -> int:
        """Handler invocations, successful or not."""
        return self._calls_dispatched

    def get_error_counts(self) -> dict[str, int]:
        """Failed calls keyed by procedure name."""
        return dict(self._error_counts)
