"""Handler/variant table.

Maps ``(interface_name, procedure_name, tag)`` to exactly one handler.
``tag`` is ``None`` for ordinary registrations and a string for named
variants (payment types, job executors, report generators).  There is no
fallback between tags: a tagged lookup never finds the untagged handler
and vice versa.

The table is written only during module setup.  ``freeze()`` is called
once boot completes; after that it is read-only and safe to share across
concurrent requests without locking.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from bbat.core.errors import DuplicateRegistration, NoSuchHandler, RegistryFrozen

from .procedure import Procedure

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
HandlerKey = tuple[str, str, "str | None"]


def handler_key(procedure: Procedure, tag: str | None = None) -> HandlerKey:
    return (procedure.interface_name, procedure.name, tag)


def format_key(key: HandlerKey) -> str:
    interface_name, name, tag = key
    if tag is None:
        return f"{interface_name}:{name}"
    return f"{interface_name}:{tag}:{name}"


class HandlerRegistry:
    """Write-once-at-boot table of procedure handlers."""

    def __init__(self) -> None:
        self._handlers: dict[HandlerKey, Handler] = {}
        self._procedures: dict[HandlerKey, Procedure] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        procedure: Procedure,
        handler: Handler,
        tag: str | None = None,
        *,
        override: bool = False,
    ) -> None:
        """Bind *handler* to *procedure* (under *tag* if given).

        Raises ``DuplicateRegistration`` if the key is taken and
        ``override`` is false, ``RegistryFrozen`` after ``freeze()``.
        """
        key = handler_key(procedure, tag)
        if self._frozen:
            raise RegistryFrozen(
                f"Cannot register {format_key(key)}: registrations are closed"
            )
        if key in self._handlers and not override:
            raise DuplicateRegistration(format_key(key))

        self._handlers[key] = handler
        self._procedures[key] = procedure
        logger.debug("Registered handler for %s", format_key(key))

    def register_all(
        self,
        bindings: Sequence[tuple[Procedure, Handler]],
        tag: str | None = None,
    ) -> None:
        """Register several handlers at once, or none of them.

        Every key is checked before the first one is written, so a
        ``DuplicateRegistration`` leaves the table unchanged.
        """
        keys = [handler_key(procedure, tag) for procedure, _handler in bindings]
        if self._frozen and keys:
            raise RegistryFrozen(
                f"Cannot register {format_key(keys[0])}: registrations are closed"
            )
        for key in keys:
            if key in self._handlers:
                raise DuplicateRegistration(format_key(key))
        for procedure, handler in bindings:
            self.register(procedure, handler, tag)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, procedure: Procedure, tag: str | None = None) -> Handler:
        """Return the handler for *procedure*/*tag* or raise ``NoSuchHandler``."""
        key = handler_key(procedure, tag)
        try:
            return self._handlers[key]
        except KeyError:
            raise NoSuchHandler(format_key(key)) from None

    def has(self, procedure: Procedure, tag: str | None = None) -> bool:
        return handler_key(procedure, tag) in self._handlers

    def has_variant(self, interface_name: str, tag: str) -> bool:
        """Whether any procedure of *interface_name* is registered under *tag*."""
        return any(
            key[0] == interface_name and key[2] == tag for key in self._handlers
        )

    def variants(self, interface_name: str) -> list[str]:
        """Tags registered for *interface_name*, in registration order."""
        tags: list[str] = []
        for iface, _name, tag in self._handlers:
            if iface == interface_name and tag is not None and tag not in tags:
                tags.append(tag)
        return tags

    def keys(self) -> list[HandlerKey]:
        return list(self._handlers)

    def procedure_for(self, key: HandlerKey) -> Procedure:
        return self._procedures[key]

    def __len__(self) -> int:
        return len(self._handlers)
