"""Scopes: string namespaces that qualify procedure and event names.

Definition modules create one scope each::

    scope = define_scope("debts")

    get_debt = scope.define_procedure(name="get", payload=str, response=Debt | None)
    debt_created = scope.define_event(name="created", payload=DebtCreated)

Every procedure defined on a scope belongs to the interface named after
the scope, available as ``scope.interface``.
"""

from __future__ import annotations

from typing import Any

from bbat.core.errors import DuplicateDefinition

from .interface import Interface, ProcedureTable
from .procedure import Event, Procedure, define_event, define_procedure


class Scope:
    """Builder for the procedures and events of one namespace."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._procedures: dict[str, Procedure] = {}
        self._events: dict[str, Event] = {}

    def define_procedure(self, *, name: str, payload: Any = None, response: Any = None) -> Procedure:
        if name in self._procedures:
            raise DuplicateDefinition(f"Procedure {self.name}:{name} defined twice")
        procedure = define_procedure(
            interface_name=self.name,
            name=name,
            payload=payload,
            response=response,
        )
        self._procedures[name] = procedure
        return procedure

    def define_event(self, *, name: str, payload: Any = None) -> Event:
        if name in self._events:
            raise DuplicateDefinition(f"Event {self.name}:{name} defined twice")
        event = define_event(scope=self.name, name=name, payload=payload)
        self._events[name] = event
        return event

    @property
    def interface(self) -> Interface:
        """Interface made of every procedure defined so far."""
        return Interface(name=self.name, procedures=ProcedureTable(self.name, self._procedures))

    @property
    def events(self) -> dict[str, Event]:
        return dict(self._events)

    def __repr__(self) -> str:
        return f"Scope({self.name})"


def define_scope(name: str) -> Scope:
    return Scope(name)
