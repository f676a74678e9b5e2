"""Interfaces: named bundles of procedures.

Usage::

    executor = create_interface("executor", lambda b: {
        "execute": b.proc(payload=Job, response=Any),
    })

    executor.procedures.execute        # Procedure("executor:execute")
    executor.procedures["execute"]     # same object
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Callable

from bbat.core.errors import UnknownProcedure

from .procedure import Procedure, define_procedure


class ProcedureTable:
    """Read-only ``name -> Procedure`` table with attribute access.

    Only dunder methods are defined so that procedure names such as
    ``get`` or ``items`` are never shadowed.
    """

    def __init__(self, interface_name: str, procedures: Mapping[str, Procedure]) -> None:
        self._interface_name = interface_name
        self._procedures = dict(procedures)

    def __getitem__(self, name: str) -> Procedure:
        return self._procedures[name]

    def __contains__(self, name: object) -> bool:
        return name in self._procedures

    def __iter__(self) -> Iterator[str]:
        return iter(self._procedures)

    def __len__(self) -> int:
        return len(self._procedures)

    def __getattr__(self, name: str) -> Procedure:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._procedures[name]
        except KeyError:
            raise UnknownProcedure(
                f"Interface '{self._interface_name}' has no procedure '{name}'"
            ) from None

    def __repr__(self) -> str:
        return f"ProcedureTable({self._interface_name}: {', '.join(self._procedures)})"


@dataclass(frozen=True, eq=False)
class Interface:
    """A named group of procedures exposed by one module."""

    name: str
    procedures: ProcedureTable

    def __repr__(self) -> str:
        return f"Interface({self.name})"


@dataclass(frozen=True)
class ProcedureSpec:
    """Unnamed procedure returned by ``InterfaceBuilder.proc``."""

    payload: Any
    response: Any


class InterfaceBuilder:
    """Passed to the builder function of ``create_interface``."""

    def proc(self, *, payload: Any = None, response: Any = None) -> ProcedureSpec:
        return ProcedureSpec(payload=payload, response=response)


def create_interface(
    name: str,
    builder: Callable[[InterfaceBuilder], Mapping[str, ProcedureSpec]],
) -> Interface:
    """Create an ``Interface`` whose procedures are named after the dict keys."""
    specs = builder(InterfaceBuilder())
    procedures = {
        proc_name: define_procedure(
            interface_name=name,
            name=proc_name,
            payload=spec.payload,
            response=spec.response,
        )
        for proc_name, spec in specs.items()
    }
    return Interface(name=name, procedures=ProcedureTable(name, procedures))
