"""Procedure and event contracts.

A ``Procedure`` is a request/response contract identified by
``(interface_name, name)``; an ``Event`` is a broadcast contract identified
by ``(scope, name)``.  Both are immutable tokens: modules import them from
dependency-free definition modules and never need each other's code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .schema import Schema, as_schema


@dataclass(frozen=True, eq=False)
class Procedure:
    """Typed request/response contract."""

    interface_name: str
    name: str
    payload: Schema
    response: Schema

    @property
    def qualified_name(self) -> str:
        return f"{self.interface_name}:{self.name}"

    def __repr__(self) -> str:
        return f"Procedure({self.qualified_name})"


@dataclass(frozen=True, eq=False)
class Event:
    """Typed broadcast contract."""

    scope: str
    name: str
    payload: Schema

    @property
    def qualified_name(self) -> str:
        return f"{self.scope}:{self.name}"

    def __repr__(self) -> str:
        return f"Event({self.qualified_name})"


def define_procedure(
    *,
    interface_name: str,
    name: str,
    payload: Any = None,
    response: Any = None,
) -> Procedure:
    """Build a ``Procedure``; ``payload``/``response`` go through ``as_schema``."""
    return Procedure(
        interface_name=interface_name,
        name=name,
        payload=as_schema(payload),
        response=as_schema(response),
    )


def define_event(*, scope: str, name: str, payload: Any = None) -> Event:
    return Event(scope=scope, name=name, payload=as_schema(payload))
