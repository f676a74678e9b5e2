"""Typed service bus: procedures, events, named variants and request contexts."""

from bbat.bus.bus import BusHandle, InterfaceProxy, LocalBus
from bbat.bus.context import ConnectionPool, ExecutionContext, StaticServices
from bbat.bus.interface import Interface, create_interface
from bbat.bus.procedure import Event, Procedure
from bbat.bus.request import request_scope
from bbat.bus.schema import DecoderSchema, Failure, Success, TypeSchema
from bbat.bus.scope import Scope, define_scope

__all__ = [
    "BusHandle",
    "ConnectionPool",
    "DecoderSchema",
    "Event",
    "ExecutionContext",
    "Failure",
    "Interface",
    "InterfaceProxy",
    "LocalBus",
    "Procedure",
    "Scope",
    "StaticServices",
    "Success",
    "TypeSchema",
    "create_interface",
    "define_scope",
    "request_scope",
]
