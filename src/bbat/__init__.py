"""bbat: billing back office built around a typed in-process service bus."""

from bbat.bus import (
    BusHandle,
    ExecutionContext,
    LocalBus,
    create_interface,
    define_scope,
    request_scope,
)
from bbat.module import ModuleDeps, create_module

__all__ = [
    "BusHandle",
    "ExecutionContext",
    "LocalBus",
    "ModuleDeps",
    "create_interface",
    "create_module",
    "define_scope",
    "request_scope",
]
