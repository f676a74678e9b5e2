"""Custom exception hierarchy for the billing back office."""

from __future__ import annotations

from typing import Sequence


class BbatError(Exception):
    """Base exception for all bbat errors."""


# --- Configuration ---
class ConfigError(BbatError):
    """Invalid or missing configuration."""


# --- Bus ---
class BusError(BbatError):
    """Service bus wiring or contract error."""


class ContractViolation(BusError):
    """A payload or response failed schema validation.

    Always a caller or handler bug.  ``direction`` is ``"payload"`` or
    ``"response"``.
    """

    def __init__(self, target: str, direction: str, errors: Sequence[str] = ()):
        self.target = target
        self.direction = direction
        self.errors = tuple(errors)
        detail = "; ".join(self.errors) if self.errors else "invalid value"
        super().__init__(
            f"Failed to decode {direction} for '{target}': {detail}"
        )


class NoSuchHandler(BusError):
    """No registration exists for ``(interface, procedure[, tag])``."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No handler for procedure call '{key}'.")


class DuplicateRegistration(BusError):
    """A second registration was attempted for the same key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Handler for procedure {key} already defined!")


class DuplicateDefinition(BusError):
    """A procedure or event name was defined twice within one scope."""


class UnknownProcedure(BusError, AttributeError):
    """The interface has no procedure with the requested name."""


class IncompleteImplementation(BusError):
    """``provide`` was given an implementation missing some procedures."""


class RegistryFrozen(BusError):
    """Registration attempted after boot completed."""


# --- Domain ---
class HandlerError(BbatError):
    """Base class for errors raised by domain handlers.

    The bus never wraps, interprets or retries these; they reach the root
    caller unchanged.
    """


# --- Lifecycle ---
class ModuleSetupError(BbatError):
    """A module's setup failed; the process must not start."""

    def __init__(self, module: str, reason: str):
        self.module = module
        super().__init__(f"Setup of module '{module}' failed: {reason}")


class DuplicateModule(BbatError, ValueError):
    """Two modules were declared with the same name."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Module already registered: {module}")
