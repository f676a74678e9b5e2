"""Two-track results returned by ``BusHandle.exec_te``.

A task built with ``exec_te`` never raises for errors coming out of the
call; it yields ``Ok(value)`` or ``Err(error)`` and leaves the decision to
the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Re-raise the captured error."""
        raise self.error

    def map(self, fn: Callable[[Any], Any]) -> Err:
        return self


Result = Union[Ok[T], Err]
