"""Schema adapter: every payload/response contract behind ``decode()``.

The bus only ever asks a schema one question: ``decode(value)`` returning
``Success(value)`` or ``Failure(errors)``.  Any object with such a method
can be used as a contract.  Plain Python types and annotations (``int``,
``list[str]``, pydantic models, ``Literal[...]``, ...) are wrapped in a
``TypeSchema`` backed by a pydantic ``TypeAdapter``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar, Union, runtime_checkable

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    errors: tuple[str, ...]


Decoded = Union[Success[T], Failure]


@runtime_checkable
class Schema(Protocol):
    """Anything that can decode an untrusted value."""

    def decode(self, value: Any) -> Success[Any] | Failure: ...


class TypeSchema(Generic[T]):
    """Schema backed by a pydantic ``TypeAdapter``.

    Parameters
    ----------
    tp:
        Any type pydantic can validate.
    strict:
        Reject values of the wrong type instead of coercing them (``"41"`` and
        ``True`` are not ``int``).  Pass ``strict=False`` to opt into
        pydantic's lax coercions.
    name:
        Display name used in logs and errors.
    """

    def __init__(self, tp: Any, *, strict: bool = True, name: str | None = None) -> None:
        self._adapter: TypeAdapter[T] = TypeAdapter(tp)
        self._strict = strict
        self.name = name or getattr(tp, "__name__", repr(tp))

    def decode(self, value: Any) -> Success[T] | Failure:
        try:
            decoded = self._adapter.validate_python(value, strict=self._strict)
        except ValidationError as exc:
            return Failure(tuple(_format_error(e) for e in exc.errors()))
        return Success(decoded)

    def __repr__(self) -> str:
        return f"TypeSchema({self.name})"


class DecoderSchema:
    """Schema built from a bare ``decode`` function.

    Lets contracts come from any validation library: the function must
    return ``Success`` or ``Failure``.
    """

    def __init__(self, decode: Callable[[Any], Success[Any] | Failure], name: str = "custom") -> None:
        self._decode = decode
        self.name = name

    def decode(self, value: Any) -> Success[Any] | Failure:
        return self._decode(value)

    def __repr__(self) -> str:
        return f"DecoderSchema({self.name})"


VOID: TypeSchema[None] = TypeSchema(type(None), name="void")
UNKNOWN: TypeSchema[Any] = TypeSchema(Any, name="unknown")


def as_schema(spec: Any) -> Schema:
    """Coerce a contract declaration into a ``Schema``.

    ``None`` means "no payload" and maps to ``VOID``.  Objects that already
    expose ``decode`` are used as-is; anything else is treated as a type.
    """
    if spec is None:
        return VOID
    if isinstance(spec, Schema) and not isinstance(spec, type):
        return spec
    return TypeSchema(spec)


def _format_error(error: dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    msg = error.get("msg", "invalid")
    return f"{loc}: {msg}" if loc else msg
