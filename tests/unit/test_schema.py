"""Tests for the schema adapter."""

from __future__ import annotations

from typing import Any, Literal

import pytest
from pydantic import BaseModel

from bbat.bus.schema import (
    UNKNOWN,
    VOID,
    DecoderSchema,
    Failure,
    Success,
    TypeSchema,
    as_schema,
)


class Debt(BaseModel):
    id: str
    amount: int


class TestTypeSchema:
    def test_decodes_valid_int(self):
        assert TypeSchema(int).decode(41) == Success(41)

    def test_rejects_non_numeric_string(self):
        result = TypeSchema(int).decode("x")
        assert isinstance(result, Failure)
        assert result.errors

    def test_rejects_numeric_string_by_default(self):
        assert isinstance(TypeSchema(int).decode("41"), Failure)

    def test_rejects_bool_for_int_by_default(self):
        assert isinstance(TypeSchema(int).decode(True), Failure)

    def test_lax_mode_is_opt_in(self):
        assert TypeSchema(int, strict=False).decode("41") == Success(41)

    def test_rejects_tuple_for_list_by_default(self):
        assert isinstance(TypeSchema(list[str]).decode(("a", "b")), Failure)

    def test_optional_model_accepts_none(self):
        assert TypeSchema(Debt | None).decode(None) == Success(None)

    def test_decodes_model_from_dict(self):
        result = TypeSchema(Debt).decode({"id": "d1", "amount": 100})
        assert isinstance(result, Success)
        assert result.value == Debt(id="d1", amount=100)

    def test_error_mentions_field_location(self):
        result = TypeSchema(Debt).decode({"id": "d1"})
        assert isinstance(result, Failure)
        assert any(err.startswith("amount") for err in result.errors)

    def test_literal_union(self):
        schema = TypeSchema(Literal["credited", "created"])
        assert schema.decode("created") == Success("created")
        assert isinstance(schema.decode("payment"), Failure)

    def test_name_defaults_to_type_name(self):
        assert TypeSchema(Debt).name == "Debt"


class TestBuiltinSchemas:
    def test_void_accepts_only_none(self):
        assert VOID.decode(None) == Success(None)
        assert isinstance(VOID.decode(0), Failure)

    def test_unknown_accepts_anything(self):
        marker = object()
        assert UNKNOWN.decode(marker) == Success(marker)


class TestDecoderSchema:
    def test_wraps_plain_function(self):
        def even(value: Any):
            if isinstance(value, int) and value % 2 == 0:
                return Success(value)
            return Failure(("not an even integer",))

        schema = DecoderSchema(even, name="even")
        assert schema.decode(4) == Success(4)
        assert schema.decode(3) == Failure(("not an even integer",))


class TestAsSchema:
    def test_none_is_void(self):
        assert as_schema(None) is VOID

    def test_schema_objects_pass_through(self):
        schema = TypeSchema(str)
        assert as_schema(schema) is schema

    def test_types_are_wrapped(self):
        schema = as_schema(int)
        assert isinstance(schema, TypeSchema)
        assert schema.decode(1) == Success(1)

    @pytest.mark.parametrize("tp", [list[str], dict[str, int], Debt | None])
    def test_annotations_are_wrapped(self, tp):
        assert isinstance(as_schema(tp), TypeSchema)
