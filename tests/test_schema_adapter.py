"""Unit tests for the pydantic to JSON-Schema adapter."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel, ConfigDict

from openapi_rpc_worker.json_types import JSONValue
from openapi_rpc_worker.schema_adapter import (
    ObjectShape,
    OpenShape,
    SchemaAdapter,
    SchemaAdapterError,
    strip_meta_keys,
)

from .fixture_helpers import AddTodoRequest, GreetRequest, SearchRequest, Tag


class _OpenPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: str


class _Opaque:
    """A class pydantic has no schema for."""


def _contains_key(node: JSONValue, key: str) -> bool:
    if isinstance(node, dict):
        return key in node or any(_contains_key(value, key) for value in node.values())
    if isinstance(node, list):
        return any(_contains_key(item, key) for item in node)
    return False


def test_none_is_the_null_sentinel() -> None:
    """``None`` produces the null schema and is detected as the sentinel."""
    adapter = SchemaAdapter.from_type(None)

    assert adapter.is_null
    assert adapter.json_schema == {"type": "null"}
    assert adapter.validate(None).ok
    assert not adapter.validate({"unexpected": True}).ok


def test_any_is_an_open_schema() -> None:
    """``Any`` maps to the empty schema and passes raw query maps through."""
    adapter = SchemaAdapter.from_type(Any)

    assert not adapter.is_null
    assert adapter.json_schema == {}
    assert isinstance(adapter.query_shape(), OpenShape)


def test_json_schema_has_no_meta_schema_marker() -> None:
    """Derived schemas must not carry ``$schema`` or local ``$defs``."""
    for annotation in (GreetRequest, AddTodoRequest, SearchRequest, list[int]):
        adapter = SchemaAdapter.from_type(annotation)
        assert not _contains_key(adapter.json_schema, "$schema"), annotation
        assert "$defs" not in adapter.json_schema, annotation


def test_nested_models_are_hoisted_as_components() -> None:
    """Nested models are referenced through ``#/components/schemas``."""
    adapter = SchemaAdapter.from_type(AddTodoRequest)

    assert set(adapter.definitions) == {"Tag"}
    tags = adapter.json_schema["properties"]["tags"]  # type: ignore[index]
    assert tags["items"] == {"$ref": "#/components/schemas/Tag"}  # type: ignore[index]


def test_json_schema_is_returned_as_a_copy() -> None:
    """Callers cannot mutate the cached schema."""
    adapter = SchemaAdapter.from_type(GreetRequest)
    schema = adapter.json_schema
    schema["title"] = "changed"

    assert adapter.json_schema["title"] == "GreetRequest"


def test_strip_meta_keys_removes_nested_markers() -> None:
    """Meta-schema markers are removed at every depth."""
    schema: JSONValue = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {"inner": {"$schema": "x", "type": "string"}},
    }

    assert strip_meta_keys(schema) == {
        "type": "object",
        "properties": {"inner": {"type": "string"}},
    }


def test_validate_returns_model_instance() -> None:
    """Successful validation yields the parsed value."""
    outcome = SchemaAdapter.from_type(GreetRequest).validate({"name": "Ada"})

    assert outcome.ok
    assert outcome.value == GreetRequest(name="Ada")


def test_validate_reports_field_issues() -> None:
    """Failures are itemized per field without raising."""
    outcome = SchemaAdapter.from_type(GreetRequest).validate({})

    assert not outcome.ok
    assert outcome.value is None
    (issue,) = outcome.issues
    assert issue.path == ("name",)
    assert issue.code == "missing"
    assert issue.to_json() == {"message": issue.message, "path": ["name"], "code": "missing"}


def test_query_shape_for_fixed_properties() -> None:
    """Object schemas without extra keys expose their declared properties."""
    shape = SchemaAdapter.from_type(SearchRequest).query_shape()

    assert isinstance(shape, ObjectShape)
    assert shape.property_type("count") == "integer"
    assert shape.property_type("flag") == "boolean"
    assert shape.property_type("labels") == "array"
    assert shape.property_type("missing") is None


@pytest.mark.parametrize("annotation", [_OpenPayload, dict[str, int], int])
def test_query_shape_is_open_for_open_or_scalar_schemas(annotation: Any) -> None:
    """Open objects and non-object schemas receive raw query maps."""
    assert isinstance(SchemaAdapter.from_type(annotation).query_shape(), OpenShape)


def test_unsupported_type_is_a_configuration_error() -> None:
    """Types pydantic cannot handle fail when the schema is attached."""
    with pytest.raises(SchemaAdapterError):
        SchemaAdapter.from_type(_Opaque)


def test_dump_serializes_models_to_json_data() -> None:
    """Output values are rendered as JSON-compatible data."""
    adapter = SchemaAdapter.from_type(AddTodoRequest)

    assert adapter.dump(AddTodoRequest(title="a", tags=[Tag(label="x")])) == {
        "title": "a",
        "tags": [{"label": "x"}],
    }
