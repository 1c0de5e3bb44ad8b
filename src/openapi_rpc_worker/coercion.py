"""Query-string to payload coercion for routes without a request body."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Optional

from .json_types import JSONValue, MutableJSONObject
from .schema_adapter import OpenShape, QueryShape


def payload_from_query_params(
    query: Mapping[str, str],
    shape: QueryShape,
) -> MutableJSONObject:
    """Build a payload from query parameters using the declared property types.

    Args:
        query (Mapping[str, str]): Single-valued query parameters.
        shape (QueryShape): Classification of the route's input schema.

    Returns:
        MutableJSONObject: The coerced payload. Keys the schema does not
        declare are dropped; an open schema receives the raw map.
    """
    if isinstance(shape, OpenShape):
        return dict(query)

    payload: MutableJSONObject = {}
    for key, raw in query.items():
        if key not in shape.properties:
            continue
        payload[key] = coerce_query_value(raw, shape.property_type(key))
    return payload


def coerce_query_value(raw: str, declared_type: Optional[str]) -> JSONValue:
    """Coerce one query-string value to ``declared_type``.

    Values that cannot be parsed are returned unchanged so that schema
    validation reports them instead of the coercion step.
    """
    match declared_type:
        case "string":
            return raw
        case "boolean":
            return raw == "true"
        case "number" | "integer":
            return _parse_number(raw)
        case _:
            return _parse_json_literal(raw)


def _parse_number(raw: str) -> JSONValue:
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return raw


def _parse_json_literal(raw: str) -> JSONValue:
    try:
        parsed: JSONValue = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    return parsed


__all__ = ["coerce_query_value", "payload_from_query_params"]
