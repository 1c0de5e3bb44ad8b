"""Bridge between pydantic types, runtime validation and JSON-Schema."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Optional

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticUserError

from .json_types import JSONObject, JSONValue, MutableJSONObject
from .model_types import ConfigurationError

COMPONENT_REF_PREFIX = "#/components/schemas/"
_REF_TEMPLATE = COMPONENT_REF_PREFIX + "{model}"
_META_KEYS = frozenset({"$schema"})


class SchemaAdapterError(ConfigurationError):
    """Raised when a type cannot be turned into a validator and JSON-Schema."""


@dataclass(frozen=True)
class ValidationIssue:
    """One field-level problem found while validating a payload."""

    message: str
    path: tuple[str | int, ...]
    code: str

    def to_json(self) -> MutableJSONObject:
        """Render the issue for an error response body."""
        return {"message": self.message, "path": list(self.path), "code": self.code}


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of a safe parse: either a value or a non-empty issue list."""

    value: Any
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def ok(self) -> bool:
        """Whether the candidate passed validation."""
        return not self.issues


@dataclass(frozen=True)
class ObjectShape:
    """Schema with a fixed set of declared properties."""

    properties: dict[str, JSONObject]

    def property_type(self, name: str) -> Optional[str]:
        """Return the declared JSON type of ``name``.

        Nullable declarations (``anyOf``/``oneOf`` with a ``null`` member, or
        a ``type`` list containing ``"null"``) report the non-null type.
        """
        declared = self.properties.get(name)
        if declared is None:
            return None
        return declared_type(declared)


def declared_type(schema: JSONObject) -> Optional[str]:
    """Return the single non-null JSON type of ``schema``, if there is one."""
    schema_type = schema.get("type")
    if isinstance(schema_type, str):
        return schema_type
    if isinstance(schema_type, list):
        non_null_types = [item for item in schema_type if item != "null"]
        if len(non_null_types) == 1 and isinstance(non_null_types[0], str):
            return non_null_types[0]
        return None

    for keyword in ("anyOf", "oneOf"):
        variants = schema.get(keyword)
        if not isinstance(variants, list):
            continue
        non_null = [
            variant
            for variant in variants
            if not (isinstance(variant, dict) and variant.get("type") == "null")
        ]
        if len(non_null) == 1 and len(non_null) < len(variants) and isinstance(non_null[0], dict):
            return declared_type(non_null[0])
    return None


@dataclass(frozen=True)
class OpenShape:
    """Schema that accepts arbitrary keys (or is not an object at all)."""


type QueryShape = ObjectShape | OpenShape


class SchemaAdapter:
    """Validator and JSON-Schema pair derived from one type annotation.

    The JSON-Schema uses ``#/components/schemas/<Model>`` references; nested
    definitions are kept apart in :attr:`definitions` so the router can hoist
    them into the OpenAPI ``components`` section.
    """

    def __init__(
        self,
        *,
        annotation: Any,
        type_adapter: TypeAdapter[Any],
        json_schema: MutableJSONObject,
        definitions: MutableJSONObject,
    ) -> None:
        self._annotation = annotation
        self._type_adapter = type_adapter
        self._json_schema = json_schema
        self._definitions = definitions

    @classmethod
    def from_type(cls, annotation: Any) -> SchemaAdapter:
        """Build an adapter for ``annotation``.

        Args:
            annotation (Any): Anything pydantic accepts as a type, including
                ``None`` for the "no payload" sentinel and ``Any``.

        Returns:
            SchemaAdapter: Adapter with a meta-validated JSON-Schema.

        Raises:
            SchemaAdapterError: If pydantic or jsonschema rejects the type.
        """
        try:
            type_adapter: TypeAdapter[Any] = TypeAdapter(annotation)
            raw_schema = type_adapter.json_schema(ref_template=_REF_TEMPLATE)
        except PydanticUserError as exc:
            raise SchemaAdapterError(f"Unsupported schema type {annotation!r}: {exc}") from exc

        json_schema, definitions = split_definitions(raw_schema)
        for name, schema in (("<root>", json_schema), *definitions.items()):
            try:
                validator_for(schema).check_schema(schema)
            except SchemaError as exc:
                raise SchemaAdapterError(
                    f"Generated JSON-Schema for {annotation!r} is invalid at {name}: {exc.message}"
                ) from exc

        return cls(
            annotation=annotation,
            type_adapter=type_adapter,
            json_schema=json_schema,
            definitions=definitions,
        )

    @property
    def annotation(self) -> Any:
        """The type this adapter was built from."""
        return self._annotation

    @property
    def json_schema(self) -> MutableJSONObject:
        """A copy of the root JSON-Schema without meta keys."""
        return deepcopy(self._json_schema)

    @property
    def definitions(self) -> MutableJSONObject:
        """A copy of the nested model schemas keyed by component name."""
        return deepcopy(self._definitions)

    @property
    def is_null(self) -> bool:
        """Whether this is the "no payload expected" sentinel."""
        return self._annotation is None or self._annotation is type(None)

    def validate(self, candidate: Any) -> ValidationOutcome:
        """Validate ``candidate`` without raising on invalid input."""
        try:
            value = self._type_adapter.validate_python(candidate)
        except ValidationError as exc:
            issues = tuple(
                ValidationIssue(
                    message=error["msg"],
                    path=tuple(error["loc"]),
                    code=error["type"],
                )
                for error in exc.errors(include_url=False, include_context=False)
            )
            return ValidationOutcome(value=None, issues=issues)
        return ValidationOutcome(value=value)

    def dump(self, value: Any) -> JSONValue:
        """Serialize ``value`` to JSON-compatible Python data."""
        dumped: JSONValue = self._type_adapter.dump_python(value, mode="json")
        return dumped

    def query_shape(self) -> QueryShape:
        """Classify the root schema for query-string coercion."""
        schema = self._resolve_root_ref(self._json_schema)
        if schema.get("type") is None or schema.get("additionalProperties"):
            return OpenShape()
        properties = schema.get("properties")
        if not isinstance(properties, dict):
            return OpenShape()
        return ObjectShape(
            properties={
                key: value
                for key, value in properties.items()
                if isinstance(key, str) and isinstance(value, dict)
            }
        )

    def _resolve_root_ref(self, schema: JSONObject) -> JSONObject:
        ref = schema.get("$ref")
        if not isinstance(ref, str) or not ref.startswith(COMPONENT_REF_PREFIX):
            return schema
        target = self._definitions.get(ref[len(COMPONENT_REF_PREFIX) :])
        return target if isinstance(target, dict) else schema

    def __repr__(self) -> str:
        return f"SchemaAdapter({self._annotation!r})"


def split_definitions(schema: JSONObject) -> tuple[MutableJSONObject, MutableJSONObject]:
    """Separate ``$defs`` from a schema and strip meta keys from both parts.

    Args:
        schema (JSONObject): JSON-Schema as produced by pydantic.

    Returns:
        tuple[MutableJSONObject, MutableJSONObject]: The root schema and the
        definitions keyed by name.
    """
    root = strip_meta_keys(schema)
    if not isinstance(root, dict):
        raise SchemaAdapterError(f"JSON-Schema must be a mapping, got {type(root)!r}")
    raw_definitions = root.pop("$defs", None)
    definitions: MutableJSONObject = {}
    if isinstance(raw_definitions, dict):
        for name, definition in raw_definitions.items():
            definitions[str(name)] = definition
    return root, definitions


def strip_meta_keys(node: JSONValue) -> JSONValue:
    """Return a copy of ``node`` without ``$schema`` markers at any depth."""
    if isinstance(node, list):
        return [strip_meta_keys(item) for item in node]
    if not isinstance(node, dict):
        return node
    return {key: strip_meta_keys(value) for key, value in node.items() if key not in _META_KEYS}
