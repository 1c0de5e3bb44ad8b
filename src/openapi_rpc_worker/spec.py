"""OpenAPI document assembly, rendering and verification."""

from __future__ import annotations

import json
from copy import deepcopy

import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .json_types import JSONObject, JSONValue, MutableJSONObject
from .model_types import ConfigurationError, OpenAPIOperation, RouterConfig

OPENAPI_VERSION = "3.1.0"


class SchemaConflictError(ConfigurationError):
    """Raised when two schemas claim the same component name."""


class SpecVerificationError(RuntimeError):
    """Raised when a generated document is not a valid OpenAPI document."""


def new_document(config: RouterConfig) -> MutableJSONObject:
    """Return an empty OpenAPI document titled after the router."""
    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": config.name, "version": config.version},
        "paths": {},
        "components": {"schemas": {}},
    }


def add_operation(document: MutableJSONObject, entry: OpenAPIOperation) -> None:
    """Add one rendered route to ``document``.

    Operations sharing a path are merged into one path item; schema
    components are hoisted into ``components.schemas``.
    """
    paths = document["paths"]
    components = document["components"]
    if not isinstance(paths, dict) or not isinstance(components, dict):
        raise SpecVerificationError("Document is missing 'paths' or 'components' mappings")

    path_item = paths.setdefault(entry.path, {})
    if not isinstance(path_item, dict):
        raise SpecVerificationError(f"Path item for {entry.path} is not a mapping")
    if entry.method in path_item:
        raise ConfigurationError(
            f"Two operations are registered for {entry.method.upper()} {entry.path}"
        )
    path_item[entry.method] = deepcopy(entry.operation)

    schemas = components.setdefault("schemas", {})
    if not isinstance(schemas, dict):
        raise SpecVerificationError("'components.schemas' is not a mapping")
    operation_id = entry.operation.get("operationId")
    merge_components(schemas, entry.components, origin=str(operation_id))


def merge_components(
    target: MutableJSONObject,
    source: JSONObject,
    *,
    origin: str,
) -> None:
    """Copy named schemas from ``source`` into ``target``.

    Args:
        target (MutableJSONObject): Component schemas collected so far.
        source (JSONObject): Component schemas to add.
        origin (str): Operation the new schemas belong to, for diagnostics.

    Raises:
        SchemaConflictError: If a name is already bound to a different schema.
    """
    for name, schema in source.items():
        existing = target.get(name)
        if existing is None:
            target[name] = deepcopy(schema)
            continue
        if existing != schema:
            raise SchemaConflictError(
                f"Schema component {name!r} from operation {origin!r} conflicts with an "
                "existing component of the same name"
            )


def render_json(document: JSONObject) -> str:
    """Serialize a document as indented JSON."""
    return json.dumps(document, indent=2)


def render_yaml(document: JSONValue) -> str:
    """Serialize a document as block-style YAML, keeping key order."""
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)


def verify_document(document: JSONObject) -> None:
    """Validate ``document`` with openapi-python-client's OpenAPI model.

    Raises:
        SpecVerificationError: If the document does not describe a valid API.
    """
    try:
        OpenAPI.model_validate(document)
    except ValidationError as exc:
        raise SpecVerificationError(f"Generated OpenAPI document is invalid: {exc}") from exc
