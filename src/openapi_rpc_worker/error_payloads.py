"""Error response bodies and their OpenAPI description."""

from __future__ import annotations

from typing import Any

from .json_types import MutableJSONObject
from .schema_adapter import ValidationIssue

INVALID_PAYLOAD_MESSAGE = "Invalid request payload sent"
NO_ROUTE_MESSAGE = "No route found"
FALLBACK_ERROR_MESSAGE = "Internal server error occured"


def exception_message(error: Any) -> str:
    """Derive a client-safe message from a handler failure.

    Args:
        error (Any): The raised exception, or any other failure value.

    Returns:
        str: ``error`` itself when it is a string, else its string
        ``message`` attribute, else the single string argument of an
        exception, else a fixed fallback text.
    """
    if isinstance(error, str):
        return error

    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message

    if isinstance(error, BaseException) and len(error.args) == 1:
        (argument,) = error.args
        if isinstance(argument, str) and argument:
            return argument

    return FALLBACK_ERROR_MESSAGE


def invalid_payload_body(issues: tuple[ValidationIssue, ...]) -> MutableJSONObject:
    """Body of a ``400`` answer for a payload that failed validation."""
    return {
        "message": INVALID_PAYLOAD_MESSAGE,
        "errors": [issue.to_json() for issue in issues],
    }


def error_response_object() -> MutableJSONObject:
    """OpenAPI response object shared by the ``400`` and ``500`` answers."""
    return {
        "description": "Standard error response object",
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "message": {"type": "string"},
                        "errors": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {"message": {"type": "string"}},
                                "additionalProperties": True,
                            },
                        },
                    },
                }
            }
        },
    }
