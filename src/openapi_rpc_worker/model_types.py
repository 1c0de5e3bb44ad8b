"""Internal datatypes for route configuration and spec generation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from .json_types import MutableJSONObject

if TYPE_CHECKING:
    from .schema_adapter import SchemaAdapter


type OperationKind = Literal["query", "mutation"]
type HttpMethod = Literal["get", "post", "put", "delete"]

SUPPORTED_METHODS: tuple[HttpMethod, ...] = ("get", "post", "put", "delete")
BODY_METHODS: frozenset[str] = frozenset({"post", "put"})

DEFAULT_BASE_URL = "/v1"
DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_API_VERSION = "1.0.0"


class ConfigurationError(RuntimeError):
    """Raised when routes or servers are configured incorrectly."""


class DuplicateOperationError(ConfigurationError):
    """Raised when an operation id is registered twice on one router."""


class RouterFrozenError(ConfigurationError):
    """Raised when a router is modified after its routes were installed."""


class MissingHandlerError(ConfigurationError):
    """Raised when a request reaches a route without a handler."""


def normalize_base_url(base_url: str) -> str:
    """Return ``base_url`` with a leading slash and without a trailing one.

    Args:
        base_url (str): User supplied prefix such as ``v1/`` or ``/api/v2``.

    Returns:
        str: Normalized prefix. The root prefix normalizes to ``""``.
    """
    stripped = base_url.strip().strip("/")
    if not stripped:
        return ""
    return f"/{stripped}"


def normalize_method(method: str) -> HttpMethod:
    """Lower-case and check an HTTP method name."""
    lowered = method.strip().lower()
    for candidate in SUPPORTED_METHODS:
        if candidate == lowered:
            return candidate
    raise ConfigurationError(
        f"Unsupported HTTP method {method!r}; expected one of {', '.join(SUPPORTED_METHODS)}"
    )


@dataclass(frozen=True)
class RouteConfig:
    """Fully resolved configuration of one operation.

    Instances are never completed after construction: the router resolves the
    default URL before building one, and every builder step derives a new
    value with :func:`dataclasses.replace`.
    """

    op_id: str
    op_type: OperationKind
    method: HttpMethod
    url: str
    input: SchemaAdapter
    output: SchemaAdapter


@dataclass(frozen=True)
class RouterConfig:
    """Naming and prefix settings shared by all routes of a router."""

    name: str
    base_url: str = DEFAULT_BASE_URL
    version: str = DEFAULT_API_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", normalize_base_url(self.base_url))

    def default_url(self, op_id: str) -> str:
        """Return the URL an operation gets when none is set explicitly."""
        return f"{self.base_url}/{op_id}"


@dataclass(frozen=True)
class ServerConfig:
    """Process level settings for the HTTP server."""

    name: str
    port: int = DEFAULT_PORT
    base_url: str = DEFAULT_BASE_URL
    host: str = DEFAULT_HOST
    version: str = DEFAULT_API_VERSION

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ConfigurationError("Server name must not be empty")
        object.__setattr__(self, "base_url", normalize_base_url(self.base_url))

    @classmethod
    def from_env(cls, name: str) -> ServerConfig:
        """Build a config from ``WORKER_*`` environment variables."""
        port_text = os.getenv("WORKER_PORT", str(DEFAULT_PORT))
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ConfigurationError(f"WORKER_PORT must be an integer, got {port_text!r}") from exc
        return cls(
            name=name,
            port=port,
            base_url=os.getenv("WORKER_BASE_URL", DEFAULT_BASE_URL),
            host=os.getenv("WORKER_HOST", DEFAULT_HOST),
            version=os.getenv("WORKER_API_VERSION", DEFAULT_API_VERSION),
        )

    def router_config(self) -> RouterConfig:
        """Return the router settings derived from this server config."""
        return RouterConfig(name=self.name, base_url=self.base_url, version=self.version)


@dataclass(frozen=True)
class OpenAPIOperation:
    """One route rendered for the OpenAPI document."""

    path: str
    method: HttpMethod
    operation: MutableJSONObject
    components: MutableJSONObject = field(default_factory=dict)
