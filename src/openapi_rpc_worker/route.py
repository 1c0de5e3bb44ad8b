"""Immutable-per-step route builder."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, Optional, Protocol, TypeVar

import structlog

from .context import Context
from .dispatcher import build_endpoint
from .error_payloads import error_response_object
from .json_types import MutableJSONObject
from .model_types import ConfigurationError, OpenAPIOperation, RouteConfig, normalize_method
from .schema_adapter import SchemaAdapter
from .spec import merge_components

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger(__name__)

_I = TypeVar("_I")
_O = TypeVar("_O")
_T = TypeVar("_T")

type ContextHandler[I, O] = Callable[[Context, I], Awaitable[O] | O]
type PayloadHandler[I, O] = Callable[[I], Awaitable[O] | O]

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class RouteRegistry(Protocol):
    """Owner of the registry slot a route lives in."""

    def update(self, slot: int, route: Route[Any, Any]) -> None:
        """Replace the route stored at ``slot``."""


@dataclass(frozen=True)
class BoundHandler:
    """A user callback together with how it must be called."""

    func: Callable[..., Any]
    takes_context: bool
    is_async: bool

    @classmethod
    def bind(cls, func: Callable[..., Any]) -> BoundHandler:
        """Inspect ``func`` and decide whether it receives a context.

        Raises:
            ConfigurationError: If ``func`` cannot accept a payload.
        """
        if not callable(func):
            raise ConfigurationError(f"Handler must be callable, got {type(func)!r}")
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Cannot inspect handler {func!r}: {exc}") from exc

        parameters = list(signature.parameters.values())
        variadic = any(param.kind is inspect.Parameter.VAR_POSITIONAL for param in parameters)
        positional = [param for param in parameters if param.kind in _POSITIONAL_KINDS]
        if not variadic and not positional:
            raise ConfigurationError(
                f"Handler {func!r} must accept (payload) or (context, payload) positionally"
            )
        return cls(
            func=func,
            takes_context=variadic or len(positional) >= 2,
            is_async=inspect.iscoroutinefunction(func)
            or inspect.iscoroutinefunction(getattr(func, "__call__", None)),
        )


class Route(Generic[_I, _O]):
    """One query or mutation under construction.

    Every builder method returns a new ``Route`` and stores it in the owning
    registry slot, so the registry always holds the most refined value.
    Changing the input or output schema detaches the handler; attach it with
    :meth:`fn` after the schemas are declared.
    """

    def __init__(
        self,
        config: RouteConfig,
        *,
        registry: RouteRegistry,
        slot: int,
        handler: Optional[BoundHandler] = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._slot = slot
        self._handler = handler

    @property
    def config(self) -> RouteConfig:
        """The resolved route configuration."""
        return self._config

    @property
    def op_id(self) -> str:
        return self._config.op_id

    @property
    def slot(self) -> int:
        return self._slot

    @property
    def handler(self) -> Optional[BoundHandler]:
        return self._handler

    def method(self, method: str) -> Route[_I, _O]:
        """Serve the operation on another HTTP method."""
        return self._derive(replace(self._config, method=normalize_method(method)), self._handler)

    def url(self, url: str) -> Route[_I, _O]:
        """Serve the operation on an explicit path instead of the default."""
        if not url.startswith("/"):
            raise ConfigurationError(f"Route url must start with '/', got {url!r}")
        return self._derive(replace(self._config, url=url), self._handler)

    def input(self, schema: type[_T]) -> Route[_T, _O]:
        """Declare the payload type; ``None`` means no payload."""
        adapter = SchemaAdapter.from_type(schema)
        return self._derive(replace(self._config, input=adapter), None)

    def output(self, schema: type[_T]) -> Route[_I, _T]:
        """Declare the result type; ``None`` means no response body."""
        adapter = SchemaAdapter.from_type(schema)
        return self._derive(replace(self._config, output=adapter), None)

    def fn(self, handler: ContextHandler[_I, _O] | PayloadHandler[_I, _O]) -> Route[_I, _O]:
        """Attach the callback serving this operation.

        The callback is called as ``handler(context, payload)`` when it takes
        two positional arguments and as ``handler(payload)`` otherwise. It may
        be a coroutine function.
        """
        return self._derive(self._config, BoundHandler.bind(handler))

    def to_openapi_operation(self) -> OpenAPIOperation:
        """Render the route as an OpenAPI path, method and operation object."""
        config = self._config
        request_body: MutableJSONObject = {
            "description": f"Request object for {config.op_id}",
            "content": {},
            "required": False,
        }
        if not config.input.is_null:
            request_body["content"] = {"application/json": {"schema": config.input.json_schema}}
            request_body["required"] = True

        success: MutableJSONObject = {"description": f"Success response object for {config.op_id}"}
        if config.output.is_null:
            success_status = "204"
        else:
            success_status = "200"
            success["content"] = {"application/json": {"schema": config.output.json_schema}}

        operation: MutableJSONObject = {
            "operationId": config.op_id,
            "requestBody": request_body,
            "responses": {
                success_status: success,
                "400": error_response_object(),
                "500": error_response_object(),
            },
            "x-request-op-type": config.op_type,
        }

        components: MutableJSONObject = {}
        merge_components(components, config.input.definitions, origin=config.op_id)
        merge_components(components, config.output.definitions, origin=config.op_id)
        return OpenAPIOperation(
            path=config.url,
            method=config.method,
            operation=operation,
            components=components,
        )

    def install(self, app: FastAPI) -> None:
        """Register the dispatch endpoint for this route on ``app``."""
        if self._handler is None:
            logger.warning("route.installed_without_handler", op_id=self.op_id)
        app.add_api_route(
            self._config.url,
            build_endpoint(self),
            methods=[self._config.method.upper()],
            name=self._config.op_id,
            include_in_schema=False,
        )
        logger.debug(
            "route.installed",
            op_id=self.op_id,
            method=self._config.method,
            url=self._config.url,
        )

    def _derive(self, config: RouteConfig, handler: Optional[BoundHandler]) -> Route[Any, Any]:
        route: Route[Any, Any] = Route(
            config,
            registry=self._registry,
            slot=self._slot,
            handler=handler,
        )
        self._registry.update(self._slot, route)
        return route

    def __repr__(self) -> str:
        config = self._config
        method = config.method.upper()
        return f"Route({config.op_type} {method} {config.url} op_id={config.op_id!r})"
