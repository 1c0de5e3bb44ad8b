"""Operation registry and OpenAPI document generation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from starlette.responses import JSONResponse, Response

from .error_payloads import NO_ROUTE_MESSAGE
from .json_types import MutableJSONObject
from .model_types import (
    ConfigurationError,
    DuplicateOperationError,
    HttpMethod,
    OperationKind,
    RouteConfig,
    RouterConfig,
    RouterFrozenError,
)
from .route import Route
from .schema_adapter import SchemaAdapter
from .spec import add_operation, new_document, render_json, render_yaml

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger(__name__)

_CATCH_ALL_PATH = "/{path:path}"
_CATCH_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]


class Router:
    """Ordered collection of operations sharing a name and URL prefix.

    Routes are registered during startup. :meth:`install_all` freezes the
    router; registering or refining routes afterwards raises
    :class:`RouterFrozenError`.
    """

    def __init__(self, config: RouterConfig) -> None:
        self._config = config
        self._routes: list[Route[Any, Any]] = []
        self._frozen = False

    @property
    def config(self) -> RouterConfig:
        return self._config

    @property
    def routes(self) -> tuple[Route[Any, Any], ...]:
        """Registered routes in registration order."""
        return tuple(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def query(self, op_id: str) -> Route[None, Any]:
        """Register a read-only operation, served with ``GET`` by default.

        Args:
            op_id (str): Operation name, unique within this router.

        Returns:
            Route[None, Any]: Route without payload and with any result.
        """
        return self._add_route(
            op_id, op_type="query", method="get", input_type=None, output_type=Any
        )

    def mutation(self, op_id: str) -> Route[Any, None]:
        """Register a state-changing operation, served with ``POST`` by default.

        Args:
            op_id (str): Operation name, unique within this router.

        Returns:
            Route[Any, None]: Route taking any payload and returning nothing.
        """
        return self._add_route(
            op_id, op_type="mutation", method="post", input_type=Any, output_type=None
        )

    def update(self, slot: int, route: Route[Any, Any]) -> None:
        """Store a refined route in the slot it was registered at."""
        self._ensure_mutable()
        if not 0 <= slot < len(self._routes):
            raise ConfigurationError(f"Unknown route slot {slot}")
        if self._routes[slot].op_id != route.op_id:
            raise ConfigurationError(
                f"Slot {slot} belongs to {self._routes[slot].op_id!r}, not {route.op_id!r}"
            )
        self._routes[slot] = route

    def generate_spec(self) -> MutableJSONObject:
        """Build the OpenAPI document for every registered route."""
        document = new_document(self._config)
        for route in self._routes:
            add_operation(document, route.to_openapi_operation())
        return document

    def install_all(self, app: FastAPI) -> MutableJSONObject:
        """Expose the document, install every route and the catch-all on ``app``.

        Returns:
            MutableJSONObject: The document served at ``openapi.json`` and ``openapi.yaml``.
        """
        self._frozen = True
        document = self.generate_spec()
        json_text = render_json(document)
        yaml_text = render_yaml(document)

        async def openapi_json() -> Response:
            return Response(json_text, media_type="application/json")

        async def openapi_yaml() -> Response:
            return Response(yaml_text, media_type="application/yaml")

        base_url = self._config.base_url
        for suffix, endpoint in (("openapi.json", openapi_json), ("openapi.yaml", openapi_yaml)):
            app.add_api_route(
                f"{base_url}/{suffix}", endpoint, methods=["GET"], include_in_schema=False
            )

        for route in self._routes:
            route.install(app)

        async def no_route() -> Response:
            return JSONResponse({"message": NO_ROUTE_MESSAGE}, status_code=400)

        app.add_api_route(
            _CATCH_ALL_PATH, no_route, methods=_CATCH_ALL_METHODS, include_in_schema=False
        )
        logger.info("router.installed", name=self._config.name, route_count=len(self._routes))
        return document

    def _add_route(
        self,
        op_id: str,
        *,
        op_type: OperationKind,
        method: HttpMethod,
        input_type: Any,
        output_type: Any,
    ) -> Route[Any, Any]:
        self._ensure_mutable()
        if not op_id or "/" in op_id or op_id != op_id.strip():
            raise ConfigurationError(f"Invalid operation id {op_id!r}")
        if any(route.op_id == op_id for route in self._routes):
            raise DuplicateOperationError(f"Operation {op_id!r} is already registered")

        config = RouteConfig(
            op_id=op_id,
            op_type=op_type,
            method=method,
            url=self._config.default_url(op_id),
            input=SchemaAdapter.from_type(input_type),
            output=SchemaAdapter.from_type(output_type),
        )
        route: Route[Any, Any] = Route(config, registry=self, slot=len(self._routes))
        self._routes.append(route)
        logger.debug("route.registered", op_id=op_id, op_type=op_type, url=config.url)
        return route

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise RouterFrozenError(
                f"Router {self._config.name!r} is already installed; register routes before start()"
            )
