"""HTTP server bootstrap around a FastAPI application."""

from __future__ import annotations

from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from .json_types import MutableJSONObject
from .logging import configure_logging
from .model_types import DEFAULT_BASE_URL, DEFAULT_PORT, ServerConfig
from .router import Router

logger = structlog.get_logger(__name__)


class Server:
    """Owns the FastAPI app and the router whose operations it serves."""

    def __init__(self, config: ServerConfig) -> None:
        self._config = config
        self._router = Router(config.router_config())
        # Only the router's own document is published.
        self._app = FastAPI(title=config.name, openapi_url=None, docs_url=None, redoc_url=None)
        self._spec: Optional[MutableJSONObject] = None

    @classmethod
    def create(
        cls,
        name: str,
        *,
        port: Optional[int] = None,
        base_url: Optional[str] = None,
    ) -> Server:
        """Create a server, defaulting to port 3000 and the ``/v1`` prefix."""
        config = ServerConfig(
            name=name,
            port=port if port is not None else DEFAULT_PORT,
            base_url=base_url if base_url is not None else DEFAULT_BASE_URL,
        )
        return cls(config)

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def app(self) -> FastAPI:
        """The underlying FastAPI application."""
        return self._app

    def router(self) -> Router:
        """Return the router to register operations on."""
        return self._router

    def build_app(self) -> FastAPI:
        """Install ``/info``, the document endpoints and every route once.

        Returns:
            FastAPI: The application, ready for an ASGI server or test client.
        """
        if self._spec is not None:
            return self._app

        name = self._config.name

        async def info() -> dict[str, str]:
            return {"name": name}

        self._app.add_api_route("/info", info, methods=["GET"], include_in_schema=False)
        self._spec = self._router.install_all(self._app)
        return self._app

    def start(self) -> None:
        """Build the app and serve it with uvicorn until interrupted.

        The OpenAPI document is exposed at ``{base_url}/openapi.json`` and
        ``{base_url}/openapi.yaml``.
        """
        configure_logging()
        app = self.build_app()
        logger.info(
            "server.starting",
            name=self._config.name,
            url=f"http://{self._config.host}:{self._config.port}",
        )
        uvicorn.run(app, host=self._config.host, port=self._config.port)
