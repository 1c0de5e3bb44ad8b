"""Typed query/mutation routing with a generated OpenAPI document."""

from __future__ import annotations

from .cli import main
from .context import Context
from .model_types import ConfigurationError, RouterConfig, ServerConfig
from .route import Route
from .router import Router
from .server import Server

__all__ = [
    "ConfigurationError",
    "Context",
    "Route",
    "Router",
    "RouterConfig",
    "Server",
    "ServerConfig",
    "main",
]
