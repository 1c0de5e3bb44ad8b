"""Tests for server bootstrap, fixed endpoints and configuration."""

from __future__ import annotations

import json

import pytest
import yaml

from openapi_rpc_worker.model_types import ConfigurationError, ServerConfig
from openapi_rpc_worker.server import Server

from .fixture_helpers import SERVER_NAME, build_todo_server, client_for


def test_info_endpoint() -> None:
    """``/info`` reports the server name."""
    response = client_for(build_todo_server()).get("/info")

    assert response.status_code == 200
    assert response.json() == {"name": SERVER_NAME}


def test_openapi_json_endpoint() -> None:
    """The JSON document matches the router's generated spec."""
    server = build_todo_server()
    client = client_for(server)

    response = client.get("/v1/openapi.json")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert json.loads(response.text) == server.router().generate_spec()


def test_openapi_yaml_endpoint() -> None:
    """The YAML document carries the same content as the JSON one."""
    server = build_todo_server()
    client = client_for(server)

    response = client.get("/v1/openapi.yaml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/yaml")
    assert yaml.safe_load(response.text) == client.get("/v1/openapi.json").json()


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/nonexistent"),
        ("POST", "/v1/greet"),
        ("DELETE", "/v1/addTodo"),
        ("GET", "/docs"),
        ("GET", "/openapi.json"),
    ],
)
def test_unmatched_requests_answer_400(method: str, path: str) -> None:
    """Unknown paths and methods share the uniform error shape."""
    response = client_for(build_todo_server()).request(method, path)

    assert response.status_code == 400
    assert response.json() == {"message": "No route found"}


def test_unmatched_head_request_answers_400() -> None:
    """HEAD requests for unknown paths are rejected like any other method."""
    client = client_for(build_todo_server())

    assert client.head("/nonexistent").status_code == 400
    assert client.head("/v1/greet").status_code == 400


def test_build_app_is_idempotent() -> None:
    """Building twice returns the same app without reinstalling routes."""
    server = build_todo_server()
    app = server.build_app()
    route_count = len(app.routes)

    assert server.build_app() is app
    assert len(app.routes) == route_count


def test_custom_base_url() -> None:
    """Routes and spec endpoints follow a custom prefix."""
    server = Server.create("prefixed", base_url="api/v2/")

    def ping(_: None) -> str:
        return "pong"

    server.router().query("ping").fn(ping)
    client = client_for(server)

    assert client.get("/api/v2/ping").json() == "pong"
    assert client.get("/api/v2/openapi.json").status_code == 200
    assert client.get("/v1/ping").status_code == 400


def test_server_defaults() -> None:
    """Servers default to port 3000 and the ``/v1`` prefix."""
    config = Server.create("defaults").config

    assert config.port == 3000
    assert config.base_url == "/v1"


def test_explicit_zero_port_is_kept() -> None:
    """Falsy overrides are honoured rather than replaced by defaults."""
    config = Server.create("ephemeral", port=0, base_url="").config

    assert config.port == 0
    assert config.base_url == ""


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """``WORKER_*`` variables override the defaults."""
    monkeypatch.setenv("WORKER_PORT", "8080")
    monkeypatch.setenv("WORKER_BASE_URL", "/internal/")
    monkeypatch.setenv("WORKER_API_VERSION", "2.1.0")

    config = ServerConfig.from_env("env-worker")

    assert config.port == 8080
    assert config.base_url == "/internal"
    assert config.router_config().version == "2.1.0"


def test_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    """Invalid ports and empty names are configuration errors."""
    monkeypatch.setenv("WORKER_PORT", "eighty")

    with pytest.raises(ConfigurationError):
        ServerConfig.from_env("env-worker")
    with pytest.raises(ConfigurationError):
        ServerConfig(name="  ")
