"""Integration tests for the command line interface."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest
import yaml

from openapi_rpc_worker.cli import main

_APP_SOURCE = """
from pydantic import BaseModel

from openapi_rpc_worker import Server


class Echo(BaseModel):
    text: str


server = Server.create("cli-worker", port=4100)


def echo(req: Echo) -> Echo:
    return req


server.router().query("echo").input(Echo).output(Echo).fn(echo)
router = server.router()
not_an_app = 3
"""


@pytest.fixture(name="app_file")
def _app_file(tmp_path: Path) -> Path:
    path = tmp_path / "worker_app.py"
    path.write_text(_APP_SOURCE, encoding="utf-8")
    return path


def _export(app: str, output: Path, export_format: str, *extra: str) -> int:
    return main(
        ["export", "--app", app, "--output", str(output), "--format", export_format, *extra]
    )


def test_export_json(app_file: Path, tmp_path: Path) -> None:
    """The JSON export contains the registered operation."""
    output = tmp_path / "out" / "openapi.json"

    assert _export(f"{app_file}:server", output, "json", "--verify") == 0

    document = json.loads(output.read_text(encoding="utf-8"))
    assert document["info"]["title"] == "cli-worker"
    assert document["paths"]["/v1/echo"]["get"]["operationId"] == "echo"


def test_export_yaml_from_router_target(app_file: Path, tmp_path: Path) -> None:
    """Router targets export the same document as their server."""
    from_server = tmp_path / "server.yaml"
    from_router = tmp_path / "router.yaml"

    assert _export(f"{app_file}:server", from_server, "yaml") == 0
    assert _export(f"{app_file}:router", from_router, "yaml") == 0

    assert yaml.safe_load(from_server.read_text(encoding="utf-8")) == yaml.safe_load(
        from_router.read_text(encoding="utf-8")
    )


def test_export_spacecloud(app_file: Path, tmp_path: Path) -> None:
    """The Space Cloud export wraps the document and records the port."""
    output = tmp_path / "spacecloud.yaml"

    assert _export(f"{app_file}:server", output, "spacecloud") == 0

    resource = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert resource["kind"] == "OpenAPISource"
    assert resource["metadata"] == {"name": "cli-worker"}
    assert resource["spec"]["source"] == {"url": "http://localhost:4100"}
    assert "/v1/echo" in resource["spec"]["openapi"]["value"]["paths"]


def test_export_spacecloud_port_override(app_file: Path, tmp_path: Path) -> None:
    """``--port`` replaces the server's configured port."""
    output = tmp_path / "spacecloud.yaml"

    assert _export(f"{app_file}:server", output, "spacecloud", "--port", "5000") == 0

    resource = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert resource["spec"]["source"] == {"url": "http://localhost:5000"}


@pytest.mark.parametrize(
    "suffix",
    [":not_an_app", ":missing", ""],
)
def test_export_rejects_bad_targets(app_file: Path, tmp_path: Path, suffix: str) -> None:
    """Targets that do not name a Server or Router exit with usage errors."""
    with pytest.raises(SystemExit) as exc_info:
        _export(f"{app_file}{suffix}", tmp_path / "out.yaml", "yaml")

    assert exc_info.value.code == 2
    assert not (tmp_path / "out.yaml").exists()


def test_export_rejects_missing_file(tmp_path: Path) -> None:
    """A missing application file is reported before anything is written."""
    with pytest.raises(SystemExit) as exc_info:
        _export(f"{tmp_path / 'absent.py'}:server", tmp_path / "out.yaml", "yaml")

    assert exc_info.value.code == 2


def test_serve_rejects_router_target(app_file: Path) -> None:
    """Only servers can be started."""
    with pytest.raises(SystemExit) as exc_info:
        main(["serve", "--app", f"{app_file}:router"])

    assert exc_info.value.code == 2


def test_cli_help_screen() -> None:
    """Running the CLI help should succeed and print usage information."""
    result = subprocess.run(
        [sys.executable, "-m", "openapi_rpc_worker", "--help"],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    assert "usage:" in result.stdout.lower()
