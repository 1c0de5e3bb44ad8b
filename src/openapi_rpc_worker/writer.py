"""Filesystem writers for generated OpenAPI documents."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from .json_types import JSONObject, MutableJSONObject
from .spec import render_json, render_yaml

type ExportFormat = Literal["json", "yaml", "spacecloud"]

EXPORT_FORMATS: tuple[ExportFormat, ...] = ("json", "yaml", "spacecloud")

SPACE_CLOUD_API_VERSION = "core.space-cloud.io/v1alpha1"
SPACE_CLOUD_KIND = "OpenAPISource"


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def space_cloud_resource(spec: JSONObject, *, name: str, port: int) -> MutableJSONObject:
    """Wrap a document in a Space Cloud ``OpenAPISource`` resource.

    Args:
        spec (JSONObject): Generated OpenAPI document.
        name (str): Resource name, usually the server name.
        port (int): Local port the worker listens on.

    Returns:
        MutableJSONObject: Resource ready to be dumped as YAML.
    """
    return {
        "apiVersion": SPACE_CLOUD_API_VERSION,
        "kind": SPACE_CLOUD_KIND,
        "metadata": {"name": name},
        "spec": {
            "source": {"url": f"http://localhost:{port}"},
            "openapi": {"value": dict(spec)},
        },
    }


def write_spec(
    *,
    document: JSONObject,
    path: Path,
    export_format: ExportFormat,
    name: str = "",
    port: int = 0,
) -> Path:
    """Write ``document`` to ``path`` in the requested format.

    Args:
        document (JSONObject): Generated OpenAPI document.
        path (Path): Destination file; parent directories are created.
        export_format (ExportFormat): ``json``, ``yaml`` or ``spacecloud``.
        name (str): Resource name, used by the ``spacecloud`` format only.
        port (int): Worker port, used by the ``spacecloud`` format only.

    Returns:
        Path: The written file.
    """
    if export_format == "json":
        content = render_json(document) + "\n"
    elif export_format == "yaml":
        content = render_yaml(document)
    elif export_format == "spacecloud":
        content = render_yaml(space_cloud_resource(document, name=name, port=port))
    else:
        raise WriteError(f"Unknown export format {export_format!r}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"Failed to create directory {path.parent}: {exc}") from exc
    _write_file(path, content)
    return path


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
