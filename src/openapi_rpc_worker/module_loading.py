"""Helpers for loading user applications by ``module:attribute`` target."""

from __future__ import annotations

import importlib
import importlib.util
import itertools
from pathlib import Path
import sys
from types import ModuleType

from .router import Router
from .server import Server


class ModuleLoadError(RuntimeError):
    """Raised when an application target cannot be imported."""


def load_module_from_path(*, module_name: str, module_path: Path) -> ModuleType:
    """Load a module from file path and register it in ``sys.modules``.

    Args:
        module_name (str): Temporary import name for the module.
        module_path (Path): File system path to the Python module.

    Returns:
        ModuleType: Imported Python module object.
    """
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(f"Unable to import module from: {module_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def load_target(target: str) -> Server | Router:
    """Resolve ``path/to/app.py:attr`` or ``package.module:attr``.

    Args:
        target (str): Module reference and attribute separated by a colon.

    Returns:
        Server | Router: The object the attribute names.
    """
    module_ref, separator, attribute = target.rpartition(":")
    if not separator or not module_ref or not attribute:
        raise ModuleLoadError(f"Target must look like 'module:attribute', got {target!r}")

    if module_ref.endswith(".py"):
        module_path = Path(module_ref).expanduser().resolve()
        if not module_path.is_file():
            raise ModuleLoadError(f"Application file not found: {module_path}")
        module = load_module_from_path(
            module_name=f"_openapi_rpc_worker_app_{next(_COUNTER)}",
            module_path=module_path,
        )
    else:
        try:
            module = importlib.import_module(module_ref)
        except ImportError as exc:
            raise ModuleLoadError(f"Unable to import {module_ref!r}: {exc}") from exc

    value = getattr(module, attribute, None)
    if not isinstance(value, (Server, Router)):
        raise ModuleLoadError(
            f"{target!r} must name a Server or Router, got {type(value).__name__}"
        )
    return value


_COUNTER = itertools.count(1)
