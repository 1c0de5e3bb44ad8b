"""Module entry point for ``python -m openapi_rpc_worker``."""

from __future__ import annotations

from .cli import main

raise SystemExit(main())
