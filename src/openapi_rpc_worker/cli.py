"""Command line interface for exporting and serving worker applications."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from .model_types import ConfigurationError, DEFAULT_PORT
from .module_loading import ModuleLoadError, load_target
from .router import Router
from .server import Server
from .spec import SpecVerificationError, verify_document
from .writer import EXPORT_FORMATS, WriteError, write_spec


class CLIError(RuntimeError):
    """Raised when CLI execution fails."""


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="openapi-rpc-worker",
        description="Export or serve typed query/mutation operations",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Write the generated OpenAPI document")
    export.add_argument(
        "--app",
        required=True,
        help="Application target, e.g. app.py:server or package.module:router",
    )
    export.add_argument("--output", required=True, help="Destination file")
    export.add_argument(
        "--format",
        choices=EXPORT_FORMATS,
        default="yaml",
        help="Output format (default: yaml)",
    )
    export.add_argument(
        "--port",
        type=int,
        default=None,
        help="Worker port recorded in the spacecloud format (default: server port)",
    )
    export.add_argument(
        "--verify",
        action="store_true",
        help="Validate the document against the OpenAPI model before writing",
    )

    serve = commands.add_parser("serve", help="Start the HTTP server")
    serve.add_argument("--app", required=True, help="Server target, e.g. app.py:server")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "serve":
            _serve(args.app)
            return 0
        written = _export(
            target=args.app,
            output=Path(args.output),
            export_format=args.format,
            port=args.port,
            verify=bool(args.verify),
        )
    except (
        CLIError,
        ConfigurationError,
        ModuleLoadError,
        SpecVerificationError,
        WriteError,
    ) as exc:
        parser.error(str(exc))
        return 2

    print(f"Wrote {args.format} document to {written}")
    return 0


def _export(
    *,
    target: str,
    output: Path,
    export_format: str,
    port: Optional[int],
    verify: bool,
) -> Path:
    loaded = load_target(target)
    if isinstance(loaded, Server):
        router = loaded.router()
        default_port = loaded.config.port
    else:
        router = loaded
        default_port = DEFAULT_PORT

    document = router.generate_spec()
    if verify:
        verify_document(document)

    if export_format not in EXPORT_FORMATS:
        raise CLIError(f"Unsupported format {export_format!r}")
    return write_spec(
        document=document,
        path=output,
        export_format=export_format,  # type: ignore[arg-type]
        name=router.config.name,
        port=port or default_port,
    )


def _serve(target: str) -> None:
    loaded = load_target(target)
    if isinstance(loaded, Router):
        raise CLIError(f"{target!r} names a Router; serve needs a Server")
    loaded.start()


if __name__ == "__main__":
    raise SystemExit(main())
