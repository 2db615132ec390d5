"""esdev CLI — serve a directory of ES modules for development.

Entry point registered as ``esdev`` in ``pyproject.toml``::

    [project.scripts]
    esdev = "esdev.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``esdev`` command."""
    parser = argparse.ArgumentParser(
        prog="esdev",
        description="esdev — a development server for browser ES modules.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- esdev serve ------------------------------------------------------
    serve_parser = subparsers.add_parser("serve", help="Serve a directory")
    serve_parser.add_argument(
        "--root-dir",
        default=".",
        help="Directory to serve (default: current directory)",
    )
    serve_parser.add_argument(
        "--app-index",
        default=None,
        metavar="FILE",
        help="Fallback document for client-side routed navigations",
    )
    serve_parser.add_argument(
        "--node-resolve",
        action="store_true",
        help="Rewrite bare imports to installed packages",
    )
    serve_parser.add_argument(
        "--watch",
        action="store_true",
        help="Reload connected browsers when files change",
    )
    serve_parser.add_argument("--host", default=None, help="Bind host address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    serve_parser.add_argument(
        "--cors",
        action="store_true",
        help="Allow cross-origin requests from any origin",
    )
    serve_parser.add_argument(
        "--log-level",
        default="info",
        choices=("critical", "error", "warning", "info", "debug"),
        help="Logging level (default: info)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from esdev.cli._serve import serve

        serve(args)
