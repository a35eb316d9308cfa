"""
twentyq CLI - Command-line interface for the server.

Usage:
    twentyq serve [--host HOST] [--port PORT] [--debug] [--log-file PATH]
                                                          Run the HTTP server
    twentyq settings                                      Print effective settings
"""

import argparse
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="twentyq - live twenty-questions server",
        prog="twentyq",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: localhost)")
    serve_parser.add_argument("--port", type=int, help="The port to use for the HTTP server")
    serve_parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug level with console log output",
    )
    serve_parser.add_argument("--log-file", help="Also write logs to this file (rotated)")

    # Settings command
    subparsers.add_parser("settings", help="Print effective settings as JSON")

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "settings":
        cmd_settings(args)
    else:
        parser.print_help()
        sys.exit(1)


def load_settings(args):
    """Environment settings with CLI flags layered on top."""
    from .settings import Settings

    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if getattr(args, "log_file", None):
        overrides["log_file"] = args.log_file
    if getattr(args, "debug", False):
        overrides["debug"] = True
    return Settings(**overrides)


def cmd_serve(args):
    """Run the server until interrupted."""
    import uvicorn

    from .api import create_app
    from .observability import get_logger

    settings = load_settings(args)
    app = create_app(settings=settings)

    logger = get_logger(__name__)
    logger.info("starting_server", host=settings.host, port=settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.effective_log_level.lower(),
    )


def cmd_settings(args):
    """Print the settings the server would start with."""
    settings = load_settings(args)
    print(settings.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
