"""
nexarest CLI
============

    nexarest serve app:router --port 9000 --reload
    nexarest routes app:router
"""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path
from typing import Any, List, Optional

from nexarest import __version__
from nexarest.core.config import get_config
from nexarest.core.router import Router
from nexarest.utils.logger import configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    config = get_config()

    parser = argparse.ArgumentParser(
        prog="nexarest",
        description="nexarest REST toolkit CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nexarest serve app:router            Serve a router with uvicorn
  nexarest routes app:router           List every method and pattern
        """,
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"nexarest {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Serve a router with uvicorn")
    serve_parser.add_argument("target", help="Import path of the router, module:attribute")
    serve_parser.add_argument(
        "--host",
        default=config.get("server.host", "127.0.0.1"),
        help="Host to bind to",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=config.get_int("server.port", 8000),
        help="Port to bind to",
    )
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.add_argument("--workers", type=int, default=1, help="Number of worker processes")
    serve_parser.add_argument("--log-level", default=None, help="Log level (default: log.level)")

    routes_parser = subparsers.add_parser("routes", help="List all routes")
    routes_parser.add_argument("target", help="Import path of the router, module:attribute")

    return parser


def load_target(target: str) -> Any:
    """
    Import ``module:attribute``. The attribute defaults to ``router``; a
    callable that is not a ``Router`` is treated as a factory.

    Raises:
        ValueError: The target cannot be imported or is not a router
    """
    module_name, _, attribute = target.partition(":")
    attribute = attribute or "router"

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"cannot import module '{module_name}': {exc}") from exc

    try:
        value = getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"module '{module_name}' has no attribute '{attribute}'") from None

    if not isinstance(value, Router) and callable(value):
        value = value()
    if not isinstance(value, Router):
        raise ValueError(f"'{target}' is not a nexarest Router")
    return value


def handle_serve(args: argparse.Namespace) -> int:
    """Handle serve command."""
    import uvicorn

    configure_logging(level=args.log_level)
    router = load_target(args.target)

    print("Starting nexarest server...")
    print(f"  URL: http://{args.host}:{args.port}")
    print(f"  Reload: {'enabled' if args.reload else 'disabled'}")
    print()

    # uvicorn can only reload or fork workers from an import string
    app: Any = args.target if (args.reload or args.workers > 1) else router
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1 if args.reload else args.workers,
        log_level=(args.log_level or str(get_config().get("log.level", "info"))).lower(),
        lifespan="on",
    )
    return 0


def handle_routes(args: argparse.Namespace) -> int:
    """Handle routes command."""
    router = load_target(args.target)
    routes = sorted(router.walk(), key=lambda item: (item[1], item[0]))

    if not routes:
        print("No routes found")
        return 0

    width = max(len(method) for method, _ in routes)
    for method, pattern in routes:
        print(f"{method.ljust(width)}  {pattern}")
    return 0


def cli(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    handlers = {
        "serve": handle_serve,
        "routes": handle_routes,
    }

    try:
        return handlers[parsed.command](parsed)
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    """Main entry point."""
    sys.exit(cli())
