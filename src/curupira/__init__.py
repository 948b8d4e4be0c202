"""Curupira - Chrome DevTools Protocol debugging gateway for AI agents.

Connects to a running Chrome over CDP and exposes browser, DOM, network,
debugger and framework-state inspection as MCP tools.

PUBLIC API:
  - main: Entry point function for CLI
  - configure_logging: Route log output to stderr
  - __version__: Package version string
"""

import asyncio
import json
import logging
import sys
from importlib.metadata import version

__version__ = version("curupira")


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr so stdout stays free for the MCP stdio transport."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    for noisy in ("mcp", "uvicorn", "httpx", "websocket"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_app():
    from curupira.app import CurupiraApp
    from curupira.config import load_config
    from curupira.errors import ConfigError

    try:
        config = load_config()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level)
    return CurupiraApp.create(config)


def _run_stdio():
    from curupira.server import run_stdio

    app = _load_app()
    try:
        asyncio.run(run_stdio(app))
    except KeyboardInterrupt:
        pass


def _run_serve():
    """curupira serve [host] [port]"""
    from curupira.api import run_api_server

    host = sys.argv[2] if len(sys.argv) > 2 else None
    port = int(sys.argv[3]) if len(sys.argv) > 3 else None
    run_api_server(_load_app(), host=host, port=port)


def _print_tools():
    app = _load_app()
    if "--json" in sys.argv:
        print(json.dumps(app.registry.list_tools(), indent=2))
        return

    for provider in app.registry.providers:
        print(f"{provider.name}:")
        for entry in provider.list_tools():
            print(f"  {entry['name']:<36} {entry['description']}")


CLI_SUBCOMMANDS = {
    "serve": _run_serve,
    "tools": _print_tools,
}


def main():
    """Entry point for Curupira.

    - No subcommand: MCP server over stdio
    - `curupira serve [host] [port]`: HTTP API
    - `curupira tools [--json]`: Print the tool catalogue
    """
    if len(sys.argv) > 1 and sys.argv[1] in CLI_SUBCOMMANDS:
        CLI_SUBCOMMANDS[sys.argv[1]]()
        return

    _run_stdio()


__all__ = ["main", "configure_logging", "__version__"]
