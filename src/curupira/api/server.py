"""API server lifecycle.

PUBLIC API:
  - run_api_server: Run the HTTP API in the foreground (blocking)
"""

import asyncio
import logging

import uvicorn

from curupira.api.app import create_api
from curupira.app import CurupiraApp

logger = logging.getLogger(__name__)


def run_api_server(app: CurupiraApp, host: str | None = None, port: int | None = None):
    """Run the API until interrupted.

    Args:
        app: Application to serve.
        host: Bind host. Configured server host when omitted.
        port: Bind port. Configured server port when omitted.
    """
    host = host or app.config.server.host
    port = port or app.config.server.port

    async def run():
        config = uvicorn.Config(create_api(app), host=host, port=port, log_level="warning", access_log=False)
        server = uvicorn.Server(config)
        logger.info(f"HTTP API listening on http://{host}:{port}")
        await server.serve()

    try:
        asyncio.run(run())
    except (SystemExit, KeyboardInterrupt):
        pass
