"""MCP stdio surface.

PUBLIC API:
  - create_server: Build an MCP server exposing the app's tools and resources
  - list_resources: Resources readable right now
  - read_resource: JSON snapshot behind a resource URI
  - run_stdio: Serve MCP over stdin/stdout until the client disconnects
"""

import json
import logging

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from curupira.app import CurupiraApp

__all__ = ["create_server", "list_resources", "read_resource", "run_stdio"]

logger = logging.getLogger(__name__)

JSON_MIME = "application/json"
DOM_PREFIX = "dom://session/"
OUTER_HTML = "document.documentElement ? document.documentElement.outerHTML : ''"

STATIC_RESOURCES = [
    ("browser://status", "Browser status", "Connection state and attached sessions"),
    ("console://logs", "Console logs", "Buffered console messages from all sessions"),
    ("network://requests", "Network requests", "Buffered network requests from all sessions"),
]


def list_resources(app: CurupiraApp) -> list[Resource]:
    """Static resources plus one DOM resource per attached session."""
    resources = [
        Resource(uri=uri, name=name, description=description, mimeType=JSON_MIME)
        for uri, name, description in STATIC_RESOURCES
    ]
    for session in app.browser.sessions.list_sessions():
        resources.append(
            Resource(
                uri=f"{DOM_PREFIX}{session.session_id}",
                name=f"DOM Tree - {session.title or session.session_id}",
                description=f"Current DOM of {session.url or 'unknown page'}",
                mimeType=JSON_MIME,
            )
        )
    return resources


async def read_resource(app: CurupiraApp, uri: str) -> dict:
    """Read a resource as a JSON-serializable dict.

    Raises:
        ValueError: If the URI is unknown or names a detached session.
    """
    uri = uri.rstrip("/")
    if uri == "browser://status":
        return {**app.browser.status(), "events": app.store.count()}
    if uri == "console://logs":
        return {"messages": app.store.console_messages()}
    if uri == "network://requests":
        return {"requests": app.store.network_requests()}
    if uri.startswith(DOM_PREFIX):
        session = app.browser.sessions.get(uri[len(DOM_PREFIX) :])
        if session is None:
            raise ValueError(f"Session not found: {uri[len(DOM_PREFIX) :]}")
        client = app.browser.client
        await client.enable_runtime(session.session_id)
        html = await client.evaluate_value(OUTER_HTML, session.session_id)
        return {"sessionId": session.session_id, "url": session.url, "title": session.title, "html": html or ""}
    raise ValueError(f"Unknown resource: {uri}")


def create_server(app: CurupiraApp) -> Server:
    """MCP server whose tools are the registry's tools.

    Argument validation is left to the providers so invalid input comes back
    as a normal failed result instead of a protocol error.
    """
    server = Server("curupira")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
            for t in app.registry.list_tools()
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
        result = await app.registry.call(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result.to_dict(), default=str))]

    @server.list_resources()
    async def handle_list_resources() -> list[Resource]:
        return list_resources(app)

    @server.read_resource()
    async def handle_read_resource(uri) -> list[ReadResourceContents]:
        data = await read_resource(app, str(uri))
        return [ReadResourceContents(content=json.dumps(data, default=str), mime_type=JSON_MIME)]

    return server


async def run_stdio(app: CurupiraApp) -> None:
    server = create_server(app)
    await app.start()
    logger.info(f"MCP server ready with {len(app.registry)} tools")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await app.close()
