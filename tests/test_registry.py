"""Tests for the tool registry and application wiring."""

import pytest
from mcp import types

from conftest import evaluate_returns, settle
from curupira.app import CurupiraApp
from curupira.config import Config
from curupira.server import create_server, list_resources, read_resource
from curupira.tools import SessionArgs, ToolProvider, ToolRegistry, tool


class EchoProvider(ToolProvider):
    name = "echo"

    @tool("echo_ping", "Reply with pong", requires_session=False)
    async def ping(self, args: SessionArgs, ctx):
        return {"pong": True}


class ClashingProvider(ToolProvider):
    name = "clash"

    @tool("echo_ping", "Same name as EchoProvider's tool", requires_session=False)
    async def ping(self, args: SessionArgs, ctx):
        return {}


@pytest.fixture
def app(tmp_path):
    config = Config()
    config.screenshots.directory = str(tmp_path)
    return CurupiraApp.create(config)


def test_duplicate_provider_rejected(client):
    registry = ToolRegistry()
    registry.register(EchoProvider(client))
    with pytest.raises(ValueError, match="Provider already registered: echo"):
        registry.register(EchoProvider(client))


def test_duplicate_tool_rejected(client):
    registry = ToolRegistry()
    registry.register(EchoProvider(client))
    with pytest.raises(ValueError, match="Duplicate tool names from clash: echo_ping"):
        registry.register(ClashingProvider(client))
    assert [p.name for p in registry.providers] == ["echo"]


async def test_call_dispatches_to_owner(client):
    registry = ToolRegistry()
    registry.register(EchoProvider(client))

    result = await registry.call("echo_ping")
    assert result.to_dict() == {"success": True, "data": {"pong": True}}
    assert "echo_ping" in registry
    assert len(registry) == 1


async def test_unknown_tool(client):
    result = await ToolRegistry().call("nope", {})
    assert result.to_dict() == {"success": False, "error": "Unknown tool: nope"}


def test_app_registers_every_provider(app):
    names = [t["name"] for t in app.registry.list_tools()]
    assert len(names) == len(set(names))
    assert len(app.registry.providers) == 15
    for expected in (
        "chrome_connect",
        "cdp_evaluate",
        "dom_click",
        "network_mock_request",
        "debugger_set_breakpoint",
        "capture_screenshot",
        "react_detect_version",
        "redux_dispatch_action",
        "apollo_cache_inspect",
        "xstate_list_machines",
        "zustand_inspect_store",
        "websocket_get_frames",
        "performance_get_metrics",
        "console_get_messages",
        "get_storage_usage",
    ):
        assert expected in app.registry


def test_tool_schemas_use_wire_names(app):
    tools = {t["name"]: t for t in app.registry.list_tools()}
    properties = tools["network_mock_request"]["inputSchema"]["properties"]
    assert "urlPattern" in properties
    assert "url_pattern" not in properties


async def test_tool_without_session_fails_cleanly(app):
    result = await app.registry.call("cdp_evaluate", {"expression": "1"})
    assert result.success is False
    assert "No active Chrome session" in result.error


async def test_start_without_connect_on_start(app):
    await app.start()
    assert app.browser.is_connected is False
    await app.close()


def test_mcp_server_exposes_tool_and_resource_handlers(app):
    server = create_server(app)
    assert server.name == "curupira"
    assert types.ListToolsRequest in server.request_handlers
    assert types.CallToolRequest in server.request_handlers
    assert types.ListResourcesRequest in server.request_handlers
    assert types.ReadResourceRequest in server.request_handlers


@pytest.fixture
def attached_app(tmp_path, browser, session):
    config = Config()
    config.screenshots.directory = str(tmp_path)
    return CurupiraApp.create(config, browser=browser)


def test_resources_without_sessions(app):
    names = [r.name for r in list_resources(app)]
    assert names == ["Browser status", "Console logs", "Network requests"]


def test_dom_resource_per_attached_session(attached_app):
    dom = list_resources(attached_app)[-1]
    assert str(dom.uri) == "dom://session/S1"
    assert dom.name == "DOM Tree - App"
    assert dom.mimeType == "application/json"


async def test_read_browser_status(attached_app):
    data = await read_resource(attached_app, "browser://status")
    assert [s["sessionId"] for s in data["sessions"]] == ["S1"]
    assert data["events"] == 0


async def test_read_console_logs(attached_app, transport):
    params = {"type": "log", "args": [{"type": "string", "value": "hello"}]}
    transport.emit("Runtime.consoleAPICalled", params, session_id="S1")
    await settle()

    data = await read_resource(attached_app, "console://logs")
    assert [m["message"] for m in data["messages"]] == ["hello"]
    assert await read_resource(attached_app, "network://requests") == {"requests": []}


async def test_read_dom_snapshot(attached_app, transport):
    evaluate_returns(transport, "<html><body>hi</body></html>")

    data = await read_resource(attached_app, "dom://session/S1")
    assert data == {
        "sessionId": "S1",
        "url": "http://app.test/",
        "title": "App",
        "html": "<html><body>hi</body></html>",
    }


async def test_read_unknown_resources(attached_app):
    with pytest.raises(ValueError, match="Session not found: S9"):
        await read_resource(attached_app, "dom://session/S9")
    with pytest.raises(ValueError, match="Unknown resource: tabs://all"):
        await read_resource(attached_app, "tabs://all")
