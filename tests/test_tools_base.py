"""Tests for the tool provider contract and the result boundary."""

from pydantic import Field

from conftest import evaluate_returns
from curupira.errors import ElementNotFoundError
from curupira.tools import SessionArgs, ToolProvider, ToolResult, normalize_payload, tool
from curupira.tools.base import build_script
from curupira.tools.providers import XStateProvider


class CountArgs(SessionArgs):
    max_items: int = Field(ge=1)


class SampleProvider(ToolProvider):
    name = "sample"

    @tool("sample_raw", "Return raw data")
    async def raw(self, args, ctx):
        return {"session": ctx.session_id}

    @tool("sample_count", "Needs arguments", args=CountArgs)
    async def count(self, args, ctx):
        return {"maxItems": args.max_items}

    @tool("sample_crash", "Raise an unexpected error", error_prefix="Sample failed")
    async def crash(self, args, ctx):
        raise RuntimeError("kaput")

    @tool("sample_missing", "Raise a domain error", error_prefix="Sample failed")
    async def missing(self, args, ctx):
        raise ElementNotFoundError("Element not found: #nope")

    @tool("sample_sessionless", "Runs without a session", requires_session=False)
    async def sessionless(self, args, ctx):
        return ToolResult.ok({"session": ctx.session_id}, warnings=["no session"])


class TestNormalizePayload:
    def test_error_key_fails_and_keeps_payload(self):
        result = normalize_payload({"error": "Store not found", "available": ["a"]})
        assert result.success is False
        assert result.error == "Store not found"
        assert result.data == {"error": "Store not found", "available": ["a"]}

    def test_error_object_message(self):
        result = normalize_payload({"error": {"message": "bad state"}})
        assert result.error == "bad state"

    def test_unavailable_library(self):
        result = normalize_payload({"available": False}, library="Redux")
        assert result.to_dict() == {"success": False, "error": "Redux not available in the page"}

    def test_available_false_without_library_is_data(self):
        assert normalize_payload({"available": False}).success is True

    def test_warnings_are_lifted(self):
        result = normalize_payload({"value": 1, "warnings": ["partial"]})
        assert result.data == {"value": 1}
        assert result.warnings == ["partial"]

    def test_non_dict_payloads_succeed(self):
        assert normalize_payload([1, 2]).data == [1, 2]
        assert normalize_payload(None).to_dict() == {"success": True}

    def test_empty_error_still_fails(self):
        for payload in ({"error": None, "store": "x"}, {"error": "", "detail": 1}):
            result = normalize_payload(payload)
            assert result.success is False
            assert result.error == "Script reported an error"
            assert result.data == payload


def test_build_script():
    assert build_script("(a, b) => a + b", 1, "x") == '((a, b) => a + b)(1, "x")'
    assert build_script("() => 1") == "(() => 1)()"


def test_fail_always_has_message():
    assert ToolResult.fail("").error == "Unknown error"


async def test_raw_return_is_wrapped(client):
    result = await SampleProvider(client).execute("sample_raw", {})
    assert result.to_dict() == {"success": True, "data": {"session": "S1"}}


async def test_explicit_session_is_used(client):
    result = await SampleProvider(client).execute("sample_raw", {"sessionId": "S7"})
    assert result.data == {"session": "S7"}


async def test_validation_error_never_reaches_network(client, transport):
    result = await SampleProvider(client).execute("sample_count", {"maxItems": 0})
    assert result.success is False
    assert result.error.startswith("Invalid arguments for sample_count: maxItems:")
    assert transport.sent == []


async def test_camel_and_snake_case_arguments(client):
    provider = SampleProvider(client)
    assert (await provider.execute("sample_count", {"maxItems": 3})).data == {"maxItems": 3}
    assert (await provider.execute("sample_count", {"max_items": 4})).data == {"maxItems": 4}


async def test_unexpected_error_is_prefixed(client):
    result = await SampleProvider(client).execute("sample_crash", {})
    assert result.to_dict() == {"success": False, "error": "Sample failed: kaput"}


async def test_domain_error_keeps_its_message(client):
    result = await SampleProvider(client).execute("sample_missing", {})
    assert result.error == "Element not found: #nope"


async def test_missing_session(browser):
    result = await SampleProvider(browser.client).execute("sample_raw", {})
    assert result.success is False
    assert "No active Chrome session" in result.error


async def test_sessionless_tool(browser):
    result = await SampleProvider(browser.client).execute("sample_sessionless", {})
    assert result.to_dict() == {"success": True, "data": {"session": None}, "warnings": ["no session"]}


def test_list_tools_schema(client):
    tools = {t["name"]: t for t in SampleProvider(client).list_tools()}
    schema = tools["sample_count"]["inputSchema"]
    assert schema["required"] == ["maxItems"]
    assert "sessionId" in schema["properties"]


class TestResultScenarios:
    async def test_script_payload_becomes_data(self, client, transport):
        machines = [{"actorId": "x:0", "machineId": "toggle", "state": "idle"}]
        evaluate_returns(transport, {"machines": machines})

        result = await XStateProvider(client).execute("xstate_list_machines", {})
        assert result.to_dict() == {"success": True, "data": {"machines": machines}}

    async def test_library_missing(self, client, transport):
        evaluate_returns(transport, {"available": False})

        result = await XStateProvider(client).execute("xstate_detect", {})
        assert result.to_dict() == {"success": False, "error": "XState not available in the page"}

    async def test_protocol_error_is_prefixed(self, client, transport):
        transport.respond("Runtime.evaluate", error={"code": -32000, "message": "X is not defined"})

        result = await XStateProvider(client).execute("xstate_list_machines", {})
        assert result.to_dict() == {"success": False, "error": "Error listing machines: X is not defined"}

    async def test_connection_lost_mid_call(self, client, transport):
        transport.send_error = Exception("Connection lost")

        result = await XStateProvider(client).execute("xstate_list_machines", {})
        assert result.to_dict() == {"success": False, "error": "Connection lost"}

    async def test_script_exception(self, client, transport):
        details = {"text": "XState is not defined", "lineNumber": 0}
        transport.respond("Runtime.evaluate", {"result": {"type": "object"}, "exceptionDetails": details})

        result = await XStateProvider(client).execute("xstate_list_machines", {})
        assert result.success is False
        assert result.error == "Script execution error: XState is not defined"
        assert result.data == details

    async def test_payload_error_fails(self, client, transport):
        evaluate_returns(transport, {"error": "Actor not found", "availableActors": ["x:0"]})

        result = await XStateProvider(client).execute("xstate_inspect_actor", {"actorId": "x:9"})
        assert result.success is False
        assert result.error == "Actor not found"
        assert result.data["availableActors"] == ["x:0"]
