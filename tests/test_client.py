"""Tests for the CDP client facade."""

import asyncio

import pytest

from conftest import evaluate_returns, settle
from curupira.errors import CDPTimeoutError, NoActiveSessionError, ScriptExecutionError


async def test_send_uses_default_session(client, transport):
    await client.send("Page.reload")
    assert transport.sent[0]["sessionId"] == "S1"


async def test_browser_command_has_no_session(client, transport):
    await client.browser_command("Target.getTargets")
    assert "sessionId" not in transport.sent[0]


async def test_send_without_session(browser):
    with pytest.raises(NoActiveSessionError):
        await browser.client.send("Page.reload")


async def test_evaluate_value(client, transport):
    evaluate_returns(transport, {"answer": 42})
    assert await client.evaluate_value("({answer: 42})") == {"answer": 42}

    params = transport.sent[0]["params"]
    assert params["returnByValue"] is True
    assert params["awaitPromise"] is True


async def test_evaluate_raises_on_exception_details(client, transport):
    description = "ReferenceError: XState is not defined\n    at <anonymous>:1:1"
    details = {"text": "Uncaught", "exception": {"description": description}}
    transport.respond("Runtime.evaluate", {"result": {"type": "object"}, "exceptionDetails": details})

    with pytest.raises(ScriptExecutionError) as exc_info:
        await client.evaluate("XState.version")
    assert str(exc_info.value) == "Script execution error: ReferenceError: XState is not defined"
    assert exc_info.value.exception_details == details


async def test_sessions_resolve_independently(browser, client, transport):
    browser.sessions.add("S2", "T2")
    transport.hold.add("Runtime.evaluate")

    slow = asyncio.create_task(client.evaluate_value("b", "S2"))
    await settle()
    fast = asyncio.create_task(client.evaluate_value("a", "S1"))
    await settle()

    ids = {m["sessionId"]: m["id"] for m in transport.sent}
    transport.reply(ids["S1"], {"result": {"value": "A"}})
    assert await fast == "A"
    assert not slow.done()

    transport.reply(ids["S2"], {"result": {"value": "B"}})
    assert await slow == "B"


async def test_expect_event_subscribes_before_command(client, transport):
    waiter = client.expect_event("Page.loadEventFired", "S1")
    transport.emit("Page.loadEventFired", {"timestamp": 1.5}, session_id="S1")

    event = await waiter.wait(1.0)
    assert event["params"]["timestamp"] == 1.5
    assert client.router.listener_count("Page.loadEventFired") == 0


async def test_expect_event_predicate_and_timeout(client, transport):
    waiter = client.expect_event("Debugger.paused", "S1", predicate=lambda e: e["params"]["reason"] == "other")
    transport.emit("Debugger.paused", {"reason": "exception"}, session_id="S1")

    with pytest.raises(CDPTimeoutError, match="waiting for Debugger.paused"):
        await waiter.wait(0.05)
    assert client.router.listener_count("Debugger.paused") == 0


async def test_ensure_domain_uses_registry(client, transport):
    await client.enable_runtime()
    await client.enable_runtime()
    assert transport.methods() == ["Runtime.enable"]
