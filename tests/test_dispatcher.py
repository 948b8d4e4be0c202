"""Tests for command/response correlation."""

import asyncio

import pytest

from conftest import settle
from curupira.cdp import CommandDispatcher
from curupira.errors import CDPConnectionError, CDPProtocolError, CDPTimeoutError, ConnectionLostError


class RecordingTransport:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class BrokenTransport:
    def __init__(self, error):
        self.error = error

    def send(self, message):
        raise self.error


@pytest.fixture
def recorder():
    return RecordingTransport()


@pytest.fixture
def dispatcher(recorder):
    return CommandDispatcher(recorder, default_timeout=1.0)


async def test_send_builds_frame(dispatcher, recorder):
    task = asyncio.create_task(dispatcher.send("Page.navigate", {"url": "http://x"}, session_id="S1"))
    await settle()

    message = recorder.sent[0]
    assert message["method"] == "Page.navigate"
    assert message["params"] == {"url": "http://x"}
    assert message["sessionId"] == "S1"

    dispatcher.handle_response({"id": message["id"], "result": {"frameId": "F"}})
    assert await task == {"frameId": "F"}
    assert dispatcher.pending_count == 0


async def test_empty_params_and_session_are_omitted(dispatcher, recorder):
    task = asyncio.create_task(dispatcher.send("Browser.getVersion"))
    await settle()

    assert set(recorder.sent[0]) == {"id", "method"}
    dispatcher.handle_response({"id": recorder.sent[0]["id"], "result": {}})
    await task


async def test_permuted_responses_resolve_their_own_commands(dispatcher, recorder):
    tasks = [asyncio.create_task(dispatcher.send("Test.echo", {"n": n})) for n in range(6)]
    await settle()

    ids = [m["id"] for m in recorder.sent]
    assert len(set(ids)) == 6

    for message in reversed(recorder.sent):
        dispatcher.handle_response({"id": message["id"], "result": {"n": message["params"]["n"]}})

    results = await asyncio.gather(*tasks)
    assert [r["n"] for r in results] == list(range(6))


async def test_ids_unique_across_sessions(dispatcher, recorder):
    tasks = [
        asyncio.create_task(dispatcher.send("Runtime.evaluate", {"expression": "1"}, session_id=sid))
        for sid in ("A", "B", "A", "B")
    ]
    await settle()

    assert len({m["id"] for m in recorder.sent}) == 4
    dispatcher.fail_all(ConnectionLostError("done"))
    for task in tasks:
        with pytest.raises(ConnectionLostError):
            await task


async def test_timeout_does_not_affect_other_commands(dispatcher, recorder):
    slow = asyncio.create_task(dispatcher.send("Slow.method", timeout=0.05))
    fast = asyncio.create_task(dispatcher.send("Fast.method", timeout=1.0))
    await settle()

    with pytest.raises(CDPTimeoutError) as exc_info:
        await slow
    assert exc_info.value.method == "Slow.method"
    assert exc_info.value.retryable

    fast_id = next(m["id"] for m in recorder.sent if m["method"] == "Fast.method")
    dispatcher.handle_response({"id": fast_id, "result": {"ok": True}})
    assert await fast == {"ok": True}
    assert dispatcher.pending_count == 0


async def test_error_frame_raises_protocol_error(dispatcher, recorder):
    task = asyncio.create_task(dispatcher.send("DOM.querySelector"))
    await settle()

    dispatcher.handle_response({"id": recorder.sent[0]["id"], "error": {"code": -32000, "message": "No node"}})
    with pytest.raises(CDPProtocolError) as exc_info:
        await task
    assert str(exc_info.value) == "No node"
    assert exc_info.value.cdp_code == -32000


async def test_unknown_and_late_responses_are_discarded(dispatcher, recorder):
    assert dispatcher.handle_response({"id": 999, "result": {}}) is False

    task = asyncio.create_task(dispatcher.send("Slow.method", timeout=0.01))
    await settle()
    with pytest.raises(CDPTimeoutError):
        await task
    assert dispatcher.handle_response({"id": recorder.sent[0]["id"], "result": {}}) is False


async def test_fail_all_rejects_pending(dispatcher):
    tasks = [asyncio.create_task(dispatcher.send("A.b")) for _ in range(3)]
    await settle()

    assert dispatcher.fail_all(ConnectionLostError("Browser connection closed: gone")) == 3
    for task in tasks:
        with pytest.raises(ConnectionLostError, match="gone"):
            await task
    assert dispatcher.pending_count == 0


async def test_send_without_transport():
    dispatcher = CommandDispatcher()
    with pytest.raises(CDPConnectionError, match="Not connected to browser"):
        await dispatcher.send("Page.reload")


async def test_write_failure_becomes_connection_lost():
    dispatcher = CommandDispatcher(BrokenTransport(Exception("Connection lost")))
    with pytest.raises(ConnectionLostError) as exc_info:
        await dispatcher.send("Page.reload")
    assert str(exc_info.value) == "Connection lost"
    assert dispatcher.pending_count == 0


async def test_closed_transport_error_passes_through():
    dispatcher = CommandDispatcher(BrokenTransport(CDPConnectionError("Not connected to browser")))
    with pytest.raises(CDPConnectionError) as exc_info:
        await dispatcher.send("Page.reload")
    assert not isinstance(exc_info.value, ConnectionLostError)
