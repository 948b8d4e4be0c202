"""Tests for the DuckDB event buffer and screenshot persistence."""

import json

from conftest import settle
from curupira.cdp import EventStore
from curupira.cdp.store import build_console_row, build_network_row
from curupira.screenshots import LocalScreenshotStore


def event(method, params, session_id="S1"):
    return {"method": method, "params": params, "sessionId": session_id}


def console(text, level="log", session_id="S1"):
    return event("Runtime.consoleAPICalled", {"type": level, "args": [{"type": "string", "value": text}]}, session_id)


class TestConsoleRows:
    def test_console_api_args_are_joined(self):
        row = build_console_row(
            event(
                "Runtime.consoleAPICalled",
                {"type": "warning", "args": [{"type": "string", "value": "count"}, {"type": "number", "value": 3}]},
            )
        )
        assert row["level"] == "warning"
        assert row["message"] == "count 3"

    def test_exception_uses_description(self):
        row = build_console_row(
            event(
                "Runtime.exceptionThrown",
                {"exceptionDetails": {"text": "Uncaught", "exception": {"description": "TypeError: x is undefined"}}},
            )
        )
        assert row == {
            "level": "error",
            "message": "TypeError: x is undefined",
            "source": "exception",
            "timestamp": None,
            "url": None,
            "sessionId": "S1",
        }

    def test_object_without_value_uses_description(self):
        params = {"args": [{"type": "object", "description": "Array(2)"}]}
        row = build_console_row(event("Runtime.consoleAPICalled", params))
        assert row["message"] == "Array(2)"


def test_network_row_correlates_events():
    row = build_network_row(
        "R1",
        [
            event("Network.requestWillBeSent", {"requestId": "R1", "request": {"url": "http://a/x", "method": "POST"}}),
            event("Network.responseReceived", {"requestId": "R1", "type": "Fetch", "response": {"status": 500}}),
            event("Network.loadingFailed", {"requestId": "R1", "errorText": "net::ERR_ABORTED"}),
        ],
    )
    assert row["method"] == "POST"
    assert row["status"] == 500
    assert row["type"] == "Fetch"
    assert row["failed"] is True
    assert row["errorText"] == "net::ERR_ABORTED"


def test_console_messages_filter_by_session_and_level():
    store = EventStore()
    store.add(console("one"))
    store.add(console("two", level="error"))
    store.add(console("other tab", session_id="S2"))

    assert [m["message"] for m in store.console_messages("S1")] == ["one", "two"]
    assert [m["message"] for m in store.console_messages("S1", level="error")] == ["two"]
    assert len(store.console_messages()) == 3
    assert [m["message"] for m in store.console_messages(limit=1)] == ["other tab"]


def test_oldest_events_are_trimmed():
    store = EventStore(max_events=3)
    for i in range(5):
        store.add(console(f"m{i}"))

    assert store.count() == 3
    assert [m["message"] for m in store.console_messages()] == ["m2", "m3", "m4"]


def test_clear_by_session_and_methods():
    store = EventStore()
    store.add(console("a"))
    store.add(console("b", session_id="S2"))
    store.add(event("Network.requestWillBeSent", {"requestId": "R1", "request": {"url": "http://a/"}}))

    assert store.clear("S1", ["Runtime.consoleAPICalled"]) == 1
    assert store.count("S1") == 1
    assert store.count() == 2
    assert store.clear() == 2


def test_request_lookup():
    store = EventStore()
    store.add(event("Network.requestWillBeSent", {"requestId": "R1", "request": {"url": "http://a/", "method": "GET"}}))
    store.add(event("Network.loadingFinished", {"requestId": "R1", "encodedDataLength": 512}))

    assert store.request("R1")["size"] == 512
    assert store.request("R2") is None
    assert store.network_requests(url_filter="http://b") == []


def test_websocket_connection_lifecycle():
    store = EventStore()
    store.add(event("Network.webSocketCreated", {"requestId": "W1", "url": "wss://a/socket"}))
    store.add(event("Network.webSocketHandshakeResponseReceived", {"requestId": "W1", "response": {"status": 101}}))
    store.add(
        event("Network.webSocketFrameReceived", {"requestId": "W1", "response": {"opcode": 1, "payloadData": "hi"}})
    )
    store.add(event("Network.webSocketClosed", {"requestId": "W1"}))

    [conn] = store.websocket_connections("S1")
    assert conn["status"] == "closed"
    assert conn["framesReceived"] == 1
    assert store.websocket_frames(request_id="W1")[0]["payload"] == "hi"
    assert store.websocket_frames(request_id="W2") == []


async def test_attached_store_records_router_events(browser, transport, store):
    transport.emit("Log.entryAdded", {"entry": {"level": "warning", "text": "deprecated"}}, session_id="S1")
    transport.emit("Page.frameNavigated", {"frame": {}}, session_id="S1")
    await settle()

    assert store.count() == 1
    store.detach(browser.router)
    assert browser.router.listener_count() == 0


def test_local_screenshot_store(tmp_path):
    screenshots = LocalScreenshotStore(tmp_path / "shots")
    uri = screenshots.store("shot 1.png", b"png-bytes", {"format": "png"})

    path = tmp_path / "shots" / "shot_1.png"
    assert uri == path.resolve().as_uri()
    assert path.read_bytes() == b"png-bytes"
    assert json.loads((tmp_path / "shots" / "shot_1.png.json").read_text()) == {"format": "png"}
