"""Tests for the WebSocket transport that need no socket."""

import pytest

from curupira.cdp import CDPTransport, classify_message
from curupira.errors import CDPConnectionError


def test_classify_message():
    assert classify_message({"id": 1, "result": {}}) == "response"
    assert classify_message({"id": 2, "error": {"message": "x"}}) == "response"
    assert classify_message({"method": "Page.loadEventFired", "params": {}}) == "event"
    assert classify_message({"params": {}}) == "unknown"
    assert classify_message(["not", "a", "frame"]) == "unknown"


def test_send_when_closed():
    transport = CDPTransport("ws://localhost:9222/devtools/browser/abc")
    assert not transport.is_open
    with pytest.raises(CDPConnectionError, match="Not connected"):
        transport.send({"id": 1, "method": "Browser.getVersion"})


async def test_undecodable_frames_are_dropped():
    transport = CDPTransport("ws://localhost:9222/devtools/browser/abc")
    received = []
    transport.on_message(lambda kind, data: received.append(kind))

    transport._on_message(None, "{not json")
    transport._on_message(None, '{"params": {}}')
    assert received == []


async def test_handler_errors_are_contained():
    transport = CDPTransport("ws://localhost:9222/devtools/browser/abc")

    def broken(kind, data):
        raise RuntimeError("handler bug")

    transport.on_message(broken)
    transport._deliver("event", {"method": "Page.loadEventFired"})
