"""Shared fixtures: an in-memory transport standing in for Chrome."""

import asyncio

import pytest

from curupira.cdp import BrowserConnection, EventStore
from curupira.config import ChromeConfig


class FakeTransport:
    """Records outgoing frames and answers them on the next loop turn.

    Responses are queued per method with ``respond``. The last queued
    response for a method is reused for later calls. Methods in ``hold`` get
    no answer until the test calls ``reply``.
    """

    def __init__(self):
        self.sent: list[dict] = []
        self.hold: set[str] = set()
        self.send_error: Exception | None = None
        self.is_open = True
        self._responses: dict[str, list[dict]] = {}
        self._message_handler = None
        self._close_handler = None

    def on_message(self, handler):
        self._message_handler = handler

    def on_close(self, handler):
        self._close_handler = handler

    async def connect(self):
        self.is_open = True

    async def close(self):
        self.is_open = False

    def respond(self, method: str, result: dict | None = None, error: dict | None = None):
        frame = {"error": error} if error is not None else {"result": result or {}}
        self._responses.setdefault(method, []).append(frame)

    def send(self, message: dict) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)
        if message["method"] in self.hold:
            return

        queued = self._responses.get(message["method"])
        if queued:
            frame = queued.pop(0) if len(queued) > 1 else queued[0]
        else:
            frame = {"result": {}}
        asyncio.get_running_loop().call_soon(self._message_handler, "response", {"id": message["id"], **frame})

    def reply(self, msg_id: int, result: dict | None = None, error: dict | None = None) -> None:
        frame = {"id": msg_id}
        frame.update({"error": error} if error is not None else {"result": result or {}})
        self._message_handler("response", frame)

    def emit(self, method: str, params: dict | None = None, session_id: str | None = None) -> None:
        event = {"method": method, "params": params or {}}
        if session_id:
            event["sessionId"] = session_id
        self._message_handler("event", event)

    def drop(self, reason: str = "connection reset") -> None:
        self.is_open = False
        self._close_handler(reason)

    def methods(self) -> list[str]:
        return [m["method"] for m in self.sent]


async def settle(turns: int = 5) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(turns):
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def browser(transport):
    browser = BrowserConnection(ChromeConfig(command_timeout=2.0))
    browser.bind(transport)
    return browser


@pytest.fixture
def session(browser):
    return browser.sessions.add("S1", "T1", url="http://app.test/", title="App")


@pytest.fixture
def client(browser, session):
    return browser.client


@pytest.fixture
def store(browser):
    store = EventStore(max_events=100)
    store.attach(browser.router)
    return store


def evaluate_returns(transport: FakeTransport, value) -> None:
    """Queue a Runtime.evaluate answer carrying value by value."""
    transport.respond("Runtime.evaluate", {"result": {"type": "object", "value": value}})
