"""Tests for event fan-out."""

import asyncio

from conftest import settle
from curupira.cdp import EventRouter


def event(method, session_id=None, **params):
    frame = {"method": method, "params": params}
    if session_id:
        frame["sessionId"] = session_id
    return frame


async def test_throwing_listener_does_not_block_others():
    router = EventRouter()
    seen = []

    def broken(evt):
        raise RuntimeError("listener bug")

    router.on("Page.loadEventFired", broken)
    router.on("Page.loadEventFired", seen.append)

    assert router.dispatch(event("Page.loadEventFired")) == 2
    await settle()
    assert len(seen) == 1


async def test_dispatch_does_not_run_listeners_inline():
    router = EventRouter()
    seen = []
    router.on("Log.entryAdded", seen.append)

    router.dispatch(event("Log.entryAdded"))
    assert seen == []
    await settle()
    assert len(seen) == 1


async def test_listener_sees_events_in_order():
    router = EventRouter()
    seen = []
    router.on("Network.dataReceived", lambda e: seen.append(e["params"]["n"]))

    for n in range(5):
        router.dispatch(event("Network.dataReceived", n=n))
    await settle()
    assert seen == [0, 1, 2, 3, 4]


async def test_async_listener_processes_sequentially():
    router = EventRouter()
    seen = []

    async def slow(evt):
        await asyncio.sleep(0)
        seen.append(evt["params"]["n"])

    router.on("Fetch.requestPaused", slow)
    for n in range(3):
        router.dispatch(event("Fetch.requestPaused", n=n))
    await settle(20)
    assert seen == [0, 1, 2]


async def test_session_filter():
    router = EventRouter()
    scoped, unscoped = [], []
    router.on("Runtime.consoleAPICalled", scoped.append, session_id="S1")
    router.on("Runtime.consoleAPICalled", unscoped.append)

    router.dispatch(event("Runtime.consoleAPICalled", session_id="S1"))
    router.dispatch(event("Runtime.consoleAPICalled", session_id="S2"))
    await settle()

    assert len(scoped) == 1
    assert len(unscoped) == 2


async def test_off_stops_queued_delivery():
    router = EventRouter()
    seen = []
    sub = router.on("Page.frameNavigated", seen.append)

    router.dispatch(event("Page.frameNavigated"))
    assert router.off(sub) is True
    await settle()

    assert seen == []
    assert router.off(sub) is False
    assert router.listener_count("Page.frameNavigated") == 0


async def test_off_session_removes_scoped_listeners():
    router = EventRouter()
    router.on("Debugger.paused", print, session_id="S1")
    router.on("Debugger.resumed", print, session_id="S1")
    router.on("Debugger.paused", print)

    assert router.off_session("S1") == 2
    assert router.listener_count() == 1


async def test_dispatch_without_listeners():
    assert EventRouter().dispatch(event("Target.targetCreated")) == 0
