"""Tests for the session registry and lazy domain enablement."""

import asyncio

import pytest

from curupira.cdp import CommandDispatcher, SessionRegistry
from curupira.errors import CDPProtocolError, NoActiveSessionError


async def test_concurrent_enables_send_one_command(browser, transport, session):
    results = await asyncio.gather(*(browser.sessions.ensure_domain_enabled("S1", "DOM") for _ in range(4)))

    assert transport.methods().count("DOM.enable") == 1
    assert sorted(results) == [False, False, False, True]
    assert browser.sessions.is_domain_enabled("S1", "DOM")


async def test_enable_is_remembered(browser, transport, session):
    assert await browser.sessions.ensure_domain_enabled("S1", "Network") is True
    assert await browser.sessions.ensure_domain_enabled("S1", "Network") is False
    assert transport.methods() == ["Network.enable"]


async def test_enable_is_per_session(browser, transport, session):
    browser.sessions.add("S2", "T2")
    await browser.sessions.ensure_domain_enabled("S1", "Runtime")
    await browser.sessions.ensure_domain_enabled("S2", "Runtime")

    assert [m.get("sessionId") for m in transport.sent] == ["S1", "S2"]


async def test_failed_enable_can_be_retried(browser, transport, session):
    transport.respond("Page.enable", error={"message": "Page domain not available"})
    transport.respond("Page.enable", result={})

    with pytest.raises(CDPProtocolError):
        await browser.sessions.ensure_domain_enabled("S1", "Page")
    assert not browser.sessions.is_domain_enabled("S1", "Page")

    assert await browser.sessions.ensure_domain_enabled("S1", "Page") is True
    assert transport.methods().count("Page.enable") == 2


async def test_mark_domain_disabled_allows_reenable(browser, transport, session):
    await browser.sessions.ensure_domain_enabled("S1", "Fetch")
    browser.sessions.mark_domain_disabled("S1", "Fetch")
    await browser.sessions.ensure_domain_enabled("S1", "Fetch")
    assert transport.methods().count("Fetch.enable") == 2


def test_resolve_session_prefers_explicit_then_first_attached():
    registry = SessionRegistry(CommandDispatcher())
    registry.add("S1", "T1")
    registry.add("S2", "T2")

    assert registry.resolve_session("S2") == "S2"
    assert registry.resolve_session() == "S1"

    registry.remove("S1")
    assert registry.resolve_session() == "S2"


def test_resolve_session_without_sessions():
    registry = SessionRegistry(CommandDispatcher())
    with pytest.raises(NoActiveSessionError, match="chrome_connect"):
        registry.resolve_session()


def test_registry_bookkeeping():
    registry = SessionRegistry(CommandDispatcher())
    first = registry.add("S1", "T1", url="http://a")
    assert registry.add("S1", "T1") is first
    registry.add("S2", "T1")

    registry.update_target("T1", title="Renamed")
    assert {s.title for s in registry.list_sessions()} == {"Renamed"}
    assert registry.for_target("T1") is first

    assert len(registry.remove_target("T1")) == 2
    assert len(registry) == 0
    assert first.to_dict()["sessionId"] == "S1"
