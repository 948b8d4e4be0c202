"""Chrome DevTools Protocol layer.

PUBLIC API:
  - BrowserConnection: Browser WebSocket with multiplexed target sessions
  - CDPClient: Facade used by tool providers
  - CDPTransport: WebSocket transport
  - CommandDispatcher: Request/response correlation
  - EventRouter: Event fan-out
  - SessionRegistry: Attached sessions and domain enablement
  - EventStore: DuckDB event buffer
"""

from curupira.cdp.browser import BrowserConnection
from curupira.cdp.client import CDPClient, EventWaiter
from curupira.cdp.dispatcher import CommandDispatcher, PendingCommand
from curupira.cdp.events import EventRouter, Subscription
from curupira.cdp.sessions import Session, SessionRegistry
from curupira.cdp.store import EventStore
from curupira.cdp.transport import CDPTransport, classify_message

__all__ = [
    "BrowserConnection",
    "CDPClient",
    "EventWaiter",
    "CDPTransport",
    "classify_message",
    "CommandDispatcher",
    "PendingCommand",
    "EventRouter",
    "Subscription",
    "Session",
    "SessionRegistry",
    "EventStore",
]
