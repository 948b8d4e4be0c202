"""Tool providers.

PUBLIC API:
  - ConnectionProvider: chrome_* discovery and session tools
  - CDPProvider: cdp_* evaluation, navigation, cookies and raw commands
  - ConsoleProvider: console_* buffered messages
  - DOMProvider: dom_* queries and interaction
  - NetworkProvider: network_* interception, throttling and history
  - DebuggerProvider: debugger_* breakpoints and stepping
  - ScreenshotProvider: capture_* page and element screenshots
  - PerformanceProvider: performance_* metrics and timings
  - StorageProvider: localStorage, sessionStorage, IndexedDB and quota
  - WebSocketProvider: websocket_* frames and graphql_subscriptions
  - ReactProvider, ReduxProvider, ApolloProvider, XStateProvider, ZustandProvider: framework inspection
"""

from curupira.tools.providers.apollo import ApolloProvider
from curupira.tools.providers.cdp import CDPProvider
from curupira.tools.providers.connection import ConnectionProvider
from curupira.tools.providers.console import ConsoleProvider
from curupira.tools.providers.debugger import DebuggerProvider
from curupira.tools.providers.dom import DOMProvider
from curupira.tools.providers.network import InterceptionManager, NetworkProvider
from curupira.tools.providers.performance import PerformanceProvider
from curupira.tools.providers.react import ReactProvider
from curupira.tools.providers.redux import ReduxProvider
from curupira.tools.providers.screenshot import ScreenshotProvider
from curupira.tools.providers.storage import StorageProvider
from curupira.tools.providers.websocket import WebSocketProvider
from curupira.tools.providers.xstate import XStateProvider
from curupira.tools.providers.zustand import ZustandProvider

__all__ = [
    "ApolloProvider",
    "CDPProvider",
    "ConnectionProvider",
    "ConsoleProvider",
    "DebuggerProvider",
    "DOMProvider",
    "InterceptionManager",
    "NetworkProvider",
    "PerformanceProvider",
    "ReactProvider",
    "ReduxProvider",
    "ScreenshotProvider",
    "StorageProvider",
    "WebSocketProvider",
    "XStateProvider",
    "ZustandProvider",
]
