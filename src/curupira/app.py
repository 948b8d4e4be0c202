"""Application wiring: one browser connection, one event store, all providers.

PUBLIC API:
  - CurupiraApp: Composition root shared by the MCP and HTTP surfaces
"""

import logging
from dataclasses import dataclass

from curupira.cdp import BrowserConnection, EventStore
from curupira.config import Config
from curupira.errors import CurupiraError
from curupira.screenshots import LocalScreenshotStore, ScreenshotStore
from curupira.tools import ToolRegistry
from curupira.tools.providers import (
    ApolloProvider,
    CDPProvider,
    ConnectionProvider,
    ConsoleProvider,
    DebuggerProvider,
    DOMProvider,
    NetworkProvider,
    PerformanceProvider,
    ReactProvider,
    ReduxProvider,
    ScreenshotProvider,
    StorageProvider,
    WebSocketProvider,
    XStateProvider,
    ZustandProvider,
)

__all__ = ["CurupiraApp"]

logger = logging.getLogger(__name__)


@dataclass
class CurupiraApp:
    """Everything a surface needs to serve tool calls.

    Attributes:
        config: Loaded configuration.
        browser: Browser connection owning the CDP layer.
        store: Event buffer subscribed to the browser's router.
        screenshots: Where captured images are written.
        registry: All registered tool providers.
    """

    config: Config
    browser: BrowserConnection
    store: EventStore
    screenshots: ScreenshotStore
    registry: ToolRegistry

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        browser: BrowserConnection | None = None,
        screenshots: ScreenshotStore | None = None,
    ) -> "CurupiraApp":
        """Build the app. Nothing touches the network until start()."""
        config = config or Config()
        browser = browser or BrowserConnection(config.chrome)
        store = EventStore(max_events=config.store.max_events)
        store.attach(browser.router)
        screenshots = screenshots or LocalScreenshotStore(config.screenshots.directory)

        client = browser.client
        registry = ToolRegistry()
        for provider in (
            ConnectionProvider(browser),
            CDPProvider(client),
            ConsoleProvider(client, store),
            DOMProvider(client),
            NetworkProvider(client, store),
            DebuggerProvider(client),
            ScreenshotProvider(client, screenshots),
            PerformanceProvider(client),
            StorageProvider(client),
            WebSocketProvider(client, store),
            ReactProvider(client),
            ReduxProvider(client),
            ApolloProvider(client),
            XStateProvider(client),
            ZustandProvider(client),
        ):
            registry.register(provider)

        logger.debug(f"Registered {len(registry)} tools from {len(registry.providers)} providers")
        return cls(config=config, browser=browser, store=store, screenshots=screenshots, registry=registry)

    async def start(self) -> None:
        """Connect to Chrome when configured to. Failure leaves the app usable."""
        if not self.config.chrome.connect_on_start:
            return
        try:
            await self.browser.connect()
        except CurupiraError as e:
            logger.warning(f"Could not connect to Chrome at startup: {e}")

    async def close(self) -> None:
        await self.browser.disconnect()
        self.store.detach(self.browser.router)
