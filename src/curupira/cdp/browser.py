"""Browser-level CDP connection with flattened session multiplexing.

PUBLIC API:
  - BrowserConnection: Owns the transport, dispatcher, router and session registry
"""

import logging
import time
from typing import Callable

import httpx

from curupira.cdp.client import CDPClient
from curupira.cdp.dispatcher import CommandDispatcher
from curupira.cdp.events import EventRouter
from curupira.cdp.sessions import Session, SessionRegistry
from curupira.cdp.transport import CDPTransport
from curupira.config import ChromeConfig
from curupira.errors import CDPConnectionError, ConnectionLostError

__all__ = ["BrowserConnection"]

logger = logging.getLogger(__name__)


class BrowserConnection:
    """One WebSocket to /devtools/browser/<id>, many attached target sessions.

    Target lifecycle events keep the session registry current. Every other
    frame goes to the dispatcher (responses) or the event router (events).

    Attributes:
        config: Chrome endpoint settings.
        dispatcher: Command correlation engine.
        router: Event fan-out.
        sessions: Attached session registry.
        client: Facade handed to tool providers.
    """

    def __init__(self, config: ChromeConfig | None = None, transport_factory: Callable = CDPTransport):
        self.config = config or ChromeConfig()
        self.host = self.config.host
        self.port = self.config.port
        self._transport_factory = transport_factory
        self._transport = None
        self.connected_at: float | None = None
        self.browser_info: dict = {}

        self.dispatcher = CommandDispatcher(default_timeout=self.config.command_timeout)
        self.router = EventRouter()
        self.sessions = SessionRegistry(self.dispatcher)
        self.client = CDPClient(self.dispatcher, self.router, self.sessions)

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_open

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def discover(self, host: str | None = None, port: int | None = None) -> dict:
        """Fetch /json/version from the debug endpoint.

        Raises:
            CDPConnectionError: If the endpoint is unreachable or malformed.
        """
        url = f"http://{host or self.host}:{port or self.port}/json/version"
        try:
            async with httpx.AsyncClient(timeout=self.config.connect_timeout) as http:
                resp = await http.get(url)
                resp.raise_for_status()
                info = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CDPConnectionError(f"Failed to reach Chrome at {url}: {e}", url=url)

        if not info.get("webSocketDebuggerUrl"):
            raise CDPConnectionError(f"No webSocketDebuggerUrl in {url}", url=url)
        return info

    async def list_targets(self, host: str | None = None, port: int | None = None) -> list[dict]:
        """List browser targets.

        Uses Target.getTargets when connected, otherwise /json/list.
        """
        if self.is_connected and host is None and port is None:
            result = await self.client.browser_command("Target.getTargets")
            return result.get("targetInfos", [])

        url = f"http://{host or self.host}:{port or self.port}/json/list"
        try:
            async with httpx.AsyncClient(timeout=self.config.connect_timeout) as http:
                resp = await http.get(url)
                resp.raise_for_status()
                targets = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CDPConnectionError(f"Failed to list targets at {url}: {e}", url=url)

        # /json/list uses "id", Target.getTargets uses "targetId"
        return [{**t, "targetId": t.get("targetId") or t.get("id")} for t in targets]

    def bind(self, transport) -> None:
        """Adopt an open transport and route its frames."""
        transport.on_message(self._route)
        transport.on_close(self._handle_close)
        self._transport = transport
        self.dispatcher.attach_transport(transport)
        self.connected_at = time.time()

    async def connect(self, host: str | None = None, port: int | None = None) -> dict:
        """Connect to the browser and optionally attach to the first page.

        Raises:
            CDPConnectionError: If already connected or the browser is unreachable.
        """
        if self.is_connected:
            raise CDPConnectionError(f"Already connected to {self.endpoint}")

        self.host = host or self.host
        self.port = port or self.port
        self.browser_info = await self.discover()

        transport = self._transport_factory(
            self.browser_info["webSocketDebuggerUrl"], connect_timeout=self.config.connect_timeout
        )
        await transport.connect()
        self.bind(transport)

        try:
            await self.client.browser_command("Target.setDiscoverTargets", {"discover": True})
        except CDPConnectionError:
            raise
        except Exception as e:
            logger.warning(f"Failed to enable target discovery: {e}")

        if self.config.auto_attach:
            pages = [t for t in await self.list_targets() if t.get("type") == "page"]
            if pages:
                await self.attach(pages[0]["targetId"], url=pages[0].get("url", ""), title=pages[0].get("title", ""))
            else:
                logger.info("No page targets to attach to")

        return self.status()

    async def attach(self, target_id: str, url: str = "", title: str = "") -> Session:
        """Attach to a target with a flattened session and enable default domains."""
        existing = self.sessions.for_target(target_id)
        if existing:
            return existing

        result = await self.client.browser_command("Target.attachToTarget", {"targetId": target_id, "flatten": True})
        session = self.sessions.add(result["sessionId"], target_id, url=url, title=title)

        for domain in self.config.enable_domains:
            try:
                await self.sessions.ensure_domain_enabled(session.session_id, domain)
            except ConnectionLostError:
                raise
            except Exception as e:
                logger.warning(f"Failed to enable {domain} for session {session.session_id}: {e}")

        return session

    async def create_session(self, url: str = "about:blank") -> Session:
        """Open a new page target and attach to it."""
        result = await self.client.browser_command("Target.createTarget", {"url": url})
        return await self.attach(result["targetId"], url=url)

    async def detach(self, session_id: str) -> bool:
        """Detach a session. Returns False if it was not attached."""
        if session_id not in self.sessions:
            return False
        try:
            await self.client.browser_command("Target.detachFromTarget", {"sessionId": session_id})
        except Exception as e:
            logger.debug(f"Error detaching session {session_id}: {e}")
        self._drop_session(session_id)
        return True

    async def disconnect(self) -> None:
        """Close the browser WebSocket. All sessions become invalid."""
        transport = self._transport
        if transport is None:
            return
        await transport.close()
        self._handle_close("disconnected")

    def status(self) -> dict:
        return {
            "connected": self.is_connected,
            "endpoint": self.endpoint,
            "browser": self.browser_info.get("Browser", ""),
            "protocolVersion": self.browser_info.get("Protocol-Version", ""),
            "connectedAt": self.connected_at,
            "sessions": [s.to_dict() for s in self.sessions.list_sessions()],
            "pendingCommands": self.dispatcher.pending_count,
        }

    def _drop_session(self, session_id: str) -> None:
        if self.sessions.remove(session_id):
            self.router.off_session(session_id)

    def _route(self, kind: str, data: dict) -> None:
        """Route one decoded frame. Runs on the event loop."""
        if kind == "response":
            self.dispatcher.handle_response(data)
            return

        if "sessionId" not in data:
            self._handle_browser_event(data)
        self.router.dispatch(data)

    def _handle_browser_event(self, data: dict) -> None:
        """Keep the session registry in step with target lifecycle events."""
        method = data.get("method")
        params = data.get("params", {})

        if method == "Target.detachedFromTarget":
            session_id = params.get("sessionId")
            if session_id:
                self._drop_session(session_id)

        elif method == "Target.targetDestroyed":
            target_id = params.get("targetId")
            for session in self.sessions.list_sessions():
                if session.target_id == target_id:
                    self._drop_session(session.session_id)

        elif method == "Target.targetInfoChanged":
            info = params.get("targetInfo", {})
            self.sessions.update_target(info.get("targetId", ""), url=info.get("url"), title=info.get("title"))

    def _handle_close(self, reason: str) -> None:
        """Fail in-flight commands and drop sessions after transport loss."""
        if self._transport is None:
            return
        self._transport = None
        self.dispatcher.attach_transport(None)
        self.dispatcher.fail_all(ConnectionLostError(f"Browser connection closed: {reason}"))

        for session in self.sessions.list_sessions():
            self.router.off_session(session.session_id)
        count = self.sessions.clear()
        self.connected_at = None
        logger.info(f"Browser connection closed ({reason}), dropped {count} sessions")
