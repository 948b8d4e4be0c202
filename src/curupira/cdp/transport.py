"""WebSocket transport to the browser debug endpoint.

PUBLIC API:
  - CDPTransport: One duplex WebSocket with frames marshalled onto asyncio
  - classify_message: Sort a decoded frame into response or event
"""

import asyncio
import json
import logging
import threading
from typing import Any, Callable

import websocket

from curupira.errors import CDPConnectionError

__all__ = ["CDPTransport", "classify_message"]

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict], None]
CloseHandler = Callable[[str], None]


def classify_message(data: Any) -> str:
    """Classify a decoded CDP frame.

    Args:
        data: Decoded JSON frame.

    Returns:
        "response" if the frame carries an id, "event" if it carries only a
        method, "unknown" otherwise.
    """
    if not isinstance(data, dict):
        return "unknown"
    if "id" in data:
        return "response"
    if "method" in data:
        return "event"
    return "unknown"


class CDPTransport:
    """Single WebSocket connection driven by a websocket-client reader thread.

    Frames are decoded on the reader thread and handed to the owning event
    loop with ``call_soon_threadsafe``. Handlers always run on the loop.

    Attributes:
        ws_url: Browser-level debugger WebSocket URL.
    """

    def __init__(
        self,
        ws_url: str,
        connect_timeout: float = 5.0,
        ping_interval: int = 120,
        ping_timeout: int = 60,
    ):
        self.ws_url = ws_url
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

        self._ws_app: websocket.WebSocketApp | None = None
        self._ws_thread: threading.Thread | None = None
        self._connected = threading.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

        self._message_handler: MessageHandler | None = None
        self._close_handler: CloseHandler | None = None
        self._close_reported = False

    def on_message(self, handler: MessageHandler) -> None:
        """Register the single consumer of decoded frames."""
        self._message_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """Register the connection-loss callback."""
        self._close_handler = handler

    @property
    def is_open(self) -> bool:
        return self._ws_app is not None and self._connected.is_set()

    async def connect(self) -> None:
        """Open the WebSocket and wait for the handshake.

        Raises:
            CDPConnectionError: If already connected or the handshake times out.
        """
        if self._ws_app:
            raise CDPConnectionError("Already connected")

        self._loop = asyncio.get_running_loop()
        self._close_reported = False
        self._ws_app = websocket.WebSocketApp(
            self.ws_url,
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )

        self._ws_thread = threading.Thread(
            target=self._ws_app.run_forever,
            kwargs={
                "ping_interval": self.ping_interval,
                "ping_timeout": self.ping_timeout,
                "skip_utf8_validation": True,
                "suppress_origin": True,
            },
            name="curupira-cdp-reader",
        )
        self._ws_thread.daemon = True
        self._ws_thread.start()

        opened = await asyncio.to_thread(self._connected.wait, self.connect_timeout)
        if not opened:
            await self.close()
            raise CDPConnectionError(f"Failed to connect to browser WebSocket at {self.ws_url}", url=self.ws_url)

    def send(self, message: dict) -> None:
        """Write one JSON frame.

        Raises:
            CDPConnectionError: If the socket is not open.
        """
        ws_app = self._ws_app
        if ws_app is None or not self._connected.is_set():
            raise CDPConnectionError("Not connected to browser")

        ws_app.send(json.dumps(message))

    async def close(self) -> None:
        """Close the socket and join the reader thread."""
        ws_app = self._ws_app
        self._ws_app = None

        if ws_app:
            ws_app.close()

        thread = self._ws_thread
        self._ws_thread = None
        if thread and thread.is_alive():
            await asyncio.to_thread(thread.join, 2)

        self._connected.clear()

    def _post(self, callback: Callable, *args) -> None:
        """Run callback on the owning loop from the reader thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop shut down between the check and the call
            logger.debug("Dropping frame, event loop closed")

    def _on_open(self, ws):
        logger.info(f"Browser WebSocket connected ({self.ws_url})")
        self._connected.set()

    def _on_message(self, ws, message):
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable CDP frame: {e}")
            return

        kind = classify_message(data)
        if kind == "unknown":
            logger.warning(f"Discarding unrecognized CDP frame: {str(data)[:200]}")
            return

        self._post(self._deliver, kind, data)

    def _deliver(self, kind: str, data: dict) -> None:
        if self._message_handler is None:
            return
        try:
            self._message_handler(kind, data)
        except Exception:
            logger.exception(f"CDP message handler failed for {kind} frame")

    def _on_error(self, ws, error):
        logger.error(f"Browser WebSocket error: {error}")

    def _on_close(self, ws, code, reason):
        was_connected = self._connected.is_set()
        self._connected.clear()
        self._ws_app = None
        logger.info(f"Browser WebSocket closed: {code} {reason}")

        if was_connected or code is not None:
            self._post(self._report_close, f"{code} {reason}" if code else "connection closed")

    def _report_close(self, reason: str) -> None:
        if self._close_reported:
            return
        self._close_reported = True
        if self._close_handler:
            self._close_handler(reason)
