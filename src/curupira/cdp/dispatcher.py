"""Command/response correlation over a single CDP transport.

PUBLIC API:
  - CommandDispatcher: Assigns ids, parks futures, resolves them by id
  - PendingCommand: In-flight command record
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from curupira.errors import CDPConnectionError, CDPProtocolError, CDPTimeoutError, ConnectionLostError

__all__ = ["CommandDispatcher", "PendingCommand"]

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send(self, message: dict) -> None: ...


@dataclass
class PendingCommand:
    """In-flight command awaiting its response frame."""

    id: int
    method: str
    future: asyncio.Future
    session_id: str | None = None
    sent_at: float = field(default_factory=time.monotonic)


class CommandDispatcher:
    """Request/response correlation engine.

    Ids come from one dispatcher-global counter so they stay unique across
    every session multiplexed on the transport. All state is touched only
    from the event loop thread.

    Attributes:
        default_timeout: Seconds to wait for a response when none is given.
    """

    def __init__(self, transport: Transport | None = None, default_timeout: float = 30.0):
        self.default_timeout = default_timeout
        self._transport = transport
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingCommand] = {}

    def attach_transport(self, transport: Transport | None) -> None:
        """Swap the underlying transport. Pending commands are not touched."""
        self._transport = transport

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending(self) -> list[PendingCommand]:
        return list(self._pending.values())

    async def send(
        self,
        method: str,
        params: dict | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict:
        """Send a CDP command and await its result.

        Args:
            method: CDP method name.
            params: Optional command parameters.
            session_id: Target session to route to. Browser-level when omitted.
            timeout: Seconds to wait. Uses default_timeout when omitted.

        Returns:
            The response ``result`` object.

        Raises:
            CDPConnectionError: If no transport is open.
            ConnectionLostError: If the write fails or the connection drops.
            CDPTimeoutError: If no response arrives in time.
            CDPProtocolError: If the browser answers with an error.
        """
        if self._transport is None:
            raise CDPConnectionError("Not connected to browser")

        timeout = self.default_timeout if timeout is None else timeout
        msg_id = next(self._ids)

        message: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            message["params"] = params
        if session_id:
            message["sessionId"] = session_id

        loop = asyncio.get_running_loop()
        command = PendingCommand(msg_id, method, loop.create_future(), session_id)
        self._pending[msg_id] = command

        try:
            self._transport.send(message)
        except CDPConnectionError:
            self._pending.pop(msg_id, None)
            raise
        except Exception as e:
            self._pending.pop(msg_id, None)
            logger.warning(f"Failed to send {method}: {e}")
            raise ConnectionLostError(str(e) or f"Failed to send {method}", method=method)

        try:
            return await asyncio.wait_for(command.future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"CDP command {method} (id {msg_id}) timed out after {timeout}s")
            raise CDPTimeoutError(method, timeout)
        finally:
            self._pending.pop(msg_id, None)

    def handle_response(self, data: dict) -> bool:
        """Resolve the pending command matching a response frame.

        Returns:
            True if the frame settled a pending command.
        """
        msg_id = data.get("id")
        command = self._pending.pop(msg_id, None)
        if command is None:
            logger.warning(f"Discarding CDP response for unknown id {msg_id}")
            return False

        if command.future.done():
            logger.debug(f"Late CDP response for {command.method} (id {msg_id})")
            return False

        if "error" in data:
            command.future.set_exception(CDPProtocolError.from_payload(command.method, data["error"]))
        else:
            command.future.set_result(data.get("result") or {})
        return True

    def fail_all(self, exc: Exception) -> int:
        """Reject every pending command with exc.

        Returns:
            Number of commands rejected.
        """
        pending = list(self._pending.values())
        self._pending.clear()

        failed = 0
        for command in pending:
            if not command.future.done():
                command.future.set_exception(exc)
                failed += 1

        if failed:
            logger.info(f"Failed {failed} pending CDP commands: {exc}")
        return failed
