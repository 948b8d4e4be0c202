"""Typed facade every tool provider talks to.

PUBLIC API:
  - CDPClient: Session-aware command, evaluation and event helpers
  - EventWaiter: One-shot wait for a matching event
"""

import asyncio
import logging
from typing import Any, Callable

from curupira.cdp.dispatcher import CommandDispatcher
from curupira.cdp.events import EventRouter, Subscription
from curupira.cdp.sessions import SessionRegistry
from curupira.errors import CDPTimeoutError, ScriptExecutionError

__all__ = ["CDPClient", "EventWaiter"]

logger = logging.getLogger(__name__)


class EventWaiter:
    """Future resolved by the first event matching method, session and predicate.

    The subscription exists from construction, so a command sent after
    creating the waiter cannot race past its event.
    """

    def __init__(
        self,
        router: EventRouter,
        method: str,
        session_id: str | None = None,
        predicate: Callable[[dict], bool] | None = None,
    ):
        self.method = method
        self._router = router
        self._predicate = predicate
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._subscription: Subscription | None = router.on(method, self._on_event, session_id)

    def _on_event(self, event: dict) -> None:
        if self._future.done():
            return
        if self._predicate and not self._predicate(event):
            return
        self._future.set_result(event)
        self.cancel()

    async def wait(self, timeout: float) -> dict:
        """Wait for the event frame.

        Raises:
            CDPTimeoutError: If nothing matched within timeout.
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(self.method, timeout, f"Timed out after {timeout}s waiting for {self.method}")
        finally:
            self.cancel()

    def cancel(self) -> None:
        if self._subscription is not None:
            self._router.off(self._subscription)
            self._subscription = None


class CDPClient:
    """Session-aware CDP facade.

    Args:
        dispatcher: Command correlation engine.
        router: Event fan-out.
        sessions: Attached session registry.
    """

    def __init__(self, dispatcher: CommandDispatcher, router: EventRouter, sessions: SessionRegistry):
        self.dispatcher = dispatcher
        self.router = router
        self.sessions = sessions

    def resolve_session(self, session_id: str | None = None) -> str:
        return self.sessions.resolve_session(session_id)

    async def send(
        self,
        method: str,
        params: dict | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict:
        """Send a command in a target session, defaulting to the active one.

        Raises:
            NoActiveSessionError: If no session is given and none is attached.
        """
        session_id = self.resolve_session(session_id)
        return await self.dispatcher.send(method, params, session_id=session_id, timeout=timeout)

    async def browser_command(self, method: str, params: dict | None = None, timeout: float | None = None) -> dict:
        """Send a browser-level command with no session, e.g. Target.*."""
        return await self.dispatcher.send(method, params, timeout=timeout)

    async def ensure_domain(self, domain: str, session_id: str | None = None, params: dict | None = None) -> bool:
        session_id = self.resolve_session(session_id)
        return await self.sessions.ensure_domain_enabled(session_id, domain, params)

    async def enable_runtime(self, session_id: str | None = None) -> bool:
        return await self.ensure_domain("Runtime", session_id)

    async def evaluate(
        self,
        expression: str,
        session_id: str | None = None,
        *,
        return_by_value: bool = True,
        await_promise: bool = True,
        include_command_line_api: bool = False,
        timeout: float | None = None,
    ) -> dict:
        """Evaluate JavaScript in the page.

        Returns:
            Raw Runtime.evaluate result.

        Raises:
            ScriptExecutionError: If the script threw.
        """
        params: dict[str, Any] = {
            "expression": expression,
            "returnByValue": return_by_value,
            "awaitPromise": await_promise,
        }
        if include_command_line_api:
            params["includeCommandLineAPI"] = True

        result = await self.send("Runtime.evaluate", params, session_id=session_id, timeout=timeout)
        if result.get("exceptionDetails"):
            raise ScriptExecutionError.from_details(result["exceptionDetails"])
        return result

    async def evaluate_value(self, expression: str, session_id: str | None = None, **kwargs) -> Any:
        """Evaluate and return the by-value result."""
        result = await self.evaluate(expression, session_id, **kwargs)
        return result.get("result", {}).get("value")

    def on(self, method: str, listener: Callable, session_id: str | None = None) -> Subscription:
        return self.router.on(method, listener, session_id)

    def off(self, subscription: Subscription) -> bool:
        return self.router.off(subscription)

    def expect_event(
        self,
        method: str,
        session_id: str | None = None,
        predicate: Callable[[dict], bool] | None = None,
    ) -> EventWaiter:
        """Subscribe now, await later. Create before sending the triggering command."""
        return EventWaiter(self.router, method, session_id, predicate)
