"""Per-method, per-session event subscriptions.

PUBLIC API:
  - EventRouter: Fan CDP events out to listeners without blocking reads
  - Subscription: Handle returned by EventRouter.on
"""

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

__all__ = ["EventRouter", "Subscription"]

logger = logging.getLogger(__name__)

Listener = Callable[[dict], Any]


@dataclass(eq=False)
class Subscription:
    """Listener registration for one event method.

    Attributes:
        method: CDP event method, e.g. "Network.requestWillBeSent".
        listener: Callable receiving the full event frame.
        session_id: Only deliver events from this session. All sessions when None.
        active: False once removed. Queued deliveries are skipped.
    """

    method: str
    listener: Listener
    session_id: str | None = None
    active: bool = True
    is_async: bool = False
    _queue: deque = field(default_factory=deque, repr=False)
    _drain_task: asyncio.Task | None = field(default=None, repr=False)

    def matches(self, session_id: str | None) -> bool:
        return self.session_id is None or self.session_id == session_id


class EventRouter:
    """Fan-out of CDP events to registered listeners.

    ``dispatch`` only schedules work on the loop and returns, so the read
    path never waits on a listener. Each listener observes events in wire
    order and a failing listener never affects the others.
    """

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}

    def on(self, method: str, listener: Listener, session_id: str | None = None) -> Subscription:
        """Subscribe listener to method events.

        Args:
            method: CDP event method.
            listener: Sync callable or coroutine function taking the event frame.
            session_id: Restrict delivery to one session.

        Returns:
            Subscription handle for off().
        """
        is_async = inspect.iscoroutinefunction(listener) or inspect.iscoroutinefunction(
            getattr(listener, "__call__", None)
        )
        sub = Subscription(method, listener, session_id, is_async=is_async)
        self._subscriptions.setdefault(method, []).append(sub)
        return sub

    def off(self, subscription: Subscription) -> bool:
        """Remove a subscription. Returns False if it was already removed."""
        subs = self._subscriptions.get(subscription.method, [])
        subscription.active = False
        subscription._queue.clear()
        if subscription in subs:
            subs.remove(subscription)
            if not subs:
                del self._subscriptions[subscription.method]
            return True
        return False

    def off_session(self, session_id: str) -> int:
        """Remove every subscription scoped to session_id."""
        removed = 0
        for subs in list(self._subscriptions.values()):
            for sub in [s for s in subs if s.session_id == session_id]:
                removed += self.off(sub)
        return removed

    def listener_count(self, method: str | None = None) -> int:
        if method is not None:
            return len(self._subscriptions.get(method, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    def dispatch(self, event: dict) -> int:
        """Schedule delivery of event to matching listeners.

        Returns:
            Number of listeners the event was scheduled for.
        """
        method = event.get("method")
        session_id = event.get("sessionId")
        subs = [s for s in self._subscriptions.get(method, []) if s.matches(session_id)]
        if not subs:
            return 0

        loop = asyncio.get_running_loop()
        for sub in subs:
            if sub.is_async:
                sub._queue.append(event)
                if sub._drain_task is None or sub._drain_task.done():
                    sub._drain_task = loop.create_task(self._drain(sub))
            else:
                loop.call_soon(self._invoke, sub, event)
        return len(subs)

    def _invoke(self, sub: Subscription, event: dict) -> None:
        if not sub.active:
            return
        try:
            sub.listener(event)
        except Exception:
            logger.exception(f"Listener for {sub.method} failed")

    async def _drain(self, sub: Subscription) -> None:
        while sub._queue and sub.active:
            event = sub._queue.popleft()
            try:
                await sub.listener(event)
            except Exception:
                logger.exception(f"Listener for {sub.method} failed")
