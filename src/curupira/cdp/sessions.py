"""Attached target sessions and lazy domain enablement.

PUBLIC API:
  - Session: One attached target
  - SessionRegistry: Tracks live sessions, picks defaults, enables domains once
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from curupira.errors import NoActiveSessionError

__all__ = ["Session", "SessionRegistry"]

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Flattened CDP session attached to a browser target."""

    session_id: str
    target_id: str
    url: str = ""
    title: str = ""
    attached_at: float = field(default_factory=time.time)
    domains_enabled: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "targetId": self.target_id,
            "url": self.url,
            "title": self.title,
            "attachedAt": self.attached_at,
            "domainsEnabled": sorted(self.domains_enabled),
        }


class SessionRegistry:
    """Registry of attached sessions keyed by CDP sessionId.

    Sessions keep attach order. The first one is the default when callers
    omit a session id.

    Args:
        dispatcher: CommandDispatcher used to send ``<Domain>.enable``.
    """

    def __init__(self, dispatcher):
        self._dispatcher = dispatcher
        self._sessions: dict[str, Session] = {}
        self._enabling: dict[tuple[str, str], asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def add(self, session_id: str, target_id: str, url: str = "", title: str = "") -> Session:
        """Record a newly attached session. Re-adding returns the existing record."""
        existing = self._sessions.get(session_id)
        if existing:
            return existing
        session = Session(session_id, target_id, url=url, title=title)
        self._sessions[session_id] = session
        logger.info(f"Session {session_id} attached to target {target_id}")
        return session

    def remove(self, session_id: str) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session:
            for key in [k for k in self._enabling if k[0] == session_id]:
                self._enabling.pop(key).cancel()
            logger.info(f"Session {session_id} removed")
        return session

    def remove_target(self, target_id: str) -> list[Session]:
        """Remove all sessions attached to target_id."""
        return [self.remove(s.session_id) for s in list(self._sessions.values()) if s.target_id == target_id]

    def update_target(self, target_id: str, url: str | None = None, title: str | None = None) -> None:
        for session in self._sessions.values():
            if session.target_id == target_id:
                if url is not None:
                    session.url = url
                if title is not None:
                    session.title = title

    def clear(self) -> int:
        count = len(self._sessions)
        for task in self._enabling.values():
            task.cancel()
        self._enabling.clear()
        self._sessions.clear()
        return count

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def for_target(self, target_id: str) -> Session | None:
        for session in self._sessions.values():
            if session.target_id == target_id:
                return session
        return None

    def resolve_session(self, explicit_id: str | None = None) -> str:
        """Pick the session a command should run in.

        Args:
            explicit_id: Caller-supplied session id, returned unchanged.

        Returns:
            explicit_id, or the earliest attached session.

        Raises:
            NoActiveSessionError: If no session is attached.
        """
        if explicit_id:
            return explicit_id
        for session_id in self._sessions:
            return session_id
        raise NoActiveSessionError("No active Chrome session available. Connect with chrome_connect first.")

    def is_domain_enabled(self, session_id: str, domain: str) -> bool:
        session = self._sessions.get(session_id)
        return bool(session and domain in session.domains_enabled)

    def mark_domain_disabled(self, session_id: str, domain: str) -> None:
        session = self._sessions.get(session_id)
        if session:
            session.domains_enabled.discard(domain)

    async def ensure_domain_enabled(self, session_id: str, domain: str, params: dict | None = None) -> bool:
        """Enable a CDP domain for a session at most once.

        Concurrent callers for the same session and domain share one
        in-flight ``<Domain>.enable``.

        Returns:
            True if this call sent the enable command, False if already enabled
            or joined an in-flight enable.
        """
        session = self._sessions.get(session_id)
        if session is None:
            # Untracked session, nothing to remember
            await self._dispatcher.send(f"{domain}.enable", params, session_id=session_id)
            return True

        if domain in session.domains_enabled:
            return False

        key = (session_id, domain)
        task = self._enabling.get(key)
        if task is not None:
            await asyncio.shield(task)
            return False

        task = asyncio.ensure_future(self._enable(session, domain, params))
        self._enabling[key] = task
        await asyncio.shield(task)
        return True

    async def _enable(self, session: Session, domain: str, params: dict | None) -> None:
        key = (session.session_id, domain)
        try:
            await self._dispatcher.send(f"{domain}.enable", params, session_id=session.session_id)
            session.domains_enabled.add(domain)
            logger.debug(f"Enabled {domain} for session {session.session_id}")
        finally:
            if self._enabling.get(key) is asyncio.current_task():
                del self._enabling[key]
