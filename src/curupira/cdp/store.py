"""In-memory DuckDB buffer for console, network and WebSocket events.

Events are stored as raw CDP JSON and shaped into rows at query time.

PUBLIC API:
  - EventStore: Bounded event buffer fed by the event router
  - build_network_row: Correlate network events for one request
  - build_console_row: Shape a console/log/exception event
"""

import json
import logging
import threading
from typing import Any

import duckdb

__all__ = ["EventStore", "build_network_row", "build_console_row"]

logger = logging.getLogger(__name__)

CONSOLE_METHODS = ["Runtime.consoleAPICalled", "Log.entryAdded", "Runtime.exceptionThrown"]
NETWORK_METHODS = [
    "Network.requestWillBeSent",
    "Network.responseReceived",
    "Network.loadingFinished",
    "Network.loadingFailed",
]
WEBSOCKET_METHODS = [
    "Network.webSocketCreated",
    "Network.webSocketHandshakeResponseReceived",
    "Network.webSocketFrameSent",
    "Network.webSocketFrameReceived",
    "Network.webSocketFrameError",
    "Network.webSocketClosed",
]


def build_network_row(request_id: str, events: list[dict]) -> dict:
    """Build one request row from its correlated network events.

    Network requests span several events:
    - Network.requestWillBeSent: request details
    - Network.responseReceived: response details
    - Network.loadingFinished: final size
    - Network.loadingFailed: error state
    """
    row: dict[str, Any] = {
        "requestId": request_id,
        "method": "",
        "url": "",
        "status": None,
        "type": None,
        "mimeType": None,
        "size": None,
        "failed": False,
        "errorText": None,
        "timestamp": None,
        "sessionId": None,
    }

    for event in events:
        method = event.get("method", "")
        params = event.get("params", {})
        row["sessionId"] = row["sessionId"] or event.get("sessionId")

        if method == "Network.requestWillBeSent":
            request = params.get("request", {})
            row["url"] = request.get("url", "")
            row["method"] = request.get("method", "")
            row["requestHeaders"] = request.get("headers", {})
            if "postData" in request:
                row["postData"] = request["postData"]
            row["type"] = row["type"] or params.get("type")
            row["timestamp"] = params.get("wallTime") or params.get("timestamp")

        elif method == "Network.responseReceived":
            response = params.get("response", {})
            row["status"] = response.get("status")
            row["mimeType"] = response.get("mimeType")
            row["responseHeaders"] = response.get("headers", {})
            row["type"] = params.get("type")

        elif method == "Network.loadingFinished":
            row["size"] = params.get("encodedDataLength", 0)

        elif method == "Network.loadingFailed":
            row["failed"] = True
            row["errorText"] = params.get("errorText")

    return row


def build_console_row(event: dict) -> dict:
    """Shape a console, log or exception event into a message row."""
    method = event.get("method", "")
    params = event.get("params", {})
    session_id = event.get("sessionId")

    if method == "Runtime.consoleAPICalled":
        return {
            "level": params.get("type", "log"),
            "message": " ".join(_format_arg(arg) for arg in params.get("args", [])),
            "source": "console-api",
            "timestamp": params.get("timestamp"),
            "stackTrace": params.get("stackTrace"),
            "sessionId": session_id,
        }

    if method == "Log.entryAdded":
        entry = params.get("entry", {})
        return {
            "level": entry.get("level", "info"),
            "message": entry.get("text", ""),
            "source": entry.get("source", "other"),
            "timestamp": entry.get("timestamp"),
            "url": entry.get("url"),
            "sessionId": session_id,
        }

    if method == "Runtime.exceptionThrown":
        details = params.get("exceptionDetails", {})
        exception = details.get("exception") or {}
        return {
            "level": "error",
            "message": exception.get("description") or details.get("text", ""),
            "source": "exception",
            "timestamp": params.get("timestamp"),
            "url": details.get("url"),
            "sessionId": session_id,
        }

    return {"level": "info", "message": str(event)[:100], "source": "unknown", "sessionId": session_id}


def _format_arg(arg: dict) -> str:
    """CDP already provides description or value for most arguments."""
    if "value" in arg:
        value = arg["value"]
        return value if isinstance(value, str) else json.dumps(value)
    if "description" in arg:
        return arg["description"]
    return f"[{arg.get('type', 'unknown')}]"


class EventStore:
    """Bounded DuckDB event table.

    Listener calls arrive on the event loop while HTTP handlers may query
    from worker threads, so every statement goes through one lock.

    Args:
        max_events: Oldest rows are trimmed beyond this count.
    """

    def __init__(self, max_events: int = 5000):
        self.max_events = max_events
        self.db = duckdb.connect(":memory:")
        self.db.execute("CREATE TABLE IF NOT EXISTS events (id BIGINT, session_id VARCHAR, method VARCHAR, event JSON)")
        self._lock = threading.Lock()
        self._next_id = 1
        self._subscriptions: list = []

    @property
    def methods(self) -> list[str]:
        return CONSOLE_METHODS + NETWORK_METHODS + WEBSOCKET_METHODS

    def attach(self, router) -> None:
        """Subscribe to every buffered event method on router."""
        for method in self.methods:
            self._subscriptions.append(router.on(method, self.add))

    def detach(self, router) -> None:
        for sub in self._subscriptions:
            router.off(sub)
        self._subscriptions.clear()

    def add(self, event: dict) -> None:
        """Store one CDP event frame."""
        with self._lock:
            event_id = self._next_id
            self._next_id += 1
            self.db.execute(
                "INSERT INTO events VALUES (?, ?, ?, ?)",
                [event_id, event.get("sessionId"), event.get("method"), json.dumps(event)],
            )
            if event_id > self.max_events:
                self.db.execute("DELETE FROM events WHERE id <= ?", [event_id - self.max_events])

    def count(self, session_id: str | None = None) -> int:
        sql, params = "SELECT COUNT(*) FROM events", []
        if session_id:
            sql += " WHERE session_id = ?"
            params.append(session_id)
        with self._lock:
            return self.db.execute(sql, params).fetchone()[0]

    def clear(self, session_id: str | None = None, methods: list[str] | None = None) -> int:
        """Delete stored events. Returns the number removed."""
        conditions, params = self._filters(session_id, methods)
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        with self._lock:
            removed = self.db.execute(f"SELECT COUNT(*) FROM events{where}", params).fetchone()[0]
            self.db.execute(f"DELETE FROM events{where}", params)
        return removed

    def _filters(self, session_id: str | None, methods: list[str] | None) -> tuple[list[str], list]:
        conditions, params = [], []
        if session_id:
            conditions.append("session_id = ?")
            params.append(session_id)
        if methods:
            conditions.append(f"method IN ({', '.join('?' for _ in methods)})")
            params.extend(methods)
        return conditions, params

    def _select(
        self,
        methods: list[str],
        session_id: str | None = None,
        extra: list[str] | None = None,
        extra_params: list | None = None,
    ) -> list[dict]:
        conditions, params = self._filters(session_id, methods)
        conditions.extend(extra or [])
        params.extend(extra_params or [])
        sql = f"SELECT event FROM events WHERE {' AND '.join(conditions)} ORDER BY id"
        with self._lock:
            rows = self.db.execute(sql, params).fetchall()
        return [json.loads(row[0]) for row in rows]

    def console_messages(self, session_id: str | None = None, level: str | None = None, limit: int = 100) -> list[dict]:
        """Most recent console, log and exception messages, oldest first."""
        rows = [build_console_row(e) for e in self._select(CONSOLE_METHODS, session_id)]
        if level:
            rows = [r for r in rows if r["level"] == level]
        return rows[-limit:] if limit else rows

    def network_requests(
        self,
        session_id: str | None = None,
        url_filter: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Most recent correlated network requests, oldest first."""
        grouped: dict[str, list[dict]] = {}
        for event in self._select(NETWORK_METHODS, session_id):
            request_id = event.get("params", {}).get("requestId")
            if request_id:
                grouped.setdefault(request_id, []).append(event)

        rows = [build_network_row(rid, events) for rid, events in grouped.items()]
        if url_filter:
            rows = [r for r in rows if url_filter in r["url"]]
        return rows[-limit:] if limit else rows

    def request(self, request_id: str, session_id: str | None = None) -> dict | None:
        """Correlated row for one request, or None if not buffered."""
        events = self._select(
            NETWORK_METHODS,
            session_id,
            ["json_extract_string(event, '$.params.requestId') = ?"],
            [request_id],
        )
        return build_network_row(request_id, events) if events else None

    def websocket_connections(self, session_id: str | None = None) -> list[dict]:
        """WebSocket connections seen on the wire with frame counts."""
        connections: dict[str, dict] = {}
        for event in self._select(WEBSOCKET_METHODS, session_id):
            method = event["method"]
            params = event.get("params", {})
            conn = connections.setdefault(
                params.get("requestId", ""),
                {
                    "requestId": params.get("requestId"),
                    "url": "",
                    "status": "connecting",
                    "framesSent": 0,
                    "framesReceived": 0,
                    "sessionId": event.get("sessionId"),
                },
            )
            if method == "Network.webSocketCreated":
                conn["url"] = params.get("url", "")
            elif method == "Network.webSocketHandshakeResponseReceived":
                conn["status"] = "open"
            elif method == "Network.webSocketFrameSent":
                conn["framesSent"] += 1
            elif method == "Network.webSocketFrameReceived":
                conn["framesReceived"] += 1
            elif method == "Network.webSocketClosed":
                conn["status"] = "closed"
        return list(connections.values())

    def websocket_frames(
        self,
        session_id: str | None = None,
        request_id: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Sent and received frames, oldest first."""
        extra, extra_params = [], []
        if request_id:
            extra.append("json_extract_string(event, '$.params.requestId') = ?")
            extra_params.append(request_id)

        frames = []
        for event in self._select(
            ["Network.webSocketFrameSent", "Network.webSocketFrameReceived"], session_id, extra, extra_params
        ):
            params = event.get("params", {})
            response = params.get("response", {})
            frames.append(
                {
                    "requestId": params.get("requestId"),
                    "direction": "sent" if event["method"] == "Network.webSocketFrameSent" else "received",
                    "opcode": response.get("opcode"),
                    "payload": response.get("payloadData", ""),
                    "timestamp": params.get("timestamp"),
                }
            )
        return frames[-limit:] if limit else frames
