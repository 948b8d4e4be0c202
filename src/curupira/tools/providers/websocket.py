"""WebSocket traffic inspection and GraphQL subscription tracking.

Frames come from the event store, which records ``Network.webSocket*``
events once the Network domain is enabled. Sending needs a live socket
object in the page, so ``websocket_track`` also installs a constructor
hook that keeps every socket the page opens.
"""

import json
from typing import Any, Literal

from pydantic import Field

from curupira.cdp.client import CDPClient
from curupira.cdp.store import EventStore
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, build_script, tool

TRACK_SOCKETS = """() => {
  if (window.__curupiraSockets) return { installed: false, tracked: window.__curupiraSockets.length };
  const sockets = [];
  const Native = window.WebSocket;
  function Tracked(url, protocols) {
    const ws = protocols === undefined ? new Native(url) : new Native(url, protocols);
    sockets.push(ws);
    return ws;
  }
  Tracked.prototype = Native.prototype;
  for (const key of ['CONNECTING', 'OPEN', 'CLOSING', 'CLOSED']) Tracked[key] = Native[key];
  window.WebSocket = Tracked;
  window.__curupiraSockets = sockets;
  return { installed: true, tracked: 0 };
}"""

SEND_MESSAGE = """(urlPattern, message, messageType) => {
  const candidates = (window.__curupiraSockets || []).slice();
  for (const name of ['ws', 'websocket', 'socket', 'connection', 'apolloWS', 'subscriptionClient', 'graphqlWS']) {
    if (window[name] instanceof WebSocket && !candidates.includes(window[name])) candidates.push(window[name]);
  }
  const matches = (ws) => !urlPattern || ws.url.includes(urlPattern);
  const target = candidates.find(ws => ws.readyState === WebSocket.OPEN && matches(ws));
  if (!target) {
    return { error: urlPattern ? 'No open WebSocket connection found for URL: ' + urlPattern
                               : 'No open WebSocket connections found' };
  }
  let payload;
  if (messageType === 'binary') {
    payload = new TextEncoder().encode(typeof message === 'string' ? message : JSON.stringify(message));
  } else if (messageType === 'json' || typeof message !== 'string') {
    payload = JSON.stringify(message);
  } else {
    payload = message;
  }
  target.send(payload);
  return {
    sent: true,
    url: target.url,
    protocol: target.protocol,
    messageType,
    size: typeof payload === 'string' ? payload.length : payload.byteLength,
  };
}"""

SUBSCRIBE_TYPES = {"subscribe", "start"}
DATA_TYPES = {"next", "data"}
COMPLETE_TYPES = {"complete", "stop"}


class FramesArgs(SessionArgs):
    request_id: str | None = Field(default=None, description="Only frames of this connection")
    limit: int = Field(default=100, ge=1, le=1000, description="Maximum frames returned")


class SendMessageArgs(SessionArgs):
    message: Any = Field(description="Message to send")
    url: str | None = Field(default=None, description="Substring of the target socket URL")
    message_type: Literal["text", "json", "binary"] = Field(default="text", description="Encoding of the message")


def _parse_frame(payload: str) -> dict | None:
    try:
        message = json.loads(payload)
    except (TypeError, ValueError):
        return None
    return message if isinstance(message, dict) else None


def collect_subscriptions(frames: list[dict]) -> list[dict]:
    """Follow graphql-ws and subscriptions-transport-ws operations across frames.

    Both protocols key operations by ``id``: ``subscribe``/``start`` opens
    one, ``next``/``data`` delivers results, ``complete``/``stop`` ends it.
    """
    operations: dict[tuple[str, str], dict] = {}
    for frame in frames:
        message = _parse_frame(frame.get("payload", ""))
        if not message or "id" not in message:
            continue

        key = (frame.get("requestId") or "", str(message["id"]))
        kind = message.get("type")

        if kind in SUBSCRIBE_TYPES:
            payload = message.get("payload") or {}
            operations[key] = {
                "id": str(message["id"]),
                "requestId": frame.get("requestId"),
                "operationName": payload.get("operationName"),
                "query": payload.get("query"),
                "variables": payload.get("variables"),
                "status": "active",
                "messagesReceived": 0,
                "startedAt": frame.get("timestamp"),
            }
        elif key in operations and kind in DATA_TYPES:
            operations[key]["messagesReceived"] += 1
            operations[key]["lastData"] = message.get("payload")
        elif key in operations and kind in COMPLETE_TYPES:
            operations[key]["status"] = "completed"
        elif key in operations and kind == "error":
            operations[key]["status"] = "error"
            operations[key]["errors"] = message.get("payload")

    return list(operations.values())


class WebSocketProvider(ToolProvider):
    name = "websocket"

    def __init__(self, client: CDPClient, store: EventStore):
        super().__init__(client)
        self.store = store
        self._hooks: dict[str, str] = {}

    @tool("websocket_track", "Start recording WebSocket traffic and track sockets opened by the page")
    async def track(self, args: SessionArgs, ctx: ExecutionContext):
        await ctx.ensure_domain("Network")
        await ctx.ensure_domain("Page")
        source = build_script(TRACK_SOCKETS)
        for session_id in [s for s in self._hooks if s not in ctx.client.sessions]:
            del self._hooks[session_id]
        if ctx.session_id not in self._hooks:
            added = await ctx.send("Page.addScriptToEvaluateOnNewDocument", {"source": source})
            self._hooks[ctx.session_id] = added.get("identifier", "")
        result = await self.run_script(source, ctx)
        if result.success:
            result.data = {**result.data, "recording": True}
        return result

    @tool("websocket_list_connections", "List WebSocket connections seen by the browser")
    async def list_connections(self, args: SessionArgs, ctx: ExecutionContext):
        connections = self.store.websocket_connections(ctx.session_id)
        return {"connections": connections, "count": len(connections)}

    @tool("websocket_get_frames", "Get recorded WebSocket frames", args=FramesArgs)
    async def get_frames(self, args: FramesArgs, ctx: ExecutionContext):
        frames = self.store.websocket_frames(ctx.session_id, args.request_id, args.limit)
        return {"frames": frames, "count": len(frames)}

    @tool(
        "websocket_send_message",
        "Send a message over an open WebSocket in the page",
        args=SendMessageArgs,
        error_prefix="Failed to send WebSocket message",
    )
    async def send_message(self, args: SendMessageArgs, ctx: ExecutionContext):
        script = build_script(SEND_MESSAGE, args.url, args.message, args.message_type)
        return await self.run_script(script, ctx)

    @tool("graphql_subscriptions", "List GraphQL subscriptions observed on WebSocket frames", args=FramesArgs)
    async def graphql_subscriptions(self, args: FramesArgs, ctx: ExecutionContext):
        frames = self.store.websocket_frames(ctx.session_id, args.request_id, limit=0)
        subscriptions = collect_subscriptions(frames)[-args.limit :]
        return {
            "subscriptions": subscriptions,
            "active": sum(1 for s in subscriptions if s["status"] == "active"),
        }
