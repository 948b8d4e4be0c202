"""Request interception, throttling and buffered request history.

Mocks, blocks and header rewrites are rules owned by an InterceptionManager.
Each session with at least one rule has exactly one ``Fetch.requestPaused``
subscription; removing the last rule unsubscribes and disables Fetch.
"""

import base64
import fnmatch
import itertools
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field

from curupira.cdp.client import CDPClient
from curupira.cdp.events import Subscription
from curupira.cdp.store import EventStore
from curupira.errors import NoActiveSessionError
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, build_script, tool

logger = logging.getLogger(__name__)

# download/upload in bytes per second, latency in ms
MB = 1024 * 1024

THROTTLE_PRESETS: dict[str, dict[str, Any]] = {
    "offline": {"offline": True, "downloadThroughput": 0, "uploadThroughput": 0, "latency": 0},
    "slow-3g": {"offline": False, "downloadThroughput": 50 * 1024, "uploadThroughput": 50 * 1024, "latency": 2000},
    "fast-3g": {"offline": False, "downloadThroughput": 180 * 1024, "uploadThroughput": 84 * 1024, "latency": 562},
    "4g": {"offline": False, "downloadThroughput": 4 * MB, "uploadThroughput": 3 * MB, "latency": 150},
    "wifi": {"offline": False, "downloadThroughput": 30 * MB, "uploadThroughput": 15 * MB, "latency": 40},
    "online": {"offline": False, "downloadThroughput": -1, "uploadThroughput": -1, "latency": 0},
}

REPLAY = """async (url, method, headers, body) => {
  const started = performance.now();
  try {
    const init = { method, headers, body: body === null ? undefined : body, credentials: 'include' };
    const response = await fetch(url, init);
    const text = await response.text();
    return {
      status: response.status,
      statusText: response.statusText,
      headers: Object.fromEntries(response.headers.entries()),
      body: text.length > 10000 ? text.slice(0, 10000) : text,
      truncated: text.length > 10000,
      duration: Math.round(performance.now() - started)
    };
  } catch (e) {
    return { error: 'Replay failed: ' + e.message };
  }
}"""


@dataclass
class InterceptionRule:
    """One interception rule bound to a session.

    Attributes:
        kind: "mock", "block" or "headers".
        url_pattern: CDP wildcard pattern ('*' any run, '?' one character).
        stage: "Request" or "Response" interception stage.
    """

    id: str
    session_id: str
    kind: Literal["mock", "block", "headers"]
    url_pattern: str
    stage: Literal["Request", "Response"] = "Request"
    method: str | None = None
    status: int = 200
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    hits: int = 0
    created_at: float = field(default_factory=time.time)

    def matches(self, url: str, method: str, stage: str) -> bool:
        if stage != self.stage:
            return False
        if self.method and self.method.upper() != method.upper():
            return False
        return fnmatch.fnmatchcase(url, self.url_pattern)

    def to_dict(self) -> dict:
        data = {
            "interceptionId": self.id,
            "sessionId": self.session_id,
            "kind": self.kind,
            "urlPattern": self.url_pattern,
            "stage": self.stage,
            "method": self.method,
            "hits": self.hits,
            "createdAt": self.created_at,
        }
        if self.kind == "mock":
            data["status"] = self.status
        if self.kind == "headers":
            data["headers"] = self.headers
        return data


def _header_list(headers: dict[str, str]) -> list[dict[str, str]]:
    return [{"name": k, "value": str(v)} for k, v in headers.items()]


def _merge_headers(original: Any, overrides: dict[str, str]) -> list[dict[str, str]]:
    """Merge overrides into CDP headers (dict or name/value list). Empty value removes."""
    if isinstance(original, dict):
        merged = {k: str(v) for k, v in original.items()}
    else:
        merged = {h["name"]: h["value"] for h in original or []}

    lowered = {k.lower(): k for k in merged}
    for name, value in overrides.items():
        existing = lowered.get(name.lower())
        if existing:
            del merged[existing]
        if value != "":
            merged[name] = value
    return _header_list(merged)


class InterceptionManager:
    """Owns interception rules and their Fetch subscriptions.

    Args:
        client: CDP facade used to enable Fetch and answer paused requests.
    """

    def __init__(self, client: CDPClient):
        self.client = client
        self._rules: dict[str, InterceptionRule] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> str:
        return f"int-{next(self._ids)}"

    def rules(self, session_id: str | None = None) -> list[InterceptionRule]:
        self._prune()
        return [r for r in self._rules.values() if session_id is None or r.session_id == session_id]

    def get(self, rule_id: str) -> InterceptionRule | None:
        return self._rules.get(rule_id)

    def is_intercepting(self, session_id: str) -> bool:
        return session_id in self._subscriptions

    async def add(self, rule: InterceptionRule) -> InterceptionRule:
        """Register rule and (re)configure Fetch for its session.

        Raises:
            NoActiveSessionError: If the session is not attached.
        """
        if rule.session_id not in self.client.sessions:
            raise NoActiveSessionError(f"Session not attached: {rule.session_id}")
        self._prune()
        self._rules[rule.id] = rule
        try:
            await self._sync(rule.session_id)
        except Exception:
            self._rules.pop(rule.id, None)
            if not any(r.session_id == rule.session_id for r in self._rules.values()):
                sub = self._subscriptions.pop(rule.session_id, None)
                if sub:
                    self.client.off(sub)
            raise
        logger.info(f"Interception {rule.id} ({rule.kind} {rule.url_pattern}) active on {rule.session_id}")
        return rule

    async def remove(self, rule_id: str) -> InterceptionRule | None:
        rule = self._rules.pop(rule_id, None)
        if rule:
            await self._sync(rule.session_id)
            logger.info(f"Interception {rule_id} removed")
        return rule

    async def remove_all(self, session_id: str) -> list[InterceptionRule]:
        removed = [self._rules.pop(r.id) for r in self.rules(session_id)]
        await self._sync(session_id)
        return removed

    def _prune(self) -> None:
        """Forget rules whose session has gone away."""
        for session_id in {r.session_id for r in self._rules.values()}:
            if session_id not in self.client.sessions:
                for rule in [r for r in self._rules.values() if r.session_id == session_id]:
                    del self._rules[rule.id]
                sub = self._subscriptions.pop(session_id, None)
                if sub:
                    self.client.off(sub)

    async def _sync(self, session_id: str) -> None:
        rules = [r for r in self._rules.values() if r.session_id == session_id]

        if not rules:
            sub = self._subscriptions.pop(session_id, None)
            if sub:
                self.client.off(sub)
                try:
                    await self.client.send("Fetch.disable", session_id=session_id)
                except Exception as e:
                    logger.warning(f"Failed to disable Fetch for {session_id}: {e}")
            return

        patterns = []
        for rule in rules:
            pattern = {"urlPattern": rule.url_pattern, "requestStage": rule.stage}
            if pattern not in patterns:
                patterns.append(pattern)

        if session_id not in self._subscriptions:
            self._subscriptions[session_id] = self.client.on("Fetch.requestPaused", self._on_paused, session_id)
        await self.client.send("Fetch.enable", {"patterns": patterns}, session_id=session_id)

    async def _on_paused(self, event: dict) -> None:
        params = event.get("params", {})
        session_id = event.get("sessionId")
        request_id = params.get("requestId")
        request = params.get("request", {})
        url = request.get("url", "")
        stage = "Response" if "responseStatusCode" in params or "responseErrorReason" in params else "Request"

        rule = next(
            (
                r
                for r in self._rules.values()
                if r.session_id == session_id and r.matches(url, request.get("method", "GET"), stage)
            ),
            None,
        )

        try:
            if rule is None:
                await self.client.send("Fetch.continueRequest", {"requestId": request_id}, session_id=session_id)
                return

            rule.hits += 1
            if rule.kind == "mock":
                await self.client.send(
                    "Fetch.fulfillRequest",
                    {
                        "requestId": request_id,
                        "responseCode": rule.status,
                        "responseHeaders": _header_list(rule.headers),
                        "body": base64.b64encode(rule.body.encode()).decode(),
                    },
                    session_id=session_id,
                )
            elif rule.kind == "block":
                await self.client.send(
                    "Fetch.failRequest",
                    {"requestId": request_id, "errorReason": "BlockedByClient"},
                    session_id=session_id,
                )
            elif stage == "Request":
                await self.client.send(
                    "Fetch.continueRequest",
                    {"requestId": request_id, "headers": _merge_headers(request.get("headers"), rule.headers)},
                    session_id=session_id,
                )
            else:
                await self.client.send(
                    "Fetch.continueResponse",
                    {
                        "requestId": request_id,
                        "responseCode": params.get("responseStatusCode", 200),
                        "responseHeaders": _merge_headers(params.get("responseHeaders"), rule.headers),
                    },
                    session_id=session_id,
                )
        except Exception as e:
            # Request may have been cancelled by the page meanwhile
            logger.warning(f"Failed to handle paused request {request_id} ({url}): {e}")


class MockArgs(SessionArgs):
    url_pattern: str = Field(description="URL wildcard pattern, e.g. '*/api/users*'")
    method: str | None = Field(default=None, description="Only this HTTP method")
    status: int = Field(default=200, ge=100, le=599, description="Response status code")
    body: Any = Field(default="", description="Response body. Non-string values are JSON-encoded")
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers")


class BlockArgs(SessionArgs):
    url_patterns: list[str] = Field(min_length=1, description="URL wildcard patterns to block")


class HeadersArgs(SessionArgs):
    url_pattern: str = Field(default="*", description="URL wildcard pattern")
    request_headers: dict[str, str] = Field(
        default_factory=dict, description="Request headers to set. Empty value removes"
    )
    response_headers: dict[str, str] = Field(
        default_factory=dict, description="Response headers to set. Empty value removes"
    )


class StopArgs(SessionArgs):
    interception_id: str | None = Field(default=None, description="Rule to stop. All rules of the session when omitted")


class ThrottleArgs(SessionArgs):
    preset: Literal["offline", "slow-3g", "fast-3g", "4g", "wifi", "online"] | None = Field(
        default=None, description="Named network profile"
    )
    download_throughput: float | None = Field(default=None, description="Bytes per second, -1 disables")
    upload_throughput: float | None = Field(default=None, description="Bytes per second, -1 disables")
    latency: float | None = Field(default=None, ge=0, description="Added latency in ms")
    offline: bool | None = None


class ClearCacheArgs(SessionArgs):
    include_cookies: bool = Field(default=False, description="Also clear browser cookies")


class RequestsArgs(SessionArgs):
    url_filter: str | None = Field(default=None, description="Only requests whose URL contains this text")
    limit: int = Field(default=50, ge=1, le=1000, description="Maximum requests, most recent last")


class ReplayArgs(SessionArgs):
    request_id: str = Field(description="Request ID from network_get_requests")
    headers: dict[str, str] = Field(default_factory=dict, description="Header overrides")
    body: str | None = Field(default=None, description="Body override")


class NetworkProvider(ToolProvider):
    name = "network"

    def __init__(self, client: CDPClient, store: EventStore, interceptions: InterceptionManager | None = None):
        super().__init__(client)
        self.store = store
        self.interceptions = interceptions or InterceptionManager(client)

    @tool("network_mock_request", "Serve a canned response for matching requests", args=MockArgs)
    async def mock_request(self, args: MockArgs, ctx: ExecutionContext):
        body = args.body if isinstance(args.body, str) else json.dumps(args.body)
        headers = dict(args.headers)
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"

        rule = InterceptionRule(
            id=self.interceptions.next_id(),
            session_id=ctx.session_id,
            kind="mock",
            url_pattern=args.url_pattern,
            method=args.method,
            status=args.status,
            body=body,
            headers=headers,
        )
        await self.interceptions.add(rule)
        return rule.to_dict()

    @tool("network_block_urls", "Fail requests matching URL patterns", args=BlockArgs)
    async def block_urls(self, args: BlockArgs, ctx: ExecutionContext):
        rules = []
        for pattern in args.url_patterns:
            rule = InterceptionRule(
                id=self.interceptions.next_id(), session_id=ctx.session_id, kind="block", url_pattern=pattern
            )
            rules.append(await self.interceptions.add(rule))
        return {"interceptions": [r.to_dict() for r in rules]}

    @tool("network_modify_headers", "Rewrite request or response headers", args=HeadersArgs)
    async def modify_headers(self, args: HeadersArgs, ctx: ExecutionContext):
        if not args.request_headers and not args.response_headers:
            return ToolResult.fail("Provide requestHeaders or responseHeaders")

        rules = []
        for stage, headers in (("Request", args.request_headers), ("Response", args.response_headers)):
            if headers:
                rule = InterceptionRule(
                    id=self.interceptions.next_id(),
                    session_id=ctx.session_id,
                    kind="headers",
                    url_pattern=args.url_pattern,
                    stage=stage,
                    headers=headers,
                )
                rules.append(await self.interceptions.add(rule))
        return {"interceptions": [r.to_dict() for r in rules]}

    @tool("network_list_interceptions", "List active interception rules")
    async def list_interceptions(self, args: SessionArgs, ctx: ExecutionContext):
        return {"interceptions": [r.to_dict() for r in self.interceptions.rules(ctx.session_id)]}

    @tool("network_stop_interception", "Stop one interception rule or all rules of a session", args=StopArgs)
    async def stop_interception(self, args: StopArgs, ctx: ExecutionContext):
        if args.interception_id:
            rule = self.interceptions.get(args.interception_id)
            if rule is None:
                return ToolResult.fail(f"Interception not found: {args.interception_id}")
            await self.interceptions.remove(rule.id)
            removed = [rule]
        else:
            removed = await self.interceptions.remove_all(ctx.session_id)
        return {"stopped": [r.id for r in removed], "remaining": len(self.interceptions.rules(ctx.session_id))}

    @tool("network_throttle", "Emulate network conditions", args=ThrottleArgs)
    async def throttle(self, args: ThrottleArgs, ctx: ExecutionContext):
        conditions = dict(THROTTLE_PRESETS[args.preset or "online"])
        overrides = {
            "downloadThroughput": args.download_throughput,
            "uploadThroughput": args.upload_throughput,
            "latency": args.latency,
            "offline": args.offline,
        }
        conditions.update({k: v for k, v in overrides.items() if v is not None})

        await ctx.ensure_domain("Network")
        await ctx.send("Network.emulateNetworkConditions", conditions)
        return {"preset": args.preset, "conditions": conditions}

    @tool("network_clear_cache", "Clear the browser cache", args=ClearCacheArgs)
    async def clear_cache(self, args: ClearCacheArgs, ctx: ExecutionContext):
        await ctx.send("Network.clearBrowserCache")
        if args.include_cookies:
            await ctx.send("Network.clearBrowserCookies")
        return {"cacheCleared": True, "cookiesCleared": args.include_cookies}

    @tool("network_get_requests", "Get buffered network requests", args=RequestsArgs)
    async def get_requests(self, args: RequestsArgs, ctx: ExecutionContext):
        await ctx.ensure_domain("Network")
        requests = self.store.network_requests(ctx.session_id, url_filter=args.url_filter, limit=args.limit)
        return {"requests": requests, "count": len(requests)}

    @tool(
        "network_replay_request",
        "Replay a buffered request from the page",
        args=ReplayArgs,
        error_prefix="Replay failed",
    )
    async def replay_request(self, args: ReplayArgs, ctx: ExecutionContext):
        row = self.store.request(args.request_id, ctx.session_id)
        if row is None or not row["url"]:
            return ToolResult.fail(f"Request not found: {args.request_id}")

        headers = {**row.get("requestHeaders", {}), **args.headers}
        body = args.body if args.body is not None else row.get("postData")
        script = build_script(REPLAY, row["url"], row["method"] or "GET", headers, body)
        return await self.run_script(script, ctx)
