"""Generic page tools: evaluate, navigate, reload, cookies and raw commands."""

from typing import Any, Literal

from pydantic import Field

from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, tool


class EvaluateArgs(SessionArgs):
    expression: str = Field(description="JavaScript expression to evaluate")
    await_promise: bool = Field(default=True, description="Await the result if it is a promise")
    return_by_value: bool = Field(default=True, description="Return the value instead of a remote object")


class NavigateArgs(SessionArgs):
    url: str = Field(description="URL to navigate to")
    wait_until: Literal["none", "load", "domcontentloaded"] = Field(
        default="load", description="Lifecycle event to wait for"
    )
    timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for the page to load")


class ReloadArgs(SessionArgs):
    ignore_cache: bool = Field(default=False, description="Bypass the browser cache")


class CookiesArgs(SessionArgs):
    urls: list[str] | None = Field(default=None, description="Only cookies for these URLs")


class SetCookieArgs(SessionArgs):
    name: str
    value: str
    url: str | None = Field(default=None, description="URL the cookie applies to")
    domain: str | None = None
    path: str | None = None
    secure: bool | None = None
    http_only: bool | None = None
    same_site: Literal["Strict", "Lax", "None"] | None = None
    expires: float | None = Field(default=None, description="Expiry as seconds since epoch")


class SendCommandArgs(SessionArgs):
    method: str = Field(description="CDP method, e.g. 'Page.getLayoutMetrics'")
    params: dict[str, Any] = Field(default_factory=dict, description="Command parameters")
    timeout: float | None = Field(default=None, gt=0, description="Seconds to wait for the response")


_LOAD_EVENTS = {"load": "Page.loadEventFired", "domcontentloaded": "Page.domContentEventFired"}


class CDPProvider(ToolProvider):
    name = "cdp"

    @tool("cdp_evaluate", "Evaluate JavaScript in the page", args=EvaluateArgs)
    async def evaluate(self, args: EvaluateArgs, ctx: ExecutionContext):
        await ctx.client.enable_runtime(ctx.session_id)
        result = await ctx.client.evaluate(
            args.expression,
            ctx.session_id,
            await_promise=args.await_promise,
            return_by_value=args.return_by_value,
            include_command_line_api=True,
        )
        remote = result.get("result", {})
        if args.return_by_value:
            return {"value": remote.get("value"), "type": remote.get("type")}
        return remote

    @tool("cdp_navigate", "Navigate the page to a URL", args=NavigateArgs, error_prefix="Navigation failed")
    async def navigate(self, args: NavigateArgs, ctx: ExecutionContext):
        await ctx.ensure_domain("Page")

        waiter = None
        if args.wait_until != "none":
            waiter = ctx.client.expect_event(_LOAD_EVENTS[args.wait_until], ctx.session_id)

        try:
            result = await ctx.send("Page.navigate", {"url": args.url})
        except Exception:
            if waiter:
                waiter.cancel()
            raise

        if result.get("errorText"):
            if waiter:
                waiter.cancel()
            return ToolResult.fail(f"Navigation failed: {result['errorText']}", data=result)

        warnings = []
        if waiter:
            # Same-document navigations never fire a load event
            if result.get("loaderId"):
                await waiter.wait(args.timeout)
            else:
                waiter.cancel()
                warnings.append("Same-document navigation, no load event awaited")

        data = {"url": args.url, "frameId": result.get("frameId"), "loaderId": result.get("loaderId")}
        return ToolResult.ok(data, warnings)

    @tool("cdp_reload", "Reload the page", args=ReloadArgs)
    async def reload(self, args: ReloadArgs, ctx: ExecutionContext):
        await ctx.send("Page.reload", {"ignoreCache": args.ignore_cache})
        return {"reloaded": True}

    @tool("cdp_get_cookies", "Get browser cookies", args=CookiesArgs)
    async def get_cookies(self, args: CookiesArgs, ctx: ExecutionContext):
        params = {"urls": args.urls} if args.urls else None
        result = await ctx.send("Network.getCookies", params)
        return {"cookies": result.get("cookies", [])}

    @tool("cdp_set_cookie", "Set a browser cookie", args=SetCookieArgs)
    async def set_cookie(self, args: SetCookieArgs, ctx: ExecutionContext):
        if not args.url and not args.domain:
            return ToolResult.fail("Either url or domain is required to set a cookie")

        params = args.model_dump(by_alias=True, exclude_none=True, exclude={"session_id"})
        result = await ctx.send("Network.setCookie", params)
        if result.get("success") is False:
            return ToolResult.fail(f"Chrome rejected cookie {args.name}")
        return {"name": args.name, "set": True}

    @tool("cdp_send_command", "Send a raw CDP command to the session", args=SendCommandArgs)
    async def send_command(self, args: SendCommandArgs, ctx: ExecutionContext):
        if "." not in args.method:
            return ToolResult.fail(f"Invalid CDP method: {args.method}")
        return await ctx.send(args.method, args.params or None, timeout=args.timeout)
