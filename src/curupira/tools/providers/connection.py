"""Browser discovery, connection and target attachment."""

from pydantic import Field

from curupira.cdp.browser import BrowserConnection
from curupira.tools.base import ExecutionContext, ToolArgs, ToolProvider, ToolResult, tool


class EndpointArgs(ToolArgs):
    host: str | None = Field(default=None, description="Chrome debug host. Configured host when omitted")
    port: int | None = Field(
        default=None, ge=1, le=65535, description="Chrome debug port. Configured port when omitted"
    )


class TargetArgs(ToolArgs):
    target_id: str = Field(description="Target ID from chrome_list_targets")


class NewSessionArgs(ToolArgs):
    url: str = Field(default="about:blank", description="URL to open in the new tab")


class DisconnectArgs(ToolArgs):
    session_id: str | None = Field(
        default=None, description="Detach only this session. Closes the browser connection when omitted"
    )


class ConnectionProvider(ToolProvider):
    """Connection tools run without a resolved session."""

    name = "chrome"

    def __init__(self, browser: BrowserConnection):
        super().__init__(browser.client)
        self.browser = browser

    @tool(
        "chrome_discover",
        "Check that a Chrome debug endpoint is reachable",
        args=EndpointArgs,
        requires_session=False,
    )
    async def discover(self, args: EndpointArgs, ctx: ExecutionContext):
        info = await self.browser.discover(args.host, args.port)
        return {
            "browser": info.get("Browser"),
            "protocolVersion": info.get("Protocol-Version"),
            "userAgent": info.get("User-Agent"),
            "webSocketDebuggerUrl": info.get("webSocketDebuggerUrl"),
        }

    @tool("chrome_connect", "Connect to Chrome and attach to the first page", args=EndpointArgs, requires_session=False)
    async def connect(self, args: EndpointArgs, ctx: ExecutionContext):
        if self.browser.is_connected:
            return ToolResult.ok(self.browser.status(), warnings=[f"Already connected to {self.browser.endpoint}"])
        return await self.browser.connect(args.host, args.port)

    @tool("chrome_status", "Show connection state and attached sessions", args=ToolArgs, requires_session=False)
    async def status(self, args: ToolArgs, ctx: ExecutionContext):
        return self.browser.status()

    @tool(
        "chrome_disconnect",
        "Detach a session or close the browser connection",
        args=DisconnectArgs,
        requires_session=False,
    )
    async def disconnect(self, args: DisconnectArgs, ctx: ExecutionContext):
        if args.session_id:
            if not await self.browser.detach(args.session_id):
                return ToolResult.fail(f"Session not found: {args.session_id}")
            return {"detached": args.session_id}

        if not self.browser.is_connected:
            return ToolResult.fail("Not connected to browser")
        await self.browser.disconnect()
        return {"disconnected": True}

    @tool("chrome_list_targets", "List browser targets (tabs, workers)", args=EndpointArgs, requires_session=False)
    async def list_targets(self, args: EndpointArgs, ctx: ExecutionContext):
        targets = await self.browser.list_targets(args.host, args.port)
        attached = {s.target_id: s.session_id for s in self.browser.sessions.list_sessions()}
        return {
            "targets": [
                {
                    "targetId": t.get("targetId"),
                    "type": t.get("type"),
                    "title": t.get("title", ""),
                    "url": t.get("url", ""),
                    "sessionId": attached.get(t.get("targetId")),
                }
                for t in targets
            ]
        }

    @tool("chrome_attach_target", "Attach a debugging session to a target", args=TargetArgs, requires_session=False)
    async def attach_target(self, args: TargetArgs, ctx: ExecutionContext):
        session = await self.browser.attach(args.target_id)
        return session.to_dict()

    @tool("chrome_new_session", "Open a new tab and attach to it", args=NewSessionArgs, requires_session=False)
    async def new_session(self, args: NewSessionArgs, ctx: ExecutionContext):
        session = await self.browser.create_session(args.url)
        return session.to_dict()
