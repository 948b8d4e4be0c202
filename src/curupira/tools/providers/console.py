"""Buffered console messages and console-context evaluation."""

from typing import Literal

from pydantic import Field

from curupira.cdp.client import CDPClient
from curupira.cdp.store import CONSOLE_METHODS, EventStore
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, tool


class MessagesArgs(SessionArgs):
    level: Literal["log", "debug", "info", "warning", "error", "verbose"] | None = Field(
        default=None, description="Only messages of this level"
    )
    limit: int = Field(default=100, ge=1, le=1000, description="Maximum messages, most recent last")


class ExecuteArgs(SessionArgs):
    expression: str = Field(description="JavaScript to run with console helpers ($, $$, $0) available")


class ConsoleProvider(ToolProvider):
    name = "console"

    def __init__(self, client: CDPClient, store: EventStore):
        super().__init__(client)
        self.store = store

    @tool("console_get_messages", "Get buffered console messages", args=MessagesArgs)
    async def get_messages(self, args: MessagesArgs, ctx: ExecutionContext):
        await ctx.client.enable_runtime(ctx.session_id)
        await ctx.ensure_domain("Log")
        messages = self.store.console_messages(ctx.session_id, level=args.level, limit=args.limit)
        return {"messages": messages, "count": len(messages)}

    @tool("console_clear", "Clear buffered console messages and the page console")
    async def clear(self, args: SessionArgs, ctx: ExecutionContext):
        removed = self.store.clear(ctx.session_id, CONSOLE_METHODS)
        await ctx.send("Runtime.discardConsoleEntries")
        return {"cleared": removed}

    @tool(
        "console_execute",
        "Execute JavaScript in the console context",
        args=ExecuteArgs,
        error_prefix="Console execution failed",
    )
    async def execute_expression(self, args: ExecuteArgs, ctx: ExecutionContext):
        await ctx.client.enable_runtime(ctx.session_id)
        result = await ctx.client.evaluate(args.expression, ctx.session_id, include_command_line_api=True)
        remote = result.get("result", {})
        return {"value": remote.get("value", remote.get("description")), "type": remote.get("type")}
