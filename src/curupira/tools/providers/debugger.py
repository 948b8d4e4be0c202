"""JavaScript debugger: breakpoints, pause/resume, stepping and frame inspection.

Pause state per session is tracked from ``Debugger.paused`` and
``Debugger.resumed`` events subscribed when the debugger is first enabled.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Literal

from pydantic import Field, model_validator

from curupira.cdp.client import CDPClient
from curupira.cdp.events import Subscription
from curupira.errors import CDPTimeoutError, InvalidStateError, ScriptExecutionError
from curupira.tools.base import ExecutionContext, SessionArgs, ToolProvider, ToolResult, tool

logger = logging.getLogger(__name__)


@dataclass
class PauseState:
    reason: str
    call_frames: list[dict]
    hit_breakpoints: list[str] = field(default_factory=list)
    paused_at: float = field(default_factory=time.time)


def _frame_summary(index: int, frame: dict) -> dict:
    location = frame.get("location", {})
    return {
        "index": index,
        "callFrameId": frame.get("callFrameId"),
        "functionName": frame.get("functionName") or "(anonymous)",
        "url": frame.get("url", ""),
        "lineNumber": location.get("lineNumber"),
        "columnNumber": location.get("columnNumber"),
        "scopes": [s.get("type") for s in frame.get("scopeChain", [])],
    }


def _remote_value(obj: dict):
    if "value" in obj:
        return obj["value"]
    if obj.get("type") == "undefined":
        return None
    return obj.get("description", f"[{obj.get('type', 'unknown')}]")


class BreakpointArgs(SessionArgs):
    url: str | None = Field(default=None, description="Script URL")
    url_regex: str | None = Field(default=None, description="Regex matching script URLs")
    line_number: int = Field(ge=0, description="Zero-based line number")
    column_number: int | None = Field(default=None, ge=0, description="Zero-based column number")
    condition: str | None = Field(default=None, description="Only pause when this expression is truthy")

    @model_validator(mode="after")
    def _needs_location(self):
        if not self.url and not self.url_regex:
            raise ValueError("url or urlRegex is required")
        return self


class RemoveBreakpointArgs(SessionArgs):
    breakpoint_id: str = Field(description="Breakpoint ID from debugger_set_breakpoint")


class PauseArgs(SessionArgs):
    wait: bool = Field(default=True, description="Wait until execution actually pauses")
    timeout: float = Field(default=5.0, gt=0, le=60, description="Seconds to wait for the pause")


class StepArgs(SessionArgs):
    action: Literal["over", "into", "out"] = Field(default="over", description="Step kind")
    timeout: float = Field(default=5.0, gt=0, le=60, description="Seconds to wait for the next pause")


class FrameArgs(SessionArgs):
    call_frame_index: int = Field(default=0, ge=0, description="Index into the call stack, 0 is the top frame")


class EvaluateOnFrameArgs(FrameArgs):
    expression: str = Field(description="Expression evaluated in the frame's scope")


class ScopeArgs(FrameArgs):
    include_global: bool = Field(default=False, description="Include the global scope")
    max_properties: int = Field(default=50, ge=1, le=500, description="Maximum variables per scope")


class DebuggerProvider(ToolProvider):
    name = "debugger"

    def __init__(self, client: CDPClient):
        super().__init__(client)
        self._paused: dict[str, PauseState] = {}
        self._subscriptions: dict[str, list[Subscription]] = {}

    def pause_state(self, session_id: str) -> PauseState | None:
        return self._paused.get(session_id)

    def _prune(self) -> None:
        """Forget pause state and subscriptions of detached sessions."""
        for session_id in set(self._subscriptions) | set(self._paused):
            if session_id not in self.client.sessions:
                self._paused.pop(session_id, None)
                for sub in self._subscriptions.pop(session_id, []):
                    self.client.off(sub)

    async def _enable(self, ctx: ExecutionContext) -> None:
        self._prune()
        session_id = ctx.session_id
        if session_id not in self._subscriptions or not all(s.active for s in self._subscriptions[session_id]):
            self._subscriptions[session_id] = [
                ctx.client.on("Debugger.paused", self._on_paused, session_id),
                ctx.client.on("Debugger.resumed", self._on_resumed, session_id),
            ]
        await ctx.ensure_domain("Debugger")

    def _on_paused(self, event: dict) -> None:
        params = event.get("params", {})
        self._paused[event.get("sessionId")] = PauseState(
            reason=params.get("reason", "other"),
            call_frames=params.get("callFrames", []),
            hit_breakpoints=params.get("hitBreakpoints", []),
        )

    def _on_resumed(self, event: dict) -> None:
        self._paused.pop(event.get("sessionId"), None)

    def _frame(self, ctx: ExecutionContext, index: int) -> dict:
        state = self._paused.get(ctx.session_id)
        if state is None:
            raise InvalidStateError("Debugger is not paused")
        if index >= len(state.call_frames):
            raise InvalidStateError(f"Call frame {index} out of range (stack depth {len(state.call_frames)})")
        return state.call_frames[index]

    def _pause_summary(self, session_id: str) -> dict:
        state = self._paused.get(session_id)
        if state is None:
            return {"paused": False}
        return {
            "paused": True,
            "reason": state.reason,
            "hitBreakpoints": state.hit_breakpoints,
            "location": _frame_summary(0, state.call_frames[0]) if state.call_frames else None,
        }

    @tool("debugger_enable", "Enable the JavaScript debugger")
    async def enable(self, args: SessionArgs, ctx: ExecutionContext):
        await self._enable(ctx)
        return {"enabled": True, **self._pause_summary(ctx.session_id)}

    @tool("debugger_set_breakpoint", "Set a breakpoint by script URL and line", args=BreakpointArgs)
    async def set_breakpoint(self, args: BreakpointArgs, ctx: ExecutionContext):
        await self._enable(ctx)
        params = args.model_dump(by_alias=True, exclude_none=True, exclude={"session_id"})
        result = await ctx.send("Debugger.setBreakpointByUrl", params)
        return {
            "breakpointId": result.get("breakpointId"),
            "locations": result.get("locations", []),
            "url": args.url or args.url_regex,
            "lineNumber": args.line_number,
        }

    @tool("debugger_remove_breakpoint", "Remove a breakpoint", args=RemoveBreakpointArgs)
    async def remove_breakpoint(self, args: RemoveBreakpointArgs, ctx: ExecutionContext):
        await ctx.send("Debugger.removeBreakpoint", {"breakpointId": args.breakpoint_id})
        return {"breakpointId": args.breakpoint_id, "removed": True}

    @tool("debugger_pause", "Pause JavaScript execution", args=PauseArgs)
    async def pause(self, args: PauseArgs, ctx: ExecutionContext):
        await self._enable(ctx)
        if ctx.session_id in self._paused:
            return self._pause_summary(ctx.session_id)

        if not args.wait:
            await ctx.send("Debugger.pause")
            return {"pauseRequested": True}

        waiter = ctx.client.expect_event("Debugger.paused", ctx.session_id)
        try:
            await ctx.send("Debugger.pause")
        except Exception:
            waiter.cancel()
            raise

        try:
            await waiter.wait(args.timeout)
        except CDPTimeoutError:
            # Idle pages only pause once some script runs
            return ToolResult.ok(
                {"pauseRequested": True, "paused": False},
                warnings=["Page is idle, pause takes effect on next script execution"],
            )
        return self._pause_summary(ctx.session_id)

    @tool("debugger_resume", "Resume JavaScript execution")
    async def resume(self, args: SessionArgs, ctx: ExecutionContext):
        if ctx.session_id not in self._paused:
            return ToolResult.fail("Debugger is not paused")
        await ctx.send("Debugger.resume")
        return {"resumed": True}

    @tool("debugger_step", "Step over, into or out of the current call", args=StepArgs)
    async def step(self, args: StepArgs, ctx: ExecutionContext):
        if ctx.session_id not in self._paused:
            return ToolResult.fail("Debugger is not paused")

        method = {"over": "Debugger.stepOver", "into": "Debugger.stepInto", "out": "Debugger.stepOut"}[args.action]
        waiter = ctx.client.expect_event("Debugger.paused", ctx.session_id)
        try:
            await ctx.send(method)
        except Exception:
            waiter.cancel()
            raise

        try:
            await waiter.wait(args.timeout)
        except CDPTimeoutError:
            return {"action": args.action, "paused": False}
        return {"action": args.action, **self._pause_summary(ctx.session_id)}

    @tool("debugger_get_call_stack", "Get the call stack of the paused session")
    async def get_call_stack(self, args: SessionArgs, ctx: ExecutionContext):
        state = self._paused.get(ctx.session_id)
        if state is None:
            return ToolResult.fail("Debugger is not paused")
        return {
            "reason": state.reason,
            "hitBreakpoints": state.hit_breakpoints,
            "callFrames": [_frame_summary(i, f) for i, f in enumerate(state.call_frames)],
        }

    @tool("debugger_evaluate_on_call_frame", "Evaluate an expression in a paused call frame", args=EvaluateOnFrameArgs)
    async def evaluate_on_call_frame(self, args: EvaluateOnFrameArgs, ctx: ExecutionContext):
        frame = self._frame(ctx, args.call_frame_index)
        result = await ctx.send(
            "Debugger.evaluateOnCallFrame",
            {"callFrameId": frame["callFrameId"], "expression": args.expression, "returnByValue": True},
        )
        if result.get("exceptionDetails"):
            raise ScriptExecutionError.from_details(result["exceptionDetails"])
        remote = result.get("result", {})
        return {"value": _remote_value(remote), "type": remote.get("type")}

    @tool("debugger_get_scope_variables", "List variables visible in a paused call frame", args=ScopeArgs)
    async def get_scope_variables(self, args: ScopeArgs, ctx: ExecutionContext):
        frame = self._frame(ctx, args.call_frame_index)
        scopes = []
        for scope in frame.get("scopeChain", []):
            if scope.get("type") == "global" and not args.include_global:
                continue
            object_id = scope.get("object", {}).get("objectId")
            if not object_id:
                continue
            result = await ctx.send("Runtime.getProperties", {"objectId": object_id, "ownProperties": True})
            properties = result.get("result", [])[: args.max_properties]
            scopes.append(
                {
                    "type": scope.get("type"),
                    "name": scope.get("name"),
                    "variables": {p["name"]: _remote_value(p.get("value", {})) for p in properties},
                }
            )
        return {"callFrameIndex": args.call_frame_index, "scopes": scopes}
