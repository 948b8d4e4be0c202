"""Tool provider contract shared by every provider.

A provider is a class whose async methods are marked with ``@tool``. Each
call runs: validate arguments, resolve the session, execute, normalize.
Nothing raised inside a handler escapes ``ToolProvider.execute``.

PUBLIC API:
  - ToolResult: Uniform success/error result
  - ToolArgs: Base pydantic model for tool arguments
  - SessionArgs: Arguments carrying an optional sessionId
  - ExecutionContext: Per-call context handed to handlers
  - ToolProvider: Base class collecting @tool handlers
  - tool: Decorator declaring a tool
  - normalize_payload: Turn a script payload into a ToolResult
  - build_script: Invoke an in-page function source with JSON arguments
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from curupira.cdp.client import CDPClient
from curupira.errors import CDPProtocolError, CurupiraError, ScriptExecutionError

__all__ = [
    "ToolResult",
    "ToolArgs",
    "SessionArgs",
    "ExecutionContext",
    "ToolProvider",
    "ToolSpec",
    "tool",
    "normalize_payload",
    "build_script",
]

logger = logging.getLogger(__name__)

SCRIPT_ERROR = "Script reported an error"

ToolHandler = Callable[[dict | None], Awaitable["ToolResult"]]


@dataclass
class ToolResult:
    """Outcome of one tool call.

    ``success=False`` always carries a non-empty ``error``. ``data`` may be
    present on failure as diagnostic context.
    """

    success: bool
    data: Any = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, warnings: list[str] | None = None) -> "ToolResult":
        return cls(True, data=data, warnings=list(warnings or []))

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ToolResult":
        return cls(False, data=data, error=error or "Unknown error")

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = self.warnings
        return result


class ToolArgs(BaseModel):
    """Base for tool argument models. Wire names are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionArgs(ToolArgs):
    session_id: str | None = Field(default=None, description="Chrome session ID (optional)")


@dataclass
class ToolSpec:
    name: str
    description: str
    args: type[ToolArgs]
    error_prefix: str | None = None
    requires_session: bool = True


def tool(
    name: str,
    description: str,
    args: type[ToolArgs] = SessionArgs,
    error_prefix: str | None = None,
    requires_session: bool = True,
):
    """Mark a provider method as a tool.

    Args:
        name: Tool name exposed over MCP.
        description: One-line description shown to agents.
        args: Pydantic model validating the raw arguments.
        error_prefix: Prepended to protocol and unexpected errors.
        requires_session: Resolve a session before running the handler.
    """

    def decorator(fn):
        fn._tool_spec = ToolSpec(name, description, args, error_prefix, requires_session)
        return fn

    return decorator


@dataclass
class ExecutionContext:
    """Per-call context handed to tool handlers."""

    tool: str
    client: CDPClient
    session_id: str | None
    logger: logging.LoggerAdapter

    async def send(self, method: str, params: dict | None = None, timeout: float | None = None) -> dict:
        """Send a command in this call's session."""
        return await self.client.send(method, params, session_id=self.session_id, timeout=timeout)

    async def ensure_domain(self, domain: str, params: dict | None = None) -> bool:
        return await self.client.ensure_domain(domain, self.session_id, params)


def build_script(fn_source: str, *args: Any) -> str:
    """Call a JavaScript function source with JSON-encoded arguments."""
    encoded = ", ".join(json.dumps(arg) for arg in args)
    return f"({fn_source.strip()})({encoded})"


def normalize_payload(payload: Any, library: str | None = None) -> ToolResult:
    """Normalize an in-page script payload.

    - A dict with an ``error`` key fails and keeps the payload as diagnostic
      data. An empty or null error still fails, with a generic message.
    - With ``library`` set, ``available: false`` fails as "<library> not
      available in the page".
    - Anything else succeeds. A ``warnings`` list is lifted out.
    """
    if isinstance(payload, dict):
        if "error" in payload:
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            return ToolResult.fail(str(message or error or SCRIPT_ERROR), data=payload)

        if library and payload.get("available") is False:
            return ToolResult.fail(f"{library} not available in the page")

        warnings = payload.get("warnings")
        if isinstance(warnings, list) and warnings:
            data = {k: v for k, v in payload.items() if k != "warnings"}
            return ToolResult.ok(data, warnings=[str(w) for w in warnings])

    return ToolResult.ok(payload)


def _format_validation_error(tool_name: str, error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return f"Invalid arguments for {tool_name}: {'; '.join(parts)}"


class ToolProvider:
    """Base class for tool providers.

    Subclasses set ``name`` and optionally ``library`` (used for the
    availability check in run_script), then declare tools with ``@tool``.

    Args:
        client: CDP facade shared by all providers.
    """

    name = "base"
    library: str | None = None

    def __init__(self, client: CDPClient):
        self.client = client
        self.logger = logging.getLogger(f"curupira.tools.{self.name}")
        self._tools: dict[str, tuple[ToolSpec, Callable]] = {}

        for attr in dir(type(self)):
            spec = getattr(getattr(type(self), attr, None), "_tool_spec", None)
            if isinstance(spec, ToolSpec):
                self._tools[spec.name] = (spec, getattr(self, attr))

    def list_tools(self) -> list[dict]:
        """Static metadata for every tool: name, description, inputSchema."""
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "inputSchema": spec.args.model_json_schema(by_alias=True),
            }
            for spec, _ in sorted(self._tools.values(), key=lambda entry: entry[0].name)
        ]

    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    def get_handler(self, name: str) -> ToolHandler | None:
        """Async callable taking raw arguments, or None for unknown tools."""
        if name not in self._tools:
            return None

        async def handler(raw_args: dict | None = None) -> ToolResult:
            return await self.execute(name, raw_args)

        return handler

    async def execute(self, name: str, raw_args: dict | None = None) -> ToolResult:
        """Run one tool call through validate, resolve, execute, normalize."""
        spec, method = self._tools[name]

        try:
            args = spec.args.model_validate(raw_args or {})
        except ValidationError as e:
            return ToolResult.fail(_format_validation_error(name, e))

        try:
            session_id = getattr(args, "session_id", None)
            if spec.requires_session:
                session_id = self.client.resolve_session(session_id)

            ctx = ExecutionContext(
                tool=name,
                client=self.client,
                session_id=session_id,
                logger=logging.LoggerAdapter(self.logger, {"provider": self.name, "tool": name}),
            )
            result = await method(args, ctx)
        except ScriptExecutionError as e:
            return ToolResult.fail(e.message, data=e.exception_details)
        except CDPProtocolError as e:
            return ToolResult.fail(self._prefixed(spec, e))
        except CurupiraError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return ToolResult.fail(self._prefixed(spec, e))

        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok(result)

    def _prefixed(self, spec: ToolSpec, exc: Exception) -> str:
        message = str(exc) or type(exc).__name__
        return f"{spec.error_prefix}: {message}" if spec.error_prefix else message

    async def run_script(self, script: str, ctx: ExecutionContext, await_promise: bool = True) -> ToolResult:
        """Enable Runtime, evaluate script by value, normalize the payload.

        Raises:
            ScriptExecutionError: If the script threw. Mapped at the tool boundary.
        """
        await ctx.client.enable_runtime(ctx.session_id)
        value = await ctx.client.evaluate_value(script, ctx.session_id, await_promise=await_promise)
        return normalize_payload(value, self.library)
