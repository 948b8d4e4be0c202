"""MCP tool layer.

PUBLIC API:
  - ToolProvider: Base class for providers
  - ToolRegistry: Name space over all providers
  - ToolResult: Uniform call result
  - tool: Decorator declaring a tool on a provider
"""

from curupira.tools.base import (
    ExecutionContext,
    SessionArgs,
    ToolArgs,
    ToolProvider,
    ToolResult,
    normalize_payload,
    tool,
)
from curupira.tools.registry import ToolRegistry

__all__ = [
    "ExecutionContext",
    "SessionArgs",
    "ToolArgs",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "normalize_payload",
    "tool",
]
