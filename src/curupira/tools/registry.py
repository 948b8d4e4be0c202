"""Aggregates tool providers behind one name space.

PUBLIC API:
  - ToolRegistry: Register providers, list tools, dispatch calls
"""

import logging

from curupira.tools.base import ToolProvider, ToolResult

__all__ = ["ToolRegistry"]

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps tool names to the provider that owns them."""

    def __init__(self):
        self._providers: dict[str, ToolProvider] = {}
        self._owners: dict[str, ToolProvider] = {}

    def register(self, provider: ToolProvider) -> None:
        """Add a provider.

        Raises:
            ValueError: If the provider or any of its tool names is already registered.
        """
        if provider.name in self._providers:
            raise ValueError(f"Provider already registered: {provider.name}")

        names = provider.tool_names()
        clashes = [n for n in names if n in self._owners]
        if clashes:
            raise ValueError(f"Duplicate tool names from {provider.name}: {', '.join(clashes)}")

        self._providers[provider.name] = provider
        for tool_name in names:
            self._owners[tool_name] = provider
        logger.debug(f"Registered provider {provider.name} with {len(names)} tools")

    @property
    def providers(self) -> list[ToolProvider]:
        return list(self._providers.values())

    def __contains__(self, name: object) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def list_tools(self) -> list[dict]:
        tools = []
        for provider in self._providers.values():
            tools.extend(provider.list_tools())
        return tools

    def get_handler(self, name: str):
        provider = self._owners.get(name)
        return provider.get_handler(name) if provider else None

    async def call(self, name: str, arguments: dict | None = None) -> ToolResult:
        """Run a tool by name. Unknown names fail without raising."""
        handler = self.get_handler(name)
        if handler is None:
            return ToolResult.fail(f"Unknown tool: {name}")

        logger.info(f"Calling tool {name}")
        result = await handler(arguments)
        if not result.success:
            logger.info(f"Tool {name} failed: {result.error}")
        return result
