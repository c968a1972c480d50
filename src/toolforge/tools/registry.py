"""Tool registry: the surface the agent loop consumes.

Provides registration, lookup, listing, and execution of tools that
implement the :class:`Tool` protocol, plus construction straight from
stored tool definitions.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from toolforge.tools.base import ToolResult, ToolSpec
from toolforge.tools.builder import build_tools

if TYPE_CHECKING:
    from toolforge.config.schema import ToolforgeConfig
    from toolforge.sandbox.executor import SandboxExecutor
    from toolforge.tools.base import Tool, ToolCall, ToolDefinition


class ToolRegistry:
    """Registry for managing available tools.

    Supports registration, lookup by name, listing definitions
    (for passing to provider APIs), and executing tool calls.
    """

    def __init__(self, *, max_result_chars: int = 10_000) -> None:
        self._tools: dict[str, Tool] = {}
        self._max_result_chars = max_result_chars

    @classmethod
    def from_definitions(
        cls,
        definitions: Iterable[ToolDefinition],
        *,
        executor: SandboxExecutor | None = None,
        config: ToolforgeConfig | None = None,
    ) -> ToolRegistry:
        """Build every definition and register the resulting tools."""
        max_chars = config.tools.max_result_chars if config else 10_000
        registry = cls(max_result_chars=max_chars)
        for tool in build_tools(definitions, executor=executor, config=config):
            registry.register(tool)
        return registry

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            KeyError: If the tool is not found.
        """
        if name not in self._tools:
            msg = f"Tool not found: {name}"
            raise KeyError(msg)
        return self._tools[name]

    def list_definitions(self) -> list[ToolSpec]:
        """Return advertised specs for all registered tools.

        Suitable for passing to provider APIs as available tools.
        """
        return [
            ToolSpec(
                name=t.name,
                description=t.description,
                parameters_schema=t.parameters_schema,
            )
            for t in self._tools.values()
        ]

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call and return the result.

        If the tool is not found or execution fails, returns a
        :class:`ToolResult` with ``is_error=True`` whose content is a
        readable description of the failure.
        """
        try:
            tool = self.get(tool_call.name)
        except KeyError:
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Tool not found: {tool_call.name}",
                is_error=True,
            )
        try:
            result = await tool.call(tool_call.arguments)
        except Exception as exc:
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Tool execution error: {exc}",
                is_error=True,
            )

        if result.ok:
            value = result.value
            content = value if isinstance(value, str) else json.dumps(value)
        else:
            content = result.describe(f"Tool '{tool.name}'")
        return ToolResult(
            tool_call_id=tool_call.id,
            content=self._truncate(content),
            is_error=not result.ok,
        )

    def _truncate(self, text: str) -> str:
        """Truncate output to max_result_chars characters."""
        if len(text) <= self._max_result_chars:
            return text
        half = self._max_result_chars // 2
        return (
            text[:half]
            + f"\n\n... [truncated {len(text) - self._max_result_chars} chars] ...\n\n"
            + text[-half:]
        )

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())
