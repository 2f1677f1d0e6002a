"""ToolExecutor: dispatches capability calls to their handlers.

Provides a single ``execute()`` coroutine that looks up the tool by name,
validates and passes the provided arguments to its handler, and returns
a structured ``ToolResult``. Handler failures never propagate.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from cadagent.toolkit.models import ToolResult, text_block

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cadagent.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Dispatches tool calls to handlers and returns structured results.

    Usage::

        executor = ToolExecutor(registry.build_bundle().tools)
        result = await executor.execute("read_file", {"path": "main.scad"})
        if result.success:
            print(result.text)
        else:
            print(result.error)
    """

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        self._tools: dict[str, ToolDefinition] = {tool.name: tool for tool in tools}

    async def execute(self, tool_name: str, arguments: dict | None) -> ToolResult:
        """Execute a tool by name with the given arguments.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Dict of arguments matching the tool's parameter schema.

        Returns:
            ToolResult with success/failure status and output blocks/error.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"Unknown tool: {tool_name}",
            )

        arguments = dict(arguments or {})
        if tool.input_model is not None:
            try:
                arguments = tool.input_model.model_validate(arguments).model_dump()
            except ValidationError as exc:
                return ToolResult(
                    tool_name=tool_name,
                    success=False,
                    error=f"Invalid arguments: {exc}",
                )

        try:
            output = tool.handler(**arguments)
            if inspect.isawaitable(output):
                output = await output
        except Exception as exc:
            logger.debug("Tool %s failed: %s", tool_name, exc, exc_info=True)
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"{type(exc).__name__}: {exc}",
            )
        return _to_result(tool_name, output)

    def available_tools(self) -> list[str]:
        """Return the names of all available tools."""
        return list(self._tools.keys())


def _to_result(tool_name: str, output: Any) -> ToolResult:
    """Normalize a handler's return value into a ToolResult."""
    if isinstance(output, ToolResult):
        return output
    if isinstance(output, list):
        return ToolResult(tool_name=tool_name, success=True, content=tuple(output))
    if output is None:
        return ToolResult(tool_name=tool_name, success=True)
    return ToolResult(tool_name=tool_name, success=True, content=(text_block(str(output)),))
