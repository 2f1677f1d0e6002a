"""Toolkit data models for agent capabilities.

Frozen dataclasses for tool definitions and execution results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel


@dataclass(frozen=True)
class ToolDefinition:
    """A single capability the agent may invoke.

    Attributes:
        name: Tool name (e.g. "compile_openscad", "write_file").
        description: Human-readable description of when/why to use this tool.
        parameters: JSON Schema dict describing tool parameters.
        handler: Callable (sync or async) that executes the tool.
        input_model: Optional pydantic model used to validate arguments
            before the handler runs.
    """

    name: str
    description: str
    parameters: dict
    handler: Callable[..., object]
    input_model: type[BaseModel] | None = None

    @classmethod
    def from_model(
        cls,
        name: str,
        description: str,
        input_model: type[BaseModel],
        handler: Callable[..., object],
    ) -> ToolDefinition:
        """Build a definition whose schema is derived from a pydantic model."""
        schema = input_model.model_json_schema()
        schema.pop("title", None)
        return cls(
            name=name,
            description=description,
            parameters=schema,
            handler=handler,
            input_model=input_model,
        )

    def to_anthropic(self) -> dict:
        """Convert to Anthropic tool-use format.

        Returns:
            Dict with "name", "description", and "input_schema".
        """
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


def text_block(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


def image_block(data: str, mime_type: str = "image/png") -> dict[str, str]:
    return {"type": "image", "data": data, "mimeType": mime_type}


@dataclass(frozen=True)
class ToolResult:
    """Structured result from executing a tool.

    Attributes:
        tool_name: Name of the tool that was executed.
        success: Whether execution succeeded.
        content: Output blocks (``text`` and ``image`` shapes).
        error: Error message on failure.
    """

    tool_name: str
    success: bool
    content: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    error: str = ""

    @property
    def text(self) -> str:
        """Newline-joined text blocks, or the error message on failure."""
        if not self.success:
            return self.error
        return "\n".join(
            block.get("text", "") for block in self.content if block.get("type") == "text"
        )

    def blocks(self) -> list[dict[str, Any]]:
        """Content blocks to report back to the agent; errors become one text block."""
        if not self.success:
            return [text_block(f"Error: {self.error}")]
        return list(self.content)
