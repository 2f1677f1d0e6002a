"""Conversation data model.

Frozen dataclasses for messages, image attachments, and the normalized
tool-call / tool-result events produced by the stream translator.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal


@dataclass(frozen=True)
class ImageAttachment:
    """An image the user attached to a message.

    Attributes:
        id: Client-assigned attachment id.
        data: Raw base64 payload (no ``data:`` prefix).
        media_type: MIME type, e.g. ``"image/png"``.
    """

    id: str
    data: str
    media_type: str = "image/png"

    def to_block(self) -> dict[str, str]:
        """Convert to a tool-output image block."""
        return {"type": "image", "data": self.data, "mimeType": self.media_type}


@dataclass(frozen=True)
class ToolCallEvent:
    """A tool invocation announced by the agent runtime.

    Identity is ``id``: the same call seen through two wire shapes
    is one logical call.
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_block(cls, block: dict[str, Any]) -> ToolCallEvent:
        """Parse from a ``tool_use`` content block."""
        return cls(
            id=block["id"],
            name=block["name"],
            input=block.get("input") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResultEvent:
    """The normalized outcome of one tool call."""

    tool_use_id: str
    content: str
    is_error: bool = False
    image_data: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
            "is_error": self.is_error,
        }
        if self.image_data is not None:
            data["imageData"] = self.image_data
        return data


@dataclass(frozen=True)
class ToolExecution:
    """A tool call paired with its result (once one arrives)."""

    call: ToolCallEvent
    result: ToolResultEvent | None = None

    def with_result(self, result: ToolResultEvent) -> ToolExecution:
        return replace(self, result=result)


@dataclass(frozen=True)
class Message:
    """A single conversation message.

    Immutable once appended to a conversation history.
    """

    role: Literal["user", "assistant"]
    content: str
    images: tuple[ImageAttachment, ...] = ()
    tool_calls: tuple[ToolCallEvent, ...] = ()
    tool_results: tuple[ToolResultEvent, ...] = ()

    @classmethod
    def user(cls, content: str, images: tuple[ImageAttachment, ...] | list[ImageAttachment] = ()) -> Message:
        return cls(role="user", content=content, images=tuple(images))

    @classmethod
    def assistant(
        cls,
        content: str,
        executions: list[ToolExecution] | tuple[ToolExecution, ...] = (),
    ) -> Message:
        """Build an assistant message from text and recorded tool executions."""
        return cls(
            role="assistant",
            content=content,
            tool_calls=tuple(e.call for e in executions),
            tool_results=tuple(e.result for e in executions if e.result is not None),
        )
