"""Stream event translator for agent runtime output.

Turns the runtime's heterogeneous event records into the normalized
TurnCallbacks sequence. The runtime may announce the same tool call
twice (as a streamed ``content_block_start`` and again inside the
finalized ``assistant`` message) and reports tool results under two
spellings; both are collapsed here.

Dispatch is a table over the known ``type`` values. Anything else is
ignored so that newer runtimes degrade gracefully.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any

from cadagent.models import ToolCallEvent, ToolResultEvent
from cadagent.prompts.system import PREVIOUS_CONVERSATION_HEADER, attachment_note

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from cadagent.models import Message
    from cadagent.stream.callbacks import TurnCallbacks

logger = logging.getLogger(__name__)

RUNTIME_UNAVAILABLE = "agent runtime unavailable"
IMAGE_ONLY_PLACEHOLDER = "Image captured"


class StreamTranslator:
    """Single-turn translator from runtime events to TurnCallbacks.

    Build one per turn: the set of announced tool-call ids is per turn.

    Usage::

        translator = StreamTranslator(callbacks)
        await translator.run(lambda: runtime.query(prompt, options))
    """

    def __init__(self, callbacks: TurnCallbacks) -> None:
        self._callbacks = callbacks
        self._seen_tool_ids: set[str] = set()
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "stream_event": self._handle_stream_event,
            "assistant": self._handle_assistant,
            "tool_result": self._handle_tool_result,
            "tool_output": self._handle_tool_result,
            "system": self._handle_system,
            "result": self._handle_result,
        }

    async def run(
        self,
        open_stream: Callable[[], AsyncIterator[dict[str, Any]] | Awaitable[AsyncIterator[dict[str, Any]]]],
    ) -> bool:
        """Open the stream, translate every event, then fire on_end or on_error.

        Failure to open the stream, an error while iterating it, and an
        exception from a streaming callback all end the turn through
        ``on_error``. Nothing is retried. An exception from ``on_end`` or
        ``on_error`` itself is logged and does not propagate.

        Args:
            open_stream: Zero-argument callable returning the event stream
                (or an awaitable resolving to it).

        Returns:
            True if the turn ended normally, False if on_error fired.
        """
        stream = None
        try:
            stream = open_stream()
            if inspect.isawaitable(stream):
                stream = await stream
            async for event in stream:
                self.handle(event)
        except Exception as exc:
            message = str(exc) or RUNTIME_UNAVAILABLE
            logger.error("Agent stream failed: %s", message, exc_info=logger.isEnabledFor(logging.DEBUG))
            await _close_quietly(stream)
            fire_terminal(self._callbacks.on_error, message)
            return False

        fire_terminal(self._callbacks.on_end)
        return True

    def handle(self, event: Any) -> None:
        """Dispatch one raw event record. Unknown shapes are ignored."""
        if not isinstance(event, dict):
            logger.debug("Ignoring non-mapping event: %r", type(event).__name__)
            return
        event_type = event.get("type")
        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            logger.debug("Ignoring unrecognized event type: %r", event_type)
            return
        logger.debug("Event %s keys=%s", event_type, ",".join(map(str, event)))
        handler(event)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_stream_event(self, event: dict[str, Any]) -> None:
        inner = event.get("event")
        if not isinstance(inner, dict):
            return
        inner_type = inner.get("type")

        if inner_type == "content_block_delta":
            delta = inner.get("delta")
            if isinstance(delta, dict) and delta.get("type") == "text_delta":
                text = delta.get("text")
                if isinstance(text, str):
                    self._callbacks.on_token(text)
            return

        if inner_type == "content_block_start":
            block = inner.get("content_block")
            if isinstance(block, dict) and block.get("type") == "tool_use":
                self._announce(block)

    def _handle_assistant(self, event: dict[str, Any]) -> None:
        message = event.get("message")
        if not isinstance(message, dict):
            return
        content = message.get("content")
        if not isinstance(content, list):
            return
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                self._announce(block)

    def _handle_tool_result(self, event: dict[str, Any]) -> None:
        result = normalize_tool_result(event)
        if result is None:
            logger.debug("Dropping tool result without an id")
            return
        logger.debug("Tool result for %s%s", result.tool_use_id, " (error)" if result.is_error else "")
        if self._callbacks.on_tool_call_result is not None:
            self._callbacks.on_tool_call_result(result)

    def _handle_system(self, event: dict[str, Any]) -> None:
        logger.debug("Runtime system event: %s", event.get("subtype"))

    def _handle_result(self, event: dict[str, Any]) -> None:
        logger.debug(
            "Runtime result: subtype=%s is_error=%s",
            event.get("subtype"),
            event.get("is_error", False),
        )

    def _announce(self, block: dict[str, Any]) -> None:
        """Fire on_tool_call_start once per id, whichever shape arrives first."""
        tool_id = block.get("id")
        name = block.get("name")
        if not tool_id or not name:
            return
        if tool_id in self._seen_tool_ids:
            logger.debug("Absorbed duplicate announcement of tool call %s", tool_id)
            return
        self._seen_tool_ids.add(tool_id)
        call = ToolCallEvent.from_block(block)
        logger.debug("Tool call start: %s (%s)", name, tool_id)
        if self._callbacks.on_tool_call_start is not None:
            self._callbacks.on_tool_call_start(call)


def normalize_tool_result(event: dict[str, Any]) -> ToolResultEvent | None:
    """Normalize either tool-result spelling into a ToolResultEvent.

    ``tool_result`` events use ``tool_use_id`` / ``content`` / ``is_error``;
    ``tool_output`` events use ``id`` / ``output`` / ``error``. Returns None
    when no id is present.
    """
    tool_id = event.get("tool_use_id") or event.get("id") or ""
    if not tool_id:
        return None

    raw = event.get("content")
    if raw is None or raw == "":
        raw = event.get("output")
    if raw is None:
        raw = ""
    is_error = bool(event.get("is_error") or event.get("error"))

    image_data: str | None = None
    if isinstance(raw, str):
        text = raw
    elif isinstance(raw, list):
        parts: list[str] = []
        for block in raw:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "image" and isinstance(block.get("data"), str):
                image_data = block["data"]
            elif block_type == "text" and isinstance(block.get("text"), str):
                parts.append(block["text"])
        text = "\n".join(parts)
        if not text:
            text = IMAGE_ONLY_PLACEHOLDER if image_data else json.dumps(raw, default=str)
    else:
        text = json.dumps(raw, default=str)

    return ToolResultEvent(
        tool_use_id=str(tool_id),
        content=text,
        is_error=is_error,
        image_data=image_data,
    )


# ---------------------------------------------------------------------------
# Outbound prompt construction
# ---------------------------------------------------------------------------


def latest_user_message(messages: Sequence[Message]) -> Message | None:
    for message in reversed(messages):
        if message.role == "user":
            return message
    return None


def has_images(messages: Sequence[Message]) -> bool:
    """Whether the latest user message carries image attachments."""
    latest = latest_user_message(messages)
    return latest is not None and bool(latest.images)


def build_prompt(messages: Sequence[Message]) -> str:
    """Build the runtime prompt for a turn.

    The latest user message is the prompt; every earlier message is
    rendered under a "Previous conversation:" preamble, and a note is
    appended when the latest user message carries images.

    Raises:
        ValueError: If there is no user message.
    """
    latest = latest_user_message(messages)
    if latest is None:
        raise ValueError("No user message provided.")

    context_parts = [
        f"{'User' if message.role == 'user' else 'Assistant'}: {message.content}"
        for message in messages[:-1]
    ]
    prompt = latest.content
    if context_parts:
        prompt = (
            f"{PREVIOUS_CONVERSATION_HEADER}\n"
            + "\n\n".join(context_parts)
            + f"\n\nUser: {latest.content}"
        )
    if latest.images:
        prompt += f"\n\n{attachment_note(len(latest.images))}"
    return prompt


async def _close_quietly(stream: object) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.debug("Error closing agent stream", exc_info=True)


def fire_terminal(callback: Callable[..., None], *args: str) -> None:
    """Call ``on_end`` / ``on_error``; an exception it raises is logged, not propagated."""
    try:
        callback(*args)
    except Exception:
        logger.warning("Turn callback %s raised", getattr(callback, "__name__", callback), exc_info=True)
