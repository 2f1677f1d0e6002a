"""Shared test fixtures for cadagent.

Provides a scripted agent runtime, runtime event builders, and a
callback log that records the exact order of turn callbacks.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest

from cadagent import (
    CheckpointJournal,
    Conversation,
    ConversationConfig,
    QueryOptions,
    TurnCallbacks,
)


def run(coro):
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


# ------------------------------------------------------------------
# Runtime event builders
# ------------------------------------------------------------------


def text_delta(text: str, index: int = 0) -> dict:
    return {
        "type": "stream_event",
        "event": {
            "type": "content_block_delta",
            "index": index,
            "delta": {"type": "text_delta", "text": text},
        },
    }


def tool_use_block(tool_id: str, name: str, tool_input: dict | None = None) -> dict:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": tool_input or {}}


def tool_use_start(tool_id: str, name: str, tool_input: dict | None = None, index: int = 1) -> dict:
    return {
        "type": "stream_event",
        "event": {
            "type": "content_block_start",
            "index": index,
            "content_block": tool_use_block(tool_id, name, tool_input),
        },
    }


def assistant_message(*blocks: dict) -> dict:
    return {"type": "assistant", "message": {"role": "assistant", "content": list(blocks)}}


def tool_result(tool_id: str, content: Any, is_error: bool = False) -> dict:
    return {"type": "tool_result", "tool_use_id": tool_id, "content": content, "is_error": is_error}


def tool_output(tool_id: str, output: Any, error: Any = None) -> dict:
    event = {"type": "tool_output", "id": tool_id, "output": output}
    if error is not None:
        event["error"] = error
    return event


def system_init() -> dict:
    return {"type": "system", "subtype": "init", "session_id": "s1"}


def result_event(is_error: bool = False) -> dict:
    return {
        "type": "result",
        "subtype": "error_during_execution" if is_error else "success",
        "is_error": is_error,
    }


def executed_tool(tool_id: str, name: str, tool_input: dict | None = None) -> list:
    """Events for one tool call that really runs through the capability bundle.

    The call is announced in both shapes, executed against the bundle in
    the query options, and its result is reported in tool-output shape.
    """

    async def execute(options: QueryOptions) -> dict:
        assert options.capability_bundle is not None
        result = await options.capability_bundle.executor().execute(name, tool_input or {})
        return tool_result(tool_id, result.blocks(), is_error=not result.success)

    return [
        tool_use_start(tool_id, name, tool_input),
        assistant_message(tool_use_block(tool_id, name, tool_input)),
        execute,
    ]


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class FakeRuntime:
    """Scripted AgentRuntime.

    Each query replays ``events`` in order. An exception instance in the
    script is raised at that point of the stream; a callable is invoked
    with the query options (and awaited if needed) and its return value,
    if not None, is yielded.
    """

    def __init__(self, events: list | None = None, *, open_error: Exception | None = None) -> None:
        self.events = list(events or [])
        self.open_error = open_error
        self.calls: list[tuple[str, QueryOptions]] = []
        self.closed_streams = 0

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][0]

    @property
    def last_options(self) -> QueryOptions:
        return self.calls[-1][1]

    def query(self, prompt: str, options: QueryOptions):
        self.calls.append((prompt, options))
        if self.open_error is not None:
            raise self.open_error
        return self._stream(options)

    async def _stream(self, options: QueryOptions):
        try:
            for event in self.events:
                if isinstance(event, BaseException):
                    raise event
                if callable(event):
                    event = event(options)
                    if inspect.isawaitable(event):
                        event = await event
                    if event is None:
                        continue
                yield event
        finally:
            self.closed_streams += 1


class CallLog:
    """Records every turn callback as a ``(kind, payload)`` tuple."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def callbacks(self) -> TurnCallbacks:
        return TurnCallbacks(
            on_token=lambda token: self.calls.append(("token", token)),
            on_end=lambda: self.calls.append(("end", None)),
            on_error=lambda message: self.calls.append(("error", message)),
            on_tool_call_start=lambda call: self.calls.append(("start", call)),
            on_tool_call_result=lambda result: self.calls.append(("result", result)),
        )

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]

    def of(self, kind: str) -> list[Any]:
        return [payload for k, payload in self.calls if k == kind]

    @property
    def text(self) -> str:
        return "".join(self.of("token"))


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture()
def project(tmp_path):
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture()
def journal() -> CheckpointJournal:
    return CheckpointJournal()


@pytest.fixture()
def log() -> CallLog:
    return CallLog()


def make_conversation(
    events: list | None = None,
    *,
    builtin_tools: bool = True,
    **config: Any,
) -> tuple[Conversation, FakeRuntime]:
    """Conversation over a FakeRuntime, with the built-in capabilities registered."""
    runtime = FakeRuntime(events)
    conversation = Conversation(runtime, config=ConversationConfig(**config))
    if builtin_tools:
        conversation.register_builtin_tools()
    return conversation, runtime
