"""Turn callbacks: the only outputs a streaming turn pushes to the UI.

Provides the TurnCallbacks bundle plus ready-made sinks: a logging sink
and a recorder that captures a turn for tests and history keeping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cadagent.models import Message, ToolExecution

if TYPE_CHECKING:
    from collections.abc import Callable

    from cadagent.models import ToolCallEvent, ToolResultEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnCallbacks:
    """Normalized callback set for one turn.

    Exactly one of ``on_end`` / ``on_error`` fires per turn, after every
    other callback for that turn.

    Attributes:
        on_token: Called with each incremental text fragment.
        on_end: Called once when the stream completes normally.
        on_error: Called once with a human-readable message on failure.
        on_tool_call_start: Called once per tool-call id.
        on_tool_call_result: Called for each normalized tool result.
    """

    on_token: Callable[[str], None]
    on_end: Callable[[], None]
    on_error: Callable[[str], None]
    on_tool_call_start: Callable[[ToolCallEvent], None] | None = None
    on_tool_call_result: Callable[[ToolResultEvent], None] | None = None


def logging_callbacks(log: logging.Logger | None = None) -> TurnCallbacks:
    """Callbacks that only log, for headless use."""
    log = log or logger
    return TurnCallbacks(
        on_token=lambda token: log.debug("token: %r", token),
        on_end=lambda: log.info("Turn ended"),
        on_error=lambda message: log.error("Turn failed: %s", message),
        on_tool_call_start=lambda call: log.info("Tool call %s (%s)", call.name, call.id),
        on_tool_call_result=lambda result: log.info(
            "Tool result for %s%s", result.tool_use_id, " (error)" if result.is_error else ""
        ),
    )


@dataclass
class TurnRecorder:
    """Records one turn and forwards every callback to an optional sink.

    Tool results are merged into their originating call record, so
    ``executions`` holds one entry per call in announcement order.
    """

    sink: TurnCallbacks | None = None
    tokens: list[str] = field(default_factory=list)
    executions: list[ToolExecution] = field(default_factory=list)
    orphan_results: list[ToolResultEvent] = field(default_factory=list)
    ended: bool = False
    error: str | None = None

    @property
    def text(self) -> str:
        return "".join(self.tokens)

    @property
    def finished(self) -> bool:
        return self.ended or self.error is not None

    def to_message(self) -> Message:
        """Build the assistant message for the recorded turn."""
        return Message.assistant(self.text, self.executions)

    def callbacks(self) -> TurnCallbacks:
        return TurnCallbacks(
            on_token=self._on_token,
            on_end=self._on_end,
            on_error=self._on_error,
            on_tool_call_start=self._on_tool_call_start,
            on_tool_call_result=self._on_tool_call_result,
        )

    def _on_token(self, token: str) -> None:
        self.tokens.append(token)
        if self.sink is not None:
            self.sink.on_token(token)

    def _on_end(self) -> None:
        self.ended = True
        if self.sink is not None:
            self.sink.on_end()

    def _on_error(self, message: str) -> None:
        self.error = message
        if self.sink is not None:
            self.sink.on_error(message)

    def _on_tool_call_start(self, call: ToolCallEvent) -> None:
        self.executions.append(ToolExecution(call=call))
        if self.sink is not None and self.sink.on_tool_call_start is not None:
            self.sink.on_tool_call_start(call)

    def _on_tool_call_result(self, result: ToolResultEvent) -> None:
        for index, execution in enumerate(self.executions):
            if execution.call.id == result.tool_use_id and execution.result is None:
                self.executions[index] = execution.with_result(result)
                break
        else:
            self.orphan_results.append(result)
        if self.sink is not None and self.sink.on_tool_call_result is not None:
            self.sink.on_tool_call_result(result)
