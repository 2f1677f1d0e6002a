"""Conversation orchestrator: drives one agent turn end to end.

Builds the outbound request (prompt, history, capability bundle), runs
it through a fresh StreamTranslator, and owns the per-turn state that
capabilities read: the pending user images, the project directory, and
the turn's lazily-opened checkpoint.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from cadagent.checkpoints.journal import CheckpointJournal
from cadagent.config import ConversationConfig
from cadagent.exceptions import ConversationError, TurnInProgressError
from cadagent.models import Message
from cadagent.prompts.system import DEFAULT_SYSTEM_PROMPT
from cadagent.runtime.protocols import QueryOptions
from cadagent.stream.callbacks import TurnRecorder
from cadagent.stream.translator import (
    StreamTranslator,
    _close_quietly,
    build_prompt,
    fire_terminal,
    latest_user_message,
)
from cadagent.toolkit.definitions import get_builtin_tools
from cadagent.toolkit.registry import ToolRegistry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cadagent.checkpoints.models import CheckpointInfo, UndoResult
    from cadagent.compiler import CompileResult, GeometryCompiler, ViewportCapture
    from cadagent.models import ImageAttachment
    from cadagent.runtime.protocols import AgentRuntime
    from cadagent.stream.callbacks import TurnCallbacks
    from cadagent.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

PROBE_PROMPT = "Reply with OK"
DEFAULT_CHECKPOINT_DESCRIPTION = "Agent edit"


class Conversation:
    """One conversation with an agent runtime.

    Only one turn runs at a time; a second ``send_message()`` while a
    turn is streaming is rejected through its ``on_error`` callback.
    Without a runtime, turns are rejected the same way; the capabilities
    and checkpoints still work.

    Usage::

        conversation = Conversation(MessagesRuntime())
        conversation.register_builtin_tools(compiler=my_compiler)
        reply = await conversation.ask(
            "Make the bracket 2mm thicker",
            callbacks,
            project_dir="/projects/bracket",
        )
    """

    def __init__(
        self,
        runtime: AgentRuntime | None,
        *,
        registry: ToolRegistry | None = None,
        journal: CheckpointJournal | None = None,
        config: ConversationConfig | None = None,
    ) -> None:
        self._runtime = runtime
        self._config = config or ConversationConfig()
        self._registry = registry if registry is not None else ToolRegistry()
        self._journal = (
            journal if journal is not None else CheckpointJournal(self._config.max_checkpoints)
        )
        self._history: list[Message] = []
        self._turn_active = False
        self._turn_checkpoint_id: str | None = None
        self._turn_description = DEFAULT_CHECKPOINT_DESCRIPTION

        # Turn state read by capability handlers
        self.pending_user_images: list[ImageAttachment] = []
        self.project_dir: str | None = None

    @property
    def runtime(self) -> AgentRuntime | None:
        return self._runtime

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def journal(self) -> CheckpointJournal:
        return self._journal

    @property
    def config(self) -> ConversationConfig:
        return self._config

    @property
    def history(self) -> tuple[Message, ...]:
        """Messages exchanged through ``ask()``, oldest first."""
        return tuple(self._history)

    @property
    def turn_active(self) -> bool:
        return self._turn_active

    def register_builtin_tools(
        self,
        *,
        compiler: GeometryCompiler | None = None,
        viewport: ViewportCapture | None = None,
        on_compile: Callable[[CompileResult, str], None] | None = None,
    ) -> list[ToolDefinition]:
        """Register the built-in capabilities bound to this conversation."""
        tools = get_builtin_tools(self, compiler=compiler, viewport=viewport, on_compile=on_compile)
        for tool in tools:
            self._registry.register(tool)
        return tools

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def send_message(
        self,
        messages: Sequence[Message],
        callbacks: TurnCallbacks,
        *,
        system_prompt: str | None = None,
        project_dir: str | Path | None = None,
    ) -> bool:
        """Run one turn for ``messages`` and report it through ``callbacks``.

        Never raises for turn failures: a missing user message, a turn
        already in progress, and every runtime error end the turn through
        ``on_error``. Exceptions raised by ``on_end`` / ``on_error`` are
        logged and swallowed.

        Args:
            messages: Conversation so far; the latest user message is the prompt.
            callbacks: Receives tokens, tool calls and results, then exactly
                one of ``on_end`` / ``on_error``.
            system_prompt: Overrides the configured system prompt.
            project_dir: Project the agent works in. Defaults to the home
                directory for the runtime's working directory, and disables
                checkpointing.

        Returns:
            True if the turn ended normally.
        """
        try:
            if self._turn_active:
                raise TurnInProgressError()
            latest = latest_user_message(messages)
            if latest is None:
                raise ConversationError("No user message provided.")
            if self._runtime is None:
                raise ConversationError("No agent runtime configured.")
        except ConversationError as exc:
            logger.info("Rejected turn: %s", exc)
            fire_terminal(callbacks.on_error, str(exc))
            return False

        self._turn_active = True
        self.pending_user_images = list(latest.images)
        self.project_dir = str(project_dir) if project_dir is not None else None
        self._turn_checkpoint_id = None
        self._turn_description = _describe(latest.content, self._config.description_length)

        try:
            prompt = build_prompt(messages)
            bundle = self._registry.build_bundle(self._config.bundle_name)
            options = QueryOptions(
                system_prompt=system_prompt or self._config.system_prompt or DEFAULT_SYSTEM_PROMPT,
                max_turns=self._config.max_turns,
                working_directory=self.project_dir or str(Path.home()),
                capability_bundle=bundle,
            )
            logger.info(
                "Starting turn: %d message(s), %d capabilities, cwd=%s",
                len(messages),
                len(bundle.tools) if bundle is not None else 0,
                options.working_directory,
            )
            # Close the turn before the terminal callback so listeners
            # already see the finalized checkpoint.
            turn_callbacks = replace(
                callbacks,
                on_end=lambda: self._close_turn(callbacks.on_end),
                on_error=lambda message: self._close_turn(callbacks.on_error, message),
            )
            translator = StreamTranslator(turn_callbacks)
            ended = await translator.run(lambda: self._runtime.query(prompt, options))
        finally:
            self._close_turn()
            self._turn_active = False

        logger.info("Turn %s", "ended" if ended else "failed")
        return ended

    async def ask(
        self,
        text: str,
        callbacks: TurnCallbacks,
        *,
        images: Sequence[ImageAttachment] = (),
        system_prompt: str | None = None,
        project_dir: str | Path | None = None,
    ) -> Message | None:
        """Send ``text`` as the next user message and keep the history.

        The user message is appended before the turn runs. The assistant
        message (text plus tool calls with their merged results) is
        appended only when the turn ends normally.

        Returns:
            The appended assistant message, or None if the turn failed.
        """
        if self._turn_active or self._runtime is None:
            # Same rejection as send_message, without touching the history
            await self.send_message((Message.user(text),), callbacks)
            return None

        self._history.append(Message.user(text, tuple(images)))
        recorder = TurnRecorder(sink=callbacks)
        ended = await self.send_message(
            self._history,
            recorder.callbacks(),
            system_prompt=system_prompt,
            project_dir=project_dir,
        )
        if not ended:
            return None

        reply = recorder.to_message()
        self._history.append(reply)
        return reply

    def reset(self) -> None:
        """Forget the conversation history. Checkpoints are kept."""
        self._history.clear()

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def snapshot_for_turn(self, path: str) -> str | None:
        """Snapshot ``path`` into the current turn's checkpoint.

        Opens the checkpoint on first use. Outside a turn, or when the
        turn has no project directory, nothing is recorded.

        Returns:
            The turn's checkpoint id, or None when nothing was recorded.
        """
        if not self._turn_active or self.project_dir is None:
            return None
        if self._turn_checkpoint_id is None:
            checkpoint = self._journal.open(_project_key(self.project_dir), self._turn_description)
            self._turn_checkpoint_id = checkpoint.id
        self._journal.snapshot(self._turn_checkpoint_id, path)
        return self._turn_checkpoint_id

    def list_checkpoints(self, project_dir: str | Path | None = None) -> list[CheckpointInfo]:
        """Undoable checkpoints for a project (default: the last turn's), oldest first."""
        project_dir = project_dir if project_dir is not None else self.project_dir
        if project_dir is None:
            return []
        return self._journal.list(_project_key(project_dir))

    def undo_checkpoint(self, checkpoint_id: str) -> UndoResult:
        return self._journal.undo(checkpoint_id)

    # ------------------------------------------------------------------
    # Probe
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        """Check whether the agent runtime can be reached.

        Sends a one-turn prompt with no capabilities and stops at the first
        conclusive event: ``system/init`` means reachable, a ``result``
        means reachable unless it reports an error.
        """
        options = QueryOptions(
            system_prompt=self._config.system_prompt or DEFAULT_SYSTEM_PROMPT,
            max_turns=1,
            working_directory=str(Path.home()),
        )
        if self._runtime is None:
            return False
        stream = None
        try:
            stream = self._runtime.query(PROBE_PROMPT, options)
            if inspect.isawaitable(stream):
                stream = await stream
            async for event in stream:
                if not isinstance(event, dict):
                    continue
                if event.get("type") == "system" and event.get("subtype") == "init":
                    return True
                if event.get("type") == "result":
                    return not event.get("is_error", False)
        except Exception as exc:
            logger.warning("Agent runtime probe failed: %s", exc)
            return False
        finally:
            await _close_quietly(stream)
        logger.warning("Agent runtime probe ended without a conclusive event")
        return False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _close_turn(self, terminal: Callable[..., None] | None = None, *args: str) -> None:
        """Release turn resources, then fire the terminal callback if given.

        Safe to call more than once per turn.
        """
        self.pending_user_images = []
        if self._turn_checkpoint_id is not None:
            checkpoint_id, self._turn_checkpoint_id = self._turn_checkpoint_id, None
            self._journal.finalize(checkpoint_id)
        if terminal is not None:
            terminal(*args)


def _project_key(project_dir: str | Path) -> str:
    return str(Path(project_dir).resolve())


def _describe(text: str, limit: int) -> str:
    """First non-blank line of ``text``, at most ``limit`` characters."""
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line if len(line) <= limit else line[: max(limit - 3, 0)] + "..."
    return DEFAULT_CHECKPOINT_DESCRIPTION
