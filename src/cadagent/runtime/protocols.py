"""Agent runtime protocol and query options.

Any object with a ``query()`` method matching AgentRuntime works as a
runtime; the built-in MessagesRuntime implements it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from cadagent.config import DEFAULT_MAX_TURNS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cadagent.toolkit.registry import CapabilityBundle


@dataclass(frozen=True)
class QueryOptions:
    """Options sent with a prompt to the agent runtime.

    Attributes:
        system_prompt: System prompt for the agent.
        max_turns: Maximum model round-trips for this query.
        working_directory: Directory the agent operates in.
        capability_bundle: Local capabilities the agent may call, or None.
            Never an empty bundle.
    """

    system_prompt: str
    max_turns: int = DEFAULT_MAX_TURNS
    working_directory: str = ""
    capability_bundle: CapabilityBundle | None = None


@runtime_checkable
class AgentRuntime(Protocol):
    """Protocol for pluggable agent runtimes.

    ``query()`` returns an async iterator of event records (dicts) whose
    ``type`` field is one of ``stream_event``, ``assistant``,
    ``tool_result`` / ``tool_output``, ``system`` or ``result``.
    """

    def query(self, prompt: str, options: QueryOptions) -> AsyncIterator[dict[str, Any]]:
        """Start a query and return its event stream."""
        ...
