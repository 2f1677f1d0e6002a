"""Agent runtime: the protocol the orchestrator drives and a built-in adapter."""

from cadagent.runtime.client import MessagesRuntime
from cadagent.runtime.errors import (
    AgentAuthError,
    AgentConfigError,
    AgentRateLimitError,
    AgentResponseError,
    AgentRuntimeError,
)
from cadagent.runtime.protocols import AgentRuntime, QueryOptions

__all__ = [
    "AgentRuntime",
    "QueryOptions",
    "MessagesRuntime",
    "AgentRuntimeError",
    "AgentConfigError",
    "AgentAuthError",
    "AgentRateLimitError",
    "AgentResponseError",
]
