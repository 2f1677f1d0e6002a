"""Agent runtime error hierarchy.

All runtime errors inherit from CadAgentError for consistent exception handling.
"""

from __future__ import annotations

from cadagent.exceptions import CadAgentError


class AgentRuntimeError(CadAgentError):
    """Base for all agent runtime errors."""


class AgentConfigError(AgentRuntimeError):
    """Missing or invalid runtime configuration (e.g., no API key)."""


class AgentRateLimitError(AgentRuntimeError):
    """Rate limited by the API (429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class AgentAuthError(AgentRuntimeError):
    """Authentication failed (401/403)."""


class AgentResponseError(AgentRuntimeError):
    """Unexpected or error payload in the runtime's event stream."""
