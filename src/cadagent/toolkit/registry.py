"""Capability registry and per-turn capability bundles.

The registry is plain bookkeeping over handler references; a bundle is an
immutable snapshot of it handed to the agent runtime for a single turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cadagent._version import __version__
from cadagent.config import DEFAULT_BUNDLE_NAME
from cadagent.toolkit.executor import ToolExecutor

if TYPE_CHECKING:
    from cadagent.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityBundle:
    """A named, versioned set of capabilities exposed for one turn."""

    name: str
    version: str
    tools: tuple[ToolDefinition, ...]

    def names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def to_anthropic(self) -> list[dict]:
        """Tool schemas in Anthropic tool-use format."""
        return [tool.to_anthropic() for tool in self.tools]

    def executor(self) -> ToolExecutor:
        return ToolExecutor(self.tools)


class ToolRegistry:
    """Mutable mapping from capability name to definition.

    Usage::

        registry = ToolRegistry()
        registry.register(my_tool)
        bundle = registry.build_bundle()  # None while empty
    """

    def __init__(self, tools: list[ToolDefinition] | None = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, definition: ToolDefinition) -> None:
        """Add a capability, replacing any existing one with the same name."""
        if definition.name in self._tools:
            logger.debug("Replacing registered tool %s", definition.name)
        self._tools[definition.name] = definition

    def unregister(self, name: str) -> bool:
        """Remove a capability. Returns whether it was registered."""
        return self._tools.pop(name, None) is not None

    def list(self) -> list[str]:
        """Return registered capability names in registration order."""
        return list(self._tools.keys())

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def build_bundle(
        self,
        name: str = DEFAULT_BUNDLE_NAME,
        version: str = __version__,
    ) -> CapabilityBundle | None:
        """Snapshot the current capabilities into a bundle.

        Returns None when nothing is registered; an empty bundle is never built.
        """
        if not self._tools:
            return None
        return CapabilityBundle(name=name, version=version, tools=tuple(self._tools.values()))
