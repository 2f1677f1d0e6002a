"""Agent toolkit: capability definitions, registry, and executor.

Provides tool definitions, the per-conversation registry that builds
capability bundles, and an executor that runs tool calls against them.
"""

from cadagent.toolkit.definitions import get_builtin_tools
from cadagent.toolkit.executor import ToolExecutor
from cadagent.toolkit.models import ToolDefinition, ToolResult, image_block, text_block
from cadagent.toolkit.registry import CapabilityBundle, ToolRegistry

__all__ = [
    "ToolDefinition",
    "ToolResult",
    "ToolExecutor",
    "ToolRegistry",
    "CapabilityBundle",
    "get_builtin_tools",
    "text_block",
    "image_block",
]
