"""cadagent: agent tool orchestration for a parametric CAD assistant.

Streams an agent's reply into UI callbacks, exposes local capabilities to
the agent, and journals every file the agent writes so one message's
edits can be undone in one step.
"""

from cadagent._version import __version__

# Core entry point
from cadagent.orchestrator.conversation import Conversation

# Conversation data model
from cadagent.models import (
    ImageAttachment,
    Message,
    ToolCallEvent,
    ToolExecution,
    ToolResultEvent,
)

# Configuration
from cadagent.config import ConversationConfig

# Stream translation
from cadagent.stream.callbacks import TurnCallbacks, TurnRecorder, logging_callbacks
from cadagent.stream.translator import StreamTranslator, build_prompt, normalize_tool_result

# Capabilities
from cadagent.toolkit.models import ToolDefinition, ToolResult
from cadagent.toolkit.registry import CapabilityBundle, ToolRegistry
from cadagent.toolkit.executor import ToolExecutor
from cadagent.toolkit.definitions import get_builtin_tools
from cadagent.compiler import CompileResult, GeometryCompiler, OpenScadCompiler, ViewportCapture

# Checkpoints
from cadagent.checkpoints.journal import CheckpointJournal
from cadagent.checkpoints.models import Checkpoint, CheckpointInfo, FileSnapshot, UndoResult

# Runtime
from cadagent.runtime.protocols import AgentRuntime, QueryOptions
from cadagent.runtime.client import MessagesRuntime
from cadagent.runtime.errors import (
    AgentAuthError,
    AgentConfigError,
    AgentRateLimitError,
    AgentResponseError,
    AgentRuntimeError,
)

# Exceptions
from cadagent.exceptions import (
    CadAgentError,
    CheckpointNotFoundError,
    ConversationError,
    PathOutsideProjectError,
    TurnInProgressError,
)

__all__ = [
    "__version__",
    "Conversation",
    # Data model
    "ImageAttachment",
    "Message",
    "ToolCallEvent",
    "ToolExecution",
    "ToolResultEvent",
    # Configuration
    "ConversationConfig",
    # Stream translation
    "StreamTranslator",
    "TurnCallbacks",
    "TurnRecorder",
    "logging_callbacks",
    "build_prompt",
    "normalize_tool_result",
    # Capabilities
    "ToolDefinition",
    "ToolResult",
    "ToolRegistry",
    "CapabilityBundle",
    "ToolExecutor",
    "get_builtin_tools",
    "CompileResult",
    "GeometryCompiler",
    "ViewportCapture",
    "OpenScadCompiler",
    # Checkpoints
    "CheckpointJournal",
    "Checkpoint",
    "CheckpointInfo",
    "FileSnapshot",
    "UndoResult",
    # Runtime
    "AgentRuntime",
    "QueryOptions",
    "MessagesRuntime",
    "AgentRuntimeError",
    "AgentConfigError",
    "AgentAuthError",
    "AgentRateLimitError",
    "AgentResponseError",
    # Exceptions
    "CadAgentError",
    "ConversationError",
    "TurnInProgressError",
    "PathOutsideProjectError",
    "CheckpointNotFoundError",
]
