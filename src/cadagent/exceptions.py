"""cadagent exception hierarchy.

All cadagent-specific exceptions inherit from CadAgentError.
"""


class CadAgentError(Exception):
    """Base exception for all cadagent errors."""


class ConversationError(CadAgentError):
    """Raised when a conversation turn cannot be started."""


class TurnInProgressError(ConversationError):
    """Raised when a second turn is started while one is still streaming."""

    def __init__(self) -> None:
        super().__init__("A turn is already in progress.")


class PathOutsideProjectError(CadAgentError):
    """Raised when a file capability targets a path outside the project root."""

    def __init__(self, path: str, project_dir: str) -> None:
        self.path = path
        self.project_dir = project_dir
        super().__init__(f"Path '{path}' is outside the project directory {project_dir}")


class CheckpointNotFoundError(CadAgentError):
    """Raised when a checkpoint id lookup fails."""

    def __init__(self, checkpoint_id: str) -> None:
        self.checkpoint_id = checkpoint_id
        super().__init__(f"Checkpoint not found: {checkpoint_id}")
