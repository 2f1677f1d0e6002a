"""Checkpoint journal: batch-undoable snapshots of agent file edits."""

from cadagent.checkpoints.journal import CheckpointJournal, generate_checkpoint_id
from cadagent.checkpoints.models import Checkpoint, CheckpointInfo, FileSnapshot, UndoResult

__all__ = [
    "CheckpointJournal",
    "Checkpoint",
    "CheckpointInfo",
    "FileSnapshot",
    "UndoResult",
    "generate_checkpoint_id",
]
