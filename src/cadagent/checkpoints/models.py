"""Checkpoint journal data models.

Checkpoint is the journal's mutable internal record; CheckpointInfo is
the frozen, caller-facing view of a finalized checkpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class FileSnapshot:
    """Pre-edit state of one file within one checkpoint.

    ``original_content`` is None when the file did not exist when it
    was first touched.
    """

    path: str
    original_content: str | None

    @property
    def existed(self) -> bool:
        return self.original_content is not None


@dataclass
class Checkpoint:
    """A group of file snapshots that can be undone as a unit.

    Mutable while open: snapshots accumulate until ``finalized`` is set,
    after which the journal treats it as immutable.
    """

    id: str
    project_key: str
    timestamp: datetime
    description: str
    files: list[FileSnapshot] = field(default_factory=list)
    finalized: bool = False

    def has_path(self, path: str) -> bool:
        return any(snapshot.path == path for snapshot in self.files)

    def info(self) -> CheckpointInfo:
        return CheckpointInfo(
            id=self.id,
            timestamp=self.timestamp,
            description=self.description,
            files=tuple(self.files),
        )


@dataclass(frozen=True)
class CheckpointInfo:
    """A finalized checkpoint as shown to callers."""

    id: str
    timestamp: datetime
    description: str
    files: tuple[FileSnapshot, ...]

    @property
    def paths(self) -> list[str]:
        return [snapshot.path for snapshot in self.files]


@dataclass(frozen=True)
class UndoResult:
    """Outcome of undoing a checkpoint.

    Undo is best effort: ``errors`` maps each path that could not be
    restored to the failure message, and the remaining files are still
    restored.
    """

    restored_paths: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """True when at least one file was restored and none failed."""
        return bool(self.restored_paths) and not self.errors
