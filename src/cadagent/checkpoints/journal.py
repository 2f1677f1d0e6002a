"""In-memory checkpoint journal for agent file edits.

Each project key (normally the project root directory) owns a bounded,
creation-ordered list of checkpoints. File-writing capabilities call
``snapshot()`` before they write; ``undo()`` later puts every touched
file back the way it was when first touched.

Journal state is process-local and never persisted.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

from cadagent.checkpoints.models import Checkpoint, CheckpointInfo, FileSnapshot, UndoResult
from cadagent.config import DEFAULT_MAX_CHECKPOINTS
from cadagent.exceptions import CheckpointNotFoundError

logger = logging.getLogger(__name__)


def generate_checkpoint_id() -> str:
    """Return an id of the form ``cp_<epoch-ms>_<6 hex chars>``."""
    return f"cp_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class CheckpointJournal:
    """Per-project FIFO list of undoable file-edit checkpoints.

    Invariants:

    - every finalized checkpoint holds at least one snapshot
    - a path is snapshotted at most once per checkpoint (first touch wins)
    - no project holds more than ``max_checkpoints`` checkpoints
    - an undone checkpoint is removed, whatever the outcome

    Usage::

        journal = CheckpointJournal()
        cp = journal.open("/projects/bracket", "Make the bracket thicker")
        journal.snapshot(cp.id, "/projects/bracket/main.scad")
        ...  # write the file
        journal.finalize(cp.id)
        result = journal.undo(cp.id)
    """

    def __init__(self, max_checkpoints: int = DEFAULT_MAX_CHECKPOINTS) -> None:
        if max_checkpoints < 1:
            raise ValueError(f"max_checkpoints must be >= 1, got {max_checkpoints}")
        self._max_checkpoints = max_checkpoints
        self._projects: dict[str, list[Checkpoint]] = {}

    @property
    def max_checkpoints(self) -> int:
        return self._max_checkpoints

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, project_key: str, description: str) -> Checkpoint:
        """Create an unfinalized checkpoint and append it to the project's list.

        Evicts the oldest checkpoints, finalized or not, once the list
        exceeds the cap.
        """
        checkpoint = Checkpoint(
            id=generate_checkpoint_id(),
            project_key=project_key,
            timestamp=datetime.now(timezone.utc),
            description=description,
        )
        checkpoints = self._projects.setdefault(project_key, [])
        checkpoints.append(checkpoint)

        while len(checkpoints) > self._max_checkpoints:
            evicted = checkpoints.pop(0)
            logger.info("Evicted checkpoint %s from %s (cap %d)", evicted.id, project_key, self._max_checkpoints)

        logger.info("Opened checkpoint %s for %s: %s", checkpoint.id, project_key, description)
        return checkpoint

    def snapshot(self, checkpoint_id: str, path: str) -> None:
        """Record the current content of ``path`` in an open checkpoint.

        No-op when the checkpoint is unknown or finalized, or when the
        path was already snapshotted in it. Any read failure is recorded
        as "did not exist".
        """
        checkpoint = self._find(checkpoint_id)
        if checkpoint is None or checkpoint.finalized:
            return
        if checkpoint.has_path(path):
            return

        try:
            with open(path, encoding="utf-8", newline="") as f:
                original: str | None = f.read()
        except (OSError, UnicodeDecodeError):
            original = None

        checkpoint.files.append(FileSnapshot(path=path, original_content=original))
        logger.debug(
            "Snapshotted %s in %s (%s)",
            path,
            checkpoint_id,
            "existing" if original is not None else "new file",
        )

    def finalize(self, checkpoint_id: str) -> None:
        """Make a checkpoint listable, or drop it when nothing was snapshotted."""
        checkpoint = self._find(checkpoint_id)
        if checkpoint is None:
            return
        if not checkpoint.files:
            self._remove(checkpoint_id)
            logger.info("Dropped empty checkpoint %s", checkpoint_id)
            return
        checkpoint.finalized = True
        logger.info("Finalized checkpoint %s with %d file(s)", checkpoint_id, len(checkpoint.files))

    def undo(self, checkpoint_id: str) -> UndoResult:
        """Restore every snapshotted file, then remove the checkpoint.

        Files that did not exist are deleted (and reported only if a
        deletion happened); existing files are rewritten with their
        original content. A failure on one file is logged and recorded
        without stopping the others.
        """
        checkpoint = self._find(checkpoint_id)
        if checkpoint is None:
            return UndoResult()

        restored: list[str] = []
        errors: dict[str, str] = {}
        for snapshot in checkpoint.files:
            target = Path(snapshot.path)
            try:
                if snapshot.original_content is None:
                    if target.exists():
                        target.unlink()
                        restored.append(snapshot.path)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_text(snapshot.original_content, encoding="utf-8", newline="")
                    restored.append(snapshot.path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to restore %s from %s: %s", snapshot.path, checkpoint_id, exc)
                errors[snapshot.path] = str(exc)

        self._remove(checkpoint_id)
        logger.info(
            "Undid checkpoint %s: %d restored, %d failed",
            checkpoint_id,
            len(restored),
            len(errors),
        )
        return UndoResult(restored_paths=restored, errors=errors)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, project_key: str) -> list[CheckpointInfo]:
        """Finalized checkpoints for a project, oldest first."""
        return [cp.info() for cp in self._projects.get(project_key, []) if cp.finalized]

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        """Look up a checkpoint (open or finalized) by id."""
        return self._find(checkpoint_id)

    def require(self, checkpoint_id: str) -> Checkpoint:
        """Like ``get()`` but raises CheckpointNotFoundError for unknown ids."""
        checkpoint = self._find(checkpoint_id)
        if checkpoint is None:
            raise CheckpointNotFoundError(checkpoint_id)
        return checkpoint

    def projects(self) -> list[str]:
        return list(self._projects.keys())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find(self, checkpoint_id: str) -> Checkpoint | None:
        for checkpoints in self._projects.values():
            for checkpoint in checkpoints:
                if checkpoint.id == checkpoint_id:
                    return checkpoint
        return None

    def _remove(self, checkpoint_id: str) -> None:
        for project_key, checkpoints in self._projects.items():
            for index, checkpoint in enumerate(checkpoints):
                if checkpoint.id == checkpoint_id:
                    del checkpoints[index]
                    if not checkpoints:
                        del self._projects[project_key]
                    return
