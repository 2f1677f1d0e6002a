"""Tests for the checkpoint journal.

Covers the open/snapshot/finalize/undo lifecycle, first-touch snapshot
semantics, empty-checkpoint elision, the FIFO cap, and best-effort undo.
"""

from __future__ import annotations

import re

import pytest

from cadagent import CheckpointJournal, CheckpointNotFoundError
from cadagent.checkpoints import generate_checkpoint_id


def write(path, content: str) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return str(path)


# ===========================================================================
# Lifecycle
# ===========================================================================


class TestLifecycle:
    """open -> snapshot -> finalize -> list."""

    def test_checkpoint_id_format(self):
        assert re.fullmatch(r"cp_\d+_[0-9a-f]{6}", generate_checkpoint_id())

    def test_open_creates_unfinalized_checkpoint(self, journal):
        cp = journal.open("/p", "Make it thicker")
        assert cp.description == "Make it thicker"
        assert cp.finalized is False
        assert cp.files == []
        assert journal.get(cp.id) is cp

    def test_unfinalized_checkpoints_are_not_listed(self, journal, tmp_path):
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, write(tmp_path / "a.scad", "X"))
        assert journal.list("/p") == []
        journal.finalize(cp.id)
        [info] = journal.list("/p")
        assert info.id == cp.id
        assert info.paths == [str(tmp_path / "a.scad")]

    def test_list_is_in_creation_order(self, journal, tmp_path):
        ids = []
        for i in range(3):
            cp = journal.open("/p", f"edit {i}")
            journal.snapshot(cp.id, write(tmp_path / f"{i}.scad", str(i)))
            journal.finalize(cp.id)
            ids.append(cp.id)
        assert [info.id for info in journal.list("/p")] == ids

    def test_projects_are_independent(self, journal, tmp_path):
        a = journal.open("/a", "edit")
        journal.snapshot(a.id, write(tmp_path / "a.scad", "A"))
        journal.finalize(a.id)
        assert journal.list("/b") == []
        assert len(journal.list("/a")) == 1

    def test_empty_checkpoint_is_elided(self, journal):
        cp = journal.open("/p", "nothing happened")
        journal.finalize(cp.id)
        assert journal.list("/p") == []
        assert journal.get(cp.id) is None
        assert journal.projects() == []

    def test_finalize_unknown_id_is_noop(self, journal):
        journal.finalize("cp_0_000000")
        assert journal.projects() == []

    def test_require_raises_for_unknown_id(self, journal):
        with pytest.raises(CheckpointNotFoundError, match="cp_missing"):
            journal.require("cp_missing")

    def test_cap_must_be_positive(self):
        with pytest.raises(ValueError):
            CheckpointJournal(max_checkpoints=0)


# ===========================================================================
# Snapshots
# ===========================================================================


class TestSnapshot:
    """First touch wins; reads degrade to the absence sentinel."""

    def test_first_touch_wins(self, journal, tmp_path):
        path = write(tmp_path / "a.txt", "first")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, path)
        write(tmp_path / "a.txt", "second")
        journal.snapshot(cp.id, path)
        assert len(cp.files) == 1
        assert cp.files[0].original_content == "first"

    def test_missing_file_records_sentinel(self, journal, tmp_path):
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(tmp_path / "new.scad"))
        assert cp.files[0].original_content is None
        assert cp.files[0].existed is False

    def test_unreadable_file_records_sentinel(self, journal, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\xff\xfe\x00binary")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(path))
        assert cp.files[0].original_content is None

    def test_directory_records_sentinel(self, journal, tmp_path):
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(tmp_path))
        assert cp.files[0].original_content is None

    def test_snapshot_order_follows_first_touch(self, journal, tmp_path):
        a = write(tmp_path / "a.scad", "A")
        b = write(tmp_path / "b.scad", "B")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, b)
        journal.snapshot(cp.id, a)
        journal.snapshot(cp.id, b)
        assert [s.path for s in cp.files] == [b, a]

    def test_snapshot_after_finalize_is_noop(self, journal, tmp_path):
        a = write(tmp_path / "a.scad", "A")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, a)
        journal.finalize(cp.id)
        journal.snapshot(cp.id, write(tmp_path / "b.scad", "B"))
        assert [s.path for s in cp.files] == [a]

    def test_snapshot_unknown_id_is_noop(self, journal, tmp_path):
        journal.snapshot("cp_missing", write(tmp_path / "a.scad", "A"))
        assert journal.projects() == []


# ===========================================================================
# FIFO cap
# ===========================================================================


class TestCap:
    """No project ever holds more than the cap."""

    def test_oldest_is_evicted(self, tmp_path):
        journal = CheckpointJournal(max_checkpoints=3)
        ids = []
        for i in range(4):
            cp = journal.open("/p", f"edit {i}")
            journal.snapshot(cp.id, write(tmp_path / f"{i}.scad", str(i)))
            journal.finalize(cp.id)
            ids.append(cp.id)
        assert [info.id for info in journal.list("/p")] == ids[1:]
        assert journal.get(ids[0]) is None

    def test_default_cap_is_twenty(self, journal):
        for i in range(25):
            journal.open("/p", f"edit {i}")
        assert journal.max_checkpoints == 20
        assert len(journal._projects["/p"]) == 20

    def test_eviction_ignores_finalized_state(self, tmp_path):
        journal = CheckpointJournal(max_checkpoints=1)
        first = journal.open("/p", "open, never finalized")
        second = journal.open("/p", "newer")
        assert journal.get(first.id) is None
        assert journal.get(second.id) is second


# ===========================================================================
# Undo
# ===========================================================================


class TestUndo:
    """Undo restores every file it can and always removes the checkpoint."""

    def test_two_edits_in_one_checkpoint(self, journal, tmp_path):
        path = write(tmp_path / "a.scad", "X")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, path)
        write(tmp_path / "a.scad", "Y")
        journal.snapshot(cp.id, path)
        write(tmp_path / "a.scad", "Z")
        journal.finalize(cp.id)

        result = journal.undo(cp.id)

        assert (tmp_path / "a.scad").read_text(encoding="utf-8") == "X"
        assert result.restored_paths == [path]
        assert result.success is True
        assert journal.list("/p") == []

    def test_line_endings_are_restored_exactly(self, journal, tmp_path):
        target = tmp_path / "crlf.scad"
        target.write_bytes(b"cube(10);\r\nsphere(5);\r\nlegacy();\r")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(target))
        assert cp.files[0].original_content == "cube(10);\r\nsphere(5);\r\nlegacy();\r"
        target.write_bytes(b"cylinder(2);\n")
        journal.finalize(cp.id)

        journal.undo(cp.id)

        assert target.read_bytes() == b"cube(10);\r\nsphere(5);\r\nlegacy();\r"

    def test_created_file_is_deleted(self, journal, tmp_path):
        target = tmp_path / "new.scad"
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(target))
        write(target, "cube(1);")
        journal.finalize(cp.id)

        result = journal.undo(cp.id)

        assert not target.exists()
        assert result.restored_paths == [str(target)]

    def test_absent_file_is_not_reported(self, journal, tmp_path):
        target = tmp_path / "never_written.scad"
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, str(target))
        journal.finalize(cp.id)

        result = journal.undo(cp.id)

        assert result.restored_paths == []
        assert result.errors == {}
        assert result.success is False

    def test_missing_parent_directory_is_recreated(self, journal, tmp_path):
        path = write(tmp_path / "parts" / "gear.scad", "gear();")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, path)
        journal.finalize(cp.id)
        (tmp_path / "parts" / "gear.scad").unlink()
        (tmp_path / "parts").rmdir()

        journal.undo(cp.id)

        assert (tmp_path / "parts" / "gear.scad").read_text(encoding="utf-8") == "gear();"

    def test_one_failure_does_not_stop_the_others(self, journal, tmp_path):
        blocked = write(tmp_path / "blocked.scad", "original")
        ok = write(tmp_path / "ok.scad", "original ok")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, blocked)
        journal.snapshot(cp.id, ok)
        journal.finalize(cp.id)
        # A directory where the file was makes the restore fail
        (tmp_path / "blocked.scad").unlink()
        (tmp_path / "blocked.scad").mkdir()
        write(tmp_path / "ok.scad", "changed")

        result = journal.undo(cp.id)

        assert result.restored_paths == [ok]
        assert list(result.errors) == [blocked]
        assert (tmp_path / "ok.scad").read_text(encoding="utf-8") == "original ok"
        assert result.success is False
        assert journal.get(cp.id) is None

    def test_undo_is_single_use(self, journal, tmp_path):
        path = write(tmp_path / "a.scad", "X")
        cp = journal.open("/p", "edit")
        journal.snapshot(cp.id, path)
        journal.finalize(cp.id)
        journal.undo(cp.id)

        again = journal.undo(cp.id)

        assert again.restored_paths == []
        assert again.errors == {}

    def test_undo_only_touches_its_own_checkpoint(self, journal, tmp_path):
        a = write(tmp_path / "a.scad", "A0")
        first = journal.open("/p", "first")
        journal.snapshot(first.id, a)
        journal.finalize(first.id)
        second = journal.open("/p", "second")
        journal.snapshot(second.id, write(tmp_path / "b.scad", "B0"))
        journal.finalize(second.id)

        journal.undo(second.id)

        assert [info.id for info in journal.list("/p")] == [first.id]
