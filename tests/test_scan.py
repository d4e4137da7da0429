"""
Tests for source tree scanning.
"""

import os

import pytest

from dotlink.scan import scan
from dotlink.types import EntryKind, TraversalError


def test_directories_first_then_files_each_sorted(env):
    env.create_source(
        {
            "b/z.txt": "z",
            "a/b.txt": "b",
            "a-c/x": "x",
            ".bashrc": "rc",
            "a/deeper/file": "f",
        }
    )

    entries = list(scan(env.source_dir))

    dirs = [e.relative for e in entries if e.kind == EntryKind.DIR]
    files = [e.relative for e in entries if e.kind == EntryKind.FILE]
    assert [e.kind for e in entries] == [EntryKind.DIR] * len(dirs) + [EntryKind.FILE] * len(files)
    assert dirs == ["a", "a-c", "a/deeper", "b"]
    assert files == [".bashrc", "a-c/x", "a/b.txt", "a/deeper/file", "b/z.txt"]


def test_parents_precede_children(env):
    env.create_source({"x/y/z/file": "1", "x/y2/file": "2"})

    seen = set()
    for entry in scan(env.source_dir):
        parent = entry.relative.rpartition("/")[0]
        assert not parent or parent in seen
        seen.add(entry.relative)


def test_entries_carry_absolute_paths(env):
    env.create_source({"a/b.txt": "b"})

    entry = [e for e in scan(env.source_dir) if e.relative == "a/b.txt"][0]

    assert entry.path == os.path.join(env.source_dir, "a", "b.txt")
    assert not entry.is_dir


def test_scan_is_restartable(env):
    env.create_source({"one": "1"})
    first = list(scan(env.source_dir))
    env.create_source({"two": "2"})

    second = list(scan(env.source_dir))

    assert [e.relative for e in first] == ["one"]
    assert [e.relative for e in second] == ["one", "two"]


def test_nothing_is_read_before_first_entry(env):
    env.create_source({"early": "1"})
    entries = scan(env.source_dir)
    env.create_source({"late": "2"})

    assert [e.relative for e in entries] == ["early", "late"]


def test_missing_root_fails_on_first_entry(env):
    entries = scan(os.path.join(env.tmpdir, "missing"))

    with pytest.raises(TraversalError):
        next(entries)


def test_symlink_inside_source_raises(env):
    env.create_source({"real": "r"})
    os.symlink(env.src("real"), env.src("alias"))

    with pytest.raises(TraversalError) as exc_info:
        list(scan(env.source_dir))

    assert exc_info.value.relative == "alias"


def test_symlink_loop_is_not_followed(env):
    env.create_source({"d/file": "f"})
    os.symlink(env.source_dir, env.src("d/loop"))
    errors = []

    entries = list(scan(env.source_dir, onerror=errors.append))

    assert [e.relative for e in entries] == ["d", "d/file"]
    assert [err.relative for err in errors] == ["d/loop"]


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="permissions are not enforced for root",
)
def test_unreadable_directory_is_reported_and_skipped(env):
    env.create_source({"locked/secret": "s", "open/file": "f"})
    os.chmod(env.src("locked"), 0)
    errors = []
    try:
        entries = [e.relative for e in scan(env.source_dir, onerror=errors.append)]
    finally:
        os.chmod(env.src("locked"), 0o755)

    assert "open/file" in entries
    assert "locked/secret" not in entries
    assert [err.relative for err in errors] == ["locked"]
