# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Utility functions for dotlink.

This module contains general-purpose utilities used throughout dotlink,
including debug output, relative path handling and the filesystem helpers
shared by the classifier and the applier.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import sys

VERSION = "1.2.0"
PROGRAM_NAME = "dotlink"

# Debug level is module-level state
_debug_level = 0


def set_debug_level(level: int) -> None:
    """Set verbosity level for debug()."""
    global _debug_level
    _debug_level = level


def get_debug_level() -> int:
    """Get current debug level."""
    return _debug_level


def debug(level: int, *args) -> None:
    """
    Log to STDERR based on debug_level setting.

    Verbosity rules:
        0: errors and warnings only
        >= 1: print operations: MKDIR/LINK/UNLINK/MV
        >= 2: print classification decisions and skipped entries
        >= 3: print scan trace
        >= 4: debug helper routines
        >= 5: debug ignore matching

    Supports two calling conventions:
        debug(level, msg)
        debug(level, indent_level, msg)
    """
    if len(args) >= 2 and isinstance(args[0], int):
        indent_level = args[0]
        msg = args[1]
    elif len(args) >= 1:
        indent_level = 0
        msg = args[0]
    else:
        return

    if _debug_level >= level:
        indent = "    " * indent_level
        print(f"{indent}{msg}", file=sys.stderr)


def warn(msg: str) -> None:
    """Print a warning regardless of verbosity."""
    print(f"{PROGRAM_NAME}: WARNING: {msg}", file=sys.stderr)


def to_relative(path: str, root: str) -> str:
    """
    Express path relative to root using '/' as the only separator.

    The result is the identity of an entry across source and destination.
    """
    rel = os.path.relpath(path, root)
    if os.sep != "/":
        rel = rel.replace(os.sep, "/")
    return rel


def join_relative(root: str, relative: str) -> str:
    """Join a '/'-separated relative path onto a native root path."""
    return os.path.join(root, *relative.split("/"))


def link_points_to(link_path: str, target: str) -> bool:
    """
    Return True if the symlink at link_path resolves lexically to target.

    Relative link contents are interpreted against the link's directory.
    Nothing beyond the link itself is resolved, so a dangling link can
    still match.
    """
    try:
        dest = os.readlink(link_path)
    except OSError:
        return False
    dest = os.path.join(os.path.dirname(link_path), dest)
    return os.path.normcase(os.path.normpath(dest)) == os.path.normcase(
        os.path.normpath(target)
    )


def file_digest(path: str, chunk_size: int = 1 << 16) -> str:
    """Return the SHA-256 hex digest of a file's contents."""
    sha = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha.update(chunk)
    return sha.hexdigest()


def same_content(a: str, b: str) -> bool:
    """
    Return True if a and b are regular files with identical bytes.

    Any read error counts as "different".
    """
    try:
        if not (os.path.isfile(a) and os.path.isfile(b)):
            return False
        if os.path.getsize(a) != os.path.getsize(b):
            return False
        return file_digest(a) == file_digest(b)
    except OSError:
        return False


def remove_path(path: str) -> None:
    """Remove a file, symlink or whole directory tree."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.unlink(path)


def move_replacing(src: str, dst: str) -> None:
    """
    Move src to dst, replacing whatever is at dst.

    Works across filesystems (falls back to copy + delete via shutil).
    A file replacing a file is overwritten by the move itself, so dst
    survives a failed move. Only a directory on either side forces dst to
    be removed first.
    """
    if os.path.lexists(dst) and (_is_real_dir(src) or _is_real_dir(dst)):
        debug(4, 2, f"| removing {dst} before move")
        remove_path(dst)
    parent = os.path.dirname(dst)
    if parent:
        os.makedirs(parent, exist_ok=True)
    shutil.move(src, dst)


def _is_real_dir(path: str) -> bool:
    return os.path.isdir(path) and not os.path.islink(path)


def expand_user_path(path: str) -> str:
    """Expand ~ and return an absolute, normalized path (links unresolved)."""
    return os.path.abspath(os.path.expanduser(path))
