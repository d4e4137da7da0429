# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""Source tree scanning."""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Callable, Optional

from dotlink.types import EntryKind, ScanEntry, TraversalError
from dotlink.util import debug, to_relative

OnError = Callable[[TraversalError], None]


def scan(root: str, onerror: Optional[OnError] = None) -> Iterator[ScanEntry]:
    """Yield every directory and file below root.

    All directories come first, then all files, each group sorted by
    absolute path, so a parent directory is always yielded before anything
    inside it. Symbolic links inside the tree are never followed; they and
    unreadable directories raise TraversalError, or are handed to onerror
    and skipped if a callback is given.

    Nothing is read until the first entry is requested. Ordering by
    absolute path spans the whole tree, so that first request walks the
    tree completely and later entries come from the sorted result.
    """
    root = os.path.abspath(root)
    dirs: list[str] = []
    files: list[str] = []
    _walk(root, root, dirs, files, onerror)

    for path in sorted(dirs):
        yield ScanEntry(to_relative(path, root), EntryKind.DIR, path)
    for path in sorted(files):
        yield ScanEntry(to_relative(path, root), EntryKind.FILE, path)


def _walk(
    root: str,
    dir_path: str,
    dirs: list[str],
    files: list[str],
    onerror: Optional[OnError],
) -> None:
    debug(3, 0, f"Scanning {dir_path}")
    try:
        with os.scandir(dir_path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        _report(
            TraversalError(
                f"cannot read directory: {dir_path} ({e.strerror})",
                to_relative(dir_path, root),
            ),
            onerror,
        )
        return

    for entry in entries:
        if entry.is_symlink():
            _report(
                TraversalError(
                    f"source tree contains a symbolic link: {entry.path}",
                    to_relative(entry.path, root),
                ),
                onerror,
            )
            continue

        if entry.is_dir(follow_symlinks=False):
            dirs.append(entry.path)
            _walk(root, entry.path, dirs, files, onerror)
        else:
            files.append(entry.path)


def _report(err: TraversalError, onerror: Optional[OnError]) -> None:
    if onerror is None:
        raise err
    onerror(err)
