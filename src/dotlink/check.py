# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""dotlink-check - Inspect a deployed target tree against its source."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from enum import Enum, auto

from dotlink.scan import scan
from dotlink.types import TraversalError
from dotlink.util import join_relative, link_points_to, warn


class Mode(Enum):
    BAD_LINKS = auto()
    ALIENS = auto()
    LIST = auto()


def main() -> None:
    """Main entry point."""
    source, target, mode = parse_args(sys.argv[1:])

    match mode:
        case Mode.BAD_LINKS:
            for path in find_bad_links(source, target):
                print(f"Bogus link: {path}")
        case Mode.ALIENS:
            for path in find_aliens(source, target):
                print(f"Not linked: {path}")
        case Mode.LIST:
            for rel in list_linked(source, target):
                print(rel)


def parse_args(args: list[str]) -> tuple[str, str, Mode]:
    """Parse arguments, return (source, target, mode)."""
    source = os.environ.get("DOTLINK_DIR") or os.getcwd()
    target = os.path.expanduser("~")
    mode = Mode.BAD_LINKS

    i = 0
    while i < len(args):
        arg = args[i]
        match arg:
            case "-b" | "--badlinks":
                mode = Mode.BAD_LINKS
            case "-a" | "--aliens":
                mode = Mode.ALIENS
            case "-l" | "--list":
                mode = Mode.LIST
            case "-s" | "--source" if i + 1 < len(args):
                i += 1
                source = args[i]
            case _ if arg.startswith("--source="):
                source = arg.removeprefix("--source=")
            case "-t" | "--target" if i + 1 < len(args):
                i += 1
                target = args[i]
            case _ if arg.startswith("--target="):
                target = arg.removeprefix("--target=")
            case _:
                usage()
        i += 1

    return os.path.abspath(source), os.path.abspath(target), mode


def usage() -> None:
    """Print usage message and exit."""
    print("""\
USAGE: dotlink-check [options]

Options:
    -s DIR, --source=DIR  The deployed dotfiles tree (default: $DOTLINK_DIR
                          or the current directory)
    -t DIR, --target=DIR  The target the tree was deployed to
                          (default: home directory)
    -b, --badlinks        Report links into the source that point to
                          non-existent files
    -a, --aliens          Report target files that occupy a source file's
                          slot without linking to it
    -l, --list            List the source paths currently linked

--badlinks is the default mode.""")
    sys.exit(0)


# ---------------------------------------------------------------------------
# Library API
# ---------------------------------------------------------------------------


def find_bad_links(source: str, target: str) -> Iterator[str]:
    """Yield dangling links in mirrored target folders that point into source."""
    source = os.path.abspath(source)
    for dir_path in _mirrored_dirs(source, target):
        try:
            names = sorted(os.listdir(dir_path))
        except OSError as e:
            warn(f"cannot read directory: {dir_path} ({e.strerror})")
            continue
        for name in names:
            path = os.path.join(dir_path, name)
            if os.path.islink(path) and not os.path.exists(path) and _points_into(path, source):
                yield path


def find_aliens(source: str, target: str) -> Iterator[str]:
    """Yield target paths occupied by something other than a link for a source file."""
    for entry in scan(source, onerror=_warn_skip):
        if entry.is_dir:
            continue
        path = join_relative(target, entry.relative)
        if os.path.lexists(path) and not os.path.islink(path):
            yield path


def list_linked(source: str, target: str) -> list[str]:
    """Return the relative paths whose target slot links to the source file."""
    linked = []
    for entry in scan(source, onerror=_warn_skip):
        if entry.is_dir:
            continue
        path = join_relative(target, entry.relative)
        if os.path.islink(path) and link_points_to(path, entry.path):
            linked.append(entry.relative)
    return sorted(linked)


def _mirrored_dirs(source: str, target: str) -> Iterator[str]:
    yield os.path.abspath(target)
    for entry in scan(source, onerror=_warn_skip):
        if not entry.is_dir:
            continue
        path = join_relative(target, entry.relative)
        if os.path.isdir(path):
            yield path


def _points_into(link_path: str, source: str) -> bool:
    dest = os.path.join(os.path.dirname(link_path), os.readlink(link_path))
    dest = os.path.normpath(dest)
    return dest.startswith(source + os.sep)


def _warn_skip(err: TraversalError) -> None:
    warn(f"skipping {err.relative}: {err.message}")


if __name__ == "__main__":
    main()
