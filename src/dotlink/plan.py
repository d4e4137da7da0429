# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Planning - classify every source entry against the destination tree.

build_plan() scans the source root, classifies each entry into exactly one
plan item and aggregates the items into an immutable Plan. Nothing here
modifies the filesystem.
"""

from __future__ import annotations

import os
from typing import Iterable, Optional

from dotlink.ignore import IGNORE_FILE, IgnoreMatcher, read_ignore_file
from dotlink.scan import scan
from dotlink.types import (
    AdoptConflict,
    FolderCreate,
    Ignored,
    LinkConflict,
    LinkCreate,
    Plan,
    PlanItem,
    Report,
    Satisfied,
    ScanEntry,
    SkippedEntry,
    TraversalError,
    ValidationError,
)
from dotlink.util import debug, join_relative, link_points_to, same_content


def build_plan(
    source_root: str,
    dest_root: str,
    ignore_patterns: Iterable[str] = (),
    script_path: Optional[str] = None,
) -> Plan:
    """Compute the plan that makes dest_root point into source_root.

    Patterns from the ignore-list file at the source root are combined with
    ignore_patterns. Raises ValidationError for bad roots or patterns.
    Subtrees that cannot be traversed are listed in Plan.skipped.
    """
    source_root, dest_root = _validate_roots(source_root, dest_root)
    debug(2, 0, f"source root is {source_root}")
    debug(2, 0, f"destination root is {dest_root}")

    patterns = read_ignore_file(os.path.join(source_root, IGNORE_FILE))
    patterns.extend(ignore_patterns)
    implicit = [IGNORE_FILE]
    if script_path and _is_within(os.path.abspath(script_path), source_root):
        implicit.append(os.path.basename(script_path))
    ignore = IgnoreMatcher.compile(patterns, implicit)

    skipped: list[SkippedEntry] = []

    def record_skip(err: TraversalError) -> None:
        debug(2, 0, f"--- Skipping {err.relative}: {err.message}")
        skipped.append(SkippedEntry(err.relative, err.message))

    fold_case = dest_is_case_insensitive(dest_root)
    seen_folded: dict[str, str] = {}
    ignored_dirs: list[str] = []
    skipped_dirs: list[str] = []
    linked_dirs: list[str] = []
    items: list[PlanItem] = []

    for entry in scan(source_root, onerror=record_skip):
        rel = entry.relative
        if _is_below(rel, skipped_dirs):
            continue
        if _is_below(rel, ignored_dirs):
            items.append(Ignored(rel))
            continue
        if _is_below(rel, linked_dirs):
            # reached through a destination link to the source directory
            items.append(Satisfied(rel))
            continue

        try:
            if fold_case:
                _check_case_collision(entry, seen_folded)
            item = classify(entry, dest_root, ignore, script_path)
        except TraversalError as e:
            record_skip(e)
            if entry.is_dir:
                skipped_dirs.append(rel)
            continue

        if entry.is_dir and isinstance(item, Ignored):
            ignored_dirs.append(rel)
        elif entry.is_dir and _links_to_entry(join_relative(dest_root, rel), entry):
            linked_dirs.append(rel)
        items.append(item)

    return Plan(
        source_root=source_root,
        dest_root=dest_root,
        items=tuple(items),
        folders_to_create=tuple(i for i in items if isinstance(i, FolderCreate)),
        links_to_create=tuple(i for i in items if isinstance(i, LinkCreate)),
        adopt_conflicts=tuple(i for i in items if isinstance(i, AdoptConflict)),
        link_conflicts=tuple(i for i in items if isinstance(i, LinkConflict)),
        skipped=tuple(skipped),
    )


def classify(
    entry: ScanEntry,
    dest_root: str,
    ignore: IgnoreMatcher,
    script_path: Optional[str] = None,
) -> PlanItem:
    """Decide what, if anything, must happen at the destination for entry."""
    rel = entry.relative
    if ignore.matches(rel, is_dir=entry.is_dir) or _is_script(entry.path, script_path):
        debug(2, 1, f"{rel}: ignored")
        return Ignored(rel)

    dest_path = join_relative(dest_root, rel)

    if entry.is_dir:
        if os.path.islink(dest_path):
            return _classify_directory_link(entry, dest_path)
        if os.path.isdir(dest_path):
            debug(2, 1, f"{rel}: directory exists")
            return Satisfied(rel)
        if os.path.lexists(dest_path):
            raise TraversalError(
                f"cannot mirror directory {rel} over existing non-directory {dest_path}",
                rel,
            )
        debug(2, 1, f"{rel}: directory missing")
        return FolderCreate(rel, dest_path)

    if os.path.islink(dest_path):
        if link_points_to(dest_path, entry.path):
            debug(2, 1, f"{rel}: already linked")
            return Satisfied(rel)
        try:
            current = os.readlink(dest_path)
        except OSError as e:
            raise TraversalError(f"Could not read link: {dest_path} ({e})", rel) from e
        debug(2, 1, f"{rel}: linked elsewhere ({current})")
        return LinkConflict(rel, dest_path, current, entry.path)

    if os.path.lexists(dest_path):
        debug(2, 1, f"{rel}: occupied by an unmanaged object")
        return AdoptConflict(rel, dest_path, entry.path)

    debug(2, 1, f"{rel}: link missing")
    return LinkCreate(rel, dest_path, entry.path)


def dest_is_case_insensitive(dest_root: str) -> bool:
    """Probe whether names under dest_root are matched case-insensitively."""
    head, tail = os.path.split(dest_root)
    flipped = os.path.join(head, tail.swapcase())
    if flipped == dest_root:
        flipped = dest_root.swapcase()
        if flipped == dest_root:
            return False
    try:
        return os.path.samefile(dest_root, flipped)
    except OSError:
        return False


def _classify_directory_link(entry: ScanEntry, dest_path: str) -> PlanItem:
    """A symbolic link sits where a source directory is mirrored.

    A link to the source directory itself (left by adopting a directory)
    and a link to a real directory outside the source tree both count as
    an existing directory. Anything else cannot be descended into.
    """
    rel = entry.relative
    if _links_to_entry(dest_path, entry):
        debug(2, 1, f"{rel}: directory linked to the source")
        return Satisfied(rel)

    real_path = os.path.realpath(dest_path)
    if not os.path.isdir(real_path):
        raise TraversalError(
            f"destination directory slot is a symbolic link to a non-directory: {dest_path}",
            rel,
        )
    if _is_within(real_path, os.path.realpath(_source_root_of(entry))):
        raise TraversalError(
            f"destination directory slot links into the source tree: "
            f"{dest_path} -> {real_path}",
            rel,
        )
    debug(2, 1, f"{rel}: directory exists (through link to {real_path})")
    return Satisfied(rel)


def _links_to_entry(dest_path: str, entry: ScanEntry) -> bool:
    if not os.path.islink(dest_path):
        return False
    if link_points_to(dest_path, entry.path):
        return True
    return os.path.realpath(dest_path) == os.path.realpath(entry.path)


def _source_root_of(entry: ScanEntry) -> str:
    root = entry.path
    for _ in entry.relative.split("/"):
        root = os.path.dirname(root)
    return root


def _is_within(path: str, root: str) -> bool:
    return path.startswith(root.rstrip(os.sep) + os.sep)


def _check_case_collision(entry: ScanEntry, seen: dict[str, str]) -> None:
    key = entry.relative.casefold()
    other = seen.setdefault(key, entry.relative)
    if other != entry.relative:
        raise TraversalError(
            f"{entry.relative} and {other} map to the same destination path",
            entry.relative,
        )


def _is_below(relative: str, dirs: list[str]) -> bool:
    return any(relative.startswith(d + "/") for d in dirs)


def _is_script(path: str, script_path: Optional[str]) -> bool:
    if not script_path:
        return False
    return os.path.normcase(path) == os.path.normcase(os.path.abspath(script_path))


def _validate_roots(source_root: str, dest_root: str) -> tuple[str, str]:
    if not source_root or not os.path.isdir(source_root):
        raise ValidationError(f"source root is not a directory: {source_root!r}")
    if not dest_root or not os.path.isdir(dest_root):
        raise ValidationError(f"destination root is not a directory: {dest_root!r}")

    source_root = os.path.abspath(source_root)
    dest_root = os.path.abspath(dest_root)

    real_source = os.path.realpath(source_root)
    real_dest = os.path.realpath(dest_root)
    if real_source == real_dest:
        raise ValidationError(
            f"source and destination are the same directory: {source_root}"
        )
    if _is_within(real_dest, real_source):
        raise ValidationError(
            f"destination {dest_root} lies inside the source tree {source_root}"
        )
    return source_root, dest_root


# =============================================================================
# Rendering
# =============================================================================


def format_plan(plan: Plan) -> list[str]:
    """Describe every operation the plan would perform, one per line."""
    lines: list[str] = []
    for folder in plan.folders_to_create:
        lines.append(f"MKDIR: {folder.relative}")
    for link in plan.links_to_create:
        lines.append(f"LINK: {link.relative} => {link.target_path}")
    for adopt in plan.resolved_adoptions:
        note = (
            "identical content"
            if same_content(adopt.link_path, adopt.source_path)
            else "replaces the source copy"
        )
        lines.append(f"ADOPT: {adopt.link_path} -> {adopt.source_path} ({note})")
    for fix in plan.resolved_link_fixes:
        lines.append(
            f"RELINK: {fix.relative} => {fix.expected_target} (was {fix.current_target})"
        )
    for item in plan.adopt_conflicts + plan.link_conflicts:
        lines.append(f"PENDING: {item.relative} (conflict not resolved yet)")
    lines.extend(format_unresolved(plan))

    lines.append(
        f"{len(plan.folders_to_create)} folder(s) to create, "
        f"{len(plan.link_operations())} link(s) to create, "
        f"{len(plan.resolved_adoptions)} adoption(s), "
        f"{len(plan.resolved_link_fixes)} link fix(es), "
        f"{len(plan.unresolved)} left unresolved"
    )
    return lines


def format_unresolved(plan: Plan) -> list[str]:
    """One line per rejected conflict."""
    return [f"UNRESOLVED: {_describe_conflict(item)}" for item in plan.unresolved]


def format_report(report: Report) -> list[str]:
    prefix = "Would have: " if report.dry_run else ""
    lines = [
        f"{prefix}created {report.folders_created} folder(s), "
        f"{report.links_created} link(s); "
        f"adopted {report.adoptions_applied} file(s); "
        f"fixed {report.conflicts_fixed} link(s)"
    ]
    lines.extend(f"  * FAILED: {message}" for message in report.failures)
    return lines


def _describe_conflict(item) -> str:
    if isinstance(item, AdoptConflict):
        return f"{item.link_path} exists and is not a link to {item.source_path}"
    return (
        f"{item.link_path} links to {item.current_target} "
        f"instead of {item.expected_target}"
    )
