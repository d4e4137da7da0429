# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Applying a plan to the filesystem.

Operations run in four steps: create folders, adopt destination objects
into the source tree, remove stale links, create links. Every operation
re-checks the state it depends on, since the destination may have changed
after the plan was built. A failed operation is recorded and the step
moves on to the next one; a step with failures stops the apply, and a
re-run picks up whatever is left.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
from typing import Callable, Optional, Sequence

from dotlink.types import (
    AdoptConflict,
    ApplyError,
    DotlinkError,
    DotlinkProgrammingError,
    ElevationError,
    FolderCreate,
    LinkConflict,
    Plan,
    Report,
)
from dotlink.util import debug, link_points_to, move_replacing, warn

LinkOp = tuple[str, str]  # (link_path, target_path)


class OperationError(DotlinkError):
    """A single apply-time operation could not be performed."""


# =============================================================================
# Link creation back ends
# =============================================================================


class PrivilegedExecutor:
    """Creates a batch of symbolic links.

    create_links() returns {link_path: message} for the links it failed to
    create. Callers verify the result on disk either way.
    """

    def create_links(self, ops: Sequence[LinkOp]) -> dict[str, str]:
        raise NotImplementedError


class InProcessExecutor(PrivilegedExecutor):
    """Create links directly with os.symlink."""

    def create_links(self, ops: Sequence[LinkOp]) -> dict[str, str]:
        failures: dict[str, str] = {}
        for link_path, target in ops:
            try:
                os.symlink(target, link_path, target_is_directory=os.path.isdir(target))
            except OSError as e:
                failures[link_path] = f"Could not create symlink: {link_path} => {target} ({e})"
        return failures


class ElevatedBatchExecutor(PrivilegedExecutor):
    """Create all links in one elevated child process.

    The links are chained into a single command so the operator is asked
    for elevation once. The chain stops at the first failure; links created
    before it stay in place.
    """

    def __init__(
        self,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        windows: Optional[bool] = None,
    ):
        self._runner = runner
        self._windows = os.name == "nt" if windows is None else windows

    def build_command(self, ops: Sequence[LinkOp]) -> list[str]:
        if self._windows:
            chain = " && ".join(
                f'mklink {"/D " if os.path.isdir(target) else ""}"{link}" "{target}"'
                for link, target in ops
            )
            chain = chain.replace("'", "''")
            return [
                "powershell",
                "-NoProfile",
                "-Command",
                f"Start-Process cmd.exe -Verb RunAs -Wait -ArgumentList '/c {chain}'",
            ]

        chain = " && ".join(
            f"ln -s -- {shlex.quote(target)} {shlex.quote(link)}" for link, target in ops
        )
        return ["sudo", "sh", "-c", chain]

    def format_command(self, command: Sequence[str]) -> str:
        if self._windows:
            return subprocess.list2cmdline(command)
        return shlex.join(command)

    def create_links(self, ops: Sequence[LinkOp]) -> dict[str, str]:
        command = self.build_command(ops)
        printable = self.format_command(command)
        debug(1, 0, f"ELEVATE: {printable}")
        try:
            result = self._runner(command, check=False)
        except OSError as e:
            raise ElevationError(
                f"could not start elevated process ({e})", printable
            ) from e
        if result.returncode != 0:
            raise ElevationError(
                f"elevated link batch exited with status {result.returncode}",
                printable,
            )
        return {}


def can_create_symlinks() -> bool:
    """Probe whether this process may create symbolic links.

    Any failure, including an unusable temporary directory, counts as no.
    """
    try:
        with tempfile.TemporaryDirectory(prefix="dotlink-probe-") as tmp:
            target = os.path.join(tmp, "target")
            with open(target, "w"):
                pass
            os.symlink(target, os.path.join(tmp, "link"))
    except (OSError, NotImplementedError) as e:
        debug(2, 0, f"symlink probe failed: {e}")
        return False
    return True


def select_executor(probe: Callable[[], bool] = can_create_symlinks) -> PrivilegedExecutor:
    if probe():
        return InProcessExecutor()
    debug(1, 0, "Cannot create symbolic links here; batching them for elevation")
    return ElevatedBatchExecutor()


# =============================================================================
# Apply
# =============================================================================


def apply(
    plan: Plan,
    dry_run: bool = False,
    executor: Optional[PrivilegedExecutor] = None,
) -> Report:
    """Execute plan against the filesystem and report what was done.

    With dry_run, nothing is touched and the report holds the counts a live
    run is expected to produce. Raises ApplyError (carrying the partial
    report) if any operation failed, and ElevationError if the elevated
    link batch could not be completed.
    """
    if plan.has_pending_conflicts:
        raise DotlinkProgrammingError("apply() called before conflicts were resolved")

    if dry_run:
        for line in _dry_run_lines(plan):
            debug(1, 0, line)
        return Report(
            folders_created=len(plan.folders_to_create),
            links_created=len(plan.link_operations()),
            adoptions_applied=len(plan.resolved_adoptions),
            conflicts_fixed=len(plan.resolved_link_fixes),
            dry_run=True,
        )

    report = Report()
    debug(2, 0, "Applying plan...")

    _run_step(report, "create folders", plan.folders_to_create, _create_folder, "folders_created")
    _run_step(report, "adopt files", plan.resolved_adoptions, _adopt, "adoptions_applied")
    _run_step(report, "remove stale links", plan.resolved_link_fixes, _remove_stale_link, "conflicts_fixed")
    _create_links(report, plan.link_operations(), executor)

    debug(2, 0, "Applying plan... done")
    return report


def _run_step(report: Report, name: str, items, operation, counter: str) -> None:
    failed = 0
    for item in items:
        try:
            changed = operation(item)
        except OperationError as e:
            _record_failure(report, e.message)
            failed += 1
            continue
        if changed:
            setattr(report, counter, getattr(report, counter) + 1)

    if failed:
        raise ApplyError(
            f"{failed} operation(s) failed while trying to {name}; "
            f"fix the cause and re-run to resume",
            report,
        )


def _record_failure(report: Report, message: str) -> None:
    warn(message)
    report.failures.append(message)


def _create_folder(item: FolderCreate) -> bool:
    path = item.path
    if os.path.isdir(path) and not os.path.islink(path):
        debug(2, 0, f"MKDIR: {item.relative} (already exists)")
        return False
    if os.path.lexists(path):
        raise OperationError(
            f"Could not create directory: {path} (occupied by a non-directory)"
        )
    debug(1, 0, f"MKDIR: {item.relative}")
    try:
        os.makedirs(path)
    except OSError as e:
        raise OperationError(f"Could not create directory: {path} ({e})") from e
    return True


def _adopt(item: AdoptConflict) -> bool:
    if not os.path.lexists(item.link_path):
        raise OperationError(f"Could not adopt {item.link_path}: it no longer exists")
    if os.path.islink(item.link_path):
        raise OperationError(
            f"Could not adopt {item.link_path}: it has become a symbolic link"
        )
    debug(1, 0, f"MV: {item.link_path} -> {item.source_path}")
    try:
        move_replacing(item.link_path, item.source_path)
    except OSError as e:
        raise OperationError(
            f"Could not move {item.link_path} -> {item.source_path} ({e})"
        ) from e
    return True


def _remove_stale_link(item: LinkConflict) -> bool:
    try:
        current = os.readlink(item.link_path)
    except OSError as e:
        raise OperationError(
            f"Could not remove link: {item.link_path} (no longer a symbolic link: {e})"
        ) from e
    if current != item.current_target:
        raise OperationError(
            f"Could not remove link: {item.link_path} "
            f"(now points to {current}, expected {item.current_target})"
        )
    debug(1, 0, f"UNLINK: {item.link_path}")
    try:
        os.unlink(item.link_path)
    except OSError as e:
        raise OperationError(f"Could not remove link: {item.link_path} ({e})") from e
    return True


def _create_links(
    report: Report, ops: Sequence[LinkOp], executor: Optional[PrivilegedExecutor]
) -> None:
    pending: list[LinkOp] = []
    for link_path, target in ops:
        if os.path.islink(link_path) and link_points_to(link_path, target):
            debug(2, 0, f"LINK: {link_path} => {target} (already in place)")
            continue
        if os.path.lexists(link_path):
            _record_failure(
                report,
                f"Could not create symlink: {link_path} => {target} (path is occupied)",
            )
            continue
        try:
            os.makedirs(os.path.dirname(link_path), exist_ok=True)
        except OSError as e:
            _record_failure(
                report, f"Could not create parent directory of {link_path} ({e})"
            )
            continue
        debug(1, 0, f"LINK: {link_path} => {target}")
        pending.append((link_path, target))

    if pending:
        if executor is None:
            executor = select_executor()
        try:
            failures = executor.create_links(pending)
        except ElevationError as e:
            _verify_links(report, pending, {})
            e.report = report
            raise
        _verify_links(report, pending, failures)

    if report.failures:
        raise ApplyError(
            f"{len(report.failures)} operation(s) failed while trying to create links; "
            f"fix the cause and re-run to resume",
            report,
        )


def _verify_links(report: Report, ops: Sequence[LinkOp], failures: dict[str, str]) -> None:
    for link_path, target in ops:
        if link_path in failures:
            _record_failure(report, failures[link_path])
        elif os.path.islink(link_path) and link_points_to(link_path, target):
            report.links_created += 1
        else:
            _record_failure(
                report, f"Could not create symlink: {link_path} => {target} (not found afterwards)"
            )


def _dry_run_lines(plan: Plan) -> list[str]:
    lines = [f"MKDIR: {f.relative}" for f in plan.folders_to_create]
    lines += [f"MV: {a.link_path} -> {a.source_path}" for a in plan.resolved_adoptions]
    lines += [f"UNLINK: {c.link_path}" for c in plan.resolved_link_fixes]
    lines += [f"LINK: {link} => {target}" for link, target in plan.link_operations()]
    return lines
