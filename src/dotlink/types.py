# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Type definitions for dotlink.

This module contains the enums, plan items, plan/report containers and
exception classes shared by the scanning, resolution and apply stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union


class EntryKind(Enum):
    """Kinds of source tree entries."""

    DIR = "dir"
    FILE = "file"


class Decision(Enum):
    """Operator decision for a single conflict."""

    ACCEPT = "accept"
    REJECT = "reject"
    ACCEPT_ALL = "accept-all"
    REJECT_ALL = "reject-all"

    @property
    def accepted(self) -> bool:
        return self in (Decision.ACCEPT, Decision.ACCEPT_ALL)

    @property
    def applies_to_rest(self) -> bool:
        return self in (Decision.ACCEPT_ALL, Decision.REJECT_ALL)


class ExitCode(IntEnum):
    """Process exit codes of the dotlink command."""

    OK = 0
    VALIDATION = 2
    DECLINED = 3
    PARTIAL_APPLY = 4
    ELEVATION = 5


@dataclass(frozen=True, slots=True)
class ScanEntry:
    """A directory or file found below the source root."""

    relative: str
    kind: EntryKind
    path: str

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIR


# =============================================================================
# Plan items
# =============================================================================


@dataclass(frozen=True, slots=True)
class FolderCreate:
    relative: str
    path: str


@dataclass(frozen=True, slots=True)
class LinkCreate:
    relative: str
    link_path: str
    target_path: str


@dataclass(frozen=True, slots=True)
class Satisfied:
    """Destination already matches the source."""

    relative: str


@dataclass(frozen=True, slots=True)
class Ignored:
    relative: str


@dataclass(frozen=True, slots=True)
class LinkConflict:
    """Destination is a symbolic link pointing somewhere else."""

    relative: str
    link_path: str
    current_target: str
    expected_target: str


@dataclass(frozen=True, slots=True)
class AdoptConflict:
    """Destination slot is occupied by a real file or directory."""

    relative: str
    link_path: str
    source_path: str


PlanItem = Union[FolderCreate, LinkCreate, Satisfied, Ignored, LinkConflict, AdoptConflict]
Conflict = Union[LinkConflict, AdoptConflict]


@dataclass(frozen=True, slots=True)
class ResolvedAction:
    """A conflict together with the operator's verdict."""

    item: Conflict
    accepted: bool


@dataclass(frozen=True)
class SkippedEntry:
    """A subtree left out of the plan because of a traversal problem."""

    relative: str
    reason: str


@dataclass(frozen=True)
class Plan:
    """
    Every filesystem operation needed to reconcile destination with source.

    A Plan is a value: building or resolving one never touches the
    filesystem. Conflicts start out pending in adopt_conflicts and
    link_conflicts; resolve() moves them into resolved_adoptions,
    resolved_link_fixes (accepted) or unresolved (rejected).
    """

    source_root: str
    dest_root: str
    items: tuple[PlanItem, ...] = ()
    folders_to_create: tuple[FolderCreate, ...] = ()
    links_to_create: tuple[LinkCreate, ...] = ()
    adopt_conflicts: tuple[AdoptConflict, ...] = ()
    link_conflicts: tuple[LinkConflict, ...] = ()
    resolved_adoptions: tuple[AdoptConflict, ...] = ()
    resolved_link_fixes: tuple[LinkConflict, ...] = ()
    unresolved: tuple[Conflict, ...] = ()
    skipped: tuple[SkippedEntry, ...] = ()

    @property
    def has_pending_conflicts(self) -> bool:
        return bool(self.adopt_conflicts or self.link_conflicts)

    @property
    def is_empty(self) -> bool:
        """Return True if applying the plan would not change anything."""
        return not (
            self.folders_to_create
            or self.links_to_create
            or self.resolved_adoptions
            or self.resolved_link_fixes
            or self.has_pending_conflicts
        )

    def link_operations(self) -> list[tuple[str, str]]:
        """Return (link_path, target_path) for every link step 4 creates."""
        ops = [(item.link_path, item.target_path) for item in self.links_to_create]
        ops.extend((item.link_path, item.source_path) for item in self.resolved_adoptions)
        ops.extend(
            (item.link_path, item.expected_target) for item in self.resolved_link_fixes
        )
        return ops


@dataclass
class Report:
    """Outcome (or, for dry runs, expected outcome) of applying a plan."""

    folders_created: int = 0
    links_created: int = 0
    adoptions_applied: int = 0
    conflicts_fixed: int = 0
    failures: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class DeployConfig:
    """
    Configuration for one deployment run.

    Attributes:
        source: Root of the managed dotfiles tree
        target: Destination root the links are placed in
        dry_run: If True, don't make filesystem changes
        auto_approve: Accept every conflict without prompting
        verbose: Verbosity level (0-5)
        ignore: Extra ignore patterns on top of the ignore-list file
        script_path: Path of the deploying script, never deployed itself
    """

    source: str = "."
    target: Optional[str] = None
    dry_run: bool = False
    auto_approve: bool = False
    verbose: int = 0
    ignore: tuple[str, ...] = ()
    script_path: Optional[str] = None


@dataclass
class DeployResult:
    """Result of deploy(): the resolved plan and the apply report."""

    plan: Plan
    report: Report


# =============================================================================
# Exceptions
# =============================================================================


class DotlinkError(Exception):
    """Base class for errors reported to the operator."""

    def __init__(self, message: str, errno: int = 1):
        super().__init__(message)
        self.message = message
        self.errno = errno


class DotlinkProgrammingError(DotlinkError):
    """An internal invariant was violated. This is a bug."""


class ValidationError(DotlinkError):
    """Bad root paths or ignore patterns. Raised before any scan."""

    def __init__(self, message: str):
        super().__init__(message, errno=ExitCode.VALIDATION)


class TraversalError(DotlinkError):
    """A subtree of the source could not be traversed or mapped safely."""

    def __init__(self, message: str, relative: str = ""):
        super().__init__(message)
        self.relative = relative


class ApplyError(DotlinkError):
    """One or more operations failed while applying a plan."""

    def __init__(self, message: str, report: Report):
        super().__init__(message, errno=ExitCode.PARTIAL_APPLY)
        self.report = report


class ElevationError(DotlinkError):
    """The elevated link batch could not be run or did not complete."""

    def __init__(self, message: str, command: str, report: Optional[Report] = None):
        super().__init__(message, errno=ExitCode.ELEVATION)
        self.command = command
        self.report = report
