# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
dotlink - deploy a dotfiles tree as symbolic links

This package mirrors the directory structure of a source tree into a
destination tree and links every file back to the source, resolving
whatever already occupies the destination.

Basic usage::

    from dotlink import deploy

    result = deploy(source="~/dotfiles", target="~", auto_approve=True)
    print(result.report)

Step by step::

    from dotlink import build_plan, resolve, apply, AutoApprove, format_plan

    plan = build_plan("/home/me/dotfiles", "/home/me", ["secrets/"])
    plan = resolve(plan, AutoApprove())
    print("\\n".join(format_plan(plan)))
    report = apply(plan)

Simulation mode::

    report = apply(plan, dry_run=True)
"""

from dotlink.apply import apply, can_create_symlinks
from dotlink.deploy import deploy
from dotlink.ignore import IgnoreMatcher
from dotlink.plan import build_plan, classify, format_plan, format_report, format_unresolved
from dotlink.resolve import AutoApprove, PromptDecisions, ScriptedDecisions, resolve
from dotlink.scan import scan
from dotlink.types import (
    AdoptConflict,
    ApplyError,
    Decision,
    DeployConfig,
    DeployResult,
    DotlinkError,
    ElevationError,
    FolderCreate,
    Ignored,
    LinkConflict,
    LinkCreate,
    Plan,
    Report,
    Satisfied,
    TraversalError,
    ValidationError,
)
from dotlink.util import VERSION as __version__

# CLI entry point
from dotlink.cli import main

__all__ = [
    "deploy",
    "build_plan",
    "classify",
    "resolve",
    "apply",
    "scan",
    "can_create_symlinks",
    "format_plan",
    "format_report",
    "format_unresolved",
    "IgnoreMatcher",
    "AutoApprove",
    "PromptDecisions",
    "ScriptedDecisions",
    "Decision",
    "DeployConfig",
    "DeployResult",
    "Plan",
    "Report",
    "FolderCreate",
    "LinkCreate",
    "Satisfied",
    "Ignored",
    "LinkConflict",
    "AdoptConflict",
    "DotlinkError",
    "ValidationError",
    "TraversalError",
    "ApplyError",
    "ElevationError",
    "__version__",
    "main",
]
