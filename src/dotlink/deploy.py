# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
One-call deployment: plan, resolve and apply with a DeployConfig.
"""

from __future__ import annotations

import dataclasses
from typing import Optional

from dotlink.apply import PrivilegedExecutor, apply
from dotlink.plan import build_plan
from dotlink.resolve import AutoApprove, DecisionSource, PromptDecisions, resolve
from dotlink.types import DeployConfig, DeployResult
from dotlink.util import expand_user_path, set_debug_level


def deploy(
    config: DeployConfig | None = None,
    decisions: Optional[DecisionSource] = None,
    executor: Optional[PrivilegedExecutor] = None,
    **kwargs,
) -> DeployResult:
    """Link every file of the source tree into the target tree.

    Args:
        config: Optional DeployConfig for configuration
        decisions: Where conflict decisions come from; defaults to
                   AutoApprove with auto_approve, else a console prompt
        executor: Link creation back end; chosen by probing if omitted
        **kwargs: Override config fields (source, target, dry_run, etc.)

    Returns:
        DeployResult with the resolved plan and the apply report
    """
    cfg = _resolve_target(_make_config(config, **kwargs))
    set_debug_level(cfg.verbose)

    plan = build_plan(cfg.source, cfg.target, cfg.ignore, script_path=cfg.script_path)
    if decisions is None:
        decisions = AutoApprove() if cfg.auto_approve else PromptDecisions()
    plan = resolve(plan, decisions)
    report = apply(plan, dry_run=cfg.dry_run, executor=executor)
    return DeployResult(plan=plan, report=report)


def _make_config(config: DeployConfig | None, **kwargs) -> DeployConfig:
    """Create a DeployConfig from optional base config and overrides."""
    if "ignore" in kwargs:
        kwargs["ignore"] = tuple(kwargs["ignore"])
    if config is None:
        return DeployConfig(**kwargs)
    elif kwargs:
        return dataclasses.replace(config, **kwargs)
    else:
        return config


def _resolve_target(config: DeployConfig) -> DeployConfig:
    """Default the target to the home directory and expand '~' in both roots."""
    target = config.target if config.target is not None else "~"
    return dataclasses.replace(
        config,
        source=expand_user_path(config.source),
        target=expand_user_path(target),
    )
