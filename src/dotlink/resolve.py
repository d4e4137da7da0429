# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Conflict resolution.

Conflicts are settled one at a time, in scan order, by asking a
DecisionSource. Adoption conflicts are settled before link conflicts. An
"all" decision answers the remaining conflicts of the same pass without
asking again.
"""

from __future__ import annotations

import dataclasses
import sys
from typing import Callable, Iterable, Sequence, TextIO

from dotlink.types import (
    AdoptConflict,
    Conflict,
    Decision,
    DotlinkProgrammingError,
    LinkConflict,
    Plan,
    ResolvedAction,
)
from dotlink.util import debug, same_content


class DecisionSource:
    """Supplies a Decision for each conflict presented to it."""

    def decide(self, item: Conflict) -> Decision:
        raise NotImplementedError


class AutoApprove(DecisionSource):
    """Accept every conflict without asking."""

    def decide(self, item: Conflict) -> Decision:
        return Decision.ACCEPT


class ScriptedDecisions(DecisionSource):
    """Replay a fixed sequence of decisions (automation and tests)."""

    def __init__(self, decisions: Iterable[Decision]):
        self._decisions = list(decisions)
        self.asked: list[Conflict] = []

    def decide(self, item: Conflict) -> Decision:
        if len(self.asked) >= len(self._decisions):
            raise DotlinkProgrammingError(
                f"no scripted decision left for conflict at {item.relative}"
            )
        decision = self._decisions[len(self.asked)]
        self.asked.append(item)
        return decision


_ANSWERS = {
    "y": Decision.ACCEPT,
    "yes": Decision.ACCEPT,
    "n": Decision.REJECT,
    "no": Decision.REJECT,
    "a": Decision.ACCEPT_ALL,
    "all": Decision.ACCEPT_ALL,
    "s": Decision.REJECT_ALL,
    "none": Decision.REJECT_ALL,
}


class PromptDecisions(DecisionSource):
    """Ask the operator on the console.

    End of input is taken as "reject all remaining".
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        out: TextIO | None = None,
    ):
        self._input = input_func
        self._out = out if out is not None else sys.stderr

    def decide(self, item: Conflict) -> Decision:
        print(describe_conflict(item), file=self._out)
        while True:
            try:
                answer = self._input("[y]es / [n]o / [a]ll / [s]kip all? ")
            except EOFError:
                return Decision.REJECT_ALL
            decision = _ANSWERS.get(answer.strip().lower())
            if decision is not None:
                return decision
            print("Please answer y, n, a or s.", file=self._out)


def describe_conflict(item: Conflict) -> str:
    """Explain to the operator what accepting a conflict would do."""
    if isinstance(item, AdoptConflict):
        text = (
            f"{item.link_path} already exists and is not a link.\n"
            f"  Accepting moves it to {item.source_path}, REPLACING the copy "
            f"in the source tree, then links it."
        )
        if same_content(item.link_path, item.source_path):
            text += "\n  (Both copies have identical content.)"
        return text
    if isinstance(item, LinkConflict):
        return (
            f"{item.link_path} links to {item.current_target}.\n"
            f"  Accepting removes that link and links it to {item.expected_target}."
        )
    raise DotlinkProgrammingError(f"not a conflict: {item!r}")


def resolve_pass(
    conflicts: Sequence[Conflict], decisions: DecisionSource
) -> list[ResolvedAction]:
    """Settle one category of conflicts in order."""
    actions: list[ResolvedAction] = []
    sticky: Decision | None = None
    for item in conflicts:
        if sticky is not None:
            decision = sticky
        else:
            decision = decisions.decide(item)
            if decision.applies_to_rest:
                sticky = decision
        verdict = "accepted" if decision.accepted else "rejected"
        debug(2, 0, f"--- Conflict at {item.relative} {verdict}")
        actions.append(ResolvedAction(item, decision.accepted))
    return actions


def resolve_conflicts(
    adopt_conflicts: Sequence[AdoptConflict],
    link_conflicts: Sequence[LinkConflict],
    decisions: DecisionSource,
) -> tuple[list[ResolvedAction], list[ResolvedAction]]:
    """Run the adoption pass, then the link pass."""
    adoptions = resolve_pass(adopt_conflicts, decisions)
    link_fixes = resolve_pass(link_conflicts, decisions)
    return adoptions, link_fixes


def resolve(plan: Plan, decisions: DecisionSource) -> Plan:
    """Return a copy of plan with all pending conflicts settled."""
    adoptions, link_fixes = resolve_conflicts(
        plan.adopt_conflicts, plan.link_conflicts, decisions
    )
    rejected = tuple(a.item for a in adoptions + link_fixes if not a.accepted)
    return dataclasses.replace(
        plan,
        adopt_conflicts=(),
        link_conflicts=(),
        resolved_adoptions=plan.resolved_adoptions
        + tuple(a.item for a in adoptions if a.accepted),
        resolved_link_fixes=plan.resolved_link_fixes
        + tuple(a.item for a in link_fixes if a.accepted),
        unresolved=plan.unresolved + rejected,
    )
