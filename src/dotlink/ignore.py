# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Ignore rules - decide which source entries are never deployed.

Matching is deliberately simpler than gitignore: a relative path is
ignored if it equals a pattern, starts with it, or matches it as a glob
where '*' spans any characters (including '/'). A leading '!' is accepted
by the grammar but carries no negation meaning; it is matched literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from dotlink.types import ValidationError
from dotlink.util import debug

IGNORE_FILE = ".dotlinkignore"

_VALID_PATTERN = re.compile(r"!?[\w\-.*/]+")


@dataclass(frozen=True)
class IgnoreRule:
    """A single validated ignore pattern."""

    pattern: str
    regexp: re.Pattern

    @property
    def negated(self) -> bool:
        return self.pattern.startswith("!")

    @classmethod
    def parse(cls, pattern: str) -> IgnoreRule:
        glob = ".*".join(re.escape(part) for part in pattern.split("*"))
        return cls(pattern, re.compile(glob, re.DOTALL))

    def matches(self, relative: str) -> bool:
        return (
            relative == self.pattern
            or relative.startswith(self.pattern)
            or self.regexp.fullmatch(relative) is not None
        )


def check_pattern(pattern: str) -> Optional[str]:
    """Return why pattern is invalid, or None if it is acceptable."""
    if not pattern or not pattern.strip():
        return "empty pattern"
    if ":" in pattern:
        return "patterns must not contain ':'"
    if not _VALID_PATTERN.fullmatch(pattern):
        return "only word characters, '-', '.', '*' and '/' are allowed"
    return None


class IgnoreMatcher:
    """A compiled set of ignore rules."""

    def __init__(self, rules: Sequence[IgnoreRule]):
        self.rules = tuple(rules)

    @classmethod
    def compile(
        cls, patterns: Iterable[str], implicit: Iterable[str] = ()
    ) -> IgnoreMatcher:
        """Validate and compile patterns.

        Implicit patterns (the ignore file itself, the deploying script) are
        added without validation. All invalid patterns are reported in one
        ValidationError.
        """
        rules: list[IgnoreRule] = []
        problems: list[str] = []
        for pattern in patterns:
            reason = check_pattern(pattern)
            if reason:
                problems.append(f"{pattern!r}: {reason}")
            else:
                rules.append(IgnoreRule.parse(pattern))

        if problems:
            raise ValidationError(
                "invalid ignore pattern(s): " + "; ".join(problems)
            )

        for pattern in implicit:
            if pattern and all(r.pattern != pattern for r in rules):
                rules.append(IgnoreRule.parse(pattern))

        for rule in rules:
            note = " (negation is not applied)" if rule.negated else ""
            debug(5, 0, f"ignore rule: {rule.pattern}{note}")
        return cls(rules)

    @property
    def patterns(self) -> list[str]:
        return [r.pattern for r in self.rules]

    def matches(self, relative: str, is_dir: bool = False) -> bool:
        """Return True if relative is excluded by any rule.

        Directory entries are also tried with a trailing '/', so that a rule
        like 'secrets/' covers the directory itself.
        """
        candidates = (relative, relative + "/") if is_dir else (relative,)
        for rule in self.rules:
            if any(rule.matches(c) for c in candidates):
                debug(5, 1, f"| {relative} matches ignore rule {rule.pattern}")
                return True
        return False


def read_ignore_file(file_path: str) -> list[str]:
    """Read patterns from an ignore-list file.

    One pattern per line; blank lines and '#' comments are skipped.
    A missing file yields no patterns.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return []
    except OSError as e:
        raise ValidationError(f"Could not read ignore file {file_path} ({e})") from e

    patterns: list[str] = []
    for line in lines:
        line = line.strip()
        if line.startswith("#") or not line:
            continue
        patterns.append(line)
    return patterns
