"""
Tests for ignore rule parsing and matching.
"""

import pytest

from dotlink.ignore import IGNORE_FILE, IgnoreMatcher, IgnoreRule, check_pattern, read_ignore_file
from dotlink.types import ValidationError


class TestCompile:
    @pytest.mark.parametrize("pattern", ["", "   ", "C:/Users", "a:b", "has space", "semi;colon"])
    def test_rejects_invalid_patterns(self, pattern):
        with pytest.raises(ValidationError):
            IgnoreMatcher.compile([pattern])

    @pytest.mark.parametrize("pattern", ["secrets/", ".git", "*.bak", "!keep.txt", "a-b_c/d.e"])
    def test_accepts_valid_patterns(self, pattern):
        assert check_pattern(pattern) is None

    def test_all_invalid_patterns_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            IgnoreMatcher.compile(["ok", "x:y", ""])

        assert "'x:y'" in exc_info.value.message
        assert "''" in exc_info.value.message

    def test_implicit_patterns_bypass_validation(self):
        matcher = IgnoreMatcher.compile([], implicit=[IGNORE_FILE, "my deploy.ps1"])

        assert matcher.matches("my deploy.ps1")
        assert matcher.matches(IGNORE_FILE)

    def test_implicit_duplicates_are_dropped(self):
        matcher = IgnoreMatcher.compile([IGNORE_FILE], implicit=[IGNORE_FILE])

        assert matcher.patterns == [IGNORE_FILE]


class TestMatches:
    def test_equal_path(self):
        assert IgnoreMatcher.compile([".bashrc"]).matches(".bashrc")

    def test_literal_prefix(self):
        matcher = IgnoreMatcher.compile(["secrets/"])

        assert matcher.matches("secrets/key.txt")
        assert matcher.matches("secrets/nested/deeper")
        assert not matcher.matches("public/secrets/key.txt")

    def test_prefix_is_not_segment_aware(self):
        # 'vim' also excludes 'vimrc': plain string prefix
        assert IgnoreMatcher.compile(["vim"]).matches("vimrc")

    def test_directory_matches_with_trailing_slash(self):
        matcher = IgnoreMatcher.compile(["secrets/"])

        assert matcher.matches("secrets", is_dir=True)
        assert not matcher.matches("secrets", is_dir=False)

    def test_glob_star_spans_separators(self):
        matcher = IgnoreMatcher.compile(["*.bak"])

        assert matcher.matches("notes.bak")
        assert matcher.matches("deep/dir/notes.bak")
        assert not matcher.matches("notes.bak.txt")

    def test_glob_escapes_dots(self):
        assert not IgnoreMatcher.compile(["a.c"]).matches("abc")

    def test_negation_is_inert(self):
        matcher = IgnoreMatcher.compile(["!keep.txt"])

        assert matcher.rules[0].negated
        assert not matcher.matches("keep.txt")
        assert matcher.matches("!keep.txt")

    def test_rule_parse(self):
        rule = IgnoreRule.parse("*.swp")

        assert rule.matches(".vimrc.swp")
        assert not rule.negated


class TestReadIgnoreFile:
    def test_skips_comments_and_blank_lines(self, tmp_path):
        path = tmp_path / IGNORE_FILE
        path.write_text("# comment\n\nsecrets/\n  *.bak  \n   # indented comment\n")

        assert read_ignore_file(str(path)) == ["secrets/", "*.bak"]

    def test_missing_file_yields_nothing(self, tmp_path):
        assert read_ignore_file(str(tmp_path / "nope")) == []
