"""Tests for glob matching and canonical parameter encoding."""

import pytest

from toolgate.guardrails.patterns import (
    choice_key,
    glob_to_regex,
    matches_any,
    matches_glob,
    params_match_string,
    resolve_pattern_root,
    split_patterns,
)


class TestGlobMatching:
    """Tests for single-pattern glob semantics."""

    def test_double_star_crosses_separators(self):
        assert matches_glob("/proj/a/b/c.txt", "/proj/**")

    def test_single_star_stays_in_segment(self):
        assert matches_glob("/proj/file.txt", "/proj/*.txt")
        assert not matches_glob("/proj/sub/file.txt", "/proj/*.txt")

    def test_question_mark_is_one_character(self):
        assert matches_glob("a1.log", "a?.log")
        assert not matches_glob("a12.log", "a?.log")
        assert not matches_glob("a/.log", "a?.log")

    def test_double_star_slash_matches_zero_directories(self):
        assert matches_glob(".env", "**/.env")
        assert matches_glob("/proj/.env", "**/.env")
        assert matches_glob("/proj/deep/nested/.env", "**/.env")

    def test_match_is_anchored(self):
        """A pattern must describe the whole value, not a substring."""
        assert matches_glob("git status", "git status")
        assert not matches_glob("git status; rm -rf /", "git status")
        assert not matches_glob("sudo git status", "git status")

    @pytest.mark.parametrize("value", ["a+b", "a.b", "(x)", "[abc]", "^start$", "a|b"])
    def test_regex_metacharacters_are_literal(self, value):
        """Characters meaningful to regex only match themselves."""
        assert matches_glob(value, value)

    def test_dot_is_not_a_wildcard(self):
        assert not matches_glob("fileXtxt", "file.txt")

    def test_brackets_are_not_character_classes(self):
        assert not matches_glob("a", "[abc]")

    def test_compiled_patterns_are_cached(self):
        assert glob_to_regex("/x/**") is glob_to_regex("/x/**")


class TestNegation:
    """Tests for allow/deny pattern lists."""

    def test_split_patterns(self):
        positive, negated = split_patterns(["/a/**", "!**/.env", "/b/**"])
        assert positive == ["/a/**", "/b/**"]
        assert negated == ["**/.env"]

    def test_negation_excludes_match(self):
        patterns = ["/proj/**", "!**/.env"]
        assert matches_any("/proj/app.py", patterns)
        assert not matches_any("/proj/.env", patterns)

    def test_requires_a_positive_match(self):
        assert not matches_any("/etc/passwd", ["!**/.env"])

    def test_empty_list_matches_nothing(self):
        assert not matches_any("/anything", [])

    def test_negated_directory_tree(self):
        patterns = ["/proj/**", "!**/secrets/**"]
        assert not matches_any("/proj/secrets/token.txt", patterns)
        assert matches_any("/proj/secretsauce.txt", patterns)


class TestPatternRoot:
    """Tests for resolving symlinks in pattern prefixes."""

    def test_relative_pattern_unchanged(self):
        assert resolve_pattern_root("**/*.key") == "**/*.key"

    def test_symlinked_root_is_resolved(self, tmp_path):
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)

        assert resolve_pattern_root(f"{link}/**") == f"{real.resolve()}/**"

    def test_plain_absolute_path_is_resolved(self, tmp_path):
        assert resolve_pattern_root(str(tmp_path)) == str(tmp_path.resolve())


class TestCanonicalParams:
    """Tests for order-independent parameter encoding."""

    def test_choice_key_ignores_key_order(self):
        a = choice_key("system_exec", {"command": "make", "cwd": "/proj"})
        b = choice_key("system_exec", {"cwd": "/proj", "command": "make"})
        assert a == b

    def test_choice_key_includes_tool(self):
        assert choice_key("a", {"x": 1}) != choice_key("b", {"x": 1})

    def test_choice_key_nested_order_independent(self):
        a = choice_key("t", {"outer": {"b": 1, "a": 2}})
        b = choice_key("t", {"outer": {"a": 2, "b": 1}})
        assert a == b

    def test_match_string_prefers_command(self):
        assert params_match_string({"command": " git status "}) == "git status"

    def test_match_string_uses_path_then_url(self):
        assert params_match_string({"path": "/proj/a.md", "content": "x"}) == "/proj/a.md"
        assert params_match_string({"url": "https://example.com"}) == "https://example.com"

    def test_match_string_falls_back_to_json(self):
        assert params_match_string({"selector": "#go", "page_id": "p1"}) == '{"page_id":"p1","selector":"#go"}'
