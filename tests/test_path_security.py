"""Tests for path canonicalization, sandbox allow lists and command validation."""

import os
from pathlib import Path

import pytest

from toolgate.errors import ErrorKind, PolicyViolation, ValidationFailure
from toolgate.tools.path_security import (
    PathValidator,
    canonicalize_path,
    is_path_allowed,
    is_url_allowed,
    validate_command,
)


class TestCanonicalizePath:
    """Tests for turning tool paths into absolute real paths."""

    def test_relative_path_joins_workspace(self, workspace):
        resolved = canonicalize_path("src/app.py", workspace)
        assert resolved == workspace.resolve() / "src" / "app.py"

    def test_dot_dot_is_collapsed(self, workspace):
        resolved = canonicalize_path("src/../../outside.txt", workspace)
        assert resolved == workspace.resolve().parent / "outside.txt"

    def test_home_is_expanded(self, workspace):
        resolved = canonicalize_path("~/notes.txt", workspace)
        assert resolved == Path(os.path.realpath(Path.home() / "notes.txt"))

    def test_null_byte_rejected(self, workspace):
        with pytest.raises(ValidationFailure):
            canonicalize_path("file\x00.txt", workspace)

    def test_encoded_null_byte_rejected(self, workspace):
        with pytest.raises(ValidationFailure):
            canonicalize_path("file%00.txt", workspace)

    @pytest.mark.parametrize("bad", ["", "   "])
    def test_empty_path_rejected(self, workspace, bad):
        with pytest.raises(ValidationFailure):
            canonicalize_path(bad, workspace)

    def test_symlinks_are_followed(self, workspace, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (workspace / "escape").symlink_to(outside)

        resolved = canonicalize_path("escape/secret.txt", workspace)
        assert resolved == outside.resolve() / "secret.txt"


class TestIsPathAllowed:
    """Tests for glob and plain-directory allow lists."""

    def test_glob_allows_descendants(self, workspace):
        root = workspace.resolve()
        assert is_path_allowed(root / "a" / "b.txt", [f"{workspace}/**"])

    def test_negation_wins(self, workspace):
        root = workspace.resolve()
        assert not is_path_allowed(root / ".env", [f"{workspace}/**", "!**/.env"])

    def test_plain_directory_allows_itself_and_children(self, workspace):
        root = workspace.resolve()
        assert is_path_allowed(root, [str(workspace)])
        assert is_path_allowed(root / "x" / "y.txt", [str(workspace)])

    def test_plain_directory_rejects_sibling_prefix(self, workspace):
        """/proj must not admit /proj-other."""
        sibling = workspace.resolve().parent / f"{workspace.name}-other" / "x.txt"
        assert not is_path_allowed(sibling, [str(workspace)])

    def test_glob_rejects_sibling_prefix(self, workspace):
        sibling = workspace.resolve().parent / f"{workspace.name}-other" / "x.txt"
        assert not is_path_allowed(sibling, [f"{workspace}/**"])

    def test_symlink_escape_denied(self, workspace, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (workspace / "escape").symlink_to(outside)

        resolved = canonicalize_path("escape/data.txt", workspace)
        assert not is_path_allowed(resolved, [f"{workspace}/**"])

    def test_allowed_root_behind_symlink(self, tmp_path):
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)

        resolved = canonicalize_path(str(link / "file.txt"), tmp_path)
        assert is_path_allowed(resolved, [f"{link}/**"])
        assert is_path_allowed(resolved, [str(link)])


class TestUrlAllowed:
    """Tests for URL allow lists."""

    PATTERNS = ["https://**", "http://localhost:*", "http://localhost:*/**"]

    def test_https_allowed(self):
        assert is_url_allowed("https://example.com/a/b?q=1", self.PATTERNS)

    def test_localhost_port_allowed(self):
        assert is_url_allowed("http://localhost:3000", self.PATTERNS)
        assert is_url_allowed("http://localhost:3000/app", self.PATTERNS)

    def test_plain_http_denied(self):
        assert not is_url_allowed("http://example.com", self.PATTERNS)

    def test_other_scheme_denied(self):
        assert not is_url_allowed("file:///etc/passwd", self.PATTERNS)


class TestPathValidator:
    """Tests for the validator used by the executor and approval engine."""

    def test_unconstrained_when_allow_list_is_none(self, workspace):
        validator = PathValidator(workspace)
        assert validator.validate("/etc/hosts", None) == Path(os.path.realpath("/etc/hosts"))

    def test_outside_raises_policy_violation(self, workspace):
        validator = PathValidator(workspace)
        with pytest.raises(PolicyViolation) as exc_info:
            validator.validate("/etc/hosts", [f"{workspace}/**"])
        assert exc_info.value.kind == ErrorKind.POLICY_VIOLATION
        assert "not in allowed sandbox" in str(exc_info.value)


class TestValidateCommand:
    """Tests for command string screening."""

    def test_simple_command_split_on_whitespace(self):
        assert validate_command("git   log  --oneline") == ["git", "log", "--oneline"]

    @pytest.mark.parametrize(
        "command",
        [
            "git status; rm -rf /",
            "ls && rm x",
            "ls & sleep 1",
            "cat a | sh",
            "echo `id`",
            "echo $(id)",
            "echo ${HOME}",
            "(ls)",
            "cat < /etc/passwd",
            "echo hi > out.txt",
            "echo a\\ b",
            "ls\nrm -rf /",
            "ls\rrm",
            "cat ../secret",
        ],
    )
    def test_dangerous_patterns_rejected(self, command):
        with pytest.raises(ValidationFailure) as exc_info:
            validate_command(command)
        assert exc_info.value.kind == ErrorKind.VALIDATION_FAILURE

    @pytest.mark.parametrize("command", ["", "   "])
    def test_empty_command_rejected(self, command):
        with pytest.raises(ValidationFailure):
            validate_command(command)

    def test_allowlist_accepts_listed_binary(self):
        assert validate_command("git status", ["git", "ls"]) == ["git", "status"]

    def test_allowlist_rejects_other_binary(self):
        with pytest.raises(PolicyViolation):
            validate_command("curl example.com", ["git"])

    def test_allowlist_rejects_path_to_listed_name(self):
        with pytest.raises(PolicyViolation):
            validate_command("/tmp/evil/git status", ["git"])
