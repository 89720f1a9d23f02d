"""Path and command validation for sandboxed operations.

This module provides protection against:
- Null byte injection in paths
- Symlink escapes (candidates and allow-list roots are both realpath'd)
- Sibling-prefix confusion (``/allowed-other`` vs ``/allowed``)
- Shell metacharacter injection in commands
- Path traversal sequences in command arguments

The command check is a character blacklist and is therefore incomplete
against a determined attacker; the binary allowlist is the stricter
control.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterable

from toolgate.errors import PolicyViolation, ValidationFailure
from toolgate.guardrails.patterns import (
    has_glob,
    matches_any,
    matches_glob,
    resolve_pattern_root,
    split_patterns,
)

logger = logging.getLogger(__name__)

# Security log - separate from general logging
security_logger = logging.getLogger("toolgate.security")

NULL_BYTE_PATTERNS = [
    re.compile(r"\x00"),  # Literal null byte
    re.compile(r"%00"),  # URL encoded null
]

# Checked against the raw command string before tokenizing
DANGEROUS_COMMAND_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r";"), "command separator ';'"),
    (re.compile(r"&"), "background/AND operator '&'"),
    (re.compile(r"\|"), "pipe '|'"),
    (re.compile(r"`"), "backtick substitution"),
    (re.compile(r"\$\("), "command substitution '$('"),
    (re.compile(r"\$\{"), "variable expansion '${'"),
    (re.compile(r"[()]"), "subshell parentheses"),
    (re.compile(r"[<>]"), "redirection"),
    (re.compile(r"\\"), "backslash escape"),
    (re.compile(r"[\r\n]"), "newline"),
    (re.compile(r"\.\."), "path traversal '..'"),
]


def canonicalize_path(path_str: str, workspace: Path) -> Path:
    """Turn a tool-supplied path into an absolute, symlink-free path.

    Relative paths are taken relative to ``workspace``; ``~`` is expanded.

    Raises:
        ValidationFailure: If the path is empty or malformed
    """
    if not isinstance(path_str, str) or not path_str.strip():
        raise ValidationFailure("Path must be a non-empty string")

    for pattern in NULL_BYTE_PATTERNS:
        if pattern.search(path_str):
            security_logger.warning(f"Null byte detected in path: {path_str!r}")
            raise ValidationFailure("Null byte detected in path")

    try:
        path = Path(path_str).expanduser()
        if not path.is_absolute():
            path = Path(workspace).expanduser() / path
        # realpath handles macOS /var -> /private/var and missing tails
        return Path(os.path.realpath(path))
    except (OSError, ValueError) as e:
        raise ValidationFailure(f"Invalid path: {e}") from e


def _within_directory(candidate: str, directory: str) -> bool:
    root = os.path.realpath(os.path.expanduser(directory))
    if candidate == root:
        return True
    # Trailing separator keeps /allowed from matching /allowed-other
    return candidate.startswith(root.rstrip(os.sep) + os.sep)


def _entry_matches(candidate: str, entry: str) -> bool:
    if has_glob(entry):
        return matches_glob(candidate, resolve_pattern_root(entry))
    return _within_directory(candidate, entry)


def is_path_allowed(path: Path | str, allowed_paths: Iterable[str]) -> bool:
    """Check a canonical path against an allow list.

    Glob entries use glob matching; plain entries are directories that
    admit themselves and their descendants. Entries starting with ``!``
    exclude whatever they match.
    """
    candidate = str(path)
    positive, negated = split_patterns(allowed_paths)
    if not any(_entry_matches(candidate, entry) for entry in positive):
        return False
    return not any(_entry_matches(candidate, entry) for entry in negated)


def is_url_allowed(url: str, allowed_urls: Iterable[str]) -> bool:
    """Check a URL against glob allow/negation patterns."""
    return matches_any(url.strip(), allowed_urls)


class PathValidator:
    """Validates tool paths against a sandbox allow list.

    Usage:
        validator = PathValidator(workspace=Path("~/development"))
        resolved = validator.validate("src/app.py", allowed_paths)
    """

    def __init__(self, workspace: Path):
        self.workspace = Path(workspace).expanduser()

    def canonicalize(self, path_str: str) -> Path:
        return canonicalize_path(path_str, self.workspace)

    def validate(self, path_str: str, allowed_paths: Iterable[str] | None) -> Path:
        """Canonicalize and check a path.

        Args:
            path_str: Path as supplied by the tool call
            allowed_paths: Allow list, or None for no path constraint

        Returns:
            The canonical path

        Raises:
            ValidationFailure: If the path is malformed
            PolicyViolation: If the path is outside the allow list
        """
        resolved = self.canonicalize(path_str)
        if allowed_paths is not None and not is_path_allowed(resolved, allowed_paths):
            security_logger.warning(f"Path outside sandbox: {path_str} -> {resolved}")
            raise PolicyViolation(f"Path not in allowed sandbox: {path_str}")
        return resolved


def validate_command(command: str, allowed_binaries: Iterable[str] | None = None) -> list[str]:
    """Reject dangerous command strings and split the rest into argv.

    Args:
        command: Raw command line from the tool call
        allowed_binaries: Optional allowlist of binary names

    Returns:
        Whitespace-split argv

    Raises:
        ValidationFailure: Empty command or a dangerous pattern
        PolicyViolation: Binary not in the allowlist
    """
    if not isinstance(command, str) or not command.strip():
        raise ValidationFailure("No command provided")

    for pattern, description in DANGEROUS_COMMAND_PATTERNS:
        if pattern.search(command):
            security_logger.warning(f"Dangerous command rejected ({description}): {command!r}")
            raise ValidationFailure(f"Command contains dangerous pattern: {description}")

    argv = command.split()

    if allowed_binaries is not None:
        # Exact name match; "/tmp/evil/git" is not "git"
        binary = argv[0]
        if binary not in set(allowed_binaries):
            security_logger.warning(f"Command binary not allowed: {binary}")
            raise PolicyViolation(f"Command not in allowlist: {binary}")

    return argv
