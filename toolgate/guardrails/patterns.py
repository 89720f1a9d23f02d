"""Glob matching for sandbox allow lists and auto-approve patterns.

Pattern syntax:
- ``**`` matches any run of characters, including path separators
- ``*`` matches within a single path segment
- ``?`` matches one character other than a separator
- a leading ``!`` turns the pattern into a negation

Every other character is literal, so a parameter value that happens to
contain regex or glob metacharacters can never act as an operator.
Matching is anchored at both ends.
"""

import json
import os
import re
from functools import lru_cache
from typing import Any, Iterable

NEGATION_PREFIX = "!"
GLOB_CHARS = ("*", "?")

# Parameter keys that carry the value a pattern is meant to describe
PRIMARY_PARAM_KEYS = ("command", "path", "url")


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob into a compiled, anchored regex."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                # "**/" also matches zero directories
                if i + 2 < n and pattern[i + 2] == "/":
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def has_glob(pattern: str) -> bool:
    return any(c in pattern for c in GLOB_CHARS)


def is_negation(pattern: str) -> bool:
    return pattern.startswith(NEGATION_PREFIX)


def matches_glob(value: str, pattern: str) -> bool:
    """Anchored match of a single positive pattern."""
    return glob_to_regex(pattern).fullmatch(value) is not None


def split_patterns(patterns: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split into (positive, negated) lists, stripping the ``!`` prefix."""
    positive: list[str] = []
    negated: list[str] = []
    for pattern in patterns:
        if is_negation(pattern):
            negated.append(pattern[len(NEGATION_PREFIX):])
        else:
            positive.append(pattern)
    return positive, negated


def matches_any(value: str, patterns: Iterable[str]) -> bool:
    """True if some positive pattern matches and no negation does."""
    positive, negated = split_patterns(patterns)
    if not any(matches_glob(value, p) for p in positive):
        return False
    return not any(matches_glob(value, p) for p in negated)


def resolve_pattern_root(pattern: str) -> str:
    """Resolve symlinks in the literal directory prefix of an absolute pattern.

    ``/tmp/x/**`` on a host where /tmp is a symlink becomes
    ``/private/tmp/x/**``, so it lines up with realpath'd candidates.
    Relative patterns such as ``**/*.key`` are returned unchanged.
    """
    expanded = os.path.expanduser(pattern)
    if not os.path.isabs(expanded):
        return pattern

    cut = len(expanded)
    for char in GLOB_CHARS:
        idx = expanded.find(char)
        if idx != -1:
            cut = min(cut, idx)

    if cut == len(expanded):
        return os.path.realpath(expanded)

    literal = expanded[:cut]
    sep = literal.rfind(os.sep)
    root, rest = literal[:sep], expanded[sep:]
    if not root:
        return expanded
    return os.path.realpath(root) + rest


def canonical_json(params: dict[str, Any]) -> str:
    """Order-independent JSON encoding of tool parameters."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def params_match_string(params: dict[str, Any]) -> str:
    """String form of params that auto-approve patterns are matched against.

    The primary value (command, path or url) when present, otherwise the
    canonical JSON of the whole mapping.
    """
    for key in PRIMARY_PARAM_KEYS:
        value = params.get(key)
        if isinstance(value, str):
            return value.strip()
    return canonical_json(params)


def choice_key(tool: str, params: dict[str, Any]) -> str:
    """Key for remembered approval choices."""
    return f"{tool}:{canonical_json(params)}"
