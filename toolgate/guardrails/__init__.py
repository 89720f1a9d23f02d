"""Guardrails for agent tool calls.

Provides:
- Glob allow/deny matching for paths, URLs and auto-approve patterns
- Per-tool permission policies with YAML overrides
- The approval engine (``toolgate.guardrails.approval_engine``)
"""

from toolgate.guardrails.patterns import (
    choice_key,
    glob_to_regex,
    matches_any,
    matches_glob,
    params_match_string,
)
from toolgate.guardrails.policies import (
    DEFAULT_TOOL_PERMISSIONS,
    PolicyFileError,
    PolicyStore,
    RiskLevel,
    SandboxConstraints,
    ToolPermissionConfig,
    load_policy_file,
)

__all__ = [
    "choice_key",
    "glob_to_regex",
    "matches_any",
    "matches_glob",
    "params_match_string",
    "DEFAULT_TOOL_PERMISSIONS",
    "PolicyFileError",
    "PolicyStore",
    "RiskLevel",
    "SandboxConstraints",
    "ToolPermissionConfig",
    "load_policy_file",
]
