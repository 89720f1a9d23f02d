"""Tool permission policies.

Defines per-tool policies for:
- Whether a human must confirm the call
- Risk level (drives low-risk auto-approval)
- Auto-approve patterns matched against the call parameters
- Sandbox constraints (allowed paths, allowed URLs, max file size)

Policies are frozen once loaded. ``PolicyStore`` holds the active table;
``load_policy_file`` reads YAML overrides on top of the defaults.
"""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_WRITE_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class RiskLevel(str, Enum):
    """How much damage a tool call can do."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SandboxConstraints(BaseModel):
    """Declarative limits attached to a tool policy.

    ``None`` for a list means the dimension is unconstrained.
    """

    model_config = ConfigDict(frozen=True)

    allowed_paths: tuple[str, ...] | None = None
    allowed_urls: tuple[str, ...] | None = None
    max_file_size: int | None = Field(default=None, gt=0)


class ToolPermissionConfig(BaseModel):
    """Permission configuration for one tool."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(min_length=1)
    requires_approval: bool = True
    risk_level: RiskLevel = RiskLevel.MEDIUM
    auto_approve_patterns: tuple[str, ...] = ()
    sandbox_constraints: SandboxConstraints | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def default_tool_permissions(home: Path | None = None) -> dict[str, ToolPermissionConfig]:
    """Build the built-in policy table.

    Args:
        home: Home directory the sandbox roots hang off (defaults to the
            current user's home)
    """
    home = home or Path.home()
    development = f"{home / 'development'}/**"

    configs = [
        # Browser tools
        ToolPermissionConfig(
            tool="browser_navigate",
            requires_approval=False,
            risk_level=RiskLevel.LOW,
            sandbox_constraints=SandboxConstraints(
                allowed_urls=("https://**", "http://localhost:*", "http://localhost:*/**"),
            ),
        ),
        ToolPermissionConfig(tool="browser_click", requires_approval=True, risk_level=RiskLevel.MEDIUM),
        ToolPermissionConfig(tool="browser_fill", requires_approval=True, risk_level=RiskLevel.MEDIUM),
        ToolPermissionConfig(tool="browser_screenshot", requires_approval=False, risk_level=RiskLevel.LOW),
        ToolPermissionConfig(tool="browser_text", requires_approval=False, risk_level=RiskLevel.LOW),
        ToolPermissionConfig(tool="browser_wait", requires_approval=False, risk_level=RiskLevel.LOW),
        ToolPermissionConfig(tool="browser_evaluate", requires_approval=True, risk_level=RiskLevel.HIGH),
        ToolPermissionConfig(tool="browser_cookies", requires_approval=True, risk_level=RiskLevel.HIGH),
        ToolPermissionConfig(
            tool="browser_upload",
            requires_approval=True,
            risk_level=RiskLevel.HIGH,
            sandbox_constraints=SandboxConstraints(
                allowed_paths=(development, f"{home / 'Downloads'}/**"),
            ),
        ),
        ToolPermissionConfig(
            tool="browser_download",
            requires_approval=True,
            risk_level=RiskLevel.MEDIUM,
            sandbox_constraints=SandboxConstraints(
                allowed_paths=(f"{home / '.toolgate' / 'downloads'}/**",),
            ),
        ),
        # File tools
        ToolPermissionConfig(
            tool="sandbox_read_file",
            requires_approval=False,
            risk_level=RiskLevel.LOW,
            sandbox_constraints=SandboxConstraints(
                allowed_paths=(development, "!**/.env", "!**/secrets/**", "!**/*.key", "!**/*.pem"),
            ),
        ),
        ToolPermissionConfig(
            tool="sandbox_write_file",
            requires_approval=True,
            risk_level=RiskLevel.HIGH,
            sandbox_constraints=SandboxConstraints(
                allowed_paths=(development, "!**/*.exe", "!**/*.sh", "!**/package-lock.json", "!**/.env"),
                max_file_size=MAX_WRITE_FILE_SIZE,
            ),
        ),
        # System tools
        ToolPermissionConfig(
            tool="system_exec",
            requires_approval=True,
            risk_level=RiskLevel.HIGH,
            auto_approve_patterns=("git status", "git diff", "git log", "ls -la", "pwd", "cat *.md", "echo *"),
        ),
    ]
    return {config.tool: config for config in configs}


DEFAULT_TOOL_PERMISSIONS: dict[str, ToolPermissionConfig] = default_tool_permissions()


class PolicyStore:
    """Active map of tool name to permission config.

    Usage:
        store = PolicyStore()                       # built-in defaults
        store = PolicyStore({"my_tool": config})    # explicit table
        store.override(config)                      # replace one entry
    """

    def __init__(self, permissions: Mapping[str, ToolPermissionConfig] | None = None):
        source = DEFAULT_TOOL_PERMISSIONS if permissions is None else permissions
        self._permissions: dict[str, ToolPermissionConfig] = dict(source)
        self._lock = threading.Lock()

    def get(self, tool: str) -> ToolPermissionConfig | None:
        with self._lock:
            return self._permissions.get(tool)

    def override(self, config: ToolPermissionConfig) -> None:
        """Replace (or add) the policy for one tool."""
        with self._lock:
            replaced = config.tool in self._permissions
            self._permissions[config.tool] = config
        logger.info(f"Policy {'overridden' if replaced else 'added'} for tool {config.tool}")

    def override_many(self, configs: Mapping[str, ToolPermissionConfig]) -> None:
        for config in configs.values():
            self.override(config)

    def tools(self) -> list[str]:
        with self._lock:
            return sorted(self._permissions)

    def all(self) -> list[ToolPermissionConfig]:
        with self._lock:
            return [self._permissions[name] for name in sorted(self._permissions)]

    def __contains__(self, tool: object) -> bool:
        with self._lock:
            return tool in self._permissions

    def __len__(self) -> int:
        with self._lock:
            return len(self._permissions)


class PolicyFileError(ValueError):
    """Policy file is unreadable or does not validate."""


def load_policy_file(path: Path) -> dict[str, ToolPermissionConfig]:
    """Load tool permission overrides from YAML.

    Expected shape::

        tools:
          system_exec:
            requires_approval: true
            risk_level: high
            auto_approve_patterns: ["git status"]
          sandbox_write_file:
            sandbox_constraints:
              allowed_paths: ["~/work/**", "!**/.env"]
              max_file_size: 1048576

    Raises:
        PolicyFileError: If the file cannot be read or an entry is invalid
    """
    path = Path(path).expanduser()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise PolicyFileError(f"Cannot read policy file {path}: {e}") from e

    tools = data.get("tools") if isinstance(data, dict) else None
    if not isinstance(tools, dict):
        raise PolicyFileError(f"Policy file {path} must contain a 'tools' mapping")

    configs: dict[str, ToolPermissionConfig] = {}
    for name, entry in tools.items():
        entry = dict(entry or {})
        entry["tool"] = name
        try:
            configs[name] = ToolPermissionConfig.model_validate(entry)
        except ValidationError as e:
            raise PolicyFileError(f"Invalid policy for tool '{name}': {e}") from e

    logger.info(f"Loaded {len(configs)} tool policies from {path}")
    return configs
