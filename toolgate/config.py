"""Configuration management for Toolgate."""

import logging
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings.

    All settings use the TOOLGATE_ prefix, e.g. ``TOOLGATE_MAX_CHECKPOINTS=20``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Toolgate"
    debug: bool = False
    json_logs: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=8765, ge=1, le=65535)

    # Paths
    # Relative tool-call paths are resolved against this directory.
    workspace_dir: Path = Field(default_factory=lambda: Path.home() / "development")
    # Optional YAML file with per-tool permission overrides.
    policy_file: Path | None = None

    # Approval
    approval_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=3600.0,
        description="Seconds to wait for a human response before denying",
    )
    auto_approve_low_risk: bool = True
    require_confirmation: bool = True
    remember_choices: bool = True
    notification_level: str = "risky"

    # Command execution
    command_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=3600.0,
        description="Wall-clock limit for a spawned command",
    )
    command_cwd: Path | None = None
    # Comma-separated binary allowlist. Empty = no allowlist.
    allowed_commands: str = ""

    # Checkpoints
    max_checkpoints: int = Field(default=50, ge=1, le=10_000)
    checkpoint_max_age_days: float = Field(default=7, gt=0, le=365)

    # Audit log
    log_capacity: int = Field(default=1000, ge=10, le=1_000_000)

    @field_validator("notification_level")
    @classmethod
    def validate_notification_level(cls, v: str) -> str:
        """Validate notification level."""
        valid = ("all", "risky", "errors")
        if v not in valid:
            raise ValueError(f"notification_level must be one of: {', '.join(valid)}")
        return v

    @field_validator("allowed_commands")
    @classmethod
    def validate_allowed_commands(cls, v: str) -> str:
        """Allowlist entries are bare binary names."""
        for name in (c.strip() for c in v.split(",")):
            if "/" in name or "\\" in name:
                raise ValueError(f"allowed_commands entries must be binary names, got: {name}")
        return v


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process settings instance, creating it on first access."""
    global _settings
    if _settings is None:
        _settings = Settings()
        logger.info("Configuration loaded")
        _log_active_settings(_settings)
    return _settings


def reset_settings() -> None:
    """Reset settings to reload from environment. Used for testing."""
    global _settings
    _settings = None


def _log_active_settings(settings: Settings) -> None:
    if not settings.require_confirmation:
        logger.warning("Human confirmation disabled: tools requiring approval run without prompting")
    if settings.policy_file:
        logger.info(f"Policy overrides from {settings.policy_file}")
    if settings.allowed_commands:
        logger.info(f"Command allowlist active: {settings.allowed_commands}")


def get_allowed_commands(settings: Settings) -> list[str] | None:
    """Parse the binary allowlist. None means no allowlist."""
    names = [c.strip() for c in settings.allowed_commands.split(",") if c.strip()]
    return names or None


def get_config_summary(settings: Settings) -> dict[str, Any]:
    """Summary of active configuration for the health endpoint."""
    return {
        "app_name": settings.app_name,
        "workspace_dir": str(settings.workspace_dir),
        "policy_file": str(settings.policy_file) if settings.policy_file else None,
        "approval_timeout_seconds": settings.approval_timeout_seconds,
        "command_timeout_seconds": settings.command_timeout_seconds,
        "max_checkpoints": settings.max_checkpoints,
        "checkpoint_max_age_days": settings.checkpoint_max_age_days,
        "log_capacity": settings.log_capacity,
    }
