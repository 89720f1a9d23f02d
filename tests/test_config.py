"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from toolgate.config import Settings, get_allowed_commands, get_config_summary, get_settings, reset_settings
from toolgate.runtime import build_policy_store, build_runtime


@pytest.fixture(autouse=True)
def clean_settings():
    reset_settings()
    yield
    reset_settings()


class TestSettings:
    """Tests for defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TOOLGATE_MAX_CHECKPOINTS", raising=False)
        settings = Settings(_env_file=None)

        assert settings.approval_timeout_seconds == 60.0
        assert settings.max_checkpoints == 50
        assert settings.checkpoint_max_age_days == 7
        assert settings.log_capacity == 1000
        assert settings.workspace_dir == Path.home() / "development"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TOOLGATE_MAX_CHECKPOINTS", "20")
        monkeypatch.setenv("TOOLGATE_WORKSPACE_DIR", str(tmp_path))
        monkeypatch.setenv("TOOLGATE_REQUIRE_CONFIRMATION", "false")

        settings = Settings(_env_file=None)

        assert settings.max_checkpoints == 20
        assert settings.workspace_dir == tmp_path
        assert settings.require_confirmation is False

    @pytest.mark.parametrize(
        "field,value",
        [
            ("approval_timeout_seconds", 0),
            ("max_checkpoints", 0),
            ("port", 70000),
            ("notification_level", "loud"),
            ("allowed_commands", "git,/usr/bin/rm"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_allowed_commands(self):
        assert get_allowed_commands(Settings(_env_file=None)) is None
        settings = Settings(_env_file=None, allowed_commands="git, ls ,,make")
        assert get_allowed_commands(settings) == ["git", "ls", "make"]

    def test_summary(self, tmp_path):
        summary = get_config_summary(Settings(_env_file=None, workspace_dir=tmp_path))

        assert summary["workspace_dir"] == str(tmp_path)
        assert summary["policy_file"] is None


class TestRuntimeWiring:
    """Settings flow into the components."""

    def test_policy_file_overrides_defaults(self, tmp_path):
        policy_file = tmp_path / "policies.yaml"
        policy_file.write_text("tools:\n  system_exec:\n    requires_approval: false\n    risk_level: low\n")

        store = build_policy_store(Settings(_env_file=None, policy_file=policy_file))

        assert store.get("system_exec").requires_approval is False
        assert store.get("browser_click") is not None

    def test_runtime_uses_settings(self, tmp_path):
        settings = Settings(
            _env_file=None,
            workspace_dir=tmp_path,
            max_checkpoints=3,
            log_capacity=10,
            approval_timeout_seconds=9,
            allowed_commands="git",
        )

        runtime = build_runtime(settings)

        assert runtime.checkpoints.max_checkpoints == 3
        assert runtime.operation_logger.capacity == 10
        assert runtime.approvals.approval_timeout == 9
        assert runtime.executor.allowed_commands == ["git"]
        assert runtime.approvals.events is runtime.operation_logger.events
