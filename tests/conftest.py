"""Pytest fixtures for Toolgate tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from toolgate.audit.logger import OperationLogger
from toolgate.checkpoints.manager import CheckpointManager
from toolgate.checkpoints.rollback import RollbackEngine
from toolgate.guardrails.approval_engine import ApprovalEngine
from toolgate.guardrails.policies import (
    PolicyStore,
    RiskLevel,
    SandboxConstraints,
    ToolPermissionConfig,
)
from toolgate.tools.executor import OperationExecutor


def pytest_configure(config):
    """Register the asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FakeClock:
    """Deterministic clock for retention tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_policies(workspace: Path) -> PolicyStore:
    """Policy table rooted at a test workspace."""
    root = f"{workspace}/**"
    return PolicyStore({
        "sandbox_read_file": ToolPermissionConfig(
            tool="sandbox_read_file",
            requires_approval=False,
            risk_level=RiskLevel.LOW,
            sandbox_constraints=SandboxConstraints(allowed_paths=(root, "!**/.env", "!**/*.key")),
        ),
        "sandbox_write_file": ToolPermissionConfig(
            tool="sandbox_write_file",
            requires_approval=True,
            risk_level=RiskLevel.HIGH,
            sandbox_constraints=SandboxConstraints(allowed_paths=(root, "!**/.env"), max_file_size=1024),
        ),
        "system_exec": ToolPermissionConfig(
            tool="system_exec",
            requires_approval=True,
            risk_level=RiskLevel.HIGH,
            auto_approve_patterns=("git status", "pwd", "echo *"),
        ),
        "browser_navigate": ToolPermissionConfig(
            tool="browser_navigate",
            requires_approval=False,
            risk_level=RiskLevel.LOW,
            sandbox_constraints=SandboxConstraints(allowed_urls=("https://**", "http://localhost:*")),
        ),
        "browser_click": ToolPermissionConfig(
            tool="browser_click",
            requires_approval=True,
            risk_level=RiskLevel.MEDIUM,
        ),
    })


async def wait_for_pending(engine: ApprovalEngine, count: int = 1, timeout: float = 2.0):
    """Yield to the loop until ``count`` approvals are pending."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(engine.get_pending()) < count:
        if loop.time() > deadline:
            raise AssertionError(f"expected {count} pending approvals")
        await asyncio.sleep(0.005)
    return engine.get_pending()


@pytest.fixture
def workspace(tmp_path):
    """Empty sandbox directory."""
    ws = tmp_path / "proj"
    ws.mkdir()
    return ws


@pytest.fixture
def policies(workspace):
    return make_policies(workspace)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def checkpoints(clock):
    return CheckpointManager(max_checkpoints=50, max_age_days=7, clock=clock)


@pytest.fixture
def executor(policies, checkpoints, workspace):
    return OperationExecutor(policies, checkpoints, workspace=workspace, command_timeout=5.0)


@pytest.fixture
def operation_logger():
    return OperationLogger(capacity=100)


@pytest.fixture
def rollback_engine(checkpoints, executor, operation_logger):
    return RollbackEngine(checkpoints, executor, operation_logger)


@pytest.fixture
def engine(policies, operation_logger, workspace):
    return ApprovalEngine(policies, operation_logger, workspace=workspace, approval_timeout=2.0)
