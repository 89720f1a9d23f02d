"""Component wiring.

``build_runtime`` constructs one instance of every component from a
Settings object and hands them to each other explicitly. The FastAPI app
keeps the result on ``app.state.runtime``; nothing is process-global.
"""

import logging
from dataclasses import dataclass

from toolgate.audit.exporter import LogExporter
from toolgate.audit.logger import OperationLogger
from toolgate.checkpoints.manager import CheckpointManager
from toolgate.checkpoints.rollback import RollbackEngine
from toolgate.config import Settings, get_allowed_commands
from toolgate.dispatcher import BrowserAutomation, ToolCallDispatcher
from toolgate.events import EventBus
from toolgate.guardrails.approval_engine import ApprovalEngine, UserPreferences
from toolgate.guardrails.policies import PolicyStore, default_tool_permissions, load_policy_file
from toolgate.tools.executor import OperationExecutor

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Every long-lived component of one Toolgate process."""

    settings: Settings
    events: EventBus
    policies: PolicyStore
    operation_logger: OperationLogger
    exporter: LogExporter
    checkpoints: CheckpointManager
    executor: OperationExecutor
    rollback: RollbackEngine
    approvals: ApprovalEngine
    dispatcher: ToolCallDispatcher


def build_policy_store(settings: Settings) -> PolicyStore:
    """Built-in default policies, plus any overrides from the policy file."""
    store = PolicyStore(default_tool_permissions())
    if settings.policy_file:
        store.override_many(load_policy_file(settings.policy_file))
    return store


def build_runtime(
    settings: Settings,
    browser: BrowserAutomation | None = None,
    policies: PolicyStore | None = None,
) -> Runtime:
    """Construct and connect all components."""
    events = EventBus()
    if policies is None:
        policies = build_policy_store(settings)
    operation_logger = OperationLogger(capacity=settings.log_capacity, events=events)
    checkpoints = CheckpointManager(
        max_checkpoints=settings.max_checkpoints,
        max_age_days=settings.checkpoint_max_age_days,
    )
    executor = OperationExecutor(
        policies,
        checkpoints,
        workspace=settings.workspace_dir,
        command_timeout=settings.command_timeout_seconds,
        command_cwd=settings.command_cwd,
        allowed_commands=get_allowed_commands(settings),
        operation_logger=operation_logger,
    )
    rollback = RollbackEngine(checkpoints, executor, operation_logger)
    approvals = ApprovalEngine(
        policies,
        operation_logger,
        preferences=UserPreferences(
            auto_approve_low_risk=settings.auto_approve_low_risk,
            require_confirmation=settings.require_confirmation,
            remember_choices=settings.remember_choices,
            notification_level=settings.notification_level,
        ),
        workspace=settings.workspace_dir,
        approval_timeout=settings.approval_timeout_seconds,
        events=events,
    )
    dispatcher = ToolCallDispatcher(approvals, executor, operation_logger, browser=browser)

    logger.info(f"Runtime ready: {len(policies)} tool policies, workspace {settings.workspace_dir}")
    return Runtime(
        settings=settings,
        events=events,
        policies=policies,
        operation_logger=operation_logger,
        exporter=LogExporter(),
        checkpoints=checkpoints,
        executor=executor,
        rollback=rollback,
        approvals=approvals,
        dispatcher=dispatcher,
    )
