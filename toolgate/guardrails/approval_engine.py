"""Approval decisions for agent tool calls.

Each request is evaluated in a fixed precedence order:
1. Unknown tool -> deny
2. Sandbox constraint failure -> deny with the violated constraint
3. Remembered "always" choice -> auto-approve
4. Auto-approve pattern match -> auto-approve
5. Low risk with auto_approve_low_risk -> auto-approve
6. Approval required with require_confirmation -> wait for a human
7. Otherwise -> approve

Waiting requests live in a pending table keyed by request id. A pending
entry is removed exactly once, by whichever of the human response or
the timeout gets to it first; the other becomes a no-op.
"""

import asyncio
import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from toolgate.audit.logger import OperationLogger
from toolgate.errors import ToolgateError
from toolgate.events import EventBus, Unsubscribe
from toolgate.guardrails.patterns import choice_key, matches_glob, params_match_string
from toolgate.guardrails.policies import PolicyStore, RiskLevel, ToolPermissionConfig
from toolgate.tools.path_security import PathValidator, is_url_allowed

logger = logging.getLogger(__name__)

APPROVAL_REQUEST_EVENT = "approval-request"


class UserChoice(str, Enum):
    """How long a human approval should stick."""

    ONCE = "once"
    ALWAYS = "always"
    SESSION = "session"


@dataclass(frozen=True)
class ApprovalDecision:
    """Outcome of evaluating one tool call."""

    approved: bool
    auto_approved: bool
    reason: str
    user_choice: UserChoice | None = None
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved,
            "auto_approved": self.auto_approved,
            "reason": self.reason,
            "user_choice": self.user_choice.value if self.user_choice else None,
            "request_id": self.request_id,
        }


@dataclass
class ToolCallRequest:
    """A single tool call issued by an agent."""

    tool: str
    params: dict[str, Any] = field(default_factory=dict)
    source: str = "agent"


@dataclass
class UserPreferences:
    auto_approve_low_risk: bool = True
    require_confirmation: bool = True
    remember_choices: bool = True
    notification_level: str = "risky"  # all, risky, errors


@dataclass
class PendingApproval:
    """A request parked until a human answers or the deadline passes."""

    id: str
    request: ToolCallRequest
    risk_level: RiskLevel
    created_at: datetime
    expires_at: datetime
    future: asyncio.Future = field(repr=False)
    loop: asyncio.AbstractEventLoop = field(repr=False)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.id,
            "tool": self.request.tool,
            "params": self.request.params,
            "source": self.request.source,
            "risk_level": self.risk_level.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class ApprovalEngine:
    """Evaluates tool calls against policy, remembered choices and humans.

    Usage:
        engine = ApprovalEngine(PolicyStore(), operation_logger)
        engine.on_approval_request(lambda req: ui.show(req))

        decision = await engine.evaluate(ToolCallRequest("system_exec", {"command": "make"}))

        # from the UI, possibly on another thread
        engine.handle_user_response(request_id, approved=True, remember="always")
    """

    def __init__(
        self,
        policies: PolicyStore,
        operation_logger: OperationLogger | None = None,
        preferences: UserPreferences | None = None,
        workspace: Path | None = None,
        approval_timeout: float = 60.0,
        events: EventBus | None = None,
    ):
        self.policies = policies
        self.operation_logger = operation_logger
        self.preferences = preferences or UserPreferences()
        self.validator = PathValidator(workspace or Path.home() / "development")
        self.approval_timeout = approval_timeout
        self.events = events or EventBus()
        self._pending: dict[str, PendingApproval] = {}
        self._remembered: dict[str, UserChoice] = {}
        self._lock = threading.Lock()

    async def evaluate(self, request: ToolCallRequest) -> ApprovalDecision:
        """Decide whether a tool call may run. Never raises."""
        try:
            decision = await self._evaluate(request)
        except Exception as e:
            logger.error(f"Approval evaluation failed for {request.tool}: {e}", exc_info=True)
            decision = ApprovalDecision(approved=False, auto_approved=False, reason=f"Internal error: {e}")

        self._record(request.tool, decision)
        return decision

    async def _evaluate(self, request: ToolCallRequest) -> ApprovalDecision:
        params = request.params or {}

        config = self.policies.get(request.tool)
        if config is None:
            return ApprovalDecision(
                approved=False,
                auto_approved=False,
                reason=f"Unknown tool: {request.tool}. Please configure permissions first.",
            )

        violation = self._check_sandbox(config, params)
        if violation:
            return ApprovalDecision(approved=False, auto_approved=False, reason=violation)

        key = choice_key(request.tool, params)
        with self._lock:
            remembered = self._remembered.get(key)
        if remembered is UserChoice.ALWAYS:
            return ApprovalDecision(
                approved=True,
                auto_approved=True,
                reason="Auto-approved (remembered user choice)",
                user_choice=UserChoice.ALWAYS,
            )

        if config.auto_approve_patterns:
            subject = params_match_string(params)
            for pattern in config.auto_approve_patterns:
                if matches_glob(subject, pattern):
                    return ApprovalDecision(
                        approved=True,
                        auto_approved=True,
                        reason=f"Auto-approved (matched pattern: {pattern})",
                    )

        if config.risk_level == RiskLevel.LOW and self.preferences.auto_approve_low_risk:
            return ApprovalDecision(approved=True, auto_approved=True, reason="Auto-approved (low risk operation)")

        if config.requires_approval and self.preferences.require_confirmation:
            return await self._request_user_approval(request, config)

        return ApprovalDecision(approved=True, auto_approved=False, reason="Approved (default behavior)")

    def _check_sandbox(self, config: ToolPermissionConfig, params: dict[str, Any]) -> str | None:
        """Return the violated constraint, or None if the call fits the sandbox."""
        constraints = config.sandbox_constraints
        if constraints is None:
            return None

        path = params.get("path")
        if constraints.allowed_paths is not None and path is not None:
            if not isinstance(path, str):
                return "Invalid path parameter"
            try:
                self.validator.validate(path, constraints.allowed_paths)
            except ToolgateError as e:
                return str(e)

        url = params.get("url")
        if constraints.allowed_urls is not None and url is not None:
            if not isinstance(url, str) or not is_url_allowed(url, constraints.allowed_urls):
                return f"URL not in allowed list: {url}"

        content = params.get("content")
        if constraints.max_file_size is not None and isinstance(content, str):
            size = len(content.encode("utf-8"))
            if size > constraints.max_file_size:
                return f"Content too large: {size} bytes (max: {constraints.max_file_size})"

        return None

    async def _request_user_approval(
        self,
        request: ToolCallRequest,
        config: ToolPermissionConfig,
    ) -> ApprovalDecision:
        loop = asyncio.get_running_loop()
        now = datetime.now(timezone.utc)
        pending = PendingApproval(
            id=f"approval-{uuid.uuid4().hex[:16]}",
            request=request,
            risk_level=config.risk_level,
            created_at=now,
            expires_at=now + timedelta(seconds=self.approval_timeout),
            future=loop.create_future(),
            loop=loop,
        )
        with self._lock:
            self._pending[pending.id] = pending

        if self.operation_logger:
            self.operation_logger.log_awaiting_approval(request.tool, request.params or {}, pending.id)
        logger.info(f"Awaiting approval for {request.tool}", extra={"request_id": pending.id, "tool": request.tool})
        self.events.emit(APPROVAL_REQUEST_EVENT, pending.to_dict())

        try:
            return await asyncio.wait_for(asyncio.shield(pending.future), timeout=self.approval_timeout)
        except asyncio.TimeoutError:
            with self._lock:
                expired = self._pending.pop(pending.id, None)
            if expired is None:
                # A human response claimed the entry first
                return await pending.future
            logger.warning(
                f"Approval timed out after {self.approval_timeout:g}s",
                extra={"request_id": pending.id, "tool": request.tool},
            )
            return ApprovalDecision(
                approved=False,
                auto_approved=False,
                reason=f"Approval timeout ({self.approval_timeout:g} seconds)",
                request_id=pending.id,
            )
        except asyncio.CancelledError:
            with self._lock:
                self._pending.pop(pending.id, None)
            raise

    def handle_user_response(
        self,
        request_id: str,
        approved: bool,
        remember: UserChoice | str = UserChoice.ONCE,
    ) -> bool:
        """Resolve a pending approval.

        Safe to call from any thread. Returns False (and changes nothing)
        if the request is unknown or already resolved.

        Raises:
            ValueError: If ``remember`` is not a valid choice
        """
        choice = UserChoice(remember)
        with self._lock:
            pending = self._pending.pop(request_id, None)
            if pending is not None and approved and choice is UserChoice.ALWAYS and self.preferences.remember_choices:
                key = choice_key(pending.request.tool, pending.request.params or {})
                self._remembered[key] = UserChoice.ALWAYS
                logger.info(f"Remembered choice for {pending.request.tool}")

        if pending is None:
            logger.warning(f"No pending approval for {request_id}")
            return False

        decision = ApprovalDecision(
            approved=approved,
            auto_approved=False,
            reason=f"User approved ({choice.value})" if approved else "User denied",
            user_choice=choice,
            request_id=request_id,
        )
        self._settle(pending, decision)
        return True

    def deny_all_pending(self, reason: str) -> int:
        """Deny every waiting request, e.g. on shutdown. Returns how many."""
        with self._lock:
            drained = list(self._pending.values())
            self._pending.clear()
        for pending in drained:
            self._settle(
                pending,
                ApprovalDecision(approved=False, auto_approved=False, reason=reason, request_id=pending.id),
            )
        return len(drained)

    def _settle(self, pending: PendingApproval, decision: ApprovalDecision) -> None:
        def resolve() -> None:
            if not pending.future.done():
                pending.future.set_result(decision)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is pending.loop:
            resolve()
            return
        try:
            pending.loop.call_soon_threadsafe(resolve)
        except RuntimeError:
            logger.warning(f"Event loop for {pending.id} is closed; response dropped")

    def _record(self, tool: str, decision: ApprovalDecision) -> None:
        if self.operation_logger is None:
            return
        if decision.approved:
            self.operation_logger.log_approval_granted(tool, decision.auto_approved, decision.reason)
        else:
            self.operation_logger.log_approval_denied(tool, decision.reason)

    # Preferences and state

    def update_preferences(self, **changes: Any) -> UserPreferences:
        """Change preferences in place.

        Raises:
            ValueError: On an unknown preference name
        """
        known = {f.name for f in dataclasses.fields(UserPreferences)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown preferences: {', '.join(sorted(unknown))}")
        self.preferences = dataclasses.replace(self.preferences, **changes)
        logger.info(f"Preferences updated: {dataclasses.asdict(self.preferences)}")
        return self.get_preferences()

    def get_preferences(self) -> UserPreferences:
        return dataclasses.replace(self.preferences)

    def clear_remembered_choices(self) -> int:
        with self._lock:
            count = len(self._remembered)
            self._remembered.clear()
        logger.info(f"Cleared {count} remembered choices")
        return count

    def get_remembered_choices(self) -> dict[str, str]:
        with self._lock:
            return {key: choice.value for key, choice in self._remembered.items()}

    def on_approval_request(self, callback: Callable[[dict[str, Any]], Any]) -> Unsubscribe:
        """Subscribe to approval requests. Returns an unsubscribe handle."""
        return self.events.on(APPROVAL_REQUEST_EVENT, callback)

    def get_tool_config(self, tool: str) -> ToolPermissionConfig | None:
        return self.policies.get(tool)

    def get_pending(self) -> list[PendingApproval]:
        """Pending approvals, oldest first."""
        with self._lock:
            return sorted(self._pending.values(), key=lambda p: p.created_at)

    def get_pending_approval(self, request_id: str) -> PendingApproval | None:
        with self._lock:
            return self._pending.get(request_id)
