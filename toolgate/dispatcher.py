"""Tool-call dispatch.

Receives a tool call from whatever transport the agent uses, asks the
approval engine for a decision, routes approved calls to the operation
executor or the browser automation capability, and records the outcome
in the audit log.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from toolgate.audit.logger import OperationLogger
from toolgate.errors import ErrorKind, ToolgateError, ValidationFailure
from toolgate.guardrails.approval_engine import ApprovalDecision, ApprovalEngine, ToolCallRequest
from toolgate.tools.base import TOOL_DEFINITIONS, ToolDefinition, ToolResult
from toolgate.tools.executor import OperationExecutor

logger = logging.getLogger(__name__)

DEFAULT_PAGE_ID = "default"


@runtime_checkable
class BrowserAutomation(Protocol):
    """Browser driver used for ``browser_*`` tools.

    Every method returns a mapping with ``success`` and optional ``data``
    and ``error`` keys.
    """

    async def navigate(self, page_id: str, url: str) -> dict[str, Any]: ...

    async def click(self, page_id: str, selector: str) -> dict[str, Any]: ...

    async def fill(self, page_id: str, selector: str, value: str) -> dict[str, Any]: ...

    async def screenshot(self, page_id: str, full_page: bool = False) -> dict[str, Any]: ...

    async def get_text(self, page_id: str, selector: str | None = None) -> dict[str, Any]: ...

    async def wait_for(self, page_id: str, selector: str, timeout: float | None = None) -> dict[str, Any]: ...

    async def evaluate(self, page_id: str, script: str) -> dict[str, Any]: ...

    async def get_cookies(self, page_id: str) -> dict[str, Any]: ...

    async def set_cookie(self, page_id: str, cookie: dict[str, Any]) -> dict[str, Any]: ...

    async def upload(self, page_id: str, selector: str, path: str) -> dict[str, Any]: ...

    async def download(self, page_id: str, selector: str, path: str) -> dict[str, Any]: ...


@dataclass
class DispatchResult:
    """Decision plus, if the call ran, its result."""

    decision: ApprovalDecision
    result: ToolResult | None = None

    @property
    def success(self) -> bool:
        return self.decision.approved and self.result is not None and self.result.success

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "decision": self.decision.to_dict(),
            "result": self.result.to_dict() if self.result else None,
        }


def _require(params: dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value):
        raise ValidationFailure(f"Missing required parameter: {name}")
    return value


def _browser_result(tool: str, response: dict[str, Any]) -> ToolResult:
    success = bool(response.get("success"))
    data = response.get("data")
    return ToolResult(
        success=success,
        output=f"{tool} completed" if success else "",
        error=None if success else str(response.get("error") or f"{tool} failed"),
        error_kind=None if success else ErrorKind.EXECUTION_FAILURE,
        data=data if isinstance(data, dict) else ({"value": data} if data is not None else None),
    )


class ToolCallDispatcher:
    """Approve, execute and audit one tool call at a time.

    Usage:
        dispatcher = ToolCallDispatcher(approval_engine, executor, operation_logger)
        outcome = await dispatcher.dispatch(ToolCallRequest("system_exec", {"command": "pwd"}))
    """

    def __init__(
        self,
        approval_engine: ApprovalEngine,
        executor: OperationExecutor,
        operation_logger: OperationLogger,
        browser: BrowserAutomation | None = None,
    ):
        self.approval_engine = approval_engine
        self.executor = executor
        self.operation_logger = operation_logger
        self.browser = browser

    def list_tools(self) -> list[dict[str, Any]]:
        """JSON schemas of tools that have a policy configured."""
        return [d.to_schema() for d in self.definitions()]

    def definitions(self) -> list[ToolDefinition]:
        configured = set(self.approval_engine.policies.tools())
        return [d for d in TOOL_DEFINITIONS if d.id in configured]

    async def dispatch(self, request: ToolCallRequest) -> DispatchResult:
        """Evaluate a tool call and, if approved, run it."""
        params = request.params or {}
        self.operation_logger.log_tool_start(request.tool, params, {"source": request.source})

        decision = await self.approval_engine.evaluate(request)
        if not decision.approved:
            logger.info(f"Tool call denied: {request.tool}: {decision.reason}", extra={"tool": request.tool})
            return DispatchResult(decision=decision)

        started = time.monotonic()
        try:
            result = await self._execute(request.tool, params)
        except ToolgateError as e:
            result = ToolResult.from_error(e)
        except Exception as e:
            logger.error(f"Tool {request.tool} raised: {e}", exc_info=True)
            result = ToolResult.failure(f"Tool execution failed: {e}", ErrorKind.INTERNAL)
        duration = (time.monotonic() - started) * 1000

        if result.success:
            self.operation_logger.log_tool_success(request.tool, result.data or result.output, duration)
        else:
            self.operation_logger.log_tool_error(request.tool, result.error or "Unknown error", duration)

        return DispatchResult(decision=decision, result=result)

    async def _execute(self, tool: str, params: dict[str, Any]) -> ToolResult:
        if tool == "sandbox_read_file":
            return await self.executor.read_file(_require(params, "path"))
        if tool == "sandbox_write_file":
            content = params.get("content")
            if content is None:
                raise ValidationFailure("Missing required parameter: content")
            return await self.executor.write_file(_require(params, "path"), content)
        if tool == "system_exec":
            return await self.executor.execute_command(_require(params, "command"))
        if tool.startswith("browser_"):
            return await self._execute_browser(tool, params)
        return ToolResult.failure(f"No executor for tool: {tool}", ErrorKind.NOT_FOUND)

    async def _execute_browser(self, tool: str, params: dict[str, Any]) -> ToolResult:
        if self.browser is None:
            return ToolResult.failure("Browser automation is not configured", ErrorKind.EXECUTION_FAILURE)

        page_id = params.get("page_id") or DEFAULT_PAGE_ID
        call = self._browser_call(self.browser, tool, page_id, params)
        if call is None:
            return ToolResult.failure(f"Unknown browser tool: {tool}", ErrorKind.NOT_FOUND)
        return _browser_result(tool, await call())

    def _browser_call(
        self,
        browser: BrowserAutomation,
        tool: str,
        page_id: str,
        params: dict[str, Any],
    ) -> Callable[[], Awaitable[dict[str, Any]]] | None:
        if tool == "browser_navigate":
            url = _require(params, "url")
            return lambda: browser.navigate(page_id, url)
        if tool == "browser_click":
            selector = _require(params, "selector")
            return lambda: browser.click(page_id, selector)
        if tool == "browser_fill":
            selector = _require(params, "selector")
            value = str(params.get("value", ""))
            return lambda: browser.fill(page_id, selector, value)
        if tool == "browser_screenshot":
            full_page = bool(params.get("full_page", False))
            return lambda: browser.screenshot(page_id, full_page)
        if tool == "browser_text":
            selector = params.get("selector")
            return lambda: browser.get_text(page_id, selector)
        if tool == "browser_wait":
            selector = _require(params, "selector")
            timeout = params.get("timeout")
            return lambda: browser.wait_for(page_id, selector, timeout)
        if tool == "browser_evaluate":
            script = _require(params, "script")
            return lambda: browser.evaluate(page_id, script)
        if tool == "browser_cookies":
            if params.get("action", "get") == "set":
                cookie = _require(params, "cookie")
                return lambda: browser.set_cookie(page_id, cookie)
            return lambda: browser.get_cookies(page_id)
        if tool == "browser_upload":
            selector = _require(params, "selector")
            path = str(self.executor.validator.canonicalize(_require(params, "path")))
            return lambda: browser.upload(page_id, selector, path)
        if tool == "browser_download":
            selector = _require(params, "selector")
            path = str(self.executor.validator.canonicalize(_require(params, "path")))
            return lambda: browser.download(page_id, selector, path)
        return None
