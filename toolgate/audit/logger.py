"""Operation audit log.

Bounded in-memory ring buffer of LogEntry records with:
- Structured helpers for each stage of a tool call
- Conjunctive filtering and JSON/text export
- Fan-out to subscribers (``log``, ``log:<level>``, ``log:<status>``,
  ``cleared``) where one failing subscriber never blocks the rest
- A mirror of every entry on the ``toolgate.audit`` Python logger
"""

import json
import logging
import threading
from collections import deque
from typing import Any, Callable

from toolgate.audit.models import (
    LogCategory,
    LogEntry,
    LogFilter,
    LogLevel,
    OperationStatus,
)
from toolgate.events import EventBus, Unsubscribe

logger = logging.getLogger(__name__)

# Mirror of audit entries - separate from component logging
audit_logger = logging.getLogger("toolgate.audit")

_PYTHON_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def format_duration(ms: float) -> str:
    if ms < 1000:
        return f"{ms:.0f}ms"
    return f"{ms / 1000:.1f}s"


def format_tool_message(tool: str, params: dict[str, Any]) -> str:
    """One-line human description of a tool call."""
    if tool == "browser_navigate":
        return f"Navigate to {params.get('url') or 'unknown URL'}"
    if tool == "browser_click":
        return f"Click element: {params.get('selector') or 'unknown selector'}"
    if tool == "sandbox_read_file":
        return f"Read file: {params.get('path') or 'unknown path'}"
    if tool == "sandbox_write_file":
        content = params.get("content")
        size = len(content.encode("utf-8")) if isinstance(content, str) else 0
        return f"Write file: {params.get('path') or 'unknown path'} ({size} bytes)"
    if tool == "system_exec":
        return f"Run command: {params.get('command') or 'unknown command'}"
    return json.dumps(params, sort_keys=True, default=str)


class OperationLogger:
    """Append-only bounded audit log.

    Usage:
        op_logger = OperationLogger(capacity=1000)
        unsubscribe = op_logger.subscribe(lambda entry: print(entry.title))
        op_logger.log_tool_start("system_exec", {"command": "pwd"})
        op_logger.export("text")
    """

    def __init__(self, capacity: int = 1000, events: EventBus | None = None):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.events = events or EventBus()
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    # Structured helpers

    def log_tool_start(self, tool: str, params: dict[str, Any], metadata: dict[str, Any] | None = None) -> LogEntry:
        details: dict[str, Any] = {"params": params}
        if metadata:
            details["metadata"] = metadata
        return self.log(
            level=LogLevel.INFO,
            status=OperationStatus.RUNNING,
            category=LogCategory.TOOL,
            tool=tool,
            title=f"Running tool: {tool}",
            message=format_tool_message(tool, params),
            details=details,
        )

    def log_awaiting_approval(self, tool: str, params: dict[str, Any], approval_id: str) -> LogEntry:
        return self.log(
            level=LogLevel.WARNING,
            status=OperationStatus.AWAITING_APPROVAL,
            category=LogCategory.APPROVAL,
            tool=tool,
            title=f"Awaiting approval: {tool}",
            message="Waiting for user confirmation",
            details={"params": params, "approval_id": approval_id},
        )

    def log_approval_granted(self, tool: str, auto_approved: bool, reason: str | None = None) -> LogEntry:
        return self.log(
            level=LogLevel.SUCCESS,
            status=OperationStatus.RUNNING,
            category=LogCategory.APPROVAL,
            tool=tool,
            title=f"Approved: {tool}",
            message=reason or ("Auto-approved" if auto_approved else "Approved by user"),
            details={"auto_approved": auto_approved},
        )

    def log_approval_denied(self, tool: str, reason: str) -> LogEntry:
        return self.log(
            level=LogLevel.ERROR,
            status=OperationStatus.DENIED,
            category=LogCategory.APPROVAL,
            tool=tool,
            title=f"Denied: {tool}",
            message=reason,
        )

    def log_tool_success(self, tool: str, result: Any, duration: float) -> LogEntry:
        return self.log(
            level=LogLevel.SUCCESS,
            status=OperationStatus.COMPLETED,
            category=LogCategory.TOOL,
            tool=tool,
            title=f"Completed: {tool}",
            message=f"Finished in {format_duration(duration)}",
            details={"result": result},
            duration=duration,
        )

    def log_tool_error(self, tool: str, error: BaseException | str, duration: float | None = None) -> LogEntry:
        text = error if isinstance(error, str) else str(error)
        return self.log(
            level=LogLevel.ERROR,
            status=OperationStatus.FAILED,
            category=LogCategory.TOOL,
            tool=tool,
            title=f"Failed: {tool}",
            message=text,
            details={"error": text},
            duration=duration,
        )

    def log_rollback(self, checkpoint_id: str, success: bool, files: list[dict[str, Any]], message: str) -> LogEntry:
        return self.log(
            level=LogLevel.SUCCESS if success else LogLevel.ERROR,
            status=OperationStatus.COMPLETED if success else OperationStatus.FAILED,
            category=LogCategory.ROLLBACK,
            title="Rollback" if success else "Rollback failed",
            message=message,
            details={"checkpoint_id": checkpoint_id, "files": files},
        )

    def log_snapshot_rollback(self, snapshot_id: str, path: str | None, success: bool, message: str) -> LogEntry:
        return self.log(
            level=LogLevel.SUCCESS if success else LogLevel.ERROR,
            status=OperationStatus.COMPLETED if success else OperationStatus.FAILED,
            category=LogCategory.ROLLBACK,
            title="Snapshot rollback" if success else "Snapshot rollback failed",
            message=message,
            details={"snapshot_id": snapshot_id, "path": path},
        )

    def log_system(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        return self.log(
            level=level,
            status=OperationStatus.COMPLETED,
            category=LogCategory.SYSTEM,
            title="System",
            message=message,
        )

    # Core

    def log(
        self,
        level: LogLevel,
        status: OperationStatus,
        category: LogCategory,
        title: str,
        message: str,
        tool: str | None = None,
        details: dict[str, Any] | None = None,
        duration: float | None = None,
    ) -> LogEntry:
        """Append an entry and notify subscribers."""
        entry = LogEntry(
            level=level,
            status=status,
            category=category,
            title=title,
            message=message,
            tool=tool,
            details=details,
            duration=duration,
        )
        with self._lock:
            self._entries.append(entry)

        audit_logger.log(
            _PYTHON_LEVELS[level],
            f"[{category.value}] {title}: {message}",
            extra={"tool": tool} if tool else None,
        )

        self.events.emit("log", entry)
        self.events.emit(f"log:{level.value}", entry)
        self.events.emit(f"log:{status.value}", entry)
        return entry

    # Queries

    def get_all_logs(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def get_recent_logs(self, count: int = 50) -> list[LogEntry]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._entries)[-count:]

    def get_logs_for_tool(self, tool: str) -> list[LogEntry]:
        with self._lock:
            return [e for e in self._entries if e.tool == tool]

    def get_filtered_logs(self, log_filter: LogFilter) -> list[LogEntry]:
        with self._lock:
            entries = list(self._entries)
        return [e for e in entries if log_filter.matches(e)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Subscription

    def subscribe(self, callback: Callable[[LogEntry], Any]) -> Unsubscribe:
        """Receive every new entry. Returns an unsubscribe handle."""
        return self.events.on("log", callback)

    def on(self, event: str, callback: Callable[..., Any]) -> Unsubscribe:
        """Subscribe to a typed notification such as ``log:error``."""
        return self.events.on(event, callback)

    # Maintenance

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Audit log cleared")
        self.events.emit("cleared")

    def export(self, format: str = "json", log_filter: LogFilter | None = None) -> str:
        """Export entries as a JSON array or one line per entry.

        Args:
            format: ``json`` or ``text``
            log_filter: Export only matching entries; all entries if None

        Raises:
            ValueError: If the format is not json or text
        """
        entries = self.get_filtered_logs(log_filter) if log_filter else self.get_all_logs()
        if format == "json":
            return json.dumps([e.to_dict() for e in entries], indent=2, default=str)
        if format == "text":
            return "\n".join(
                f"[{e.timestamp.isoformat()}] {e.level.value.upper():<7} [{e.category.value}] {e.title}: {e.message}"
                for e in entries
            )
        raise ValueError(f"Unsupported export format: {format}")
