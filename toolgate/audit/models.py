"""Audit log entry models and query filters."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class LogLevel(str, Enum):
    """Severity of an audit entry."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class OperationStatus(str, Enum):
    """Lifecycle stage of the operation an entry describes."""
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DENIED = "denied"


class LogCategory(str, Enum):
    """Categories of audit entries."""
    TOOL = "tool"
    APPROVAL = "approval"
    SYSTEM = "system"
    ROLLBACK = "rollback"


def _new_log_id() -> str:
    return f"log-{uuid.uuid4().hex[:12]}"


@dataclass
class LogEntry:
    """One audit log record."""

    level: LogLevel
    status: OperationStatus
    category: LogCategory
    title: str
    message: str
    tool: str | None = None
    details: dict[str, Any] | None = None
    duration: float | None = None  # milliseconds
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=_new_log_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "status": self.status.value,
            "category": self.category.value,
            "tool": self.tool,
            "title": self.title,
            "message": self.message,
            "details": self.details,
            "duration": self.duration,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def searchable_text(self) -> str:
        details = json.dumps(self.details, default=str) if self.details else ""
        return " ".join([self.title, self.message, self.tool or "", details]).lower()


@dataclass
class LogFilter:
    """Conjunctive filter over audit entries. Unset fields match everything."""

    level: list[LogLevel] | None = None
    status: list[OperationStatus] | None = None
    category: list[LogCategory] | None = None
    tool: list[str] | None = None
    search: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        # Entry timestamps are aware UTC; treat naive bounds as UTC
        if self.start and self.start.tzinfo is None:
            self.start = self.start.replace(tzinfo=timezone.utc)
        if self.end and self.end.tzinfo is None:
            self.end = self.end.replace(tzinfo=timezone.utc)

    def matches(self, entry: LogEntry) -> bool:
        if self.level and entry.level not in self.level:
            return False
        if self.status and entry.status not in self.status:
            return False
        if self.category and entry.category not in self.category:
            return False
        if self.tool and entry.tool not in self.tool:
            return False
        if self.search and self.search.lower() not in entry.searchable_text():
            return False
        if self.start and entry.timestamp < self.start:
            return False
        if self.end and entry.timestamp > self.end:
            return False
        return True
