"""Logging configuration for Toolgate."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Attributes components attach via ``logger.info(..., extra={...})``
EXTRA_FIELDS = ("tool", "request_id", "snapshot_id", "checkpoint_id", "duration_ms", "exit_code")

# Identifiers shortened on the console
SHORT_ID_LABELS = {
    "request_id": "request",
    "snapshot_id": "snapshot",
    "checkpoint_id": "checkpoint",
}

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Known extra attributes present on a record."""
    return {name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_extras(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        tags = []
        for name, value in record_extras(record).items():
            if name in SHORT_ID_LABELS:
                tags.append(f"{SHORT_ID_LABELS[name]}={str(value)[:8]}")
            elif name == "duration_ms":
                tags.append(f"{value:.1f}ms")
            elif name == "exit_code":
                tags.append(f"exit={value}")
            else:
                tags.append(f"{name}={value}")
        suffix = f" [{', '.join(tags)}]" if tags else ""

        line = f"{clock} {color}{record.levelname:8}{RESET} {record.name}: {record.getMessage()}{suffix}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(debug: bool = False, json_logs: bool = False, stream: TextIO | None = None) -> logging.Handler:
    """Install a single root handler.

    JSON output is used only outside debug mode. Security and audit
    records (``toolgate.security``, ``toolgate.audit``) propagate to the
    root handler like everything else.

    Returns:
        The installed handler
    """
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if json_logs and not debug else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={logging.getLevelName(level)}, json={json_logs}")
    return handler
