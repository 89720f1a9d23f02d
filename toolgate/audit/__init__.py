"""Operation audit log.

Provides:
- LogEntry records with level, status and category
- A bounded in-memory log with subscriber fan-out
- JSON, text, CSV and Markdown export
"""

from toolgate.audit.models import (
    LogCategory,
    LogEntry,
    LogFilter,
    LogLevel,
    OperationStatus,
)
from toolgate.audit.logger import OperationLogger
from toolgate.audit.exporter import ExportFormat, ExportOptions, LogExporter

__all__ = [
    "LogCategory",
    "LogEntry",
    "LogFilter",
    "LogLevel",
    "OperationStatus",
    "OperationLogger",
    "ExportFormat",
    "ExportOptions",
    "LogExporter",
]
