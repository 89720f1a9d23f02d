"""Audit log export to JSON, CSV and Markdown reports."""

import csv
import io
import json
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from toolgate.audit.models import LogEntry, OperationStatus


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"


@dataclass
class ExportOptions:
    """What to export and how."""

    format: ExportFormat = ExportFormat.JSON
    start: datetime | None = None
    end: datetime | None = None
    tools: list[str] | None = None
    statuses: list[OperationStatus] | None = None


STATUS_MARKERS = {
    OperationStatus.PENDING: "[..]",
    OperationStatus.AWAITING_APPROVAL: "[??]",
    OperationStatus.RUNNING: "[>>]",
    OperationStatus.COMPLETED: "[ok]",
    OperationStatus.FAILED: "[!!]",
    OperationStatus.DENIED: "[no]",
}

SUMMARY_LIMIT = 200


def summarize_details(details: dict[str, Any] | None) -> str:
    """Short one-line summary of an entry's details for tabular output."""
    if not details:
        return ""

    parts: list[str] = []
    for key, value in details.items():
        if key == "content":
            text = str(value)
            parts.append(f"{key}: {text[:50] + '...' if len(text) > 50 else text}")
        elif isinstance(value, str) and len(value) > 100:
            parts.append(f"{key}: {value[:100]}...")
        else:
            parts.append(f"{key}: {json.dumps(value, default=str)}")

        if len(", ".join(parts)) > SUMMARY_LIMIT:
            break

    return ", ".join(parts)


class LogExporter:
    """Render audit entries as downloadable reports."""

    def export(self, logs: Iterable[LogEntry], options: ExportOptions) -> str:
        """Filter then render.

        Raises:
            ValueError: If the format is not supported
        """
        entries = self.filter(logs, options)
        fmt = ExportFormat(options.format)
        if fmt is ExportFormat.JSON:
            return self._export_json(entries)
        if fmt is ExportFormat.CSV:
            return self._export_csv(entries)
        return self._export_markdown(entries)

    def filter(self, logs: Iterable[LogEntry], options: ExportOptions) -> list[LogEntry]:
        entries = list(logs)
        start, end = options.start, options.end
        if start and start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end and end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

        if start:
            entries = [e for e in entries if e.timestamp >= start]
        if end:
            entries = [e for e in entries if e.timestamp <= end]
        if options.tools:
            entries = [e for e in entries if e.tool and e.tool in options.tools]
        if options.statuses:
            entries = [e for e in entries if e.status in options.statuses]
        return entries

    def _export_json(self, entries: list[LogEntry]) -> str:
        return json.dumps(
            {
                "export_time": datetime.now(timezone.utc).isoformat(),
                "total_operations": len(entries),
                "operations": [e.to_dict() for e in entries],
            },
            indent=2,
            default=str,
        )

    def _export_csv(self, entries: list[LogEntry]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(["Timestamp", "Tool", "Status", "Duration", "Summary"])
        for e in entries:
            writer.writerow([
                e.timestamp.isoformat(),
                e.tool or "",
                e.status.value,
                f"{e.duration:.0f}ms" if e.duration is not None else "",
                summarize_details(e.details),
            ])
        return buffer.getvalue().rstrip("\n")

    def _export_markdown(self, entries: list[LogEntry]) -> str:
        by_category = Counter(e.category.value for e in entries)
        completed = sum(1 for e in entries if e.status == OperationStatus.COMPLETED)
        success_rate = f"{completed / len(entries) * 100:.1f}" if entries else "0"

        lines = [
            "# Operation Log Export",
            "",
            f"**Generated**: {datetime.now(timezone.utc).isoformat()}",
            f"**Total operations**: {len(entries)}",
            "",
            "## Summary",
            "",
            f"- Total operations: {len(entries)}",
            f"- Success rate: {success_rate}%",
            "",
            "### By category",
        ]
        lines.extend(f"- {category}: {count}" for category, count in by_category.items())
        lines.extend(["", "## Entries", ""])

        for e in entries:
            duration = f" | {e.duration:.0f}ms" if e.duration is not None else ""
            lines.extend([
                f"### {e.timestamp.isoformat()} - {e.tool or 'System'}",
                "",
                f"{STATUS_MARKERS.get(e.status, '[--]')} {e.status.value}{duration}",
                "",
                f"**Category**: {e.category.value}",
                "",
                f"**Title**: {e.title}",
                "",
                f"**Message**: {e.message}",
            ])
            if e.details:
                lines.extend([
                    "",
                    "**Details**:",
                    "```",
                    json.dumps(e.details, indent=2, default=str),
                    "```",
                ])
            lines.append("")

        return "\n".join(lines)
