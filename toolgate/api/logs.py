"""API endpoints for the operation audit log."""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from toolgate.api.deps import get_runtime
from toolgate.audit.exporter import ExportFormat, ExportOptions
from toolgate.audit.models import LogCategory, LogFilter, LogLevel, OperationStatus
from toolgate.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/logs")

MEDIA_TYPES = {
    "json": "application/json",
    "text": "text/plain",
    "csv": "text/csv",
    "markdown": "text/markdown",
}


class LogListResponse(BaseModel):
    logs: list[dict[str, Any]]
    total: int
    returned: int


@router.get("", response_model=LogListResponse)
async def query_logs(
    level: list[LogLevel] | None = Query(None),
    status: list[OperationStatus] | None = Query(None),
    category: list[LogCategory] | None = Query(None),
    tool: list[str] | None = Query(None),
    search: str | None = Query(None, description="Case-insensitive substring match"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=10_000),
    runtime: Runtime = Depends(get_runtime),
) -> LogListResponse:
    """Filter the audit log. All filters combine with AND; newest entries last."""
    log_filter = LogFilter(
        level=level,
        status=status,
        category=category,
        tool=tool,
        search=search,
        start=start,
        end=end,
    )
    entries = runtime.operation_logger.get_filtered_logs(log_filter)
    limited = entries[-limit:]
    return LogListResponse(logs=[e.to_dict() for e in limited], total=len(entries), returned=len(limited))


@router.get("/export", response_class=PlainTextResponse)
async def export_logs(
    format: str = Query("json", description="json, text, csv or markdown"),
    tool: list[str] | None = Query(None),
    status: list[OperationStatus] | None = Query(None),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    runtime: Runtime = Depends(get_runtime),
) -> PlainTextResponse:
    """Download the audit log."""
    if format not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported export format: {format}")

    if format == "text":
        log_filter = LogFilter(tool=tool, status=status, start=start, end=end)
        body = runtime.operation_logger.export(format, log_filter)
    elif format == "json" and not (tool or status or start or end):
        body = runtime.operation_logger.export(format)
    else:
        options = ExportOptions(
            format=ExportFormat(format),
            start=start,
            end=end,
            tools=tool,
            statuses=status,
        )
        body = runtime.exporter.export(runtime.operation_logger.get_all_logs(), options)

    return PlainTextResponse(body, media_type=MEDIA_TYPES[format])


@router.delete("")
async def clear_logs(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    count = len(runtime.operation_logger)
    runtime.operation_logger.clear()
    return {"cleared": count}
