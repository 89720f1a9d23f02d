"""Sandboxed tool execution."""

from toolgate.tools.base import TOOL_DEFINITIONS, ToolDefinition, ToolParameter, ToolResult
from toolgate.tools.executor import OperationExecutor
from toolgate.tools.snapshots import FileSnapshot

__all__ = [
    "TOOL_DEFINITIONS",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "OperationExecutor",
    "FileSnapshot",
]
