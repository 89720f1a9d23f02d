"""Tool result type and tool definitions exposed to agents."""

from dataclasses import dataclass, field
from typing import Any

from toolgate.errors import ErrorKind, ToolgateError


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str
    error: str | None = None
    error_kind: ErrorKind | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind = ErrorKind.INTERNAL, **data: Any) -> "ToolResult":
        return cls(success=False, output="", error=error, error_kind=kind, data=data or None)

    @classmethod
    def from_error(cls, exc: ToolgateError) -> "ToolResult":
        return cls.failure(str(exc), exc.kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "data": self.data,
        }


@dataclass
class ToolParameter:
    """Tool parameter definition."""

    name: str
    type: str  # string, number, boolean, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None

    def to_property(self) -> dict[str, Any]:
        prop: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            prop["enum"] = list(self.enum)
        if self.default is not None:
            prop["default"] = self.default
        return prop


@dataclass
class ToolDefinition:
    """A tool the gateway accepts calls for."""

    id: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_schema(self) -> dict[str, Any]:
        """Function-calling schema advertised to agents."""
        return {
            "type": "function",
            "function": {
                "name": self.id,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_property() for p in self.parameters},
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


def _page_param() -> ToolParameter:
    return ToolParameter(
        name="page_id",
        type="string",
        description="Browser page to act on",
        required=False,
        default="default",
    )


TOOL_DEFINITIONS: list[ToolDefinition] = [
    ToolDefinition(
        id="sandbox_read_file",
        description="Read a text file inside the sandbox",
        parameters=[ToolParameter(name="path", type="string", description="File path")],
    ),
    ToolDefinition(
        id="sandbox_write_file",
        description="Write a file inside the sandbox. A checkpoint is taken first so the write can be rolled back",
        parameters=[
            ToolParameter(name="path", type="string", description="File path"),
            ToolParameter(name="content", type="string", description="New file content"),
        ],
    ),
    ToolDefinition(
        id="system_exec",
        description="Run a single command without a shell. Pipes, redirects and command chaining are rejected",
        parameters=[ToolParameter(name="command", type="string", description="Command line to run")],
    ),
    ToolDefinition(
        id="browser_navigate",
        description="Open a URL",
        parameters=[ToolParameter(name="url", type="string", description="URL to open"), _page_param()],
    ),
    ToolDefinition(
        id="browser_click",
        description="Click an element",
        parameters=[ToolParameter(name="selector", type="string", description="CSS selector"), _page_param()],
    ),
    ToolDefinition(
        id="browser_fill",
        description="Type a value into an input",
        parameters=[
            ToolParameter(name="selector", type="string", description="CSS selector"),
            ToolParameter(name="value", type="string", description="Text to enter"),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_screenshot",
        description="Capture the page",
        parameters=[
            ToolParameter(name="full_page", type="boolean", description="Capture the full page", required=False),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_text",
        description="Read text content of an element or the whole page",
        parameters=[
            ToolParameter(name="selector", type="string", description="CSS selector", required=False),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_wait",
        description="Wait for an element to appear",
        parameters=[
            ToolParameter(name="selector", type="string", description="CSS selector"),
            ToolParameter(name="timeout", type="number", description="Timeout in milliseconds", required=False),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_evaluate",
        description="Evaluate a script in the page",
        parameters=[ToolParameter(name="script", type="string", description="Script source"), _page_param()],
    ),
    ToolDefinition(
        id="browser_cookies",
        description="Read or set cookies",
        parameters=[
            ToolParameter(name="action", type="string", description="Operation", enum=["get", "set"]),
            ToolParameter(name="cookie", type="object", description="Cookie to set", required=False),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_upload",
        description="Attach a local file to a file input",
        parameters=[
            ToolParameter(name="selector", type="string", description="CSS selector of the input"),
            ToolParameter(name="path", type="string", description="Local file path"),
            _page_param(),
        ],
    ),
    ToolDefinition(
        id="browser_download",
        description="Download a file triggered by clicking an element",
        parameters=[
            ToolParameter(name="selector", type="string", description="CSS selector to click"),
            ToolParameter(name="path", type="string", description="Destination path"),
            _page_param(),
        ],
    ),
]
