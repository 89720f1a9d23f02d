"""API endpoints for tool definitions, policies and tool calls."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from toolgate.api.deps import get_runtime
from toolgate.guardrails.approval_engine import ToolCallRequest
from toolgate.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tools")


class ToolCallBody(BaseModel):
    """A tool call submitted over HTTP."""

    tool: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    source: str = "http"


@router.get("")
async def list_tools(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """JSON schemas for every tool with a configured policy."""
    tools = runtime.dispatcher.list_tools()
    return {"tools": tools, "total": len(tools)}


@router.get("/policies")
async def list_policies(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    policies = runtime.policies.all()
    return {"policies": [p.to_dict() for p in policies], "total": len(policies)}


@router.get("/policies/{tool}")
async def get_policy(tool: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    config = runtime.approvals.get_tool_config(tool)
    if config is None:
        raise HTTPException(status_code=404, detail=f"No policy for tool {tool}")
    return config.to_dict()


@router.post("/call")
async def call_tool(body: ToolCallBody, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Evaluate and, if approved, execute a tool call.

    May wait for a human decision up to the approval timeout. Denials are
    reported in the body, not as HTTP errors.
    """
    outcome = await runtime.dispatcher.dispatch(
        ToolCallRequest(tool=body.tool, params=body.params, source=body.source)
    )
    return outcome.to_dict()
