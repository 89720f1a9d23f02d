"""API endpoints for human approval of tool calls.

Provides endpoints for:
- Listing pending approvals
- Approving/denying requests (optionally remembering the choice)
- Reading and updating approval preferences
- Clearing remembered choices
- SSE stream of new approval requests
"""

import asyncio
import dataclasses
import json
import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from toolgate.api.deps import get_runtime
from toolgate.guardrails.approval_engine import PendingApproval, UserChoice
from toolgate.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/approvals")


# =============================================================================
# Pydantic Models
# =============================================================================


class PendingApprovalResponse(BaseModel):
    """A tool call waiting for a human."""

    request_id: str
    tool: str
    params: dict[str, Any]
    source: str
    risk_level: str
    reason: str | None
    created_at: str
    expires_at: str

    @classmethod
    def from_pending(cls, pending: PendingApproval) -> "PendingApprovalResponse":
        return cls(**pending.to_dict())


class PendingListResponse(BaseModel):
    approvals: list[PendingApprovalResponse]
    total: int


class RespondRequest(BaseModel):
    """Human answer to a pending approval."""

    approved: bool
    remember: UserChoice = UserChoice.ONCE


class RespondResponse(BaseModel):
    success: bool
    request_id: str
    message: str


class PreferencesModel(BaseModel):
    auto_approve_low_risk: bool
    require_confirmation: bool
    remember_choices: bool
    notification_level: Literal["all", "risky", "errors"]


class PreferencesUpdate(BaseModel):
    """Partial preferences update. Omitted fields keep their value."""

    auto_approve_low_risk: bool | None = None
    require_confirmation: bool | None = None
    remember_choices: bool | None = None
    notification_level: Literal["all", "risky", "errors"] | None = None


# =============================================================================
# API Endpoints
# =============================================================================


@router.get("", response_model=PendingListResponse)
async def list_pending(runtime: Runtime = Depends(get_runtime)) -> PendingListResponse:
    """List pending approval requests, oldest first."""
    pending = runtime.approvals.get_pending()
    return PendingListResponse(
        approvals=[PendingApprovalResponse.from_pending(p) for p in pending],
        total=len(pending),
    )


@router.get("/preferences", response_model=PreferencesModel)
async def get_preferences(runtime: Runtime = Depends(get_runtime)) -> PreferencesModel:
    return PreferencesModel(**dataclasses.asdict(runtime.approvals.get_preferences()))


@router.patch("/preferences", response_model=PreferencesModel)
async def update_preferences(
    update: PreferencesUpdate,
    runtime: Runtime = Depends(get_runtime),
) -> PreferencesModel:
    """Change approval preferences for this process."""
    changes = update.model_dump(exclude_none=True)
    prefs = runtime.approvals.update_preferences(**changes)
    return PreferencesModel(**dataclasses.asdict(prefs))


@router.get("/remembered")
async def list_remembered(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    choices = runtime.approvals.get_remembered_choices()
    return {"choices": choices, "total": len(choices)}


@router.delete("/remembered")
async def clear_remembered(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Forget every remembered "always" choice."""
    count = runtime.approvals.clear_remembered_choices()
    return {"cleared": count}


@router.get("/stream/events")
async def approval_events_stream(runtime: Runtime = Depends(get_runtime)):
    """Server-Sent Events stream of new approval requests.

    Usage:
        const es = new EventSource('/api/approvals/stream/events');
        es.addEventListener('approval_requested', (event) => {
            const request = JSON.parse(event.data);
        });
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def on_request(payload: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, payload)

    async def event_generator():
        unsubscribe = runtime.approvals.on_approval_request(on_request)
        try:
            # Send current pending approvals first
            for pending in runtime.approvals.get_pending():
                yield f"event: approval_requested\ndata: {json.dumps(pending.to_dict())}\n\n"

            while True:
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=15.0)
                    yield f"event: approval_requested\ndata: {json.dumps(payload, default=str)}\n\n"
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/{request_id}", response_model=PendingApprovalResponse)
async def get_pending(request_id: str, runtime: Runtime = Depends(get_runtime)) -> PendingApprovalResponse:
    pending = runtime.approvals.get_pending_approval(request_id)
    if not pending:
        raise HTTPException(status_code=404, detail=f"No pending approval {request_id}")
    return PendingApprovalResponse.from_pending(pending)


@router.post("/{request_id}/respond", response_model=RespondResponse)
async def respond(
    request_id: str,
    body: RespondRequest,
    runtime: Runtime = Depends(get_runtime),
) -> RespondResponse:
    """Approve or deny a pending tool call.

    Returns 404 if the request was already resolved or timed out.
    """
    if not runtime.approvals.handle_user_response(request_id, body.approved, body.remember):
        raise HTTPException(status_code=404, detail=f"No pending approval {request_id}")

    verb = "approved" if body.approved else "denied"
    logger.info(f"Approval {request_id} {verb} ({body.remember.value})")
    return RespondResponse(success=True, request_id=request_id, message=f"Request {verb}")
