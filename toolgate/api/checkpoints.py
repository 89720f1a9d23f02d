"""API endpoints for checkpoints and rollback.

Provides endpoints for:
- Listing, creating and deleting checkpoints
- Previewing and performing a rollback to a checkpoint
- Listing snapshots and rolling back a single snapshot
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from toolgate.api.deps import get_runtime
from toolgate.errors import ErrorKind, ToolgateError
from toolgate.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkpoints")


class CreateCheckpointRequest(BaseModel):
    """Group existing snapshots into a named checkpoint."""

    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    file_snapshots: dict[str, str] = Field(description="File path -> snapshot id")


@router.get("")
async def list_checkpoints(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """List checkpoints, newest first."""
    checkpoints = runtime.checkpoints.list()
    return {"checkpoints": [cp.to_dict() for cp in checkpoints], "total": len(checkpoints)}


@router.post("", status_code=201)
async def create_checkpoint(
    body: CreateCheckpointRequest,
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    """Group snapshots into a checkpoint. Each path must be the file its snapshot was taken of."""
    try:
        file_snapshots = runtime.executor.bind_snapshots(body.file_snapshots)
    except ToolgateError as e:
        logger.warning(f"Manual checkpoint rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    checkpoint = runtime.checkpoints.create_manual(body.name, body.description, file_snapshots)
    return checkpoint.to_dict()


@router.get("/snapshots")
async def list_snapshots(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Live snapshots, oldest first. Content is not included."""
    snapshots = runtime.executor.get_snapshots()
    return {"snapshots": [s.to_dict() for s in snapshots], "total": len(snapshots)}


@router.post("/snapshots/{snapshot_id}/rollback")
async def rollback_snapshot(snapshot_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Restore the single file a snapshot was taken of."""
    result = await runtime.executor.rollback(snapshot_id)
    if result.error_kind == ErrorKind.NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.error)
    return result.to_dict()


@router.get("/{checkpoint_id}")
async def get_checkpoint(checkpoint_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    checkpoint = runtime.checkpoints.get(checkpoint_id)
    if not checkpoint:
        raise HTTPException(status_code=404, detail=f"Checkpoint {checkpoint_id} not found")
    return checkpoint.to_dict()


@router.delete("/{checkpoint_id}")
async def delete_checkpoint(checkpoint_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    if not runtime.checkpoints.delete(checkpoint_id):
        raise HTTPException(status_code=404, detail=f"Checkpoint {checkpoint_id} not found")
    return {"success": True, "checkpoint_id": checkpoint_id}


@router.get("/{checkpoint_id}/preview")
async def preview_rollback(checkpoint_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Dry run: what a rollback to this checkpoint would change."""
    if not runtime.checkpoints.get(checkpoint_id):
        raise HTTPException(status_code=404, detail=f"Checkpoint {checkpoint_id} not found")
    return runtime.rollback.preview_rollback(checkpoint_id).to_dict()


@router.post("/{checkpoint_id}/rollback")
async def rollback_to_checkpoint(checkpoint_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Restore every file in a checkpoint. Partial failures are reported per file."""
    if not runtime.checkpoints.get(checkpoint_id):
        raise HTTPException(status_code=404, detail=f"Checkpoint {checkpoint_id} not found")
    result = await runtime.rollback.rollback_to(checkpoint_id)
    return result.to_dict()
