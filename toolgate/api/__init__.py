"""API routes for Toolgate."""

from fastapi import APIRouter

from toolgate.api.approvals import router as approvals_router
from toolgate.api.checkpoints import router as checkpoints_router
from toolgate.api.logs import router as logs_router
from toolgate.api.tools import router as tools_router

api_router = APIRouter(prefix="/api")
api_router.include_router(approvals_router, tags=["approvals"])
api_router.include_router(logs_router, tags=["logs"])
api_router.include_router(checkpoints_router, tags=["checkpoints"])
api_router.include_router(tools_router, tags=["tools"])

__all__ = ["api_router"]
