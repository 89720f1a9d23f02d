"""Toolgate - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from pydantic import BaseModel

from toolgate import __version__
from toolgate.api import api_router
from toolgate.config import Settings, get_config_summary, get_settings
from toolgate.logging_config import setup_logging
from toolgate.runtime import Runtime, build_runtime

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    tools: int
    pending_approvals: int
    checkpoints: int
    log_entries: int
    config: dict


def create_app(settings: Settings | None = None, runtime: Runtime | None = None) -> FastAPI:
    """Build the application around one Runtime."""
    settings = settings or (runtime.settings if runtime else get_settings())
    runtime = runtime or build_runtime(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"{settings.app_name} starting up...")
        runtime.operation_logger.log_system(f"{settings.app_name} started")
        yield
        denied = runtime.approvals.deny_all_pending("Server shutting down")
        if denied:
            logger.info(f"Denied {denied} pending approvals on shutdown")
        logger.info(f"{settings.app_name} shut down")

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Policy-gated execution of AI agent tool calls with checkpoint rollback and audit logging.",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.runtime = runtime

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests with timing information."""
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        if request.url.path != "/health":
            logger.info(
                f"{request.method} {request.url.path} {response.status_code}",
                extra={"duration_ms": round(duration_ms, 2)},
            )
        return response

    app.include_router(api_router)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            version=__version__,
            tools=len(runtime.policies),
            pending_approvals=len(runtime.approvals.get_pending()),
            checkpoints=len(runtime.checkpoints),
            log_entries=len(runtime.operation_logger),
            config=get_config_summary(settings),
        )

    return app


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    setup_logging(debug=settings.debug, json_logs=settings.json_logs)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
