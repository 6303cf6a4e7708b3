"""
AdCast server.

Main entry point for the scheduling API and the MQTT sync runtime
(playlist push, device heartbeats, daily re-push).
"""

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adcast.common.config import get_settings
from adcast.common.database import close_db, create_tables, db, init_db
from adcast.common.exceptions import AdCastError
from adcast.common.logger import clear_log_context, get_logger, log_context
from adcast.common.utils import generate_request_id
from adcast.schemas.response import ErrorResponse
from adcast.server.middleware.metrics import MetricsMiddleware, metrics_endpoint
from adcast.server.routers import health, impressions, push, schedule
from adcast.server.runtime import SyncRuntime

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    logger.info(
        "Starting AdCast server",
        version=settings.app_version,
        env=settings.env,
    )

    await init_db()
    if settings.debug:
        await create_tables()

    runtime = SyncRuntime.from_settings(db.session_factory, settings)
    await runtime.start()
    app.state.runtime = runtime

    logger.info("AdCast server started successfully")

    yield

    logger.info("Shutting down AdCast server")
    await runtime.stop()
    await close_db()
    logger.info("AdCast server stopped")


def create_app(lifespan_handler: Any = lifespan) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="AdCast",
        description="Digital signage scheduling, MQTT playlist push and impression aggregation",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan_handler,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.monitoring.enabled:
        app.add_middleware(MetricsMiddleware)
        app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["monitoring"])

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next: Any) -> Any:
        """Log all requests with timing."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        log_context(request_id=request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        clear_log_context()

        return response

    @app.exception_handler(AdCastError)
    async def adcast_error_handler(
        request: Request,
        exc: AdCastError,
    ) -> JSONResponse:
        """Handle AdCast errors with the status of their class."""
        logger.warning(
            "AdCast error",
            error=exc.__class__.__name__,
            message=exc.message,
            details=exc.details,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.__class__.__name__,
                message=exc.message,
                details=exc.details or None,
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "Unexpected error",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="InternalServerError",
                message="An unexpected error occurred",
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(schedule.router, prefix="/api/v1/schedules", tags=["schedules"])
    app.include_router(push.router, prefix="/api/v1/push", tags=["push"])
    app.include_router(impressions.router, prefix="/api/v1/impressions", tags=["impressions"])

    return app


app = create_app()


def main() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "adcast.server.main:app",
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers,
        reload=settings.server.reload,
        log_level="info" if not settings.debug else "debug",
    )


if __name__ == "__main__":
    main()
