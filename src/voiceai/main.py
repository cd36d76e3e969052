"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from voiceai_shared import get_logger, setup_logging

from voiceai import __version__
from voiceai.api import cron, health, notifications, reports
from voiceai.api.rate_limits import limiter
from voiceai.config import get_settings, require_valid_settings
from voiceai.core.exceptions import VoiceAIError
from voiceai.db import close_db, init_db
from voiceai.dependencies import get_report_service, shutdown_report_service
from voiceai.services.monthly_report_cron import (
    start_monthly_report_scheduler,
    stop_monthly_report_scheduler,
)


log = get_logger(__name__)

# Error type strings of the JSON error envelope
_ERROR_TYPES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limit_exceeded",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


def _error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": _ERROR_TYPES.get(status_code, "error"),
            "message": message,
            "status_code": status_code,
            **extra,
        },
        headers=headers,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error_response(
        429, "Too many requests. Please try again later.", detail=str(exc.detail)
    )


def voiceai_exception_handler(request: Request, exc: VoiceAIError) -> JSONResponse:
    """Domain errors keep their own error code in the body."""
    log.warning(
        "request_failed",
        error_code=exc.error_code,
        error=exc.message,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(
        exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """List each invalid field with its message."""
    details = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body") or "request",
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response(422, "Request validation failed", details=details)


def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors: logged, and only described to the client in debug mode."""
    log.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    message = str(exc) if get_settings().debug else "An internal error occurred"
    return _error_response(500, message)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = require_valid_settings()

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        service="voiceai",
    )

    log.info(
        "voiceai_starting",
        version=__version__,
        environment=settings.environment,
    )

    await init_db()
    log.info("database_initialized")

    report_service = get_report_service()
    await report_service.storage.initialize()

    if settings.reports.scheduler_enabled:
        await start_monthly_report_scheduler(
            report_service,
            run_at_hour=settings.reports.run_at_hour,
        )
    else:
        log.info("monthly_report_scheduler_disabled")

    yield

    log.info("voiceai_shutting_down")

    await stop_monthly_report_scheduler()
    await shutdown_report_service()

    await close_db()
    log.info("database_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="VoiceAI Reports",
        description="Monthly activity reports for the VoiceAI receptionist",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Rate limiting
    app.state.limiter = limiter

    # Exception handlers (order matters - most specific first)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(VoiceAIError, voiceai_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
    app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["Notifications"])

    return app


# Create application instance
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "voiceai.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
