"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dashboard import router as dashboard_router
from src.api.middleware import CorrelationIdMiddleware
from src.api.routes import router
from src.api.tracking import router as tracking_router
from src.config import get_settings
from src.services.dashboard_service import get_session_registry
from src.services.dispatch_service import await_pending_dispatches
from src.services.logging_service import configure_logging, get_logger
from src.services.store_client import close_store_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    logger.info(
        "application_started",
        store_base_url=settings.store_base_url,
        log_level=settings.log_level,
    )

    yield

    # Let in-flight status writes and telemetry reach the store
    await get_session_registry().drain(settings.dispatch_drain_timeout)
    await await_pending_dispatches(timeout=settings.dispatch_drain_timeout)
    logger.info("pending_dispatches_drained")

    await close_store_client()

    logger.info("application_shutdown")


app = FastAPI(
    title="Partner Dashboard - Action Item Engine",
    description="Onboarding checklist lifecycle, resurfacing and dwell-time tracking",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with user-friendly messages.

    Returns 400 Bad Request naming the first offending field.
    """
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


# CORS middleware for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(dashboard_router)
app.include_router(tracking_router)
app.include_router(router)
