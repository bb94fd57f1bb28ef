"""API package exports."""

from src.api.dashboard import router as dashboard_router
from src.api.middleware import CorrelationIdMiddleware
from src.api.routes import router
from src.api.tracking import router as tracking_router

__all__ = ["router", "dashboard_router", "tracking_router", "CorrelationIdMiddleware"]
