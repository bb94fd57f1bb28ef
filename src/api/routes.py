"""API route definitions for health endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from src.config import get_settings
from src.services.dashboard_service import get_session_registry

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format and active session count
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store_base_url": get_settings().store_base_url,
        "sessions": len(get_session_registry()),
    }
