"""Services package exports."""

from src.services.dashboard_service import DashboardSession, SessionRegistry
from src.services.logging_service import configure_logging, get_logger

__all__ = [
    "DashboardSession",
    "SessionRegistry",
    "configure_logging",
    "get_logger",
]
