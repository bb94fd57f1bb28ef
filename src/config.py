"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Action item store (partner API)
    store_base_url: str = "http://localhost:3000/api/partners"
    store_timeout_seconds: int = 10
    store_service_token: Optional[str] = None

    # Lifecycle
    resurface_highlight_seconds: int = 5  # "back on your list" badge window
    display_timezone: str = "UTC"

    # Dwell-time tracking
    default_tab: str = "overview"
    max_views_per_session: int = 10  # open dashboard loads tracked per visitor

    # Session registry
    session_idle_seconds: int = 3600

    # Background dispatch
    dispatch_drain_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
