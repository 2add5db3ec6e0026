"""Application configuration management."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_path: str = "/data/autoreject.db"

    # Server
    public_url: str = "http://localhost:7070"
    log_level: str = "info"
    port: int = 7070

    # Rate limiting
    rate_limit_per_minute: int = 60

    # Sync settings
    sync_interval_minutes: int = 15
    enable_periodic_sync: bool = True
    conflict_buffer_hours: int = 25

    # Google OAuth client used to refresh stored user tokens
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    token_refresh_margin_minutes: int = 5

    # Per-user setting defaults
    default_autoreject_name: str = "(autoreject)"
    default_autoreject_reply: str = (
        "Automatic decline - unavailable. "
        "Please ask about scheduling during this block of time."
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
