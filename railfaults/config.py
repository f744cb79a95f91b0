"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration for the fault tracker API."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./faults.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    host: str = Field(default="0.0.0.0", description="Interface the API server binds to")
    port: int = Field(default=3000, description="Port the API server listens on")
    run_db_migrations: bool = Field(
        default=True,
        description="Whether the service should create missing database tables on startup.",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="120/minute", description="Global rate limiting rule")
    login_rate_limit: str = Field(default="10/minute", description="Rate limit for credential checks")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    directory_cache_ttl: int = Field(default=60, description="TTL (s) for the cached chiefdom directory")

    upload_dir: str = Field(default="uploads", description="Directory holding compressed fault images")
    log_dir: str = Field(default="logs", description="Directory for audit log files")
    max_images_per_request: int = Field(default=5, description="Upper bound on images attached in one request")
    image_max_dimension: int = Field(default=1024, description="Longest edge (px) of a stored image")
    image_jpeg_quality: int = Field(default=80, ge=1, le=95, description="JPEG quality for re-encoded images")
    image_processing_timeout: float = Field(default=30.0, description="Seconds a request waits for one image to compress")
    image_workers: int = Field(default=2, ge=1, description="Threads compressing uploaded images")


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
