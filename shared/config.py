"""
Shared configuration management for the offline agent.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STATIC_ASSETS = [
    "/",
    "/index.html",
    "/styles-minified.css",
    "/script-optimized.js",
    "/images/logo.jpg.png",
    "/images/dr-gopathi.jpg.png",
    "https://fonts.googleapis.com/css2?family=Poppins:wght@400;600;700&family=Inter:wght@400;500;600&display=swap",
    "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.0.0/css/all.min.css",
]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OFFLINE_",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Site
    site_origin: str = Field(default="http://localhost:8000")
    cache_version: str = Field(default="v1.0.0")
    static_assets: List[str] = Field(default_factory=lambda: list(DEFAULT_STATIC_ASSETS))
    appointments_endpoint: str = Field(default="/api/appointments")

    # Storage
    queue_db_path: str = Field(default="MallikarjunaHospitalDB.sqlite3")
    cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    dynamic_cache_max_bytes: int = Field(default=50 * 1024 * 1024, ge=0)

    # Network
    # unset means no client-side timeout
    http_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    seed_fetch_attempts: int = Field(default=1, ge=1)

    # Observability
    enable_metrics: bool = Field(default=True)

    @property
    def static_tier_name(self) -> str:
        return f"static-{self.cache_version}"

    @property
    def dynamic_tier_name(self) -> str:
        return f"dynamic-{self.cache_version}"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
