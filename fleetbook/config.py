"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Fleetbook"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./fleetbook.db")
    db_echo: bool = False

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Vehicle write serialization
    lock_backend: Literal["local", "redis"] = "local"
    lock_timeout_seconds: float = 10.0  # auto-release for a crashed holder
    lock_blocking_timeout_seconds: float = 5.0

    # Timestamps crossing the API boundary are normalised to this zone
    local_timezone: str = "UTC"

    # Rate Limiting
    rate_limit_per_minute: int = 100

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    @model_validator(mode="after")
    def check_lock_backend_covers_workers(self) -> Settings:
        """In-process vehicle locks cannot serialize writers across workers."""
        if self.workers > 1 and self.lock_backend == "local":
            raise ValueError(
                "lock_backend='local' only supports workers=1; "
                "set LOCK_BACKEND=redis to run several workers"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
