"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Redis (RQ job store)
    redis_url: RedisDsn = RedisDsn("redis://localhost:6379/0")

    # Storage
    results_dir: Path = Path("./results")  # One sub-directory per business
    data_dir: Path = Path("./data")  # Business profile and deep-dive requests

    # Remote backend (remote mode when set)
    backend_url: str | None = None
    backend_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 5.0
    poll_max_attempts: int = 60  # ~5 minutes at the default interval
    poll_max_consecutive_failures: int = 3

    # Correlation
    run_match_tolerance_seconds: int = 300

    # Local pipeline
    phase_worker: Literal["script", "mock"] = "script"
    tester_dir: Path = Path("../ai-visibility-tester")
    tester_python: str = "python"
    max_concurrent_providers: int = 5
    pipeline_job_timeout: int = 3600

    # Sentry
    sentry_dsn: str | None = None

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"

    @property
    def remote_mode(self) -> bool:
        """Check if test runs are delegated to a remote backend."""
        return bool(self.backend_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
