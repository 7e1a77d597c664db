"""
Application configuration using pydantic-settings.
All settings are loaded from environment variables or .env file.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./architect.db"

    # Connection pool limits per process (not used by SQLite)
    db_pool_size: int = 5
    db_max_overflow: int = 5

    # Completion service
    anthropic_api_key: str = ""
    claude_model: str = "claude-haiku-4-5"
    completion_max_tokens: int = 4096
    # Batch items are single calls; a whole batch is N of them
    completion_timeout_seconds: float = 120.0
    stream_timeout_seconds: float = 60.0

    # Application
    debug: bool = True
    log_level: str = "INFO"
    log_file: str | None = None
    sentry_dsn: str | None = None

    # Credits
    default_credits: Decimal = Decimal("30")
    credit_cost_message: Decimal = Decimal("0.1")
    credit_cost_suite: Decimal = Decimal("3")
    credit_cost_sequence: Decimal = Decimal("1.5")
    credit_cost_regenerate: Decimal = Decimal("0.2")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
