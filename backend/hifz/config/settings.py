"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from hifz.config import settings

    # Access settings
    db_url = settings.DATABASE_URL_RESOLVED
    weeks = settings.EVOLUTION_WEEKS
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Hifz Tracker"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "hifz"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "hifz"

    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* parts when set
    # (e.g. "sqlite+aiosqlite:///./hifz.db" for local runs and tests).
    DATABASE_URL: Optional[str] = None

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """Connection URL actually used by the engine."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Identity header set by the upstream authentication proxy
    USER_ID_HEADER: str = "X-User-Id"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"

    # Statistics
    EVOLUTION_WEEKS: int = 12
    VERSES_PER_PAGE: int = 15
    TOTAL_VERSES: int = 6236
    TOTAL_PAGES: int = 604
    TOTAL_CHAPTERS: int = 114

    # Learner profile
    RECENT_RECITATIONS_LIMIT: int = 20
    RECENT_VALIDATIONS_MONTHS: int = 6

    # Group alerts
    INACTIVITY_THRESHOLD_DAYS: int = 7

    # Comments
    COMMENT_MAX_LENGTH: int = 4000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
