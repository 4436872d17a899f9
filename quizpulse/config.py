"""Application configuration module."""

from functools import lru_cache
from typing import Optional
from pydantic import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # Event delivery settings
    EVENT_QUEUE_SIZE: int = 1000
    EVENT_LOG_DIR: Optional[str] = None

    # Live monitor settings
    MONITOR_DEDUP_WINDOW: int = 10000

    # Scoring settings
    DEFAULT_QUESTION_POINTS: int = 1

    PROJECT_NAME: str = "QuizPulse"

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


# Create global settings instance
settings = get_settings()
