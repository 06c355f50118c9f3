"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str

    # Redis (quiz statistics cache)
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_ENABLED: bool = True
    STATS_CACHE_TTL: int = 60  # seconds

    # Application
    APP_NAME: str = "Quiz Attempt Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Quiz defaults
    DEFAULT_ATTEMPT_LIMIT: int = 3
    DEFAULT_PASSING_SCORE: int = 70
    MAX_TEXT_ANSWER_LENGTH: int = 2000

    # Expiry sweep
    SWEEP_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
