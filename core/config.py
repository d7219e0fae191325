"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Local store
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/flex_sync.db"

    # Remote API
    FLEX_BASE_URL: str = "https://api.flexrentalsolutions.com/f5/api"
    FLEX_API_KEY: Optional[str] = None
    FLEX_AUTH_HEADER: str = "X-Auth-Token"
    REQUEST_TIMEOUT: float = 30.0

    # Pagination and pacing
    PAGE_SIZE: int = 100
    REQUEST_DELAY: float = 0.3  # seconds between consecutive remote calls

    # Retry policy
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 60.0
    THROTTLE_DELAY: float = 10.0  # base wait after HTTP 429

    # Progress reporting
    PROGRESS_EVERY: int = 25

    # Status API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
