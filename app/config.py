"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str

    # Redis (attempt change notifications)
    REDIS_URL: str = "redis://redis:6379/0"
    EXAM_EVENTS_CHANNEL: str = "exam-events"
    CHANGE_NOTIFICATIONS_ENABLED: bool = True

    # Application
    APP_NAME: str = "Exam Attempt Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Exam Settings
    PASS_THRESHOLD: float = 70.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
