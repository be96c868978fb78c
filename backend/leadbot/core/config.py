"""
Application Configuration
"""
from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


PLACEHOLDER_WEBHOOK_URL = "http://localhost:5678/webhook/lead-intake"
PLACEHOLDER_DOCUMENT_SERVER_URL = "http://localhost:8000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "LeadBot"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False  # Verbose logging toggle

    # External services
    WEBHOOK_URL: str = PLACEHOLDER_WEBHOOK_URL
    DOCUMENT_SERVER_URL: str = PLACEHOLDER_DOCUMENT_SERVER_URL
    PUBLIC_URL: str = PLACEHOLDER_DOCUMENT_SERVER_URL
    FORWARD_WEBHOOK_RESPONSES: bool = False
    HTTP_TIMEOUT_SECONDS: float = 45.0

    # Conversation
    QUESTIONS_SOURCE: str = "data/questions.json"
    WELCOME_MESSAGE: str = (
        "Welcome! I'm your AI insurance assistant. "
        "Let me help you get your insurance quote in minutes."
    )
    TYPING_DELAY_MS: int = 500
    POLL_INTERVAL_SECONDS: float = 5.0
    SESSION_TTL_MINUTES: int = 60  # Idle time before a conversation is closed
    SESSION_SWEEP_SECONDS: float = 60.0

    # File uploads
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB in bytes
    ALLOWED_FILE_TYPES: List[str] = ["image/jpeg", "image/jpg", "image/png", "application/pdf"]

    # Document store
    DATABASE_URL: str = "sqlite:///./leadbot.db"
    DATABASE_ECHO: bool = False
    DOCS_DIR: str = "./docs"
    ARTIFACTS_DIR: str = "./artifacts"
    EXPECTED_DOCUMENT_COUNT: int = 6

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings that would break the conversation flow."""
        if self.POLL_INTERVAL_SECONDS <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be greater than zero.")
        if self.SESSION_TTL_MINUTES <= 0:
            raise ValueError("SESSION_TTL_MINUTES must be greater than zero.")
        if self.SESSION_SWEEP_SECONDS <= 0:
            raise ValueError("SESSION_SWEEP_SECONDS must be greater than zero.")
        if self.MAX_FILE_SIZE <= 0:
            raise ValueError("MAX_FILE_SIZE must be greater than zero.")

        if self.APP_ENV != "development":
            # Placeholder endpoints only make sense on a developer machine
            if self.WEBHOOK_URL == PLACEHOLDER_WEBHOOK_URL:
                raise ValueError(
                    "WEBHOOK_URL must be set in staging/production environments. "
                    "Set it in your .env file or environment variables."
                )
            if self.DOCUMENT_SERVER_URL == PLACEHOLDER_DOCUMENT_SERVER_URL:
                raise ValueError(
                    "DOCUMENT_SERVER_URL must be set in staging/production environments. "
                    "Set it in your .env file or environment variables."
                )

            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "Request payload metadata will be logged.",
                    UserWarning,
                )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
