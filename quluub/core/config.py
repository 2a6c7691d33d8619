"""
quluub/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, email provider, notification cadence)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Services never read this object directly; the container injects values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"

    # Storage
    STORAGE_BACKEND: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="Persistence backend; 'memory' is for local development and tests"
    )
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017/?replicaSet=rs0",
        description="MongoDB connection URI (a replica set is required for transactions)"
    )
    MONGODB_DB_NAME: str = Field(
        default="quluub",
        description="MongoDB database name"
    )

    # Outbound email
    EMAIL_API_URL: Optional[str] = Field(
        default=None,
        description="HTTP endpoint of the transactional email provider"
    )
    EMAIL_API_KEY: Optional[str] = Field(
        default=None,
        description="Bearer token for the email provider"
    )
    EMAIL_FROM: str = Field(
        default="Quluub <admin@quluub.com>",
        description="Sender address for guardian notifications"
    )
    EMAIL_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Per-attempt timeout for email provider calls"
    )
    EMAIL_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Attempts per email before the failure is logged and dropped"
    )
    EMAIL_RETRY_DELAY_SECONDS: float = Field(
        default=1.0,
        description="Fixed delay between email attempts"
    )

    # Compliance
    GUARDIAN_REPORT_INTERVAL: int = Field(
        default=5,
        description="Guardians receive a chat report every N messages in a thread"
    )

    # Caching
    PROFILE_CACHE_TTL_SECONDS: float = Field(
        default=300.0,
        description="TTL for cached display profiles"
    )

    # Account deletion
    PURGE_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Attempts for the purge transaction on transient storage errors"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("EMAIL_API_URL")
    @classmethod
    def validate_email_api_url(cls, v, info: ValidationInfo):
        """Ensure the email provider is configured in production."""
        if info.data.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("EMAIL_API_URL is required in production environment")
        return v

    @field_validator("GUARDIAN_REPORT_INTERVAL", "EMAIL_MAX_ATTEMPTS", "PURGE_MAX_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance (read-only)
settings = Settings()


def validate_settings(config: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    config = config or settings
    errors = []

    if config.STORAGE_BACKEND == "mongo" and not config.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if config.is_production:
        if config.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not allowed in production")
        if not config.EMAIL_API_KEY:
            errors.append("EMAIL_API_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
