"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, secrets, etc.)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal

from utils.constants import (
    DEFAULT_CODE_EXPIRY_MS,
    DEFAULT_TOKEN_TTL_SECONDS,
    DEFAULT_TOKEN_REFRESH_THRESHOLD_SECONDS,
    TOKEN_ISSUER,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="phone_verification",
        description="MongoDB database name"
    )

    # Verification codes
    VERIFICATION_CODE_EXPIRY_MS: int = Field(
        default=DEFAULT_CODE_EXPIRY_MS,
        description="Verification code lifetime in milliseconds"
    )
    CODE_CLEANUP_INTERVAL_SECONDS: int = Field(
        default=300,
        description="Interval of the background sweep clearing expired codes (0 disables it)"
    )

    # Session credentials
    JWT_SECRET: str = Field(
        default="change-me-in-production",
        description="Signing secret for session tokens"
    )
    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="Session token signing algorithm"
    )
    JWT_EXPIRES_IN_SECONDS: int = Field(
        default=DEFAULT_TOKEN_TTL_SECONDS,
        description="Session token lifetime in seconds"
    )
    JWT_ISSUER: str = Field(
        default=TOKEN_ISSUER,
        description="Issuer claim stamped on session tokens"
    )
    TOKEN_REFRESH_THRESHOLD_SECONDS: int = Field(
        default=DEFAULT_TOKEN_REFRESH_THRESHOLD_SECONDS,
        description="Reissue tokens whose remaining lifetime drops below this"
    )

    # Twilio SMS
    TWILIO_ACCOUNT_SID: Optional[str] = Field(
        default=None,
        description="Twilio account SID"
    )
    TWILIO_AUTH_TOKEN: Optional[str] = Field(
        default=None,
        description="Twilio auth token"
    )
    TWILIO_PHONE_NUMBER: Optional[str] = Field(
        default=None,
        description="Sender phone number registered with Twilio"
    )
    TWILIO_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Twilio API request timeout in seconds"
    )
    SMS_MOCK_MODE: bool = Field(
        default=False,
        description="Return codes in responses instead of sending SMS"
    )

    # Per-client request limiting
    IP_RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=10,
        description="Maximum auth requests per client address per window"
    )
    IP_RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=900,
        description="Per-client request window in seconds"
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
        default="/api/auth",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
        ],
        description="Allowed CORS origins"
    )

    @validator("JWT_SECRET")
    def validate_jwt_secret(cls, v, values):
        """Ensure signing secret is changed in production."""
        if values.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("JWT_SECRET must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def twilio_configured(self) -> bool:
        """Check if Twilio credentials are present."""
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN)

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.JWT_SECRET:
        errors.append("JWT_SECRET is required")

    if settings.VERIFICATION_CODE_EXPIRY_MS <= 0:
        errors.append("VERIFICATION_CODE_EXPIRY_MS must be positive")

    if settings.JWT_EXPIRES_IN_SECONDS <= 0:
        errors.append("JWT_EXPIRES_IN_SECONDS must be positive")

    # Production-specific validations
    if settings.is_production:
        if settings.SMS_MOCK_MODE:
            errors.append("SMS_MOCK_MODE must be disabled in production")
        if not settings.twilio_configured:
            errors.append("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required in production")
        if not settings.TWILIO_PHONE_NUMBER:
            errors.append("TWILIO_PHONE_NUMBER is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
