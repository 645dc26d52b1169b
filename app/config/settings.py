"""
Application Settings for Study Subscriptions

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The ledger engine itself only needs a database; the JWT values are used
    by the API layer to identify the caller.
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:5173"
    allowed_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    # Auth (bearer JWT issued by the identity provider)
    jwt_secret: Optional[str] = None
    jwt_issuer: Optional[str] = None
    jwt_audience: str = "authenticated"
    jwt_algorithm: str = "HS256"

    # Shared secret the payment gateway sends with status callbacks
    payments_webhook_secret: Optional[str] = None

    # Tier catalog conventions
    free_tier_name: str = "free"

    # Selections may only be set once when enabled (one-time setup)
    selection_lock_after_purchase: bool = False

    # Referral program
    referral_code_length: int = 8
    referral_code_max_attempts: int = 10
    points_payment_provider: str = "points"

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_production_requirements(self) -> "Settings":
        """Production deployments must be able to verify tokens and reach a database."""
        if self.is_production:
            missing = []
            if not self.jwt_secret:
                missing.append("JWT_SECRET")
            if not self.database_url:
                missing.append("DATABASE_URL")
            if not self.payments_webhook_secret:
                missing.append("PAYMENTS_WEBHOOK_SECRET")
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} required when ENVIRONMENT=production"
                )

        if not 4 <= self.referral_code_length <= 32:
            raise ValueError("REFERRAL_CODE_LENGTH must be between 4 and 32")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
