"""
Configuration management using Pydantic settings.
Handles database URL, JWT secrets, listing lifecycle policy and sweeper scheduling.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache
import re


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application configuration
    app_name: str = "EstateHub Listing Governance API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/estatehub"
    test_database_url: str = "sqlite+aiosqlite:///./estatehub_test.db"

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 7

    # API configuration
    api_v1_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://localhost:8000"]

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Listing lifecycle policy
    default_listing_duration_days: int = 30
    max_listing_duration_days: int = 365
    individual_free_listings: int = 1
    inactive_listings_hold_quota: bool = True

    # Expiration sweeper
    sweeper_enabled: bool = True
    sweep_daily_at: str = "03:00"
    sweep_interval_seconds: Optional[int] = None
    sweep_batch_size: int = 200
    sweep_time_budget_seconds: float = 300.0

    @field_validator("database_url", "test_database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure an async driver is used."""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("sweep_daily_at")
    @classmethod
    def validate_sweep_daily_at(cls, v):
        """Validate the daily sweep time (UTC, HH:MM)."""
        match = re.fullmatch(r"(\d{2}):(\d{2})", v or "")
        if not match or int(match.group(1)) > 23 or int(match.group(2)) > 59:
            raise ValueError("sweep_daily_at must be a UTC time formatted as HH:MM")
        return v

    @field_validator(
        "default_listing_duration_days",
        "max_listing_duration_days",
        "sweep_batch_size",
    )
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("individual_free_listings")
    @classmethod
    def validate_free_tier(cls, v):
        if v < 0:
            raise ValueError("individual_free_listings cannot be negative")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def active_database_url(self) -> str:
        """Database URL for the current environment."""
        return self.test_database_url if self.is_testing else self.database_url

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
