"""
Configuration settings for the Rider Dispatch service.
Loads from environment variables with validation.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


DEV_SECRET_KEY = "dev-secret-change-me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Rider Dispatch"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:3000"
    SECRET_KEY: str = DEV_SECRET_KEY
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Key-value store
    REDIS_URL: str = "redis://localhost:6379"

    # Order store
    ORDER_PARTITION_LOCKING: bool = True
    ORDER_LOCK_TIMEOUT_SECONDS: int = 10

    # Lifecycle behaviour switches
    STRICT_DELIVERY_TRANSITIONS: bool = False
    RIDER_STATUS_USE_ORDER_DATE: bool = False
    RECONCILE_RIDER_ON_REASSIGN: bool = False

    # Shopify
    SHOPIFY_API_VERSION: str = "2024-01"
    SHOPIFY_ORDER_LIMIT: int = 250

    # Google Sheets
    GOOGLE_SHEETS_API_URL: str = "https://sheets.googleapis.com/v4/spreadsheets"
    SHEETS_AUTO_SYNC_ENABLED: bool = False
    SHEETS_AUTO_SYNC_INTERVAL_SECONDS: int = 120

    # Outbound HTTP
    UPSTREAM_TIMEOUT_SECONDS: float = 15.0

    # Double-submit protection for order creation
    IDEMPOTENCY_TTL_HOURS: int = 24

    def validate_production_settings(self):
        """Validate critical settings for production deployment."""
        if not self.DEBUG and self.SECRET_KEY == DEV_SECRET_KEY:
            raise ValueError(
                "SECRET_KEY must be set in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader with production validation."""
    settings = Settings()
    if not settings.DEBUG:
        settings.validate_production_settings()
    return settings
