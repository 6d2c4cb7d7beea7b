# dispatch/services/integration_settings.py
"""
Stored credentials for the external order sources.

Admins save them through the settings routes; the ingestion service
reads them on every pull or push.
"""

import json
import logging
from typing import Optional

from pydantic import BaseModel

from dispatch.models import WireModel
from dispatch.redis import get_redis_client

logger = logging.getLogger(__name__)

SHOPIFY_SETTINGS_KEY = "shopify_settings"
GOOGLE_SHEETS_SETTINGS_KEY = "google_sheets_settings"


class IntegrationNotConfiguredError(Exception):
    """Raised when an integration is used before its settings are saved."""

    def __init__(self, integration: str):
        self.integration = integration
        super().__init__(f"{integration} settings not found")


class ShopifySettings(WireModel):
    store_url: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    access_token: Optional[str] = None


class GoogleSheetsSettings(WireModel):
    spreadsheet_id: Optional[str] = None
    api_key: Optional[str] = None


class IntegrationSettingsStore:

    def __init__(self, redis_client=None):
        self.redis = redis_client or get_redis_client()

    def _load(self, key: str, model: type) -> Optional[BaseModel]:
        raw = self.redis.get(key)
        return model.model_validate(json.loads(raw)) if raw else None

    def get_shopify(self) -> Optional[ShopifySettings]:
        return self._load(SHOPIFY_SETTINGS_KEY, ShopifySettings)

    def save_shopify(self, settings: ShopifySettings) -> None:
        self.redis.set(SHOPIFY_SETTINGS_KEY, json.dumps(settings.to_wire()))
        logger.info(f"Saved Shopify settings for store {settings.store_url}")

    def require_shopify(self) -> ShopifySettings:
        settings = self.get_shopify()
        if settings is None:
            raise IntegrationNotConfiguredError("Shopify")
        return settings

    def get_google_sheets(self) -> Optional[GoogleSheetsSettings]:
        return self._load(GOOGLE_SHEETS_SETTINGS_KEY, GoogleSheetsSettings)

    def save_google_sheets(self, settings: GoogleSheetsSettings) -> None:
        self.redis.set(GOOGLE_SHEETS_SETTINGS_KEY, json.dumps(settings.to_wire()))
        logger.info(f"Saved Google Sheets settings for spreadsheet {settings.spreadsheet_id}")

    def require_google_sheets(self) -> GoogleSheetsSettings:
        settings = self.get_google_sheets()
        if settings is None:
            raise IntegrationNotConfiguredError("Google Sheets")
        return settings
