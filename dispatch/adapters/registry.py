"""
AdapterRegistry - builds the order source for a given platform name.

The ingestion service does not say "call the Shopify API". It says
"get me the source for shopify with these settings" and works with
whatever BaseOrderSource comes back.
"""

from typing import Callable, Dict, List, Optional

import httpx

from dispatch.adapters.base import BaseOrderSource
from dispatch.adapters.google_sheets import GoogleSheetsOrderSource
from dispatch.adapters.shopify import ShopifyOrderSource
from dispatch.services.integration_settings import GoogleSheetsSettings, ShopifySettings


class UnsupportedPlatformError(Exception):
    """Raised when no order source is registered under a platform name."""
    pass


def _build_shopify(settings: ShopifySettings, client: Optional[httpx.AsyncClient]) -> BaseOrderSource:
    return ShopifyOrderSource(settings.store_url, settings.access_token, client=client)


def _build_google_sheets(settings: GoogleSheetsSettings, client: Optional[httpx.AsyncClient]) -> BaseOrderSource:
    return GoogleSheetsOrderSource(settings.spreadsheet_id, settings.api_key, client=client)


class AdapterRegistry:
    _REGISTRY: Dict[str, Callable] = {
        "shopify": _build_shopify,
        "google_sheets": _build_google_sheets,
    }

    @classmethod
    def get_adapter(cls, platform_name: str, settings, client: Optional[httpx.AsyncClient] = None) -> BaseOrderSource:
        """
        Return an order source for ``platform_name`` configured with ``settings``.

        Raises:
            UnsupportedPlatformError if the platform is not in the registry.
        """
        factory = cls._REGISTRY.get(platform_name)
        if factory is None:
            raise UnsupportedPlatformError(
                f"Platform '{platform_name}' is not supported. "
                f"Supported platforms: {list(cls._REGISTRY.keys())}"
            )
        return factory(settings, client)

    @classmethod
    def supported_platforms(cls) -> List[str]:
        return list(cls._REGISTRY.keys())
