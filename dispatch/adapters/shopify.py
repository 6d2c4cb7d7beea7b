"""
ShopifyOrderSource - pulls orders from the Shopify Admin REST API.

Shopify orders land in the internal store only; they are never mirrored
to Google Sheets. A pull always targets today's partition, whatever the
remote order's own creation date.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from dispatch.adapters.base import BaseOrderSource, UpstreamError
from dispatch.config import get_settings
from dispatch.models import Order, DeliveryStatus, PaymentStatus, OrderSource
from dispatch.models.order import shopify_order_id

logger = logging.getLogger(__name__)


def _customer_name(remote: Dict) -> str:
    customer = remote.get("customer")
    if not customer:
        return "Unknown"
    return f"{customer.get('first_name')} {customer.get('last_name')}"


def _address(remote: Dict) -> str:
    shipping = remote.get("shipping_address")
    if not shipping:
        return ""
    return f"{shipping.get('address1')}, {shipping.get('city')}, {shipping.get('zip')}"


def to_internal_order(remote: Dict) -> Order:
    """Translate one Shopify order payload into the internal Order shape."""
    customer = remote.get("customer") or {}
    return Order(
        id=shopify_order_id(remote["id"]),
        shopify_order_id=remote["id"],
        customer_name=_customer_name(remote),
        customer_phone=customer.get("phone") or "",
        address=_address(remote),
        amount=remote.get("total_price"),
        items=", ".join(item.get("title", "") for item in remote.get("line_items") or []),
        created_at=remote.get("created_at"),
        delivery_status=DeliveryStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        source=OrderSource.SHOPIFY.value,
    )


class ShopifyOrderSource(BaseOrderSource):

    def __init__(self, store_url: str, access_token: str, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        settings = get_settings()
        self.store_url = store_url
        self.access_token = access_token
        self.api_version = settings.SHOPIFY_API_VERSION
        self.order_limit = settings.SHOPIFY_ORDER_LIMIT

    @property
    def platform_name(self) -> str:
        return OrderSource.SHOPIFY.value

    def dedup_key(self, order: Order) -> Optional[str]:
        if order.shopify_order_id is None:
            return None
        return str(order.shopify_order_id)

    def _url(self, resource: str) -> str:
        return f"https://{self.store_url}/admin/api/{self.api_version}/{resource}"

    def _headers(self) -> Dict[str, str]:
        return {"X-Shopify-Access-Token": self.access_token or ""}

    async def fetch_raw_orders(self) -> List[Dict[str, Any]]:
        """One page of orders in any status, capped at the configured page size."""
        response = await self._request(
            "GET",
            self._url("orders.json"),
            params={"status": "any", "limit": self.order_limit},
            headers=self._headers(),
        )
        if not response.is_success:
            logger.error(f"Shopify orders request failed: {response.status_code} {response.text[:200]}")
            raise UpstreamError(self.platform_name, "Failed to fetch Shopify orders", response.status_code)
        return self._json(response).get("orders") or []

    async def fetch_orders(self, date: str) -> List[Order]:
        return [to_internal_order(remote) for remote in await self.fetch_raw_orders()]

    async def test_connection(self) -> None:
        response = await self._request("GET", self._url("shop.json"), headers=self._headers())
        if not response.is_success:
            raise UpstreamError(self.platform_name, "Failed to connect to Shopify", response.status_code)
