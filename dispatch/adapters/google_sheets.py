"""
GoogleSheetsOrderSource - two-way order exchange with a spreadsheet.

Each calendar date has its own tab, named ``YYYY-MM-DD``.

Pull reads columns A:G of the tab:

    A order number | B receipt number (ignored) | C customer name
    D customer phone | E amount | F receipt amount (ignored) | G delivery area

Push appends manually created orders as 11-column rows.
"""

import logging
from typing import Any, List, Optional, Sequence

import httpx

from dispatch.adapters.base import BaseOrderSource, UpstreamError, error_message
from dispatch.config import get_settings
from dispatch.models import Order, DeliveryStatus, PaymentStatus, OrderSource, utc_now_iso
from dispatch.models.order import sheets_order_id

logger = logging.getLogger(__name__)

# Column positions in the pulled range
COL_ORDER_NUMBER = 0
COL_CUSTOMER_NAME = 2
COL_CUSTOMER_PHONE = 3
COL_AMOUNT = 4
COL_DELIVERY_AREA = 6


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def has_header_row(rows: List[List[Any]]) -> bool:
    """The first row is a header when its first cell mentions "order" in any case."""
    if not rows or not rows[0]:
        return False
    first = rows[0][0]
    return isinstance(first, str) and "order" in first.lower()


def data_rows(rows: List[List[Any]]) -> List[List[Any]]:
    return rows[1:] if has_header_row(rows) else rows


def row_to_order(row: Sequence[Any]) -> Order:
    """Translate one sheet row into a new internal order."""
    order_number = _cell(row, COL_ORDER_NUMBER)
    return Order(
        id=sheets_order_id(order_number),
        order_number=order_number,
        customer_name=_cell(row, COL_CUSTOMER_NAME),
        customer_phone=_cell(row, COL_CUSTOMER_PHONE),
        address=_cell(row, COL_DELIVERY_AREA),
        amount=_cell(row, COL_AMOUNT) or "0",
        items="",
        created_at=utc_now_iso(),
        delivery_status=DeliveryStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        source=OrderSource.GOOGLE_SHEETS.value,
    )


def order_to_row(order: Order) -> List[Any]:
    """The 11-column row written when a manual order is mirrored to the sheet."""
    return [
        order.id,
        order.customer_name or "",
        order.customer_phone or "",
        order.address or "",
        order.amount or "",
        order.items or "",
        order.delivery_status or DeliveryStatus.PENDING.value,
        order.payment_status or PaymentStatus.PENDING.value,
        order.payment_method or "",
        order.assigned_to or "",
        order.created_at or utc_now_iso(),
    ]


class GoogleSheetsOrderSource(BaseOrderSource):

    def __init__(self, spreadsheet_id: str, api_key: str, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self.spreadsheet_id = spreadsheet_id
        self.api_key = api_key
        self.base_url = f"{get_settings().GOOGLE_SHEETS_API_URL}/{spreadsheet_id}"

    @property
    def platform_name(self) -> str:
        return OrderSource.GOOGLE_SHEETS.value

    def dedup_key(self, order: Order) -> Optional[str]:
        return order.order_number or None

    async def read_rows(self, date: str) -> List[List[Any]]:
        response = await self._request(
            "GET",
            f"{self.base_url}/values/{date}!A:G",
            params={"key": self.api_key},
        )
        if not response.is_success:
            message = error_message(response, "Failed to read from Google Sheets")
            logger.error(f"Google Sheets read of tab {date} failed: {message}")
            raise UpstreamError(self.platform_name, message, response.status_code)
        return self._json(response).get("values") or []

    async def fetch_orders(self, date: str) -> List[Order]:
        rows = data_rows(await self.read_rows(date))
        return [row_to_order(row) for row in rows]

    async def append_order(self, date: str, order: Order) -> None:
        """Append one order as a row at the end of the ``date`` tab."""
        response = await self._request(
            "POST",
            f"{self.base_url}/values/{date}!A:Z:append",
            params={"valueInputOption": "RAW", "key": self.api_key},
            json={"values": [order_to_row(order)]},
        )
        if not response.is_success:
            message = error_message(response, "Failed to write to Google Sheets")
            logger.error(f"Google Sheets append to tab {date} failed: {message}")
            raise UpstreamError(self.platform_name, message, response.status_code)
        logger.info(f"Mirrored order {order.id} to Google Sheets tab {date}")

    async def test_connection(self) -> None:
        response = await self._request("GET", self.base_url, params={"key": self.api_key})
        if not response.is_success:
            raise UpstreamError(
                self.platform_name,
                error_message(response, "Failed to connect to Google Sheets"),
                response.status_code,
            )
