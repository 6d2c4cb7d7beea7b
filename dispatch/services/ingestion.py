# dispatch/services/ingestion.py
"""
Order Ingestion.

Merges orders from external sources into the order store without
duplicating them. A record is identified per source by its dedup key
(Shopify order id, sheet order number); records whose key is empty or
already present among that source's orders in the target partition are
skipped, so repeated pulls of an unchanged source add nothing.

Also mirrors manually created orders to the spreadsheet.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from dispatch.adapters.base import BaseOrderSource
from dispatch.adapters.registry import AdapterRegistry
from dispatch.models import Order, OrderSource
from dispatch.services.integration_settings import IntegrationSettingsStore
from dispatch.services.order_store import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    source: str
    date: str
    fetched: int
    added: List[Order]

    @property
    def added_count(self) -> int:
        return len(self.added)


class IngestionService:

    def __init__(
        self,
        store: OrderStore,
        settings_store: IntegrationSettingsStore,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.settings_store = settings_store
        self.client = client

    # --- Sources ---

    def shopify_source(self) -> BaseOrderSource:
        return AdapterRegistry.get_adapter(
            OrderSource.SHOPIFY.value, self.settings_store.require_shopify(), client=self.client
        )

    def sheets_source(self) -> BaseOrderSource:
        return AdapterRegistry.get_adapter(
            OrderSource.GOOGLE_SHEETS.value, self.settings_store.require_google_sheets(), client=self.client
        )

    # --- Merge ---

    def merge(self, source: BaseOrderSource, date: str, candidates: List[Order]) -> List[Order]:
        """
        Append the candidates not yet known for ``source`` in the ``date`` partition.

        Dedup runs against the freshly read partition inside the write cycle,
        and also within the batch itself.
        """
        added: List[Order] = []
        with self.store.edit_partition(date) as partition:
            seen = {
                source.dedup_key(o)
                for o in partition.values()
                if o.source == source.platform_name
            }
            for order in candidates:
                key = source.dedup_key(order)
                if not key or key in seen:
                    continue
                seen.add(key)
                partition[order.id] = order
                added.append(order)
        return added

    async def import_shopify_orders(self, today: str) -> IngestionResult:
        """
        Pull Shopify orders into ``today``'s partition.

        Raises:
            IntegrationNotConfiguredError: if Shopify settings were never saved.
            UpstreamError: if Shopify rejects the request.
        """
        source = self.shopify_source()
        candidates = await source.fetch_orders(today)
        added = self.merge(source, today, candidates)
        logger.info(f"Shopify pull: fetched {len(candidates)} orders, added {len(added)} to {today}")
        return IngestionResult(source.platform_name, today, len(candidates), added)

    async def sync_google_sheets(self, date: str) -> IngestionResult:
        """
        Pull new rows from the ``date`` tab into the ``date`` partition.

        Raises:
            IntegrationNotConfiguredError: if Google Sheets settings were never saved.
            UpstreamError: if the Sheets API rejects the request.
        """
        source = self.sheets_source()
        candidates = await source.fetch_orders(date)
        added = self.merge(source, date, candidates)
        logger.info(f"Sheets sync: read {len(candidates)} rows, added {len(added)} to {date}")
        return IngestionResult(source.platform_name, date, len(candidates), added)

    # --- Mirror ---

    async def mirror_to_sheets(self, date: str, order: Order) -> None:
        """
        Append ``order`` to the ``date`` tab.

        Shopify orders are never mirrored; the call is a no-op for them.
        """
        if order.source == OrderSource.SHOPIFY.value:
            logger.info(f"Skipping Sheets mirror for Shopify order {order.id}")
            return
        await self.sheets_source().append_order(date, order)

    async def test_shopify(self) -> None:
        await self.shopify_source().test_connection()

    async def test_google_sheets(self) -> None:
        await self.sheets_source().test_connection()
