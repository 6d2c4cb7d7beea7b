"""
Google Sheets Auto-Sync Task.

Polls today's sheet tab on a fixed interval and merges new rows into the
order store. Started from the application lifespan when
SHEETS_AUTO_SYNC_ENABLED is set; cancelled on shutdown.
"""

import asyncio
import logging
from typing import Callable, Optional

from dispatch.adapters.base import UpstreamError
from dispatch.config import get_settings
from dispatch.models import utc_today
from dispatch.services.ingestion import IngestionService
from dispatch.services.integration_settings import IntegrationNotConfiguredError

logger = logging.getLogger(__name__)


async def sync_once(service: IngestionService, date: str) -> int:
    """Run one sync pass; failures are logged, never raised."""
    try:
        result = await service.sync_google_sheets(date)
    except IntegrationNotConfiguredError:
        logger.debug("Sheets auto-sync skipped: no Google Sheets settings")
        return 0
    except UpstreamError as e:
        logger.error(f"Sheets auto-sync failed for {date}: {e.message}")
        return 0
    if result.added_count:
        logger.info(f"Auto-synced {result.added_count} new orders for {date}")
    return result.added_count


async def run_sheets_auto_sync(
    service_factory: Callable[[], IngestionService],
    interval_seconds: Optional[int] = None,
    date_provider: Callable[[], str] = utc_today,
) -> None:
    """Sync immediately, then every ``interval_seconds`` until cancelled."""
    interval = interval_seconds or get_settings().SHEETS_AUTO_SYNC_INTERVAL_SECONDS
    logger.info(f"Sheets auto-sync started, every {interval}s")
    try:
        while True:
            try:
                await sync_once(service_factory(), date_provider())
            except Exception as e:
                logger.exception(f"Sheets auto-sync pass crashed: {e}")
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("Sheets auto-sync stopped")
        raise
