"""
External Order Source Router.

Settings, connectivity checks and the pull/push actions for Shopify and
Google Sheets. Upstream failures answer 400 with ``{success: false, error}``;
local state is untouched by a failed pull.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError

from dispatch.adapters.base import UpstreamError
from dispatch.auth_middleware import AuthUser
from dispatch.models import Order, WireModel, utc_now_iso, utc_today
from dispatch.routers.dependencies import get_ingestion_service, get_settings_store, require_admin
from dispatch.services.ingestion import IngestionService
from dispatch.services.integration_settings import (
    GoogleSheetsSettings,
    IntegrationNotConfiguredError,
    IntegrationSettingsStore,
    ShopifySettings,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class SheetsSyncRequest(WireModel):
    date: str


class SheetsAddOrderRequest(WireModel):
    date: str
    order: Dict[str, Any] = Field(default_factory=dict)


def _upstream_failure(e: UpstreamError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": e.message})


def _not_configured(e: IntegrationNotConfiguredError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


# --- Settings ---

@router.post("/settings/shopify")
async def save_shopify_settings(
    payload: ShopifySettings,
    user: AuthUser = Depends(require_admin),
    settings_store: IntegrationSettingsStore = Depends(get_settings_store),
):
    settings_store.save_shopify(payload)
    return {"success": True}


@router.get("/settings/shopify")
async def get_shopify_settings(
    user: AuthUser = Depends(require_admin),
    settings_store: IntegrationSettingsStore = Depends(get_settings_store),
):
    settings = settings_store.get_shopify()
    return {"settings": settings.to_wire() if settings else None}


@router.post("/settings/google-sheets")
async def save_google_sheets_settings(
    payload: GoogleSheetsSettings,
    user: AuthUser = Depends(require_admin),
    settings_store: IntegrationSettingsStore = Depends(get_settings_store),
):
    settings_store.save_google_sheets(payload)
    return {"success": True}


@router.get("/settings/google-sheets")
async def get_google_sheets_settings(
    user: AuthUser = Depends(require_admin),
    settings_store: IntegrationSettingsStore = Depends(get_settings_store),
):
    settings = settings_store.get_google_sheets()
    return {"settings": settings.to_wire() if settings else None}


# --- Shopify ---

@router.post("/shopify/test")
async def test_shopify(
    user: AuthUser = Depends(require_admin),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    try:
        await ingestion.test_shopify()
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except UpstreamError as e:
        return _upstream_failure(e)
    return {"success": True, "message": "Successfully connected to Shopify"}


@router.post("/shopify/fetch-orders")
async def fetch_shopify_orders(
    user: AuthUser = Depends(require_admin),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Pull Shopify orders into today's partition, skipping ones already imported."""
    try:
        result = await ingestion.import_shopify_orders(utc_today())
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except UpstreamError as e:
        return _upstream_failure(e)
    return {
        "success": True,
        "message": f"Fetched {result.fetched} orders, added {result.added_count} new orders",
    }


# --- Google Sheets ---

@router.post("/google-sheets/test")
async def test_google_sheets(
    user: AuthUser = Depends(require_admin),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    try:
        await ingestion.test_google_sheets()
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except UpstreamError as e:
        return _upstream_failure(e)
    return {"success": True, "message": "Successfully connected to Google Sheets"}


@router.post("/google-sheets/sync-orders")
async def sync_google_sheets_orders(
    payload: SheetsSyncRequest,
    user: AuthUser = Depends(require_admin),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Import new rows from the sheet tab named after ``date``."""
    try:
        result = await ingestion.sync_google_sheets(payload.date)
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except UpstreamError as e:
        return _upstream_failure(e)
    return {
        "success": True,
        "message": f"Synced {result.fetched} rows, added {result.added_count} new orders",
        "newOrdersCount": result.added_count,
    }


@router.post("/google-sheets/add-order")
async def add_order_to_google_sheets(
    payload: SheetsAddOrderRequest,
    user: AuthUser = Depends(require_admin),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Append one order row to the ``date`` tab."""
    fields = {"id": "", "createdAt": utc_now_iso(), **payload.order}
    try:
        order = Order.model_validate(fields)
    except ValidationError as e:
        names = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise HTTPException(status_code=400, detail=f"Invalid order fields: {names}")
    try:
        await ingestion.mirror_to_sheets(payload.date, order)
    except IntegrationNotConfiguredError as e:
        raise _not_configured(e)
    except UpstreamError as e:
        return _upstream_failure(e)
    return {"success": True}
