"""
Orders API Router.

Day-partitioned order list plus the lifecycle actions: create, assign,
amount correction, delivery status and payment collection.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from dispatch.adapters.base import UpstreamError
from dispatch.auth_middleware import AuthUser
from dispatch.config import Settings
from dispatch.middleware.idempotency import IdempotencyError, IdempotencyMiddleware
from dispatch.models import WireModel, utc_today
from dispatch.routers.dependencies import (
    get_app_settings,
    get_current_user,
    get_idempotency,
    get_ingestion_service,
    get_lifecycle_service,
    get_order_store,
    require_admin,
    require_collector,
)
from dispatch.services.ingestion import IngestionService
from dispatch.services.integration_settings import IntegrationNotConfiguredError
from dispatch.services.lifecycle import InvalidTransitionError, OrderLifecycleService, OrderValidationError
from dispatch.services.order_store import OrderNotFoundError, OrderStore

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateOrderRequest(WireModel):
    date: str
    order: Dict[str, Any] = Field(default_factory=dict)
    sync_to_sheets: bool = False


class AssignRequest(WireModel):
    date: str
    rider_id: str


class AmountRequest(BaseModel):
    date: str
    amount: Any = None


class DeliveryStatusRequest(BaseModel):
    date: str
    status: Any = None


class PaymentRequest(WireModel):
    date: str
    payment_method: Any = None


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Order not found")


@router.get("/orders/{date}")
async def list_orders(
    date: str,
    user: AuthUser = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
):
    return {"orders": [o.to_wire() for o in store.list_orders(date)]}


@router.post("/orders")
async def create_order(
    payload: CreateOrderRequest,
    user: AuthUser = Depends(require_admin),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
    ingestion: IngestionService = Depends(get_ingestion_service),
    idempotency: IdempotencyMiddleware = Depends(get_idempotency),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Create a manual order. With ``syncToSheets`` the order is also appended
    to the day's sheet tab; a failed mirror is reported, never rolled back.
    """

    async def _create() -> Dict:
        order = lifecycle.create_order(payload.date, payload.order)
        response: Dict[str, Any] = {"success": True, "order": order.to_wire()}
        if payload.sync_to_sheets:
            try:
                await ingestion.mirror_to_sheets(payload.date, order)
            except (UpstreamError, IntegrationNotConfiguredError) as e:
                logger.error(f"Order {order.id} created but not mirrored to Google Sheets: {e}")
                response["sheetsError"] = str(e)
        return response

    try:
        return await idempotency.run(idempotency_key, user.id, "/orders", _create)
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IdempotencyError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/orders/{order_id}/assign")
async def assign_order(
    order_id: str,
    payload: AssignRequest,
    user: AuthUser = Depends(require_admin),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    try:
        order = lifecycle.assign_order(payload.date, order_id, payload.rider_id)
    except OrderNotFoundError:
        raise _not_found()
    return {"success": True, "order": order.to_wire()}


@router.post("/orders/{order_id}/amount")
async def update_amount(
    order_id: str,
    payload: AmountRequest,
    user: AuthUser = Depends(require_admin),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    try:
        order = lifecycle.update_amount(payload.date, order_id, payload.amount)
    except OrderNotFoundError:
        raise _not_found()
    return {"success": True, "order": order.to_wire()}


@router.post("/orders/{order_id}/delivery-status")
async def update_delivery_status(
    order_id: str,
    payload: DeliveryStatusRequest,
    user: AuthUser = Depends(get_current_user),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    try:
        order = lifecycle.update_delivery_status(payload.date, order_id, payload.status)
    except OrderNotFoundError:
        raise _not_found()
    except (OrderValidationError, InvalidTransitionError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "order": order.to_wire()}


@router.post("/orders/{order_id}/payment")
async def update_payment(
    order_id: str,
    payload: PaymentRequest,
    user: AuthUser = Depends(require_collector),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
    settings: Settings = Depends(get_app_settings),
):
    # RIDER_STATUS_USE_ORDER_DATE off: rider status follows today's partition.
    status_date = payload.date if settings.RIDER_STATUS_USE_ORDER_DATE else utc_today()
    try:
        order = lifecycle.update_payment(payload.date, order_id, payload.payment_method, user, status_date)
    except OrderNotFoundError:
        raise _not_found()
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "order": order.to_wire()}
