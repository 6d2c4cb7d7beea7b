"""
Daily Summary Router.
"""

from fastapi import APIRouter, Depends

from dispatch.auth_middleware import AuthUser
from dispatch.routers.dependencies import get_current_user, get_identity, get_order_store
from dispatch.services.identity import IdentityProvider
from dispatch.services.order_store import OrderStore
from dispatch.services.summary import summarize_day

router = APIRouter()


@router.get("/summary/{date}")
async def daily_summary(
    date: str,
    user: AuthUser = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
    identity: IdentityProvider = Depends(get_identity),
):
    """Totals for one day plus one row per rider."""
    report = summarize_day(store.list_orders(date), identity.list_riders())
    return report.to_wire()
