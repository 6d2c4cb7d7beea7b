"""
Pydantic models for the Rider Dispatch service.

This package is organized by domain:
- base.py: WireModel base class and clock helpers
- order.py: Order record and its status enumerations
- user.py: Accounts, roles and the rider directory view
- location.py: Last reported rider position

All models are re-exported from this module.
"""

from dispatch.models.base import WireModel, utc_now_iso, utc_today
from dispatch.models.order import (
    Order,
    DeliveryStatus,
    DELIVERY_SEQUENCE,
    PaymentStatus,
    PaymentMethod,
    OrderSource,
)
from dispatch.models.user import User, UserMetadata, UserRole, Rider, RiderStatus
from dispatch.models.location import RiderLocation


__all__ = [
    # Base
    "WireModel",
    "utc_now_iso",
    "utc_today",

    # Orders
    "Order",
    "DeliveryStatus",
    "DELIVERY_SEQUENCE",
    "PaymentStatus",
    "PaymentMethod",
    "OrderSource",

    # Accounts
    "User",
    "UserMetadata",
    "UserRole",
    "Rider",
    "RiderStatus",

    # Tracking
    "RiderLocation",
]
