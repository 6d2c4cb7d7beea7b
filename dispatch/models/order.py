"""
Order model - one delivery record inside a calendar-date partition.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, field_validator

from dispatch.models.base import WireModel, epoch_millis, random_suffix


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EN_ROUTE = "en route"
    DELIVERED = "delivered"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", " ").replace("-", " ")
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @classmethod
    def parse(cls, value: Any) -> Optional["DeliveryStatus"]:
        """Return the matching member, or None for values outside the enumeration."""
        try:
            return cls(value)
        except ValueError:
            return None


# Expected forward sequence; index order matters.
DELIVERY_SEQUENCE = [
    DeliveryStatus.PENDING,
    DeliveryStatus.ACCEPTED,
    DeliveryStatus.EN_ROUTE,
    DeliveryStatus.DELIVERED,
]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COLLECTED = "collected"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class OrderSource(str, Enum):
    MANUAL = "manual"
    SHOPIFY = "shopify"
    GOOGLE_SHEETS = "google_sheets"


TEXT_FIELDS = (
    "order_number",
    "customer_name",
    "customer_phone",
    "address",
    "source",
    "delivery_status",
    "payment_status",
    "payment_method",
    "assigned_to",
)


def as_text(value: Any) -> Any:
    """Numbers and booleans become their string form; everything else passes through."""
    if isinstance(value, (bool, int, float)):
        return str(value)
    return value


class Order(WireModel):
    """
    A delivery order as stored in the order partition and returned by the API.

    Status fields are plain strings: values outside the enumerations are kept
    verbatim, since writers are not validated.
    """

    id: str

    # External identifiers, only used for deduplication
    order_number: Optional[str] = None
    shopify_order_id: Optional[Any] = None

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    address: Optional[str] = None
    amount: Optional[Any] = None
    items: Optional[Any] = None

    source: str = OrderSource.MANUAL.value
    delivery_status: str = DeliveryStatus.PENDING.value
    payment_status: str = PaymentStatus.PENDING.value
    payment_method: Optional[str] = None
    assigned_to: Optional[str] = None

    created_at: Optional[str] = None
    assigned_at: Optional[str] = None
    delivered_at: Optional[str] = None
    payment_collected_at: Optional[str] = None
    payment_collected_by: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        return as_text(value)

    @property
    def is_delivered(self) -> bool:
        return self.delivery_status == DeliveryStatus.DELIVERED.value

    @property
    def is_collected(self) -> bool:
        return self.payment_status == PaymentStatus.COLLECTED.value

    @property
    def is_active(self) -> bool:
        """An order keeps its rider busy until it is both delivered and paid."""
        return not (self.is_delivered and self.is_collected)


def new_manual_order_id() -> str:
    return f"order_{epoch_millis()}_{random_suffix()}"


def shopify_order_id(remote_id: Any) -> str:
    return f"shopify_{remote_id}"


def sheets_order_id(order_number: str) -> str:
    return f"sheets_{order_number}_{epoch_millis()}"
