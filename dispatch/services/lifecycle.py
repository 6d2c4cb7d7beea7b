# dispatch/services/lifecycle.py
"""
Order Lifecycle Engine.

Owns every transition an order goes through after it lands in a partition:

    created -> assigned -> pending / accepted / en route / delivered
                        -> payment collected (cash | card)

and keeps the rider's derived ``status`` in step: a rider is ``busy`` while
any order assigned to them is not both delivered and collected.

Behaviour switches (see Settings):
- STRICT_DELIVERY_TRANSITIONS: reject delivery status moves that skip or
  reverse the pending -> accepted -> en route -> delivered sequence.
- RECONCILE_RIDER_ON_REASSIGN: recompute the previous rider's status when
  an order is reassigned away from them.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from dispatch.auth_middleware import AuthUser
from dispatch.config import get_settings
from dispatch.models import (
    Order,
    DeliveryStatus,
    DELIVERY_SEQUENCE,
    PaymentStatus,
    PaymentMethod,
    OrderSource,
    RiderStatus,
    UserRole,
    utc_now_iso,
)
from dispatch.models.order import new_manual_order_id
from dispatch.services.identity import IdentityProvider, UserNotFoundError
from dispatch.services.order_store import OrderStore

logger = logging.getLogger(__name__)

REQUIRED_ORDER_FIELDS = ("customerName", "amount")


class OrderValidationError(Exception):
    """Raised when a new order lacks a required field."""
    pass


def _required_text(name: str, value: Any) -> str:
    """Status-like inputs are stored as strings; a missing value is rejected."""
    if value is None:
        raise OrderValidationError(f"Missing required field: {name}")
    return value if isinstance(value, str) else str(value)


class InvalidTransitionError(Exception):
    """Raised in strict mode when a delivery status change breaks the sequence."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class OrderLifecycleService:
    """State transitions for orders and the rider status derived from them."""

    def __init__(self, store: OrderStore, identity: IdentityProvider, settings=None):
        self.store = store
        self.identity = identity
        self.settings = settings or get_settings()

    # --- Creation ---

    def create_order(self, date: str, fields: Dict[str, Any]) -> Order:
        """
        Create a manual order in the ``date`` partition.

        Client-supplied fields are kept; id, timestamps, statuses and source
        are always assigned here. Numbers in text fields are stored as strings.
        """
        missing = [name for name in REQUIRED_ORDER_FIELDS if fields.get(name) in (None, "")]
        if missing:
            raise OrderValidationError(f"Missing required order fields: {', '.join(missing)}")

        try:
            order = Order.model_validate({
                **fields,
                "id": new_manual_order_id(),
                "createdAt": utc_now_iso(),
                "deliveryStatus": DeliveryStatus.PENDING.value,
                "paymentStatus": PaymentStatus.PENDING.value,
                "source": OrderSource.MANUAL.value,
            })
        except ValidationError as e:
            names = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
            raise OrderValidationError(f"Invalid order fields: {names}") from e
        self.store.append_order(date, order)
        logger.info(f"Created manual order {order.id} for {order.customer_name} on {date}")
        return order

    # --- Assignment ---

    def assign_order(self, date: str, order_id: str, rider_id: str) -> Order:
        """
        Assign (or reassign) an order to a rider and mark the rider busy.

        Raises:
            OrderNotFoundError: if the order is not in the partition.
        """
        previous: Dict[str, Optional[str]] = {}

        def _assign(order: Order) -> None:
            previous["rider"] = order.assigned_to
            order.assigned_to = rider_id
            order.assigned_at = utc_now_iso()

        order = self.store.update_order(date, order_id, _assign)
        logger.info(f"Assigned order {order_id} to rider {rider_id}")

        self._set_rider_status(rider_id, RiderStatus.BUSY.value)

        previous_rider = previous.get("rider")
        if (
            self.settings.RECONCILE_RIDER_ON_REASSIGN
            and previous_rider
            and previous_rider != rider_id
        ):
            self.recompute_rider_status(previous_rider, date)

        return order

    # --- Amount ---

    def update_amount(self, date: str, order_id: str, amount: Any) -> Order:
        def _set_amount(order: Order) -> None:
            order.amount = amount

        order = self.store.update_order(date, order_id, _set_amount)
        logger.info(f"Order {order_id} amount set to {amount!r}")
        return order

    # --- Delivery ---

    def update_delivery_status(self, date: str, order_id: str, status: Any) -> Order:
        """
        Move an order to a new delivery status.

        Known statuses are stored in their canonical form; anything else is
        stored as text unless strict transitions are enabled. Reaching
        ``delivered`` stamps ``deliveredAt`` every time.

        Raises:
            OrderValidationError: if no status is given.
            InvalidTransitionError: in strict mode, when the move breaks the sequence.
            OrderNotFoundError: if the order is not in the partition.
        """
        status = _required_text("status", status)
        requested = DeliveryStatus.parse(status)
        value = requested.value if requested else status

        def _transition(order: Order) -> None:
            if self.settings.STRICT_DELIVERY_TRANSITIONS:
                self._check_transition(order.delivery_status, requested, status)
            elif requested is None:
                logger.warning(f"Order {order_id}: accepting unrecognized delivery status {status!r}")
            order.delivery_status = value
            if requested == DeliveryStatus.DELIVERED:
                order.delivered_at = utc_now_iso()

        order = self.store.update_order(date, order_id, _transition)
        logger.info(f"Order {order_id} delivery status -> {value}")
        return order

    @staticmethod
    def _check_transition(current: str, requested: Optional[DeliveryStatus], raw: Any) -> None:
        current_status = DeliveryStatus.parse(current)
        if requested is None or current_status is None:
            raise InvalidTransitionError(str(current), str(raw))
        step = DELIVERY_SEQUENCE.index(requested) - DELIVERY_SEQUENCE.index(current_status)
        if step not in (0, 1):
            raise InvalidTransitionError(current_status.value, requested.value)

    # --- Payment ---

    def update_payment(
        self,
        date: str,
        order_id: str,
        payment_method: Any,
        actor: AuthUser,
        status_date: str,
    ) -> Order:
        """
        Record payment collection on an order.

        When the collector is a rider, their status is recomputed from the
        orders in ``status_date``, which callers choose: the order's own date
        or today's.

        Raises:
            OrderValidationError: if no payment method is given.
            OrderNotFoundError: if the order is not in the partition.
        """
        payment_method = _required_text("paymentMethod", payment_method)
        if payment_method not in {m.value for m in PaymentMethod}:
            logger.warning(f"Order {order_id}: accepting unrecognized payment method {payment_method!r}")

        def _collect(order: Order) -> None:
            order.payment_method = payment_method
            order.payment_status = PaymentStatus.COLLECTED.value
            order.payment_collected_at = utc_now_iso()
            order.payment_collected_by = actor.id

        order = self.store.update_order(date, order_id, _collect)
        logger.info(f"Payment collected on order {order_id} by {actor.id} ({payment_method})")

        if actor.role == UserRole.RIDER.value:
            self.recompute_rider_status(actor.id, status_date)

        return order

    # --- Rider status ---

    def recompute_rider_status(self, rider_id: str, date: str) -> str:
        """Derive a rider's status from their orders in the ``date`` partition and store it."""
        active = [
            o for o in self.store.list_orders(date)
            if o.assigned_to == rider_id and o.is_active
        ]
        status = RiderStatus.BUSY.value if active else RiderStatus.AVAILABLE.value
        self._set_rider_status(rider_id, status)
        return status

    def _set_rider_status(self, rider_id: str, status: str) -> None:
        try:
            self.identity.set_rider_status(rider_id, status)
        except UserNotFoundError:
            logger.warning(f"Rider {rider_id} not in directory; status '{status}' not recorded")

    # --- Queries ---

    def rider_orders(self, rider_id: str, date: str) -> List[Order]:
        return [o for o in self.store.list_orders(date) if o.assigned_to == rider_id]
