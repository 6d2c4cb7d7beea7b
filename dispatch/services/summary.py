# dispatch/services/summary.py
"""
Daily Summary Aggregator.

Pure reduction over one day's orders and the rider directory. Amounts are
read leniently: a leading number is taken from strings ("42.50 EUR" -> 42.50)
and anything unparseable counts as zero, so a bad amount never breaks the
report.
"""

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List

from dispatch.models import Order, Rider, PaymentMethod

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

ZERO = Decimal("0")


def parse_amount(value: Any) -> Decimal:
    """Lenient amount parsing; returns 0 for missing, non-numeric or non-finite input."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        return Decimal(str(value))
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return ZERO
        try:
            return Decimal(match.group(1))
        except InvalidOperation:
            return ZERO
    return ZERO


def collected_total(orders: Iterable[Order], method: str) -> Decimal:
    return sum(
        (parse_amount(o.amount) for o in orders if o.payment_method == method and o.is_collected),
        ZERO,
    )


def _number(value: Decimal) -> float:
    return float(value)


@dataclass
class DailySummary:
    total_orders: int
    delivered_orders: int
    undelivered_orders: int
    unassigned_orders: int
    assigned_orders: int
    cash_payments: Decimal
    card_payments: Decimal

    def to_wire(self) -> Dict:
        return {
            "totalOrders": self.total_orders,
            "deliveredOrders": self.delivered_orders,
            "undeliveredOrders": self.undelivered_orders,
            "unassignedOrders": self.unassigned_orders,
            "assignedOrders": self.assigned_orders,
            "cashPayments": _number(self.cash_payments),
            "cardPayments": _number(self.card_payments),
        }


@dataclass
class RiderSummary:
    rider_id: str
    rider_name: Any
    total_assigned: int
    delivered: int
    cash_collected: Decimal
    card_collected: Decimal
    status: str

    def to_wire(self) -> Dict:
        return {
            "riderId": self.rider_id,
            "riderName": self.rider_name,
            "totalAssigned": self.total_assigned,
            "delivered": self.delivered,
            "cashCollected": _number(self.cash_collected),
            "cardCollected": _number(self.card_collected),
            "status": self.status,
        }


@dataclass
class SummaryReport:
    summary: DailySummary
    rider_summaries: List[RiderSummary] = field(default_factory=list)

    def to_wire(self) -> Dict:
        return {
            "summary": self.summary.to_wire(),
            "riderSummaries": [r.to_wire() for r in self.rider_summaries],
        }


def summarize_day(orders: List[Order], riders: List[Rider]) -> SummaryReport:
    total = len(orders)
    delivered = sum(1 for o in orders if o.is_delivered)
    assigned = sum(1 for o in orders if o.assigned_to)

    summary = DailySummary(
        total_orders=total,
        delivered_orders=delivered,
        undelivered_orders=total - delivered,
        unassigned_orders=total - assigned,
        assigned_orders=assigned,
        cash_payments=collected_total(orders, PaymentMethod.CASH.value),
        card_payments=collected_total(orders, PaymentMethod.CARD.value),
    )

    rider_summaries = []
    for rider in riders:
        rider_orders = [o for o in orders if o.assigned_to == rider.id]
        rider_summaries.append(RiderSummary(
            rider_id=rider.id,
            rider_name=rider.display_name,
            total_assigned=len(rider_orders),
            delivered=sum(1 for o in rider_orders if o.is_delivered),
            cash_collected=collected_total(rider_orders, PaymentMethod.CASH.value),
            card_collected=collected_total(rider_orders, PaymentMethod.CARD.value),
            status=rider.status,
        ))

    return SummaryReport(summary=summary, rider_summaries=rider_summaries)
