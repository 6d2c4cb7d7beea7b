# dispatch/services/order_store.py
"""
Order Store - per-day partitions of orders in the key-value store.

Each calendar date owns one key, ``orders_{YYYY-MM-DD}``, holding the JSON
list of that day's orders. In memory a partition is an insertion-ordered
``{order_id: Order}`` map so lookups by id do not scan the list.

Every mutation is a read-modify-write of the whole partition. With
ORDER_PARTITION_LOCKING enabled the cycle runs under a Redis lock per
partition, so two writers on the same day no longer overwrite each other.
Without it the last writer wins.
"""

import json
import logging
from contextlib import contextmanager, nullcontext
from typing import Callable, Dict, Iterator, List, Optional

from dispatch.config import get_settings
from dispatch.models import Order
from dispatch.redis import get_redis_client

logger = logging.getLogger(__name__)

Partition = Dict[str, Order]


class OrderNotFoundError(Exception):
    """Raised when an order id is absent from the addressed partition."""

    def __init__(self, date: str, order_id: str):
        self.date = date
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found in partition {date}")


def partition_key(date: str) -> str:
    return f"orders_{date}"


class OrderStore:
    """Redis-backed collection of orders grouped by calendar date."""

    def __init__(self, redis_client=None, locking: Optional[bool] = None):
        settings = get_settings()
        self.redis = redis_client or get_redis_client()
        self.locking = settings.ORDER_PARTITION_LOCKING if locking is None else locking
        self.lock_timeout = settings.ORDER_LOCK_TIMEOUT_SECONDS

    # --- Reads ---

    def load_partition(self, date: str) -> Partition:
        raw = self.redis.get(partition_key(date))
        if not raw:
            return {}
        partition: Partition = {}
        for record in json.loads(raw):
            order = Order.model_validate(record)
            partition[order.id] = order
        return partition

    def list_orders(self, date: str) -> List[Order]:
        return list(self.load_partition(date).values())

    def get_order(self, date: str, order_id: str) -> Order:
        order = self.load_partition(date).get(order_id)
        if order is None:
            raise OrderNotFoundError(date, order_id)
        return order

    # --- Writes ---

    def save_partition(self, date: str, partition: Partition) -> None:
        payload = [order.to_wire() for order in partition.values()]
        self.redis.set(partition_key(date), json.dumps(payload))

    def _lock(self, date: str):
        if not self.locking:
            return nullcontext()
        return self.redis.lock(
            f"lock:{partition_key(date)}",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )

    @contextmanager
    def edit_partition(self, date: str) -> Iterator[Partition]:
        """
        Read-modify-write a whole partition.

        The partition is written back only when the block exits cleanly; an
        exception inside the block leaves the stored list untouched.
        """
        with self._lock(date):
            partition = self.load_partition(date)
            yield partition
            self.save_partition(date, partition)

    def append_order(self, date: str, order: Order) -> Order:
        with self.edit_partition(date) as partition:
            partition[order.id] = order
        logger.info(f"Stored order {order.id} in partition {date}")
        return order

    def update_order(self, date: str, order_id: str, mutator: Callable[[Order], None]) -> Order:
        """
        Apply ``mutator`` to one order in place and persist the partition.

        Raises:
            OrderNotFoundError: if ``order_id`` is not in the partition. Nothing is written.
        """
        with self.edit_partition(date) as partition:
            order = partition.get(order_id)
            if order is None:
                raise OrderNotFoundError(date, order_id)
            mutator(order)
        return order
