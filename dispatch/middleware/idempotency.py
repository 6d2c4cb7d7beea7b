# dispatch/middleware/idempotency.py
"""
Idempotency protection for order creation.

Dispatch screens double-submit the "add order" form; without protection
each submit creates a separate manual order. When the client sends an
``Idempotency-Key`` header, the first response is cached in Redis and
replayed for any repeat of that key by the same user.

Usage:
    @router.post("/orders")
    async def create_order(
        ...,
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    ):
        return await idempotency.run(
            key=idempotency_key,
            user_id=user.id,
            endpoint="/orders",
            handler=_create,
        )
"""

import json
import hashlib
import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from dispatch.config import get_settings
from dispatch.redis import get_redis_client

logger = logging.getLogger(__name__)


class IdempotencyError(Exception):
    """Raised for idempotency-related issues."""
    pass


class IdempotencyMiddleware:
    """
    Redis-backed replay cache keyed by (user, endpoint, client key).

    Only successful results are cached; a failed handler can be retried
    with the same key.
    """

    def __init__(self, redis_client=None):
        self.redis = redis_client or get_redis_client()
        self.ttl_hours = get_settings().IDEMPOTENCY_TTL_HOURS

    async def run(
        self,
        key: Optional[str],
        user_id: str,
        endpoint: str,
        handler: Callable,
        *args,
        **kwargs
    ) -> Any:
        """
        Execute ``handler`` once per idempotency key.

        Without a key the handler simply runs.
        """
        if not key:
            return await handler(*args, **kwargs)
        if len(key) > 255:
            raise IdempotencyError("Idempotency-Key must be at most 255 characters")

        cache_key = self._build_cache_key(key, user_id, endpoint)

        cached_result = self.redis.get(cache_key)
        if cached_result:
            logger.info(f"Idempotency cache hit for key {key[:8]}... - returning cached result")
            return json.loads(cached_result)

        result = await handler(*args, **kwargs)
        self.redis.setex(
            cache_key,
            int(timedelta(hours=self.ttl_hours).total_seconds()),
            json.dumps(result, default=str),
        )
        logger.debug(f"Idempotency cached result for key {key[:8]}...")
        return result

    def _build_cache_key(self, key: str, user_id: str, endpoint: str) -> str:
        """
        Format: idempotency:{user_id}:{endpoint_hash}:{key}
        """
        endpoint_hash = hashlib.sha256(endpoint.encode()).hexdigest()[:8]
        return f"idempotency:{user_id}:{endpoint_hash}:{key}"


_idempotency_middleware = None


def get_idempotency_middleware() -> IdempotencyMiddleware:
    """Get or create the idempotency middleware singleton."""
    global _idempotency_middleware
    if _idempotency_middleware is None:
        _idempotency_middleware = IdempotencyMiddleware()
    return _idempotency_middleware
