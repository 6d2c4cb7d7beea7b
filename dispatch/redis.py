# dispatch/redis.py
"""
Redis Client Setup.

Redis is the string key -> value store behind orders, accounts,
integration settings and rider locations.
"""

import redis
from dispatch.config import get_settings


def get_redis_client():
    """Returns a synchronous Redis client."""
    return redis.from_url(get_settings().REDIS_URL, decode_responses=True)
