"""
Shared fixtures.

Redis is replaced by a MagicMock whose side effects keep values in plain
dicts, so services read back what they wrote.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")

from contextlib import nullcontext
from unittest.mock import MagicMock

import pytest

from dispatch.config import Settings
from dispatch.models import UserRole
from dispatch.services.identity import IdentityProvider
from dispatch.services.lifecycle import OrderLifecycleService
from dispatch.services.order_store import OrderStore


TEST_DATE = "2024-11-24"


def make_mock_redis() -> MagicMock:
    """MagicMock standing in for a decode_responses=True Redis client."""
    values = {}
    hashes = {}
    redis = MagicMock()

    def _set(key, value, *args, **kwargs):
        values[key] = value
        return True

    def _hset(name, key, value):
        hashes.setdefault(name, {})[key] = value
        return 1

    def _delete(*keys):
        return sum(1 for key in keys if values.pop(key, None) is not None)

    redis.get.side_effect = lambda key: values.get(key)
    redis.set.side_effect = _set
    redis.setex.side_effect = lambda key, ttl, value: _set(key, value)
    redis.delete.side_effect = _delete
    redis.exists.side_effect = lambda key: int(key in values)
    redis.hget.side_effect = lambda name, key: hashes.get(name, {}).get(key)
    redis.hset.side_effect = _hset
    redis.hvals.side_effect = lambda name: list(hashes.get(name, {}).values())
    redis.lock.side_effect = lambda *args, **kwargs: nullcontext()

    redis.values_store = values
    redis.hashes_store = hashes
    return redis


def make_settings(**overrides) -> Settings:
    return Settings(SECRET_KEY="test-secret-key-for-testing-only", **overrides)


@pytest.fixture
def mock_redis():
    return make_mock_redis()


@pytest.fixture
def store(mock_redis):
    return OrderStore(redis_client=mock_redis, locking=True)


@pytest.fixture
def identity(mock_redis):
    return IdentityProvider(redis_client=mock_redis)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def lifecycle(store, identity, settings):
    return OrderLifecycleService(store, identity, settings)


@pytest.fixture
def rider(identity):
    return identity.create_user(None, "secret1", "Rita Rider", UserRole.RIDER.value, username="rita")


@pytest.fixture
def admin(identity):
    return identity.create_user("admin@example.com", "secret1", "Ada Admin", UserRole.ADMIN.value)
