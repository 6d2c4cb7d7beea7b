"""
Router Dependencies
====================

Shared FastAPI dependencies: service construction and the auth gate.
Tests swap any of the providers through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from dispatch.auth_middleware import AuthUser, unauthorized, verify_bearer
from dispatch.config import Settings, get_settings
from dispatch.middleware.idempotency import IdempotencyMiddleware, get_idempotency_middleware
from dispatch.models import UserRole
from dispatch.services.identity import IdentityProvider, UserNotFoundError, get_identity_provider
from dispatch.services.ingestion import IngestionService
from dispatch.services.integration_settings import IntegrationSettingsStore
from dispatch.services.lifecycle import OrderLifecycleService
from dispatch.services.locations import LocationService
from dispatch.services.order_store import OrderStore

logger = logging.getLogger(__name__)


# --- Services ---

@lru_cache()
def get_order_store() -> OrderStore:
    return OrderStore()


@lru_cache()
def get_settings_store() -> IntegrationSettingsStore:
    return IntegrationSettingsStore()


@lru_cache()
def get_location_service() -> LocationService:
    return LocationService()


def get_identity() -> IdentityProvider:
    return get_identity_provider()


def get_idempotency() -> IdempotencyMiddleware:
    return get_idempotency_middleware()


def get_app_settings() -> Settings:
    return get_settings()


def get_lifecycle_service(
    store: OrderStore = Depends(get_order_store),
    identity: IdentityProvider = Depends(get_identity),
    settings: Settings = Depends(get_app_settings),
) -> OrderLifecycleService:
    return OrderLifecycleService(store, identity, settings)


def get_ingestion_service(
    store: OrderStore = Depends(get_order_store),
    settings_store: IntegrationSettingsStore = Depends(get_settings_store),
) -> IngestionService:
    return IngestionService(store, settings_store)


# --- Auth gate ---

async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    identity: IdentityProvider = Depends(get_identity),
) -> AuthUser:
    """
    Validates the bearer token and resolves the account behind it.

    The role is read from the directory, not the token, so role changes
    apply immediately and deleted accounts are locked out.

    Raises:
        HTTPException(401): missing/invalid token or unknown account.
    """
    claims = verify_bearer(authorization)
    try:
        user = identity.get_user(claims.id)
    except UserNotFoundError:
        raise unauthorized()
    return AuthUser(id=user.id, role=user.role)


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of ``roles``, otherwise 401."""

    async def _require(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in roles:
            logger.info(f"User {user.id} with role {user.role} denied; requires one of {roles}")
            raise unauthorized()
        return user

    return _require


require_admin = require_roles(UserRole.ADMIN.value)
require_collector = require_roles(UserRole.RIDER.value, UserRole.DISPATCHER.value, UserRole.ADMIN.value)
