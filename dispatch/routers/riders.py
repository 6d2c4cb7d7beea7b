"""
Riders API Router.

Rider directory management, the rider app's order list and live location
tracking.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from dispatch.auth_middleware import AuthUser
from dispatch.models import Rider, RiderStatus, UserRole, utc_today
from dispatch.routers.dependencies import (
    get_current_user,
    get_identity,
    get_lifecycle_service,
    get_location_service,
    require_admin,
)
from dispatch.services.identity import DuplicateUserError, IdentityProvider, UserNotFoundError
from dispatch.services.lifecycle import OrderLifecycleService
from dispatch.services.locations import LocationService

router = APIRouter(prefix="/riders")


class CreateRiderRequest(BaseModel):
    username: str
    password: str
    name: Optional[str] = None


class PasswordRequest(BaseModel):
    password: str


class StatusRequest(BaseModel):
    status: str


class LocationRequest(BaseModel):
    latitude: Any = None
    longitude: Any = None


@router.get("")
async def list_riders(
    user: AuthUser = Depends(require_admin),
    identity: IdentityProvider = Depends(get_identity),
):
    return {"riders": [r.to_wire() for r in identity.list_riders()]}


@router.post("")
async def create_rider(
    payload: CreateRiderRequest,
    user: AuthUser = Depends(require_admin),
    identity: IdentityProvider = Depends(get_identity),
):
    try:
        account = identity.create_user(
            None, payload.password, payload.name, UserRole.RIDER.value, username=payload.username
        )
    except (DuplicateUserError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to create rider: {e}")
    return {"rider": Rider.from_user(account).to_wire()}


# Declared before the /{rider_id} routes so "locations" is never taken for an id.
@router.get("/locations")
async def all_rider_locations(
    user: AuthUser = Depends(require_admin),
    identity: IdentityProvider = Depends(get_identity),
    locations: LocationService = Depends(get_location_service),
):
    return {"locations": locations.all_locations(identity.list_riders())}


@router.post("/{rider_id}/password")
async def change_password(
    rider_id: str,
    payload: PasswordRequest,
    user: AuthUser = Depends(require_admin),
    identity: IdentityProvider = Depends(get_identity),
):
    try:
        identity.set_password(rider_id, payload.password)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="Rider not found")
    return {"success": True}


@router.post("/{rider_id}/status")
async def update_status(
    rider_id: str,
    payload: StatusRequest,
    user: AuthUser = Depends(get_current_user),
    identity: IdentityProvider = Depends(get_identity),
):
    """Manual override of the rider's availability."""
    if payload.status not in {s.value for s in RiderStatus}:
        raise HTTPException(status_code=400, detail=f"Unknown rider status: {payload.status}")
    try:
        identity.set_rider_status(rider_id, payload.status)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="Rider not found")
    return {"success": True}


@router.get("/{rider_id}/orders")
async def rider_orders(
    rider_id: str,
    date: Optional[str] = Query(None, description="YYYY-MM-DD; defaults to today (UTC)"),
    user: AuthUser = Depends(get_current_user),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    orders = lifecycle.rider_orders(rider_id, date or utc_today())
    return {"orders": [o.to_wire() for o in orders]}


@router.post("/{rider_id}/location")
async def update_location(
    rider_id: str,
    payload: LocationRequest,
    user: AuthUser = Depends(get_current_user),
    locations: LocationService = Depends(get_location_service),
):
    locations.update_location(rider_id, payload.latitude, payload.longitude)
    return {"success": True}


@router.get("/{rider_id}/location")
async def get_location(
    rider_id: str,
    user: AuthUser = Depends(get_current_user),
    locations: LocationService = Depends(get_location_service),
):
    location = locations.get_location(rider_id)
    return {"location": location.to_wire() if location else None}
