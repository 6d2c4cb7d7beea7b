"""
Authentication & Setup Router.

1. /setup/status, /setup/complete - first-run creation of the admin, riders and dispatchers
2. /auth/signin - exchange email + password for a bearer token
3. /auth/signup - self-service account creation with immediate sign-in
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dispatch.models import UserRole, WireModel
from dispatch.routers.dependencies import get_identity
from dispatch.services.identity import AuthenticationError, DuplicateUserError, IdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_PASSWORD_LENGTH = 6


class AdminAccount(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class RiderAccount(BaseModel):
    username: str
    password: str
    name: Optional[str] = None


class DispatcherAccount(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class SetupRequest(BaseModel):
    admin: AdminAccount
    riders: List[RiderAccount] = Field(default_factory=list)
    dispatchers: List[DispatcherAccount] = Field(default_factory=list)


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(WireModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    username: Optional[str] = None


@router.get("/setup/status")
async def setup_status(identity: IdentityProvider = Depends(get_identity)):
    return {"setupComplete": identity.is_setup_complete()}


@router.post("/setup/complete")
async def complete_setup(payload: SetupRequest, identity: IdentityProvider = Depends(get_identity)):
    """
    Create the first admin plus any riders and dispatchers.

    A rider or dispatcher that cannot be created is logged and skipped;
    only the admin account is mandatory.
    """
    if identity.is_setup_complete():
        raise HTTPException(status_code=400, detail="Setup has already been completed")

    try:
        admin = identity.create_user(
            payload.admin.email, payload.admin.password, payload.admin.name, UserRole.ADMIN.value
        )
    except (DuplicateUserError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to create admin: {e}")

    for rider in payload.riders:
        try:
            identity.create_user(None, rider.password, rider.name, UserRole.RIDER.value, username=rider.username)
        except (DuplicateUserError, ValueError) as e:
            logger.warning(f"Skipping rider {rider.username}: {e}")

    for dispatcher in payload.dispatchers:
        try:
            identity.create_user(dispatcher.email, dispatcher.password, dispatcher.name, UserRole.DISPATCHER.value)
        except (DuplicateUserError, ValueError) as e:
            logger.warning(f"Skipping dispatcher {dispatcher.email}: {e}")

    identity.mark_setup_complete()
    return {"success": True, "adminId": admin.id}


@router.post("/auth/signin")
async def sign_in(payload: SignInRequest, identity: IdentityProvider = Depends(get_identity)):
    try:
        token, user = identity.authenticate(payload.email, payload.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return {"accessToken": token, "user": user.to_wire()}


@router.post("/auth/signup")
async def sign_up(payload: SignUpRequest, identity: IdentityProvider = Depends(get_identity)):
    if not payload.password or len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not payload.name:
        raise HTTPException(status_code=400, detail="Name is required")
    if not payload.role:
        raise HTTPException(status_code=400, detail="Role is required")
    if payload.role not in {r.value for r in UserRole}:
        raise HTTPException(status_code=400, detail=f"Unknown role: {payload.role}")
    if payload.role == UserRole.ADMIN.value and identity.is_setup_complete():
        raise HTTPException(status_code=400, detail="Admin accounts are created during setup")

    try:
        user = identity.create_user(
            payload.email, payload.password, payload.name, payload.role, username=payload.username
        )
    except (DuplicateUserError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    token, user = identity.authenticate(user.email, payload.password)
    return {"success": True, "accessToken": token, "user": user.to_wire()}
