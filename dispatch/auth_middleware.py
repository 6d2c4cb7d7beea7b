"""
JWT Authentication Middleware.

Issues and verifies the signed bearer tokens that carry a user id and
role. The FastAPI dependencies that gate routes live in
dispatch.routers.dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException
from jose import JWTError, jwt


ALGORITHM = "HS256"


@dataclass
class AuthUser:
    """Identity resolved from a verified bearer token."""
    id: str
    role: Optional[str]


def _get_secret_key() -> str:
    """Lazy-load the secret key to support testing."""
    from dispatch.config import get_settings
    return get_settings().SECRET_KEY


def _get_expiry_minutes() -> int:
    from dispatch.config import get_settings
    return get_settings().ACCESS_TOKEN_EXPIRE_MINUTES


def create_access_token(user_id: str, role: Optional[str], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT for a user.

    Args:
        user_id: The account id.
        role: admin, dispatcher or rider.
        expires_delta: Optional custom expiration time.

    Returns:
        A signed JWT string.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=_get_expiry_minutes()))
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> AuthUser:
    """
    Verify a token and return the identity it carries.

    Raises:
        JWTError: if the signature, expiry or subject is invalid.
    """
    payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Token has no subject")
    return AuthUser(id=user_id, role=payload.get("role"))


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_bearer(authorization: Optional[str]) -> AuthUser:
    """
    Validate an ``Authorization: Bearer <token>`` header value.

    Raises:
        HTTPException(401): if the header is missing, malformed or the token is invalid.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise unauthorized()
    try:
        return decode_access_token(authorization[7:])
    except JWTError:
        raise unauthorized()
