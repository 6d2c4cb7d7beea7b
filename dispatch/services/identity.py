# dispatch/services/identity.py
"""
Identity Provider & Rider Directory.

Accounts live in the ``users`` hash (user id -> JSON record) with an
``users_by_email`` index. Riders sign in as ``{username}@delivery.local``
and carry a mutable ``status`` in their metadata, which the order
lifecycle keeps in step with their active orders.
"""

import json
import logging
import uuid
from functools import lru_cache
from typing import List, Optional, Tuple

from passlib.context import CryptContext

from dispatch.auth_middleware import create_access_token
from dispatch.models import User, UserMetadata, UserRole, Rider, RiderStatus, utc_now_iso
from dispatch.models.user import rider_email
from dispatch.redis import get_redis_client

logger = logging.getLogger(__name__)

USERS_KEY = "users"
USERS_BY_EMAIL_KEY = "users_by_email"
SETUP_COMPLETE_KEY = "setup_complete"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthenticationError(Exception):
    """Raised when credentials do not match an account."""
    pass


class UserNotFoundError(Exception):
    """Raised when a user id is not in the directory."""
    pass


class DuplicateUserError(Exception):
    """Raised when an email is already registered."""
    pass


class IdentityProvider:
    """Account directory and credential checks backed by Redis."""

    def __init__(self, redis_client=None):
        self.redis = redis_client or get_redis_client()

    # --- Accounts ---

    def create_user(
        self,
        email: Optional[str],
        password: str,
        name: Optional[str],
        role: str,
        username: Optional[str] = None,
    ) -> User:
        """
        Register an account. Riders with a username sign in as
        ``{username}@delivery.local`` and start out ``available``.
        """
        if role == UserRole.RIDER.value and username:
            email = rider_email(username)
        if not email:
            raise ValueError("Email or username is required")

        email = email.strip().lower()
        if self.redis.hget(USERS_BY_EMAIL_KEY, email):
            raise DuplicateUserError(f"A user with email {email} already exists")

        metadata = UserMetadata(name=name, role=role, username=username)
        if role == UserRole.RIDER.value:
            metadata.status = RiderStatus.AVAILABLE.value

        user = User(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=pwd_context.hash(password),
            user_metadata=metadata,
            created_at=utc_now_iso(),
        )
        self._save(user)
        self.redis.hset(USERS_BY_EMAIL_KEY, email, user.id)
        logger.info(f"Created {role} account {user.id} ({email})")
        return user

    def get_user(self, user_id: str) -> User:
        raw = self.redis.hget(USERS_KEY, user_id)
        if not raw:
            raise UserNotFoundError(f"User {user_id} not found")
        return User.model_validate(json.loads(raw))

    def list_users(self) -> List[User]:
        return [User.model_validate(json.loads(raw)) for raw in self.redis.hvals(USERS_KEY)]

    def update_metadata(self, user_id: str, **fields) -> User:
        """Merge ``fields`` into the account's metadata, like the provider's partial update."""
        user = self.get_user(user_id)
        for key, value in fields.items():
            setattr(user.user_metadata, key, value)
        self._save(user)
        return user

    def set_password(self, user_id: str, password: str) -> None:
        user = self.get_user(user_id)
        user.password_hash = pwd_context.hash(password)
        self._save(user)
        logger.info(f"Password changed for user {user_id}")

    def _save(self, user: User) -> None:
        self.redis.hset(USERS_KEY, user.id, json.dumps(user.to_record()))

    # --- Sign in ---

    def authenticate(self, email: str, password: str) -> Tuple[str, User]:
        """
        Check credentials and issue an access token.

        Raises:
            AuthenticationError: on unknown email or wrong password.
        """
        user_id = self.redis.hget(USERS_BY_EMAIL_KEY, (email or "").strip().lower())
        if not user_id:
            raise AuthenticationError("Invalid login credentials")
        user = self.get_user(user_id)
        if not pwd_context.verify(password or "", user.password_hash):
            raise AuthenticationError("Invalid login credentials")
        return create_access_token(user.id, user.role), user

    # --- Rider directory ---

    def list_riders(self) -> List[Rider]:
        return [Rider.from_user(u) for u in self.list_users() if u.role == UserRole.RIDER.value]

    def get_rider(self, rider_id: str) -> Rider:
        user = self.get_user(rider_id)
        if user.role != UserRole.RIDER.value:
            raise UserNotFoundError(f"Rider {rider_id} not found")
        return Rider.from_user(user)

    def set_rider_status(self, rider_id: str, status: str) -> None:
        self.update_metadata(rider_id, status=status)
        logger.info(f"Rider {rider_id} is now {status}")

    # --- First-run setup ---

    def is_setup_complete(self) -> bool:
        return self.redis.get(SETUP_COMPLETE_KEY) == "true"

    def mark_setup_complete(self) -> None:
        self.redis.set(SETUP_COMPLETE_KEY, "true")
        logger.info("Initial setup marked complete")


@lru_cache()
def get_identity_provider() -> IdentityProvider:
    """Process-wide provider; tests override the FastAPI dependency or patch this."""
    return IdentityProvider()
