"""
User account models - admins, dispatchers and riders.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from dispatch.models.base import WireModel


RIDER_EMAIL_DOMAIN = "delivery.local"


class UserRole(str, Enum):
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    RIDER = "rider"


class RiderStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"


class UserMetadata(WireModel):
    """Mutable profile data attached to an account."""
    name: Optional[str] = None
    role: Optional[str] = None
    username: Optional[str] = None
    status: Optional[str] = None


class User(WireModel):
    """An account in the user directory. The password hash never leaves the service."""
    id: str
    email: str
    password_hash: str = Field(exclude=True)
    user_metadata: UserMetadata = Field(default_factory=UserMetadata)
    created_at: Optional[str] = None

    @property
    def role(self) -> Optional[str]:
        return self.user_metadata.role

    def to_record(self) -> dict:
        """Full JSON record for the directory, including the password hash."""
        data = self.to_wire()
        data["passwordHash"] = self.password_hash
        return data


class Rider(WireModel):
    """Directory view of a rider account."""
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    status: str = RiderStatus.AVAILABLE.value

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.username

    @classmethod
    def from_user(cls, user: User) -> "Rider":
        meta = user.user_metadata
        return cls(
            id=user.id,
            username=meta.username,
            name=meta.name,
            status=meta.status or RiderStatus.AVAILABLE.value,
        )


def rider_email(username: str) -> str:
    return f"{username}@{RIDER_EMAIL_DOMAIN}"
