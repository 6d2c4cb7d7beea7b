"""
Pydantic base model and clock helpers shared by all records.

This module provides:
- WireModel: snake_case attributes, camelCase JSON keys on the wire
- UTC clock helpers producing the timestamp and date formats stored in records
"""

import secrets
import string
import time
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


_BASE36 = string.digits + string.ascii_lowercase


class WireModel(BaseModel):
    """Base class for records persisted as JSON and returned by the API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys; unset optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """ISO-8601 timestamp with millisecond precision and a trailing Z."""
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_today() -> str:
    """Calendar date (YYYY-MM-DD) of the system clock in UTC."""
    return utc_now().date().isoformat()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def random_suffix(length: int = 9) -> str:
    """Lowercase base-36 token used to keep generated ids unique."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))
