"""
Rider location - last position reported by the rider app.
"""

from typing import Any

from dispatch.models.base import WireModel


class RiderLocation(WireModel):
    latitude: Any = None
    longitude: Any = None
    timestamp: str
