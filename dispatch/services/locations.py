# dispatch/services/locations.py
"""
Rider location tracking. The rider app polls its position in; the admin
map polls all positions out. Only the latest fix per rider is kept.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from dispatch.models import Rider, RiderLocation, utc_now_iso
from dispatch.redis import get_redis_client

logger = logging.getLogger(__name__)


def location_key(rider_id: str) -> str:
    return f"rider_location_{rider_id}"


class LocationService:

    def __init__(self, redis_client=None):
        self.redis = redis_client or get_redis_client()

    def update_location(self, rider_id: str, latitude: Any, longitude: Any) -> RiderLocation:
        location = RiderLocation(latitude=latitude, longitude=longitude, timestamp=utc_now_iso())
        self.redis.set(location_key(rider_id), json.dumps(location.to_wire()))
        logger.debug(f"Location for rider {rider_id}: {latitude},{longitude}")
        return location

    def get_location(self, rider_id: str) -> Optional[RiderLocation]:
        raw = self.redis.get(location_key(rider_id))
        return RiderLocation.model_validate(json.loads(raw)) if raw else None

    def all_locations(self, riders: List[Rider]) -> List[Dict]:
        results = []
        for rider in riders:
            location = self.get_location(rider.id)
            results.append({
                "riderId": rider.id,
                "riderName": rider.display_name,
                "status": rider.status,
                "location": location.to_wire() if location else None,
            })
        return results
