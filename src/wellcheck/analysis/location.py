"""
Location throttling: suppresses GPS writes that carry no new information.

A fix is stored when the phone has moved at least significant_distance_km
from the last *stored* fix, or when the stored fix is older than
max_staleness (a heartbeat so the family sees a fresh timestamp even when
the phone sits on the kitchen table all day).
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

EARTH_RADIUS_KM = 6371.0
DEFAULT_SIGNIFICANT_DISTANCE_KM = 0.5
DEFAULT_MAX_STALENESS = timedelta(hours=4)


class InvalidLocationError(ValueError):
    """Raised for coordinates outside the valid lat/long range."""


@dataclass
class LocationSample:
    latitude: float   # decimal degrees
    longitude: float  # decimal degrees
    observed_at: datetime


@dataclass
class LocationThrottleState:
    """Last fix that actually reached the remote store."""
    last_latitude: Optional[float] = None
    last_longitude: Optional[float] = None
    last_stored_at: Optional[datetime] = None

    @property
    def has_fix(self) -> bool:
        return self.last_latitude is not None and self.last_longitude is not None

    def record_stored(self, sample: LocationSample, now: datetime) -> None:
        self.last_latitude = sample.latitude
        self.last_longitude = sample.longitude
        self.last_stored_at = now


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two lat/long points."""
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlon / 2) ** 2
    # min() guards asin against a rounding overshoot past 1.0 for antipodes
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def validate_sample(sample: LocationSample) -> None:
    """
    Raises:
        InvalidLocationError: non-finite or out-of-range coordinates.
    """
    lat, lon = sample.latitude, sample.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidLocationError(f"Non-finite coordinates: ({lat}, {lon})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidLocationError(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidLocationError(f"Longitude out of range: {lon}")


def should_throttle(
    now: datetime,
    sample: LocationSample,
    state: LocationThrottleState,
    significant_distance_km: float = DEFAULT_SIGNIFICANT_DISTANCE_KM,
    max_staleness: timedelta = DEFAULT_MAX_STALENESS,
) -> bool:
    """
    Return True if `sample` should NOT be written to the remote store.

    Both threshold comparisons are inclusive: moving exactly
    significant_distance_km, or waiting exactly max_staleness, triggers a write.
    """
    if not state.has_fix:
        return False

    distance_km = haversine_km(
        state.last_latitude, state.last_longitude,
        sample.latitude, sample.longitude,
    )
    if distance_km >= significant_distance_km:
        return False

    if state.last_stored_at is None or now - state.last_stored_at >= max_staleness:
        return False

    return True
