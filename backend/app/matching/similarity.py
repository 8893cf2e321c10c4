"""Edit-distance, geospatial, and time helpers used by the matchers."""

from __future__ import annotations

import math
from datetime import datetime, time, timedelta, timezone

from rapidfuzz.distance import Levenshtein

EARTH_RADIUS_KM = 6371.0

# Roughly one kilometre of latitude, in degrees. Used for cheap bounding boxes.
APPROX_DEGREES_PER_KM = 0.009

# Longitude degrees blow up towards the poles; clamp the cosine.
_MIN_COS_LAT = 0.01


def string_similarity(a: str, b: str) -> float:
    """Return 1 - Levenshtein distance / max length, in [0, 1]."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lon: float, km: float) -> tuple[float, float, float, float]:
    """Return (min_lat, max_lat, min_lon, max_lon) enclosing a km radius around a point."""
    lat_delta = km * APPROX_DEGREES_PER_KM
    lon_delta = min(lat_delta / max(math.cos(math.radians(lat)), _MIN_COS_LAT), 180.0)
    return lat - lat_delta, lat + lat_delta, lon - lon_delta, lon + lon_delta


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def are_dates_close(d1: datetime, d2: datetime, max_hours: float) -> bool:
    diff_hours = abs((as_utc(d1) - as_utc(d2)).total_seconds()) / 3600
    return diff_hours <= max_hours


def utc_day_bounds(value: datetime) -> tuple[datetime, datetime]:
    """Return the first and last instant of the UTC calendar day containing value."""
    day = as_utc(value).date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end
