"""Pure matching primitives and thresholds shared by the matchers and scanner."""

from .normalization import normalize_event_title, normalize_venue_name
from .similarity import (
    are_dates_close,
    as_utc,
    bounding_box,
    haversine_distance_km,
    string_similarity,
    utc_day_bounds,
)
from .thresholds import MatchThresholds

__all__ = [
    "MatchThresholds",
    "are_dates_close",
    "as_utc",
    "bounding_box",
    "haversine_distance_km",
    "normalize_event_title",
    "normalize_venue_name",
    "string_similarity",
    "utc_day_bounds",
]
