"""Typed domain representations shared by ingestion, matching, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.models import Event, Venue


class VenueMatchReason(str, Enum):
    EXTERNAL_ID = "external_id"
    EXACT_NAME_SAME_CITY = "exact_name_same_city"
    SIMILAR_NAME_SAME_CITY = "similar_name_same_city"
    SIMILAR_NAME_NEARBY = "similar_name_nearby"


class EventMatchReason(str, Enum):
    SAME_EXTERNAL_ID = "same_external_id"
    SAME_VENUE_SIMILAR_DATE_SIMILAR_TITLE = "same_venue_similar_date_similar_title"
    SIMILAR_TITLE_SAME_DAY_SAME_CITY = "similar_title_same_day_same_city"


@dataclass(slots=True)
class VenueCandidate:
    """A venue about to be added that needs identity resolution."""

    name: str
    city: str | None = None
    state: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    external_id: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class EventCandidate:
    """An event about to be added that needs identity resolution."""

    title: str
    start_date: datetime
    venue_id: str
    external_source: str | None = None
    external_id: str | None = None


@dataclass(slots=True)
class VenueMatch:
    venue: Venue
    confidence: float
    reason: VenueMatchReason


@dataclass(slots=True)
class EventMatch:
    event: Event
    confidence: float
    reason: EventMatchReason


@dataclass(slots=True)
class DuplicatePair:
    """Two catalog events flagged for human review; never applied automatically."""

    event_a: Event
    event_b: Event
    confidence: float
    reason: EventMatchReason


@dataclass(slots=True)
class NormalizedVenue:
    """Provider venue snapshot ready for resolution and persistence."""

    name: str
    source: str
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    website: str | None = None
    image_url: str | None = None
    google_place_id: str | None = None
    google_rating: float | None = None

    def to_candidate(self) -> VenueCandidate:
        return VenueCandidate(
            name=self.name,
            city=self.city,
            state=self.state,
            latitude=self.latitude,
            longitude=self.longitude,
            external_id=self.google_place_id,
        )


@dataclass(slots=True)
class NormalizedEvent:
    """Provider event snapshot with its embedded venue."""

    external_source: str
    external_id: str
    title: str
    start_date: datetime
    venue: NormalizedVenue
    category_slug: str
    status: str
    end_date: datetime | None = None
    description: str | None = None
    image_url: str | None = None
    external_url: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    is_free: bool = False
    tags: list[str] = field(default_factory=list)
    raw_data: dict[str, Any] | None = None
