from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Venue(BaseModel):
    id: str
    name: str
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    capacity: int | None = None
    image_url: str | None = None
    website: str | None = None
    google_place_id: str | None = None
    google_rating: float | None = None
    source: str
    is_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Event(BaseModel):
    id: str
    title: str
    start_date: datetime
    end_date: datetime | None = None
    venue_id: str
    category_id: str | None = None
    status: str
    external_source: str | None = None
    external_id: str | None = None
    external_url: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    is_free: bool = False

    model_config = {"from_attributes": True}


class VenueCandidateIn(BaseModel):
    name: str = Field(min_length=1)
    city: str | None = None
    state: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    external_id: str | None = None


class EventCandidateIn(BaseModel):
    title: str = Field(min_length=1)
    start_date: datetime
    venue_id: str
    external_source: str | None = None
    external_id: str | None = None


class VenueMatchResult(BaseModel):
    venue: Venue
    confidence: float = Field(ge=0, le=1)
    reason: str

    model_config = {"from_attributes": True}


class EventMatchResult(BaseModel):
    event: Event
    confidence: float = Field(ge=0, le=1)
    reason: str

    model_config = {"from_attributes": True}


class DuplicatePair(BaseModel):
    event_a: Event
    event_b: Event
    confidence: float
    reason: str

    model_config = {"from_attributes": True}


class DuplicatePairList(BaseModel):
    total: int
    items: list[DuplicatePair]


class MergeVenuesRequest(BaseModel):
    primary_id: str
    duplicate_id: str


class SyncLog(BaseModel):
    id: str
    run_id: str | None = None
    source: str
    status: str
    events_created: int
    events_updated: int
    venues_created: int
    errors: list[str] | None = None
    duration_ms: int | None = None
    started_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class SyncLogList(BaseModel):
    items: list[SyncLog]


class SyncRunResponse(BaseModel):
    ok: bool = True
    start_time: datetime
    end_time: datetime
    result: dict[str, Any]

    @field_validator("result", mode="before")
    @classmethod
    def _coerce_result(cls, value: Any) -> dict[str, Any]:
        if hasattr(value, "to_dict"):
            return value.to_dict()
        return value
