from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def _default_sync_cities() -> list[dict[str, str]]:
    return [
        {"city": "New York", "state_code": "NY"},
        {"city": "Los Angeles", "state_code": "CA"},
        {"city": "Chicago", "state_code": "IL"},
        {"city": "Austin", "state_code": "TX"},
        {"city": "Nashville", "state_code": "TN"},
    ]


def _default_sync_locations() -> list[dict[str, Any]]:
    return [
        {"lat": 40.7128, "lon": -74.006, "range": "25mi"},
        {"lat": 34.0522, "lon": -118.2437, "range": "30mi"},
        {"lat": 41.8781, "lon": -87.6298, "range": "20mi"},
        {"lat": 30.2672, "lon": -97.7431, "range": "15mi"},
        {"lat": 36.1627, "lon": -86.7816, "range": "15mi"},
    ]


def _default_discovery_metros() -> list[dict[str, Any]]:
    return [
        {"name": "New York", "lat": 40.7128, "lng": -74.006, "radius_meters": 25000},
        {"name": "Los Angeles", "lat": 34.0522, "lng": -118.2437, "radius_meters": 30000},
        {"name": "Chicago", "lat": 41.8781, "lng": -87.6298, "radius_meters": 20000},
        {"name": "Austin", "lat": 30.2672, "lng": -97.7431, "radius_meters": 15000},
        {"name": "Nashville", "lat": 36.1627, "lng": -86.7816, "radius_meters": 15000},
    ]


DEFAULT_VENUE_SEARCH_QUERIES = (
    "live music venue",
    "live music bar",
    "jazz club",
    "blues bar",
    "comedy club",
    "open mic night venue",
    "concert hall",
    "music lounge",
    "rock bar live music",
    "indie music venue",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/catalog.db",
        description="SQLAlchemy compatible database URL",
    )
    cron_secret: str | None = Field(
        default=None,
        description="Bearer secret required by the cron-triggered sync endpoints",
    )

    ticketmaster_api_key: str | None = Field(
        default=None,
        description="Ticketmaster Discovery API key; the source is skipped when unset",
    )
    ticketmaster_base_url: AnyUrl = Field(
        default="https://app.ticketmaster.com/discovery/v2",
        description="Base URL for the Ticketmaster Discovery API",
    )
    ticketmaster_request_delay_seconds: float = Field(
        default=0.5,
        description="Pause between consecutive Ticketmaster requests",
        ge=0,
    )
    seatgeek_client_id: str | None = Field(
        default=None,
        description="SeatGeek platform client id; the source is skipped when unset",
    )
    seatgeek_base_url: AnyUrl = Field(
        default="https://api.seatgeek.com/2",
        description="Base URL for the SeatGeek platform API",
    )
    seatgeek_request_delay_seconds: float = Field(
        default=0.5,
        description="Pause between consecutive SeatGeek requests",
        ge=0,
    )
    google_places_api_key: str | None = Field(
        default=None,
        description="Google Places API key used by venue discovery",
    )
    google_places_search_url: AnyUrl = Field(
        default="https://places.googleapis.com/v1/places:searchText",
        description="Google Places (New) text search endpoint",
    )
    google_places_request_delay_seconds: float = Field(
        default=0.5,
        description="Pause between consecutive Google Places requests",
        ge=0,
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Per-request timeout applied by every provider client",
        gt=0,
    )

    sync_cities: list[dict[str, str]] = Field(
        default_factory=_default_sync_cities,
        description="Ticketmaster city/state pairs synced on every run",
    )
    sync_locations: list[dict[str, Any]] = Field(
        default_factory=_default_sync_locations,
        description="SeatGeek lat/lon/range search centres synced on every run",
    )
    discovery_metros: list[dict[str, Any]] = Field(
        default_factory=_default_discovery_metros,
        description="Metro areas searched by Google Places venue discovery",
    )
    venue_search_queries: list[str] | str = Field(
        default_factory=lambda: list(DEFAULT_VENUE_SEARCH_QUERIES),
        description="Comma-separated list or array of Google Places text queries",
    )
    sync_days_ahead: int = Field(
        default=30,
        description="Number of days ahead fetched by event sources",
        ge=1,
    )
    sync_max_workers: int = Field(
        default=4,
        description="Number of source jobs executed concurrently by the orchestrator",
        ge=1,
    )

    match_name_similarity: float = Field(
        default=0.85,
        description="Minimum normalized venue-name similarity for fuzzy venue matches",
    )
    match_title_similarity: float = Field(
        default=0.85,
        description="Minimum normalized title similarity for same-venue event matches",
    )
    match_weak_title_similarity: float = Field(
        default=0.80,
        description="Minimum title similarity for same-day same-city event matches",
    )
    match_nearby_km: float = Field(
        default=0.5,
        description="Maximum distance in kilometres for proximity venue matches",
        gt=0,
    )
    match_event_hours: float = Field(
        default=2.0,
        description="Maximum start time difference in hours for same-venue event matches",
        gt=0,
    )
    match_event_window_hours: float = Field(
        default=3.0,
        description="Candidate pre-filter window in hours around the event start time",
        gt=0,
    )

    @field_validator(
        "match_name_similarity",
        "match_title_similarity",
        "match_weak_title_similarity",
    )
    @classmethod
    def _validate_similarity(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("similarity thresholds must be between 0 and 1")
        return value

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("venue_search_queries", mode="after")
    @classmethod
    def _parse_search_queries(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return list(DEFAULT_VENUE_SEARCH_QUERIES)
        if isinstance(value, str):
            return [item for item in (part.strip() for part in value.split(",")) if item]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        raise ValueError(
            "VENUE_SEARCH_QUERIES must be provided as a list or comma-separated string"
        )

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
