from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db import Base, create_db_engine, create_session_factory
from app.models import Category, Event, EventStatus, Venue
from ingestion.base import CATEGORY_SEEDS


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'catalog.db'}",
        ticketmaster_api_key=None,
        seatgeek_client_id=None,
        google_places_api_key=None,
        cron_secret=None,
        ticketmaster_request_delay_seconds=0,
        seatgeek_request_delay_seconds=0,
        google_places_request_delay_seconds=0,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=True, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed database for tests where several threads write at once."""
    engine = create_db_engine(f"sqlite:///{tmp_path/'threaded.db'}")
    Base.metadata.create_all(engine)
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seeded_categories(session) -> dict[str, str]:
    categories = [Category(slug=slug, name=name) for slug, name in CATEGORY_SEEDS]
    session.add_all(categories)
    session.commit()
    return {category.slug: category.id for category in categories}


@pytest.fixture
def make_venue(session):
    def _make_venue(name: str, **fields) -> Venue:
        venue = Venue(name=name, **fields)
        session.add(venue)
        session.commit()
        return venue

    return _make_venue


@pytest.fixture
def make_event(session):
    def _make_event(title: str, venue: Venue, start_date: datetime, **fields) -> Event:
        fields.setdefault("status", EventStatus.PUBLISHED.value)
        event = Event(title=title, venue_id=venue.id, start_date=start_date, **fields)
        session.add(event)
        session.commit()
        return event

    return _make_event


@pytest.fixture
def ticketmaster_event_payload() -> dict:
    return {
        "id": "vvG1zZ9KkKfA0N",
        "name": "The Black Tones",
        "url": "https://www.ticketmaster.com/event/vvG1zZ9KkKfA0N",
        "info": "All ages. Doors at 7pm.",
        "dates": {
            "start": {"localDate": "2024-06-01", "localTime": "20:00:00", "dateTime": "2024-06-02T03:00:00Z"},
            "status": {"code": "onsale"},
        },
        "classifications": [
            {
                "primary": True,
                "segment": {"name": "Music"},
                "genre": {"name": "Rock"},
                "subGenre": {"name": "Garage Rock"},
                "type": {"name": "Undefined"},
            }
        ],
        "priceRanges": [
            {"type": "standard", "currency": "USD", "min": 22.5, "max": 30.0},
            {"type": "vip", "currency": "USD", "min": 45.0, "max": 75.0},
        ],
        "images": [
            {"ratio": "3_2", "url": "https://img.example/3_2_1024.jpg", "width": 1024, "fallback": False},
            {"ratio": "16_9", "url": "https://img.example/16_9_640.jpg", "width": 640, "fallback": False},
            {"ratio": "16_9", "url": "https://img.example/16_9_1136.jpg", "width": 1136, "fallback": False},
            {"ratio": "16_9", "url": "https://img.example/fallback.jpg", "width": 2048, "fallback": True},
        ],
        "_embedded": {
            "venues": [
                {
                    "id": "KovZpZAEdFtJ",
                    "name": "The Showbox",
                    "url": "https://www.ticketmaster.com/the-showbox-tickets-seattle/venue/122908",
                    "postalCode": "98101",
                    "city": {"name": "Seattle"},
                    "state": {"name": "Washington", "stateCode": "WA"},
                    "country": {"name": "United States Of America", "countryCode": "US"},
                    "address": {"line1": "1426 1st Ave"},
                    "location": {"longitude": "-122.339973", "latitude": "47.608524"},
                }
            ]
        },
    }


@pytest.fixture
def seatgeek_event_payload() -> dict:
    return {
        "id": 6109123,
        "title": "Comedy Night Showcase",
        "type": "comedy",
        "url": "https://seatgeek.com/comedy-night-showcase-tickets/6109123",
        "datetime_utc": "2024-06-02T02:30:00",
        "description": "",
        "stats": {"lowest_price": 18, "highest_price": 64},
        "taxonomies": [{"id": 2000000, "name": "comedy"}],
        "performers": [
            {
                "name": "Comedy Night",
                "type": "comedy",
                "image": "https://seatgeek.com/images/performers/comedy.jpg",
                "images": {"huge": "https://seatgeek.com/images/performers/comedy-huge.jpg"},
            }
        ],
        "venue": {
            "id": 2721,
            "name": "The Crocodile",
            "name_v2": "The Crocodile",
            "address": "2505 1st Ave",
            "city": "Seattle",
            "state": "WA",
            "postal_code": "98121",
            "country": "US",
            "url": "https://seatgeek.com/venues/the-crocodile/tickets",
            "location": {"lat": 47.6145, "lon": -122.3474},
        },
    }


@pytest.fixture
def google_place_payload() -> dict:
    return {
        "id": "ChIJ-showbox",
        "displayName": {"text": "The Showbox", "languageCode": "en"},
        "formattedAddress": "1426 1st Ave, Seattle, WA 98101, USA",
        "location": {"latitude": 47.608524, "longitude": -122.339973},
        "rating": 4.6,
        "websiteUri": "https://www.showboxpresents.com/",
        "types": ["night_club", "event_venue"],
        "photos": [{"name": "places/ChIJ-showbox/photos/abc"}],
    }
