from __future__ import annotations

import copy
from contextlib import contextmanager

import pytest
from sqlalchemy import select

from app.db import session_scope
from app.matching import MatchThresholds, as_utc
from app.models import Event, Venue
from ingestion.adapters import GooglePlacesSource, SeatGeekSource, TicketmasterSource
from ingestion.base import CategoryCache
from pipelines.context import SyncContext
from conftest import utc


class StubClient:
    """Stands in for a provider client; returns canned payloads per search key."""

    def __init__(self, results: dict, *, exists: dict | None = None) -> None:
        self.results = results
        self.exists = exists or {}
        self.calls: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def _lookup(self, key):
        result = self.results.get(key, [])
        if isinstance(result, Exception):
            raise result
        return copy.deepcopy(result)

    def iter_events(self, **kwargs):
        self.calls.append(kwargs)
        return self._lookup(kwargs.get("city") or (kwargs.get("lat"), kwargs.get("lon")))

    def event_exists(self, external_id: str):
        return self.exists.get(external_id, True)

    def search_text(self, query, **kwargs):
        self.calls.append({"query": query, **kwargs})
        return self._lookup(query)


@pytest.fixture
def provider_settings(test_settings):
    return test_settings.model_copy(
        update={
            "ticketmaster_api_key": "tm-key",
            "seatgeek_client_id": "sg-client",
            "google_places_api_key": "gp-key",
            "sync_cities": [{"city": "Seattle", "state_code": "WA"}, {"city": "Portland", "state_code": "OR"}],
            "sync_locations": [{"lat": 47.6, "lon": -122.3, "range": "10mi"}],
            "discovery_metros": [{"name": "Seattle", "lat": 47.6, "lng": -122.3, "radius_meters": 10000}],
            "venue_search_queries": ["live music venue", "jazz club"],
        }
    )


@pytest.fixture
def context(provider_settings, session_factory):
    return SyncContext(
        run_id="run-test",
        settings=provider_settings,
        session_factory=session_factory,
        category_cache=CategoryCache(),
        thresholds=MatchThresholds(),
        now=utc(2024, 5, 30),
    )


def _read(session_factory, model):
    session = session_factory()
    try:
        return session.execute(select(model)).scalars().all()
    finally:
        session.close()


def test_unconfigured_sources(test_settings):
    assert not TicketmasterSource(test_settings).is_configured()
    assert not SeatGeekSource(test_settings).is_configured()
    assert not GooglePlacesSource(test_settings).is_configured()


def test_ticketmaster_creates_then_updates(
    context, session_factory, seeded_categories, ticketmaster_event_payload
):
    stub = StubClient({"Seattle": [ticketmaster_event_payload]})
    source = TicketmasterSource(context.settings, client_factory=lambda limiter: stub)

    first = source.run(context)

    assert (first.events_created, first.events_updated, first.venues_created) == (1, 0, 1)
    assert first.errors == []
    assert stub.calls[0]["state_code"] == "WA"
    assert stub.calls[0]["start"] == utc(2024, 5, 30)

    [event] = _read(session_factory, Event)
    assert event.external_source == "ticketmaster"
    assert event.category_id == seeded_categories["concerts"]
    assert as_utc(event.start_date) == utc(2024, 6, 2, 3, 0)
    assert event.min_price == 2250

    ticketmaster_event_payload["name"] = "The Black Tones (Late Show)"
    second = source.run(context)

    assert (second.events_created, second.events_updated, second.venues_created) == (0, 1, 0)
    [event] = _read(session_factory, Event)
    assert event.title == "The Black Tones (Late Show)"
    assert len(_read(session_factory, Venue)) == 1


def test_ticketmaster_reuses_matching_catalog_venue(
    context, session_factory, make_venue, ticketmaster_event_payload
):
    existing = make_venue("Showbox Theater", city="Seattle")
    stub = StubClient({"Seattle": [ticketmaster_event_payload]})

    stats = TicketmasterSource(context.settings, client_factory=lambda limiter: stub).run(context)

    assert stats.venues_created == 0
    [event] = _read(session_factory, Event)
    assert event.venue_id == existing.id
    [venue] = _read(session_factory, Venue)
    assert venue.zip_code == "98101"
    assert venue.name == "Showbox Theater"


def test_ticketmaster_errors_are_collected_per_item(
    context, session_factory, ticketmaster_event_payload
):
    broken = copy.deepcopy(ticketmaster_event_payload)
    broken["id"] = "no-venue"
    broken["_embedded"] = {}
    stub = StubClient(
        {
            "Seattle": [broken, ticketmaster_event_payload],
            "Portland": ValueError("Ticketmaster API error 500"),
        }
    )

    stats = TicketmasterSource(context.settings, client_factory=lambda limiter: stub).run(context)

    assert stats.events_created == 1
    assert len(stats.errors) == 2
    assert "(no-venue)" in stats.errors[0]
    assert stats.errors[1].startswith("Failed to fetch events for Portland, OR")
    assert len(_read(session_factory, Event)) == 1


def test_seatgeek_skips_events_without_url_and_duplicates(
    context, session_factory, seatgeek_event_payload
):
    no_url = copy.deepcopy(seatgeek_event_payload)
    no_url["id"] = 42
    no_url["url"] = None
    stub = StubClient({(47.6, -122.3): [seatgeek_event_payload, seatgeek_event_payload, no_url]})

    stats = SeatGeekSource(context.settings, client_factory=lambda limiter: stub).run(context)

    assert stats.events_created == 1
    assert stats.venues_created == 1
    assert stats.errors == ['SeatGeek event 42 ("Comedy Night Showcase") has no URL, skipping']
    assert len(_read(session_factory, Event)) == 1


def test_seatgeek_invalidates_events_gone_upstream(
    context, session_factory, seatgeek_event_payload
):
    key = (47.6, -122.3)
    SeatGeekSource(
        context.settings, client_factory=lambda limiter: StubClient({key: [seatgeek_event_payload]})
    ).run(context)

    gone = StubClient({key: [seatgeek_event_payload]}, exists={"6109123": False})
    stats = SeatGeekSource(context.settings, client_factory=lambda limiter: gone).run(context)

    assert stats.events_invalidated == 1
    assert stats.events_updated == 0
    [event] = _read(session_factory, Event)
    assert event.status == "cancelled"


def test_seatgeek_keeps_event_when_validation_is_inconclusive(
    context, session_factory, seatgeek_event_payload
):
    key = (47.6, -122.3)
    SeatGeekSource(
        context.settings, client_factory=lambda limiter: StubClient({key: [seatgeek_event_payload]})
    ).run(context)

    unknown = StubClient({key: [seatgeek_event_payload]}, exists={"6109123": None})
    stats = SeatGeekSource(context.settings, client_factory=lambda limiter: unknown).run(context)

    assert stats.events_updated == 1
    [event] = _read(session_factory, Event)
    assert event.status == "published"


def test_google_places_creates_and_updates_by_place_id(
    context, session_factory, google_place_payload
):
    stub = StubClient({"live music venue": [google_place_payload], "jazz club": [google_place_payload]})
    source = GooglePlacesSource(context.settings, client_factory=lambda limiter: stub)

    first = source.run(context)

    assert first.venues_created == 1
    assert first.venues_updated == 0
    assert [call["query"] for call in stub.calls] == ["live music venue", "jazz club"]

    google_place_payload["rating"] = 4.7
    second = source.run(context)

    assert second.venues_created == 0
    assert second.venues_updated == 1
    [venue] = _read(session_factory, Venue)
    assert venue.google_place_id == "ChIJ-showbox"
    assert venue.google_rating == 4.7
    assert venue.source == "google_places"


def test_google_places_attaches_place_id_to_matching_venue(
    context, session_factory, make_venue, google_place_payload
):
    existing = make_venue("Showbox Theater", city="Seattle")
    stub = StubClient({"live music venue": [google_place_payload]})

    stats = GooglePlacesSource(context.settings, client_factory=lambda limiter: stub).run(context)

    assert stats.venues_created == 0
    assert stats.venues_updated == 1
    [venue] = _read(session_factory, Venue)
    assert venue.id == existing.id
    assert venue.google_place_id == "ChIJ-showbox"
    assert venue.address == "1426 1st Ave"


def test_google_places_search_failure_is_recorded(context, google_place_payload):
    stub = StubClient(
        {"live music venue": ValueError("quota exceeded"), "jazz club": [google_place_payload]}
    )

    stats = GooglePlacesSource(context.settings, client_factory=lambda limiter: stub).run(context)

    assert stats.venues_created == 1
    assert stats.errors == ['Search failed for "live music venue" in Seattle: quota exceeded']


def test_seatgeek_validates_upstream_outside_write_transaction(
    context, session_factory, seatgeek_event_payload, monkeypatch
):
    key = (47.6, -122.3)
    SeatGeekSource(
        context.settings, client_factory=lambda limiter: StubClient({key: [seatgeek_event_payload]})
    ).run(context)

    open_scopes = []
    seen_while_checking = []

    @contextmanager
    def tracking_scope(factory):
        open_scopes.append(factory)
        try:
            with session_scope(factory) as session:
                yield session
        finally:
            open_scopes.pop()

    class CheckingClient(StubClient):
        def event_exists(self, external_id: str):
            seen_while_checking.append(len(open_scopes))
            return False

    monkeypatch.setattr("ingestion.adapters.session_scope", tracking_scope)
    stats = SeatGeekSource(
        context.settings,
        client_factory=lambda limiter: CheckingClient({key: [seatgeek_event_payload]}),
    ).run(context)

    assert seen_while_checking == [0]
    assert stats.events_invalidated == 1
