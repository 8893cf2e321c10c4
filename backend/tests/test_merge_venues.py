from __future__ import annotations

import pytest

from app.domain import CatalogError, VenueNotFoundError
from app.models import Venue
from app.repositories import CatalogRepository
from app.services.catalog_service import CatalogService
from app.services.merge_service import merge_venues, reconcile_venue_fields
from conftest import utc


@pytest.fixture
def venue_pair(make_venue, make_event):
    primary = make_venue(
        "The Showbox",
        city="Seattle",
        address="1426 1st Ave",
        description="Music venue",
        google_rating=4.2,
    )
    duplicate = make_venue(
        "Showbox Theater",
        city="Seattle",
        zip_code="98101",
        description="Historic music venue near Pike Place Market",
        google_place_id="place-showbox",
        google_rating=4.6,
        is_verified=True,
        address="1426 First Avenue",
    )
    make_event("Black Tones", duplicate, utc(2024, 6, 1, 20, 0))
    make_event("Comedy Night", duplicate, utc(2024, 6, 2, 20, 0))
    make_event("Trivia", primary, utc(2024, 6, 3, 20, 0))
    return primary, duplicate


def test_merge_moves_events_and_removes_duplicate(session, venue_pair):
    primary, duplicate = venue_pair
    primary_id, duplicate_id = primary.id, duplicate.id

    merged = merge_venues(session, primary_id, duplicate_id)
    session.commit()

    repo = CatalogRepository(session)
    assert merged.id == primary_id
    assert repo.count_events_for_venue(primary_id) == 3
    assert repo.count_events_for_venue(duplicate_id) == 0
    assert session.get(Venue, duplicate_id) is None


def test_merge_reconciles_fields(session, venue_pair):
    primary, duplicate = venue_pair

    merged = merge_venues(session, primary.id, duplicate.id)
    session.commit()

    assert merged.description == "Historic music venue near Pike Place Market"
    assert merged.google_rating == 4.6
    assert merged.google_place_id == "place-showbox"
    assert merged.is_verified is True
    assert merged.zip_code == "98101"
    assert merged.address == "1426 1st Ave"


def test_merge_keeps_primary_values_when_they_are_better(session, make_venue):
    primary = make_venue(
        "Neumos",
        description="Capitol Hill rock club with a long history",
        google_rating=4.8,
        google_place_id="place-primary",
        is_verified=True,
    )
    duplicate = make_venue(
        "Neumos Club",
        description="Rock club",
        google_rating=4.1,
        google_place_id="place-duplicate",
        is_verified=False,
    )

    merged = merge_venues(session, primary.id, duplicate.id)
    session.commit()

    assert merged.description == "Capitol Hill rock club with a long history"
    assert merged.google_rating == 4.8
    assert merged.google_place_id == "place-primary"
    assert merged.is_verified is True


def test_reconcile_treats_blank_strings_as_missing(make_venue):
    primary = make_venue("Neumos", address="  ", city="Seattle")
    duplicate = make_venue("Neumos Club", address="925 E Pike St", city="Tacoma")

    updates = reconcile_venue_fields(primary, duplicate)

    assert updates["address"] == "925 E Pike St"
    assert "city" not in updates


def test_merge_missing_primary(session, make_venue):
    duplicate = make_venue("Neumos")

    with pytest.raises(VenueNotFoundError) as excinfo:
        merge_venues(session, "missing", duplicate.id)

    assert excinfo.value.role == "primary"
    assert "Primary venue not found" in str(excinfo.value)


def test_merge_missing_duplicate(session, make_venue):
    primary = make_venue("Neumos")

    with pytest.raises(VenueNotFoundError) as excinfo:
        merge_venues(session, primary.id, "missing")

    assert excinfo.value.role == "duplicate"


def test_merge_into_itself_is_rejected(session, make_venue):
    venue = make_venue("Neumos")

    with pytest.raises(CatalogError):
        merge_venues(session, venue.id, venue.id)

    assert session.get(Venue, venue.id) is not None


def test_service_merge_rolls_back_on_failure(session, venue_pair):
    primary, _ = venue_pair
    service = CatalogService(session)

    with pytest.raises(VenueNotFoundError):
        service.merge_venues(primary.id, "missing")

    assert CatalogRepository(session).count_events_for_venue(primary.id) == 1


def test_service_merge_commits(session_factory, venue_pair, session):
    primary, duplicate = venue_pair
    primary_id, duplicate_id = primary.id, duplicate.id

    CatalogService(session).merge_venues(primary_id, duplicate_id)

    fresh = session_factory()
    try:
        assert fresh.get(Venue, duplicate_id) is None
        assert CatalogRepository(fresh).count_events_for_venue(primary_id) == 3
    finally:
        fresh.close()
