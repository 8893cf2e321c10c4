from __future__ import annotations

import math

import pytest

from app.matching import (
    are_dates_close,
    bounding_box,
    haversine_distance_km,
    normalize_event_title,
    normalize_venue_name,
    string_similarity,
    utc_day_bounds,
)
from conftest import utc

VENUE_NAMES = [
    "The Showbox",
    "Showbox Theater",
    "Neumos",
    "The Crocodile!",
    "Paramount Theatre",
    "Madison Square Garden",
    "The Theater",
    "Climate Pledge Arena",
    "Royal Albert Hall Music Hall",
    "  Tractor   Tavern  ",
    "Theater",
    "",
]

EVENT_TITLES = [
    "The Black Tones Live at The Showbox",
    "Black Tones Live Showbox",
    "A Night at the Opera",
    "An Evening With Someone",
    "The",
    "Comedy Night!!",
    "",
]


@pytest.mark.parametrize("name", VENUE_NAMES)
def test_normalize_venue_name_is_idempotent(name):
    once = normalize_venue_name(name)
    assert normalize_venue_name(once) == once


@pytest.mark.parametrize("title", EVENT_TITLES)
def test_normalize_event_title_is_idempotent(title):
    once = normalize_event_title(title)
    assert normalize_event_title(once) == once


def test_showbox_variants_share_a_normalized_name():
    assert normalize_venue_name("The Showbox") == "showbox"
    assert normalize_venue_name("Showbox Theater") == "showbox"


def test_venue_suffix_only_stripped_when_trailing():
    assert normalize_venue_name("Hall of Fame Club") == "hall of fame"
    assert normalize_venue_name("Paramount Theatre") == "paramount"


def test_venue_name_never_normalizes_to_empty():
    assert normalize_venue_name("The Theater") == "theater"
    assert normalize_venue_name("Arena") == "arena"


def test_venue_name_strips_punctuation_and_whitespace():
    assert normalize_venue_name("  Tractor   Tavern! ") == "tractor tavern"


def test_event_titles_drop_articles_and_connectors():
    assert normalize_event_title("The Black Tones Live at The Showbox") == "black tones live showbox"
    assert normalize_event_title("Black Tones Live Showbox") == "black tones live showbox"
    assert normalize_event_title("An Evening With Someone") == "evening with someone"


def test_event_title_drops_filler_words_anywhere():
    assert normalize_event_title("Plan A") == "plan"
    assert normalize_event_title("Live at the Apollo") == "live apollo"


def test_event_title_of_only_articles_is_kept():
    assert normalize_event_title("The") == "the"


def test_similarity_follows_edit_distance():
    assert string_similarity("flaw", "lawn") == pytest.approx(0.5)
    assert string_similarity("", "abc") == 0.0
    assert string_similarity("abc", "abd") == pytest.approx(2 / 3)


@pytest.mark.parametrize("value", ["a", "showbox", "black tones live showbox"])
def test_similarity_of_identical_strings_is_one(value):
    assert string_similarity(value, value) == 1.0


@pytest.mark.parametrize(
    "a,b",
    [("kitten", "sitting"), ("showbox", "show box"), ("neumos", "neumo's"), ("x", "")],
)
def test_similarity_is_symmetric(a, b):
    assert string_similarity(a, b) == string_similarity(b, a)


def test_similarity_with_empty_string_is_zero():
    assert string_similarity("", "x") == 0.0
    assert string_similarity("x", "") == 0.0


def test_similarity_is_normalized_by_longer_string():
    assert string_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_haversine_same_point_is_zero():
    assert haversine_distance_km(47.6062, -122.3321, 47.6062, -122.3321) == 0.0


def test_haversine_is_symmetric_and_plausible():
    seattle = (47.6062, -122.3321)
    portland = (45.5152, -122.6784)
    forward = haversine_distance_km(*seattle, *portland)
    backward = haversine_distance_km(*portland, *seattle)
    assert forward == pytest.approx(backward)
    assert 230 < forward < 240


def test_bounding_box_latitude_span():
    min_lat, max_lat, _, _ = bounding_box(47.0, -122.0, 0.5)
    assert max_lat - min_lat == pytest.approx(0.009)


@pytest.mark.parametrize("lat", [0.0, 47.6145, -33.86, 64.1])
def test_bounding_box_contains_points_due_east_and_west(lat):
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, 10.0, 0.5)
    # 0.45 km of longitude at this latitude
    offset = 0.45 / (111.19 * math.cos(math.radians(lat)))
    assert haversine_distance_km(lat, 10.0, lat, 10.0 + offset) < 0.5
    assert min_lng < 10.0 - offset
    assert 10.0 + offset < max_lng
    assert min_lat < lat < max_lat


def test_bounding_box_near_pole_stays_bounded():
    _, _, min_lng, max_lng = bounding_box(90.0, 0.0, 0.5)
    assert max_lng - min_lng <= 360.0


def test_are_dates_close_is_inclusive():
    start = utc(2024, 6, 1, 20, 0)
    assert are_dates_close(start, utc(2024, 6, 1, 22, 0), 2)
    assert not are_dates_close(start, utc(2024, 6, 1, 22, 1), 2)


def test_are_dates_close_accepts_naive_values_as_utc():
    naive = utc(2024, 6, 1, 20, 0).replace(tzinfo=None)
    assert are_dates_close(naive, utc(2024, 6, 1, 21, 30), 2)


def test_utc_day_bounds_cover_the_calendar_day():
    start, end = utc_day_bounds(utc(2024, 6, 1, 20, 0))
    assert start == utc(2024, 6, 1, 0, 0)
    assert end.date() == start.date()
    assert end.hour == 23 and end.minute == 59 and end.second == 59
