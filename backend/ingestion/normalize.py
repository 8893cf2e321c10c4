from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from app.domain import NormalizedEvent, NormalizedVenue
from app.models import EventStatus, VenueSource

TICKETMASTER_SEGMENT_TO_SLUG = {
    "Music": "concerts",
    "Sports": "sports",
    "Arts & Theatre": "theater",
    "Comedy": "comedy",
    "Film": "arts",
    "Miscellaneous": "community",
    "Undefined": "community",
}

SEATGEEK_TYPE_TO_SLUG = {
    "concert": "concerts",
    "concerts": "concerts",
    "sports": "sports",
    "comedy": "comedy",
    "theater": "theater",
    "theatre": "theater",
    "broadway_tickets_national": "theater",
    "dance_performance_tour": "arts",
    "classical": "arts",
    "classical_orchestral_instrumental": "arts",
    "family": "community",
    "festivals": "festivals",
    "festival": "festivals",
    "literary": "arts",
    "film": "arts",
    "nightlife": "nightlife",
    "club": "nightlife",
}

SEATGEEK_IMAGE_KEYS = ("sg_image_w1920", "huge", "banner", "fb_600_315", "criteo_400_300")

_STATE_ZIP = re.compile(r"^([A-Za-z][A-Za-z .]+?)\s+(\d{5}(?:-\d{4})?)$")


@dataclass(slots=True)
class ParsedAddress:
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _dollars_to_cents(value: Any) -> int | None:
    amount = _parse_float(value)
    if amount is None:
        return None
    return int(round(amount * 100))


def _slug_tag(value: str, separator: str = "_") -> str:
    return re.sub(r"\s+", "-", value.strip().lower().replace(separator, "-"))


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# ----------------------------------------------------------------------
# Ticketmaster


def map_ticketmaster_status(code: str | None) -> str:
    if code in {"cancelled", "postponed"}:
        return EventStatus.CANCELLED.value
    if code == "offsale":
        return EventStatus.SOLDOUT.value
    return EventStatus.PUBLISHED.value


def map_ticketmaster_category(classifications: list[dict[str, Any]] | None) -> str:
    classifications = classifications or []
    primary = next((item for item in classifications if item.get("primary")), None)
    if primary is None and classifications:
        primary = classifications[0]
    segment = ((primary or {}).get("segment") or {}).get("name") or "Music"
    return TICKETMASTER_SEGMENT_TO_SLUG.get(segment, "concerts")


def select_ticketmaster_image(images: list[dict[str, Any]] | None) -> str | None:
    """Prefer the widest 16:9 image at least 640px wide."""
    if not images:
        return None
    pool = [image for image in images if not image.get("fallback")] or list(images)

    def width(image: dict[str, Any]) -> int:
        return int(image.get("width") or 0)

    wide = sorted(
        (image for image in pool if image.get("ratio") == "16_9" and width(image) >= 640),
        key=width,
        reverse=True,
    )
    if wide:
        return wide[0].get("url")
    large = sorted((image for image in pool if width(image) >= 640), key=width, reverse=True)
    if large:
        return large[0].get("url")
    return pool[0].get("url")


def _ticketmaster_tags(classifications: list[dict[str, Any]] | None) -> list[str]:
    tags: list[str] = []
    for item in classifications or []:
        for key in ("genre", "subGenre", "type", "subType"):
            name = (item.get(key) or {}).get("name")
            if name and name != "Undefined":
                tags.append(name)
    return _dedupe(tags)


def _ticketmaster_start(dates: dict[str, Any]) -> datetime | None:
    start = dates.get("start") or {}
    parsed = _parse_datetime(start.get("dateTime"))
    if parsed is not None:
        return parsed
    local_date = start.get("localDate")
    if not local_date:
        return None
    local_time = start.get("localTime")
    return _parse_datetime(f"{local_date}T{local_time}" if local_time else local_date)


def normalize_ticketmaster_venue(raw_venue: dict[str, Any]) -> NormalizedVenue:
    address_lines = raw_venue.get("address") or {}
    address = ", ".join(
        line for line in (address_lines.get("line1"), address_lines.get("line2")) if line
    )
    location = raw_venue.get("location") or {}
    return NormalizedVenue(
        name=str(raw_venue.get("name") or "").strip(),
        source=VenueSource.TICKETMASTER.value,
        address=address or None,
        city=(raw_venue.get("city") or {}).get("name"),
        state=(raw_venue.get("state") or {}).get("stateCode"),
        zip_code=raw_venue.get("postalCode"),
        country=(raw_venue.get("country") or {}).get("countryCode") or "US",
        latitude=_parse_float(location.get("latitude")),
        longitude=_parse_float(location.get("longitude")),
        website=raw_venue.get("url"),
    )


def normalize_ticketmaster_event(raw_event: dict[str, Any]) -> NormalizedEvent:
    """Convert a Discovery API event into a domain event.

    Raises ``ValueError`` when the payload has no venue or no usable start date.
    """
    event_id = str(raw_event.get("id") or "")
    title = str(raw_event.get("name") or "").strip()
    venues = (raw_event.get("_embedded") or {}).get("venues") or []
    if not venues:
        raise ValueError(f'Event "{title}" ({event_id}) has no venue')

    dates = raw_event.get("dates") or {}
    start_date = _ticketmaster_start(dates)
    if start_date is None:
        raise ValueError(f'Event "{title}" ({event_id}) has no valid start date')
    end_date = _parse_datetime((dates.get("end") or {}).get("dateTime"))

    classifications = raw_event.get("classifications") or []
    min_price: int | None = None
    max_price: int | None = None
    is_free = False
    price_ranges = raw_event.get("priceRanges") or []
    if price_ranges:
        mins = [item["min"] for item in price_ranges if item.get("min") is not None]
        maxs = [item["max"] for item in price_ranges if item.get("max") is not None]
        if mins:
            min_price = _dollars_to_cents(min(mins))
        if maxs:
            max_price = _dollars_to_cents(max(maxs))
        is_free = min_price == 0 and max_price in (0, None)
    else:
        is_free = any(
            ((item.get("type") or {}).get("name") or "").lower() == "free"
            or ((item.get("subType") or {}).get("name") or "").lower() == "free"
            for item in classifications
        )

    return NormalizedEvent(
        external_source=VenueSource.TICKETMASTER.value,
        external_id=event_id,
        title=title,
        start_date=start_date,
        end_date=end_date,
        venue=normalize_ticketmaster_venue(venues[0]),
        category_slug=map_ticketmaster_category(classifications),
        status=map_ticketmaster_status((dates.get("status") or {}).get("code")),
        description=raw_event.get("info") or raw_event.get("description"),
        image_url=select_ticketmaster_image(raw_event.get("images")),
        external_url=raw_event.get("url"),
        min_price=min_price,
        max_price=max_price,
        is_free=is_free,
        tags=_ticketmaster_tags(classifications),
        raw_data=raw_event,
    )


# ----------------------------------------------------------------------
# SeatGeek


def map_seatgeek_category(event_type: str | None) -> str:
    return SEATGEEK_TYPE_TO_SLUG.get((event_type or "").strip().lower(), "concerts")


def select_seatgeek_image(performers: list[dict[str, Any]] | None) -> str | None:
    if not performers:
        return None
    performer = performers[0]
    images = performer.get("images") or {}
    for key in SEATGEEK_IMAGE_KEYS:
        if images.get(key):
            return images[key]
    return performer.get("image")


def _seatgeek_prices(stats: dict[str, Any]) -> tuple[int | None, int | None, bool]:
    lowest = _parse_float(stats.get("lowest_price"))
    highest = _parse_float(stats.get("highest_price"))
    has_low = lowest is not None and lowest > 0
    has_high = highest is not None and highest > 0
    if not has_low and not has_high:
        return None, None, lowest == 0 and highest == 0
    return (
        _dollars_to_cents(lowest) if has_low else None,
        _dollars_to_cents(highest) if has_high else None,
        False,
    )


def _seatgeek_tags(raw_event: dict[str, Any]) -> list[str]:
    tags: list[str] = []
    if raw_event.get("type"):
        tags.append(_slug_tag(raw_event["type"]))
    for taxonomy in raw_event.get("taxonomies") or []:
        if taxonomy.get("name"):
            tags.append(_slug_tag(taxonomy["name"]))
    for performer in raw_event.get("performers") or []:
        if performer.get("type"):
            tags.append(_slug_tag(performer["type"]))
    return _dedupe(tags)


def normalize_seatgeek_venue(raw_venue: dict[str, Any]) -> NormalizedVenue:
    location = raw_venue.get("location") or {}
    return NormalizedVenue(
        name=str(raw_venue.get("name_v2") or raw_venue.get("name") or "").strip(),
        source=VenueSource.SEATGEEK.value,
        address=raw_venue.get("address"),
        city=raw_venue.get("city"),
        state=raw_venue.get("state"),
        zip_code=raw_venue.get("postal_code"),
        country=raw_venue.get("country") or "US",
        latitude=_parse_float(location.get("lat")),
        longitude=_parse_float(location.get("lon")),
        website=raw_venue.get("url"),
    )


def normalize_seatgeek_event(raw_event: dict[str, Any]) -> NormalizedEvent:
    event_id = str(raw_event.get("id") or "")
    title = str(raw_event.get("title") or "").strip()
    start_date = _parse_datetime(raw_event.get("datetime_utc"))
    if start_date is None:
        raise ValueError(f'SeatGeek event {event_id} ("{title}") has no valid start date')
    if not raw_event.get("venue"):
        raise ValueError(f'SeatGeek event {event_id} ("{title}") has no venue')

    min_price, max_price, is_free = _seatgeek_prices(raw_event.get("stats") or {})
    return NormalizedEvent(
        external_source=VenueSource.SEATGEEK.value,
        external_id=event_id,
        title=title,
        start_date=start_date,
        end_date=_parse_datetime(raw_event.get("enddatetime_utc")),
        venue=normalize_seatgeek_venue(raw_event["venue"]),
        category_slug=map_seatgeek_category(raw_event.get("type")),
        status=EventStatus.PUBLISHED.value,
        description=raw_event.get("description"),
        image_url=select_seatgeek_image(raw_event.get("performers")),
        external_url=raw_event.get("url"),
        min_price=min_price,
        max_price=max_price,
        is_free=is_free,
        tags=_seatgeek_tags(raw_event),
        raw_data=raw_event,
    )


# ----------------------------------------------------------------------
# Google Places


def parse_google_address(formatted_address: str | None) -> ParsedAddress:
    """Split ``"street, city, ST 12345, country"`` into its components."""
    result = ParsedAddress()
    if not formatted_address:
        return result

    parts = [part.strip() for part in formatted_address.split(",")]
    result.country = parts[-1] or None

    if len(parts) == 2:
        result.city = parts[0] or None
        return result

    if len(parts) >= 3:
        state_zip = parts[-2]
        match = _STATE_ZIP.match(state_zip)
        if match:
            result.state = match.group(1).strip()
            result.zip_code = match.group(2)
        else:
            result.state = state_zip or None
        result.city = parts[-3] or None

    if len(parts) >= 4:
        result.address = ", ".join(parts[:-3]).strip() or None

    return result


def normalize_google_place(raw_place: dict[str, Any]) -> NormalizedVenue | None:
    """Return None for places missing an id or a display name."""
    place_id = raw_place.get("id")
    name = (raw_place.get("displayName") or {}).get("text")
    if not place_id or not name:
        return None

    parsed = parse_google_address(raw_place.get("formattedAddress"))
    location = raw_place.get("location") or {}
    photos = [photo for photo in raw_place.get("photos") or [] if photo.get("name")]
    return NormalizedVenue(
        name=name.strip(),
        source=VenueSource.GOOGLE_PLACES.value,
        address=parsed.address,
        city=parsed.city,
        state=parsed.state,
        zip_code=parsed.zip_code,
        country=parsed.country or "US",
        latitude=_parse_float(location.get("latitude")) or None,
        longitude=_parse_float(location.get("longitude")) or None,
        website=raw_place.get("websiteUri"),
        image_url=photos[0]["name"] if photos else None,
        google_place_id=str(place_id),
        google_rating=_parse_float(raw_place.get("rating")),
    )
