"""Prioritised identity resolution for incoming venue and event candidates."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta

from loguru import logger
from sqlalchemy.orm import Session

from app.domain import (
    EventCandidate,
    EventMatch,
    EventMatchReason,
    VenueCandidate,
    VenueMatch,
    VenueMatchReason,
)
from app.matching import (
    MatchThresholds,
    are_dates_close,
    bounding_box,
    haversine_distance_km,
    normalize_event_title,
    normalize_venue_name,
    string_similarity,
    utc_day_bounds,
)
from app.models import Event, Venue
from app.repositories import CatalogRepository

VENUE_CONFIDENCE = {
    VenueMatchReason.EXTERNAL_ID: 1.0,
    VenueMatchReason.EXACT_NAME_SAME_CITY: 0.95,
    VenueMatchReason.SIMILAR_NAME_SAME_CITY: 0.90,
    VenueMatchReason.SIMILAR_NAME_NEARBY: 0.88,
}

EVENT_CONFIDENCE = {
    EventMatchReason.SAME_EXTERNAL_ID: 1.0,
    EventMatchReason.SAME_VENUE_SIMILAR_DATE_SIMILAR_TITLE: 0.92,
    EventMatchReason.SIMILAR_TITLE_SAME_DAY_SAME_CITY: 0.75,
}


class VenueMatcher:
    """Find an existing catalog venue for a candidate, strongest signal first.

    Strategies run in order and the first hit wins:

    1. provider id exact match
    2. identical normalized name in the same city
    3. similar normalized name in the same city
    4. similar normalized name within a short radius (needs coordinates)
    """

    def __init__(self, session: Session, thresholds: MatchThresholds | None = None) -> None:
        self._repo = CatalogRepository(session)
        self._thresholds = thresholds or MatchThresholds()

    def find_duplicate_venue(self, candidate: VenueCandidate) -> VenueMatch | None:
        if candidate.external_id:
            venue = self._repo.get_venue_by_place_id(candidate.external_id)
            if venue is not None:
                return self._match(venue, VenueMatchReason.EXTERNAL_ID)

        normalized = normalize_venue_name(candidate.name)

        if candidate.city:
            same_city = self._repo.list_venues_in_city(candidate.city)

            for venue in same_city:
                if normalize_venue_name(venue.name) == normalized:
                    return self._match(venue, VenueMatchReason.EXACT_NAME_SAME_CITY)

            best = self._most_similar(normalized, same_city)
            if best is not None:
                return self._match(best, VenueMatchReason.SIMILAR_NAME_SAME_CITY)

        if candidate.has_coordinates:
            nearby = self._nearby(candidate)
            best = self._most_similar(normalized, nearby)
            if best is not None:
                return self._match(best, VenueMatchReason.SIMILAR_NAME_NEARBY)

        return None

    def _nearby(self, candidate: VenueCandidate) -> list[Venue]:
        lat, lng = candidate.latitude, candidate.longitude
        boxed = self._repo.list_venues_in_box(*bounding_box(lat, lng, self._thresholds.nearby_km))
        return [
            venue
            for venue in boxed
            if haversine_distance_km(lat, lng, venue.latitude, venue.longitude)
            <= self._thresholds.nearby_km
        ]

    def _most_similar(self, normalized: str, venues: Iterable[Venue]) -> Venue | None:
        best = None
        best_score = 0.0
        for venue in venues:
            score = string_similarity(normalized, normalize_venue_name(venue.name))
            if score >= self._thresholds.name_similarity and score > best_score:
                best, best_score = venue, score
        return best

    @staticmethod
    def _match(venue: Venue, reason: VenueMatchReason) -> VenueMatch:
        logger.debug("Venue candidate matched {} via {}", venue.id, reason.value)
        return VenueMatch(venue=venue, confidence=VENUE_CONFIDENCE[reason], reason=reason)


class EventMatcher:
    """Find an existing catalog event for a candidate.

    1. same (external_source, external_id)
    2. same venue, start within a couple of hours, similar title
    3. weakly similar title on the same UTC day in the same city
    """

    def __init__(self, session: Session, thresholds: MatchThresholds | None = None) -> None:
        self._repo = CatalogRepository(session)
        self._thresholds = thresholds or MatchThresholds()

    def find_duplicate_event(self, candidate: EventCandidate) -> EventMatch | None:
        if candidate.external_source and candidate.external_id:
            event = self._repo.get_event_by_external_key(
                candidate.external_source, candidate.external_id
            )
            if event is not None:
                return self._match(event, EventMatchReason.SAME_EXTERNAL_ID)

        normalized = normalize_event_title(candidate.title)
        window = timedelta(hours=self._thresholds.event_window_hours)

        at_venue = self._repo.list_events_at_venue_between(
            candidate.venue_id,
            candidate.start_date - window,
            candidate.start_date + window,
        )
        best = self._most_similar(
            normalized,
            [
                event
                for event in at_venue
                if are_dates_close(event.start_date, candidate.start_date, self._thresholds.event_hours)
            ],
            self._thresholds.title_similarity,
        )
        if best is not None:
            return self._match(best, EventMatchReason.SAME_VENUE_SIMILAR_DATE_SIMILAR_TITLE)

        venue = self._repo.get_venue(candidate.venue_id)
        if venue is None or not venue.city:
            return None

        day_start, day_end = utc_day_bounds(candidate.start_date)
        same_day = self._repo.list_events_in_city_between(venue.city, day_start, day_end)
        best = self._most_similar(normalized, same_day, self._thresholds.weak_title_similarity)
        if best is not None:
            return self._match(best, EventMatchReason.SIMILAR_TITLE_SAME_DAY_SAME_CITY)

        return None

    @staticmethod
    def _most_similar(normalized: str, events: Iterable[Event], threshold: float) -> Event | None:
        best = None
        best_score = 0.0
        for event in events:
            score = string_similarity(normalized, normalize_event_title(event.title))
            if score >= threshold and score > best_score:
                best, best_score = event, score
        return best

    @staticmethod
    def _match(event: Event, reason: EventMatchReason) -> EventMatch:
        logger.debug("Event candidate matched {} via {}", event.id, reason.value)
        return EventMatch(event=event, confidence=EVENT_CONFIDENCE[reason], reason=reason)
