"""Provider jobs scheduled by the sync orchestrator.

Each source fetches sequentially through its own rate-limited client, resolves
identities with a cheap external-id fast path, and writes one item per
transaction so a bad record only costs that record.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.db import session_scope
from app.domain import NormalizedEvent, NormalizedVenue, ProviderError
from app.matching import MatchThresholds
from app.models import Venue, VenueSource
from app.repositories import CatalogRepository
from app.services.matching_service import VenueMatcher

from .base import RateLimiter, SourceAdapter, SyncCancelled, SyncStats
from .client import GooglePlacesClient, SeatGeekClient, TicketmasterClient
from .normalize import normalize_google_place, normalize_seatgeek_event, normalize_ticketmaster_event

if TYPE_CHECKING:
    from pipelines.context import SyncContext

FETCH_ERRORS = (httpx.HTTPError, ProviderError, ValueError)


def resolve_venue(
    session: Session,
    venue: NormalizedVenue,
    thresholds: MatchThresholds,
) -> tuple[Venue, bool]:
    """Return the catalog venue for a provider venue and whether it was created."""
    repo = CatalogRepository(session)
    match = VenueMatcher(session, thresholds).find_duplicate_venue(venue.to_candidate())
    if match is not None:
        repo.fill_venue_blanks(match.venue, venue)
        return match.venue, False
    return repo.create_venue(venue), True


def upsert_provider_event(
    session: Session,
    normalized: NormalizedEvent,
    context: "SyncContext",
) -> tuple[bool, bool]:
    """Write one provider event. Returns (event_created, venue_created)."""
    repo = CatalogRepository(session)
    venue, venue_created = resolve_venue(session, normalized.venue, context.thresholds)
    category_id = context.category_cache.resolve(repo, normalized.category_slug)

    existing = repo.get_event_by_external_key(normalized.external_source, normalized.external_id)
    if existing is not None:
        repo.update_event(existing, normalized)
        existing.venue_id = venue.id
        if category_id:
            existing.category_id = category_id
        return False, venue_created

    repo.create_event(normalized, venue_id=venue.id, category_id=category_id)
    return True, venue_created


class TicketmasterSource:
    name = VenueSource.TICKETMASTER.value
    label = "Ticketmaster"

    def __init__(
        self,
        settings: Settings,
        *,
        client_factory: Callable[[RateLimiter], TicketmasterClient] | None = None,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory or (
            lambda limiter: TicketmasterClient(
                settings.ticketmaster_api_key,
                base_url=str(settings.ticketmaster_base_url),
                timeout=settings.http_timeout_seconds,
                limiter=limiter,
            )
        )

    def is_configured(self) -> bool:
        return bool(self.settings.ticketmaster_api_key)

    def run(self, context: "SyncContext") -> SyncStats:
        stats = SyncStats()
        start = context.now
        end = start + timedelta(days=self.settings.sync_days_ahead)
        limiter = RateLimiter(self.settings.ticketmaster_request_delay_seconds, context.cancel_event)

        with self._client_factory(limiter) as client:
            for entry in self.settings.sync_cities:
                city = entry.get("city", "")
                state_code = entry.get("state_code") or entry.get("stateCode")
                logger.info("[Ticketmaster] Syncing events for {}, {}", city, state_code)
                try:
                    raw_events = list(
                        client.iter_events(city=city, state_code=state_code, start=start, end=end)
                    )
                except FETCH_ERRORS as exc:
                    message = f"Failed to fetch events for {city}, {state_code}: {exc}"
                    logger.error("[Ticketmaster] {}", message)
                    stats.errors.append(message)
                    continue

                logger.info("[Ticketmaster] Fetched {} events for {}", len(raw_events), city)
                for raw_event in raw_events:
                    self._process(raw_event, context, stats)

        logger.info(
            "[Ticketmaster] Sync complete. created={} updated={} venues={} errors={}",
            stats.events_created,
            stats.events_updated,
            stats.venues_created,
            len(stats.errors),
        )
        return stats

    def _process(self, raw_event: dict[str, Any], context: "SyncContext", stats: SyncStats) -> None:
        try:
            normalized = normalize_ticketmaster_event(raw_event)
            with session_scope(context.session_factory) as session:
                created, venue_created = upsert_provider_event(session, normalized, context)
        except Exception as exc:
            message = f'Error processing event "{raw_event.get("name")}" ({raw_event.get("id")}): {exc}'
            logger.warning("[Ticketmaster] {}", message)
            stats.errors.append(message)
            return

        if created:
            stats.events_created += 1
        else:
            stats.events_updated += 1
        if venue_created:
            stats.venues_created += 1


class SeatGeekSource:
    name = VenueSource.SEATGEEK.value
    label = "SeatGeek"

    def __init__(
        self,
        settings: Settings,
        *,
        client_factory: Callable[[RateLimiter], SeatGeekClient] | None = None,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory or (
            lambda limiter: SeatGeekClient(
                settings.seatgeek_client_id,
                base_url=str(settings.seatgeek_base_url),
                timeout=settings.http_timeout_seconds,
                limiter=limiter,
            )
        )

    def is_configured(self) -> bool:
        return bool(self.settings.seatgeek_client_id)

    def run(self, context: "SyncContext") -> SyncStats:
        stats = SyncStats()
        start = context.now
        end = start + timedelta(days=self.settings.sync_days_ahead)
        limiter = RateLimiter(self.settings.seatgeek_request_delay_seconds, context.cancel_event)
        processed: set[str] = set()

        with self._client_factory(limiter) as client:
            for location in self.settings.sync_locations:
                lat, lon = location.get("lat"), location.get("lon")
                range_ = str(location.get("range") or "25mi")
                try:
                    raw_events = list(
                        client.iter_events(lat=lat, lon=lon, range_=range_, start=start, end=end)
                    )
                except FETCH_ERRORS as exc:
                    message = f"Failed to fetch SeatGeek events for location ({lat}, {lon}): {exc}"
                    logger.error("[SeatGeek] {}", message)
                    stats.errors.append(message)
                    continue

                for raw_event in raw_events:
                    external_id = str(raw_event.get("id"))
                    if external_id in processed:
                        continue
                    processed.add(external_id)

                    if not raw_event.get("url"):
                        stats.errors.append(
                            f'SeatGeek event {external_id} ("{raw_event.get("title")}") has no URL, skipping'
                        )
                        continue
                    self._process(client, raw_event, context, stats)

        logger.info(
            "[SeatGeek] Sync complete. created={} updated={} invalidated={} venues={} errors={}",
            stats.events_created,
            stats.events_updated,
            stats.events_invalidated,
            stats.venues_created,
            len(stats.errors),
        )
        return stats

    def _process(
        self,
        client: SeatGeekClient,
        raw_event: dict[str, Any],
        context: "SyncContext",
        stats: SyncStats,
    ) -> None:
        outcome = "created"
        venue_created = False
        try:
            normalized = normalize_seatgeek_event(raw_event)
            gone = False
            if self._is_known(context, normalized):
                gone = client.event_exists(normalized.external_id) is False

            with session_scope(context.session_factory) as session:
                repo = CatalogRepository(session)
                existing = repo.get_event_by_external_key(
                    normalized.external_source, normalized.external_id
                )
                if existing is not None and gone:
                    repo.mark_event_cancelled(existing)
                    outcome = "invalidated"
                else:
                    created, venue_created = upsert_provider_event(session, normalized, context)
                    outcome = "created" if created else "updated"
        except SyncCancelled:
            raise
        except Exception as exc:
            message = f'Failed to sync SeatGeek event {raw_event.get("id")} ("{raw_event.get("title")}"): {exc}'
            logger.warning("[SeatGeek] {}", message)
            stats.errors.append(message)
            return

        if outcome == "created":
            stats.events_created += 1
        elif outcome == "updated":
            stats.events_updated += 1
        else:
            stats.events_invalidated += 1
        if venue_created:
            stats.venues_created += 1

    @staticmethod
    def _is_known(context: "SyncContext", normalized: NormalizedEvent) -> bool:
        session = context.session_factory()
        try:
            existing = CatalogRepository(session).get_event_by_external_key(
                normalized.external_source, normalized.external_id
            )
            return existing is not None
        finally:
            session.close()


class GooglePlacesSource:
    """Venue discovery: text searches per metro and query, upserted by place id."""

    name = VenueSource.GOOGLE_PLACES.value
    label = "Google Places"

    def __init__(
        self,
        settings: Settings,
        *,
        client_factory: Callable[[RateLimiter], GooglePlacesClient] | None = None,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory or (
            lambda limiter: GooglePlacesClient(
                settings.google_places_api_key,
                search_url=str(settings.google_places_search_url),
                timeout=settings.http_timeout_seconds,
                limiter=limiter,
            )
        )

    def is_configured(self) -> bool:
        return bool(self.settings.google_places_api_key)

    def run(self, context: "SyncContext") -> SyncStats:
        stats = SyncStats()
        limiter = RateLimiter(
            self.settings.google_places_request_delay_seconds, context.cancel_event
        )
        processed: set[str] = set()
        queries = list(self.settings.venue_search_queries)

        with self._client_factory(limiter) as client:
            for metro in self.settings.discovery_metros:
                metro_name = metro.get("name", "")
                for query in queries:
                    try:
                        places = client.search_text(
                            query,
                            lat=metro["lat"],
                            lng=metro["lng"],
                            radius_meters=metro.get("radius_meters", 15000),
                        )
                    except FETCH_ERRORS as exc:
                        message = f'Search failed for "{query}" in {metro_name}: {exc}'
                        logger.error("[GooglePlaces] {}", message)
                        stats.errors.append(message)
                        continue

                    logger.info(
                        "[GooglePlaces] Found {} results for {!r} in {}",
                        len(places),
                        query,
                        metro_name,
                    )
                    for raw_place in places:
                        venue = normalize_google_place(raw_place)
                        if venue is None or venue.google_place_id in processed:
                            continue
                        processed.add(venue.google_place_id)
                        self._process(venue, context, stats)

        logger.info(
            "[GooglePlaces] Discovery complete. new={} updated={} errors={}",
            stats.venues_created,
            stats.venues_updated,
            len(stats.errors),
        )
        return stats

    def _process(self, venue: NormalizedVenue, context: "SyncContext", stats: SyncStats) -> None:
        try:
            with session_scope(context.session_factory) as session:
                created = self._upsert(session, venue, context.thresholds)
        except Exception as exc:
            message = f'Upsert failed for "{venue.name}" ({venue.google_place_id}): {exc}'
            logger.warning("[GooglePlaces] {}", message)
            stats.errors.append(message)
            return

        if created:
            stats.venues_created += 1
        else:
            stats.venues_updated += 1

    @staticmethod
    def _upsert(session: Session, venue: NormalizedVenue, thresholds: MatchThresholds) -> bool:
        repo = CatalogRepository(session)
        existing = repo.get_venue_by_place_id(venue.google_place_id)
        if existing is not None:
            repo.update_venue_from_provider(existing, venue)
            return False

        _, created = resolve_venue(session, venue, thresholds)
        return created


def default_event_sources(settings: Settings) -> list[SourceAdapter]:
    return [TicketmasterSource(settings), SeatGeekSource(settings)]
