"""Venue, event and category data access helpers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from app.domain import NormalizedEvent, NormalizedVenue
from app.matching import as_utc
from app.models import Category, Event, EventStatus, Venue, utcnow


class CatalogRepository:
    """Encapsulate venue and event persistence concerns."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Mutations

    def create_venue(self, venue: NormalizedVenue) -> Venue:
        record = Venue(
            name=venue.name,
            address=venue.address,
            city=venue.city,
            state=venue.state,
            zip_code=venue.zip_code,
            country=venue.country or "US",
            latitude=venue.latitude,
            longitude=venue.longitude,
            website=venue.website,
            image_url=venue.image_url,
            google_place_id=venue.google_place_id,
            google_rating=venue.google_rating,
            source=venue.source,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def update_venue_from_provider(self, record: Venue, venue: NormalizedVenue) -> Venue:
        """Overwrite location details with the provider's, keeping existing values it lacks."""
        record.name = venue.name or record.name
        record.address = venue.address or record.address
        record.city = venue.city or record.city
        record.state = venue.state or record.state
        record.zip_code = venue.zip_code or record.zip_code
        record.country = venue.country or record.country
        if venue.latitude is not None and venue.longitude is not None:
            record.latitude = venue.latitude
            record.longitude = venue.longitude
        record.website = venue.website or record.website
        record.image_url = venue.image_url or record.image_url
        if venue.google_rating is not None:
            record.google_rating = venue.google_rating
        if venue.google_place_id and not record.google_place_id:
            record.google_place_id = venue.google_place_id
        self._session.flush()
        return record

    def fill_venue_blanks(self, record: Venue, venue: NormalizedVenue) -> Venue:
        """Copy provider values only into fields the catalog venue leaves empty."""
        for field_name in (
            "address",
            "city",
            "state",
            "zip_code",
            "latitude",
            "longitude",
            "website",
            "image_url",
            "google_rating",
        ):
            if getattr(record, field_name) in (None, "") and getattr(venue, field_name) not in (None, ""):
                setattr(record, field_name, getattr(venue, field_name))
        if venue.google_place_id and not record.google_place_id:
            record.google_place_id = venue.google_place_id
        self._session.flush()
        return record

    def delete_venue(self, record: Venue) -> None:
        self._session.delete(record)
        self._session.flush()

    def reassign_events(self, from_venue_id: str, to_venue_id: str) -> int:
        result = self._session.execute(
            update(Event)
            .where(Event.venue_id == from_venue_id)
            .values(venue_id=to_venue_id, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def create_event(
        self,
        event: NormalizedEvent,
        *,
        venue_id: str,
        category_id: str | None,
    ) -> Event:
        record = Event(
            title=event.title,
            description=event.description,
            start_date=as_utc(event.start_date),
            end_date=as_utc(event.end_date) if event.end_date else None,
            venue_id=venue_id,
            category_id=category_id,
            image_url=event.image_url,
            min_price=event.min_price,
            max_price=event.max_price,
            is_free=event.is_free,
            tags=list(event.tags) or None,
            status=event.status,
            external_source=event.external_source,
            external_id=event.external_id,
            external_url=event.external_url,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def update_event(self, record: Event, event: NormalizedEvent) -> Event:
        record.title = event.title
        record.start_date = as_utc(event.start_date)
        record.end_date = as_utc(event.end_date) if event.end_date else None
        record.status = event.status
        record.min_price = event.min_price
        record.max_price = event.max_price
        record.is_free = event.is_free
        if event.description:
            record.description = event.description
        if event.image_url:
            record.image_url = event.image_url
        if event.external_url:
            record.external_url = event.external_url
        self._session.flush()
        return record

    def mark_event_cancelled(self, record: Event) -> Event:
        record.status = EventStatus.CANCELLED.value
        self._session.flush()
        return record

    def add_categories(self, categories: Iterable[tuple[str, str]]) -> None:
        for slug, name in categories:
            if self.get_category_by_slug(slug) is None:
                self._session.add(Category(slug=slug, name=name))
        self._session.flush()

    # ------------------------------------------------------------------
    # Queries

    def get_venue(self, venue_id: str) -> Venue | None:
        return self._session.get(Venue, venue_id)

    def get_venue_by_place_id(self, place_id: str) -> Venue | None:
        stmt = select(Venue).where(Venue.google_place_id == place_id)
        return self._session.execute(stmt).scalars().first()

    def list_venues_in_city(self, city: str) -> Sequence[Venue]:
        stmt = select(Venue).where(func.lower(Venue.city) == city.strip().lower())
        return self._session.execute(stmt).scalars().all()

    def list_venues_in_box(
        self,
        min_lat: float,
        max_lat: float,
        min_lng: float,
        max_lng: float,
    ) -> Sequence[Venue]:
        stmt = select(Venue).where(
            Venue.latitude.is_not(None),
            Venue.longitude.is_not(None),
            Venue.latitude.between(min_lat, max_lat),
            Venue.longitude.between(min_lng, max_lng),
        )
        return self._session.execute(stmt).scalars().all()

    def list_venues(self, *, limit: int = 100, offset: int = 0) -> Sequence[Venue]:
        stmt = select(Venue).order_by(Venue.name).limit(limit).offset(offset)
        return self._session.execute(stmt).scalars().all()

    def get_event(self, event_id: str) -> Event | None:
        return self._session.get(Event, event_id)

    def get_event_by_external_key(self, source: str, external_id: str) -> Event | None:
        stmt = select(Event).where(
            Event.external_source == source,
            Event.external_id == external_id,
        )
        return self._session.execute(stmt).scalars().first()

    def list_events_at_venue_between(
        self,
        venue_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[Event]:
        stmt = select(Event).where(
            Event.venue_id == venue_id,
            Event.start_date >= as_utc(start),
            Event.start_date <= as_utc(end),
        )
        return self._session.execute(stmt).scalars().all()

    def list_events_in_city_between(
        self,
        city: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[Event]:
        stmt = (
            select(Event)
            .join(Venue, Event.venue_id == Venue.id)
            .where(
                func.lower(Venue.city) == city.strip().lower(),
                Event.start_date >= as_utc(start),
                Event.start_date <= as_utc(end),
            )
        )
        return self._session.execute(stmt).scalars().all()

    def list_events_with_venues(self) -> Sequence[Event]:
        stmt = (
            select(Event)
            .options(selectinload(Event.venue))
            .order_by(Event.venue_id, Event.start_date)
        )
        return self._session.execute(stmt).scalars().all()

    def list_external_events_after(self, source: str, after: datetime) -> Sequence[Event]:
        stmt = select(Event).where(
            Event.external_source == source,
            Event.start_date >= as_utc(after),
            Event.status != EventStatus.CANCELLED.value,
        )
        return self._session.execute(stmt).scalars().all()

    def count_events_for_venue(self, venue_id: str) -> int:
        stmt = select(func.count(Event.id)).where(Event.venue_id == venue_id)
        return self._session.execute(stmt).scalar_one()

    def get_category_by_slug(self, slug: str) -> Category | None:
        stmt = select(Category).where(Category.slug == slug)
        return self._session.execute(stmt).scalars().first()

    def list_categories(self) -> Sequence[Category]:
        return self._session.execute(select(Category)).scalars().all()
