"""Facade over matching, review and audit operations used by the API."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.domain import DuplicatePair, EventCandidate, EventMatch, VenueCandidate, VenueMatch
from app.matching import MatchThresholds
from app.models import SyncLog, Venue
from app.repositories import SyncLogRepository

from .dedup_service import DuplicateScanner
from .matching_service import EventMatcher, VenueMatcher
from .merge_service import merge_venues


class CatalogService:
    def __init__(self, session: Session, thresholds: MatchThresholds | None = None) -> None:
        self._session = session
        self._thresholds = thresholds or MatchThresholds()
        self._sync_logs = SyncLogRepository(session)

    def match_venue(self, candidate: VenueCandidate) -> VenueMatch | None:
        return VenueMatcher(self._session, self._thresholds).find_duplicate_venue(candidate)

    def match_event(self, candidate: EventCandidate) -> EventMatch | None:
        return EventMatcher(self._session, self._thresholds).find_duplicate_event(candidate)

    def duplicate_events(self) -> list[DuplicatePair]:
        return DuplicateScanner(self._session, self._thresholds).deduplicate_events()

    def merge_venues(self, primary_id: str, duplicate_id: str) -> Venue:
        """Merge and commit in one transaction."""
        try:
            venue = merge_venues(self._session, primary_id, duplicate_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        self._session.refresh(venue)
        return venue

    def sync_logs(self, *, source: str | None = None, limit: int = 50) -> Sequence[SyncLog]:
        return self._sync_logs.list_recent(source=source, limit=limit)

    def latest_sync_logs(self) -> Sequence[SyncLog]:
        return self._sync_logs.latest_per_source()
