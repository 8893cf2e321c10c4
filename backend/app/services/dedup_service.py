"""Catalog-wide duplicate event scan feeding the human review queue."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from itertools import combinations

from loguru import logger
from sqlalchemy.orm import Session

from app.domain import DuplicatePair, EventMatchReason
from app.matching import MatchThresholds, are_dates_close, as_utc, normalize_event_title, string_similarity
from app.models import Event
from app.repositories import CatalogRepository

from .matching_service import EVENT_CONFIDENCE


class DuplicateScanner:
    """Group events by (venue, UTC day) and compare every pair within a group.

    The scan only reads; nothing in the catalog is changed.
    """

    def __init__(self, session: Session, thresholds: MatchThresholds | None = None) -> None:
        self._repo = CatalogRepository(session)
        self._thresholds = thresholds or MatchThresholds()

    def deduplicate_events(self) -> list[DuplicatePair]:
        events = self._repo.list_events_with_venues()
        groups: dict[str, list[Event]] = defaultdict(list)
        for event in events:
            day = as_utc(event.start_date).date().isoformat()
            groups[f"{event.venue_id}::{day}"].append(event)

        pairs: list[DuplicatePair] = []
        for group in groups.values():
            if len(group) < 2:
                continue
            titles = {event.id: normalize_event_title(event.title) for event in group}
            for event_a, event_b in combinations(group, 2):
                reason = self._classify(event_a, event_b, titles)
                if reason is not None:
                    pairs.append(
                        DuplicatePair(
                            event_a=event_a,
                            event_b=event_b,
                            confidence=EVENT_CONFIDENCE[reason],
                            reason=reason,
                        )
                    )

        pairs.sort(key=lambda pair: pair.confidence, reverse=True)
        logger.info(
            "Duplicate scan compared {} events in {} groups, flagged {} pairs",
            len(events),
            len(groups),
            len(pairs),
        )
        return pairs

    def _classify(
        self,
        event_a: Event,
        event_b: Event,
        titles: dict[str, str],
    ) -> EventMatchReason | None:
        if (
            event_a.external_source
            and event_a.external_id
            and event_a.external_source == event_b.external_source
            and event_a.external_id == event_b.external_id
        ):
            return EventMatchReason.SAME_EXTERNAL_ID

        similarity = string_similarity(titles[event_a.id], titles[event_b.id])
        if similarity >= self._thresholds.title_similarity and are_dates_close(
            event_a.start_date, event_b.start_date, self._thresholds.event_hours
        ):
            return EventMatchReason.SAME_VENUE_SIMILAR_DATE_SIMILAR_TITLE
        if similarity >= self._thresholds.weak_title_similarity:
            return EventMatchReason.SIMILAR_TITLE_SAME_DAY_SAME_CITY
        return None


def summarize_pairs(pairs: Sequence[DuplicatePair]) -> dict[str, int]:
    """Count flagged pairs per reason code."""
    counts: dict[str, int] = defaultdict(int)
    for pair in pairs:
        counts[pair.reason.value] += 1
    return dict(counts)
