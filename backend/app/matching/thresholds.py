from __future__ import annotations

from dataclasses import dataclass

from app.core.config import Settings


@dataclass(slots=True, frozen=True)
class MatchThresholds:
    name_similarity: float = 0.85
    title_similarity: float = 0.85
    weak_title_similarity: float = 0.80
    nearby_km: float = 0.5
    event_hours: float = 2.0
    event_window_hours: float = 3.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchThresholds":
        return cls(
            name_similarity=settings.match_name_similarity,
            title_similarity=settings.match_title_similarity,
            weak_title_similarity=settings.match_weak_title_similarity,
            nearby_km=settings.match_nearby_km,
            event_hours=settings.match_event_hours,
            event_window_hours=settings.match_event_window_hours,
        )
