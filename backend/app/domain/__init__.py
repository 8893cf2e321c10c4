"""Domain models representing candidates, matches, and normalized provider data."""

from .errors import CatalogError, ProviderError, SourceNotConfiguredError, VenueNotFoundError
from .models import (
    DuplicatePair,
    EventCandidate,
    EventMatch,
    EventMatchReason,
    NormalizedEvent,
    NormalizedVenue,
    VenueCandidate,
    VenueMatch,
    VenueMatchReason,
)

__all__ = [
    "CatalogError",
    "DuplicatePair",
    "EventCandidate",
    "EventMatch",
    "EventMatchReason",
    "NormalizedEvent",
    "NormalizedVenue",
    "ProviderError",
    "SourceNotConfiguredError",
    "VenueCandidate",
    "VenueMatch",
    "VenueMatchReason",
    "VenueNotFoundError",
]
