"""Plumbing shared by every ingestion source."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger

from app.repositories import CatalogRepository

if TYPE_CHECKING:
    from pipelines.context import SyncContext


DEFAULT_CATEGORY_SLUG = "concerts"

CATEGORY_SEEDS: tuple[tuple[str, str], ...] = (
    ("concerts", "Concerts"),
    ("comedy", "Comedy"),
    ("theater", "Theater"),
    ("festivals", "Festivals"),
    ("sports", "Sports"),
    ("nightlife", "Nightlife"),
    ("arts", "Arts"),
    ("community", "Community"),
)


@dataclass(slots=True)
class SyncStats:
    events_created: int = 0
    events_updated: int = 0
    events_invalidated: int = 0
    venues_created: int = 0
    venues_updated: int = 0
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, source_label: str, exc: BaseException) -> "SyncStats":
        """Stats for a job that raised instead of returning."""
        return cls(errors=[f"{source_label} sync failed: {exc}"])

    def merge(self, other: "SyncStats") -> None:
        self.events_created += other.events_created
        self.events_updated += other.events_updated
        self.events_invalidated += other.events_invalidated
        self.venues_created += other.venues_created
        self.venues_updated += other.venues_updated
        self.errors.extend(other.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.events_created,
            "updated": self.events_updated,
            "invalidated": self.events_invalidated,
            "venues_created": self.venues_created,
            "errors": list(self.errors),
        }


class SyncCancelled(Exception):
    """Raised inside a source job once the run-level cancel event is set."""


class RateLimiter:
    """Sequential request pacing for a single source job.

    The first ``wait`` returns immediately; every following call pauses for
    ``delay_seconds``. The pause is an ``Event.wait`` so a shared cancel event
    cuts it short.
    """

    def __init__(self, delay_seconds: float, cancel_event: threading.Event | None = None) -> None:
        self.delay_seconds = max(0.0, float(delay_seconds))
        self._cancel_event = cancel_event or threading.Event()
        self._primed = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def wait(self) -> bool:
        """Return False when the run was cancelled instead of waiting."""
        if self._cancel_event.is_set():
            return False
        if not self._primed:
            self._primed = True
            return True
        if self.delay_seconds <= 0:
            return True
        return not self._cancel_event.wait(self.delay_seconds)

    def wait_or_raise(self) -> None:
        if not self.wait():
            raise SyncCancelled("sync cancelled")


class CategoryCache:
    """Category slug to id lookups, built once per run and shared by the sources."""

    def __init__(self, default_slug: str = DEFAULT_CATEGORY_SLUG) -> None:
        self.default_slug = default_slug
        self._ids: dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, repo: CatalogRepository, slug: str | None) -> str | None:
        slug = slug or self.default_slug
        with self._lock:
            cached = self._ids.get(slug)
        if cached is not None:
            return cached

        category = repo.get_category_by_slug(slug)
        if category is None and slug != self.default_slug:
            category = repo.get_category_by_slug(self.default_slug)
        if category is None:
            logger.warning("Category {} not found; categories may not be seeded", slug)
            return None

        with self._lock:
            self._ids[slug] = category.id
        return category.id

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()


@runtime_checkable
class SourceAdapter(Protocol):
    """A provider job the orchestrator can schedule."""

    name: str
    label: str

    def is_configured(self) -> bool:
        ...

    def run(self, context: "SyncContext") -> SyncStats:
        ...
