from __future__ import annotations

import argparse
import json
import signal
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence
from uuid import uuid4

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.db import SessionLocal, init_db, session_scope
from app.domain import SourceNotConfiguredError
from app.matching import MatchThresholds
from app.models import SyncStatus
from app.repositories import CatalogRepository, SyncLogRepository
from ingestion.adapters import GooglePlacesSource, default_event_sources
from ingestion.base import CATEGORY_SEEDS, CategoryCache, SourceAdapter, SyncStats

from .context import SyncContext


@dataclass(slots=True)
class SourceOutcome:
    source: str
    stats: SyncStats
    status: SyncStatus
    started_at: datetime
    completed_at: datetime
    duration_ms: int


@dataclass(slots=True)
class EventSyncResult:
    run_id: str
    per_source: dict[str, SyncStats] = field(default_factory=dict)
    statuses: dict[str, SyncStatus] = field(default_factory=dict)
    totals: SyncStats = field(default_factory=SyncStats)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "per_source": {name: stats.to_dict() for name, stats in self.per_source.items()},
            "statuses": {name: status.value for name, status in self.statuses.items()},
            "totals": self.totals.to_dict(),
            "duration_ms": self.duration_ms,
        }


@dataclass(slots=True)
class VenueDiscoveryResult:
    run_id: str
    venues_discovered: int = 0
    venues_updated: int = 0
    venues_new: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "venues_discovered": self.venues_discovered,
            "venues_updated": self.venues_updated,
            "venues_new": self.venues_new,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _run_source(source: SourceAdapter, context: SyncContext) -> SourceOutcome:
    """Run one source job; anything it raises becomes an error string."""
    started_at = datetime.now(timezone.utc)
    started = time.perf_counter()
    try:
        stats = source.run(context)
        status = SyncStatus.PARTIAL if stats.errors else SyncStatus.SUCCESS
    except Exception as exc:
        logger.exception("[EventSync] {} sync failed", source.label)
        stats = SyncStats.failed(source.label, exc)
        status = SyncStatus.FAILED
    return SourceOutcome(
        source=source.name,
        stats=stats,
        status=status,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
        duration_ms=_elapsed_ms(started),
    )


def _dispatch(
    sources: Sequence[SourceAdapter],
    context: SyncContext,
    max_workers: int,
) -> list[SourceOutcome]:
    if not sources:
        return []
    workers = max(1, min(max_workers, len(sources)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sync-source") as executor:
        futures = [executor.submit(_run_source, source, context) for source in sources]
        return [future.result() for future in futures]


def _write_logs(
    session_factory: sessionmaker[Session],
    run_id: str,
    outcomes: Sequence[SourceOutcome],
) -> None:
    with session_scope(session_factory) as session:
        repo = SyncLogRepository(session)
        for outcome in outcomes:
            repo.append(
                run_id=run_id,
                source=outcome.source,
                status=outcome.status.value,
                events_created=outcome.stats.events_created,
                events_updated=outcome.stats.events_updated,
                venues_created=outcome.stats.venues_created,
                errors=outcome.stats.errors,
                duration_ms=outcome.duration_ms,
                started_at=outcome.started_at,
                completed_at=outcome.completed_at,
            )


def _build_context(
    settings: Settings,
    session_factory: sessionmaker[Session],
    cancel_event: threading.Event | None,
    category_cache: CategoryCache | None,
) -> SyncContext:
    return SyncContext(
        run_id=str(uuid4()),
        settings=settings,
        session_factory=session_factory,
        category_cache=category_cache or CategoryCache(),
        thresholds=MatchThresholds.from_settings(settings),
        cancel_event=cancel_event or threading.Event(),
    )


def run_event_sync(
    settings: Settings | None = None,
    *,
    sources: Sequence[SourceAdapter] | None = None,
    session_factory: sessionmaker[Session] | None = None,
    cancel_event: threading.Event | None = None,
    category_cache: CategoryCache | None = None,
) -> EventSyncResult:
    """Run every configured event source concurrently and record one log row per source.

    Sources without credentials are skipped and left out of both the result
    and the sync log. A source that raises is reported through its own error
    list; the call itself does not raise for source failures.
    """
    settings = settings or get_settings()
    if session_factory is None:
        init_db()
        session_factory = SessionLocal
    sources = list(sources) if sources is not None else default_event_sources(settings)

    started = time.perf_counter()
    context = _build_context(settings, session_factory, cancel_event, category_cache)
    result = EventSyncResult(run_id=context.run_id)

    configured: list[SourceAdapter] = []
    for source in sources:
        if source.is_configured():
            configured.append(source)
        else:
            logger.info("[EventSync] {} not configured, skipping", source.label)

    logger.info(
        "[EventSync] Starting run {} with sources: {}",
        context.run_id,
        ", ".join(source.name for source in configured) or "none",
    )
    outcomes = _dispatch(configured, context, settings.sync_max_workers)

    for outcome in outcomes:
        result.per_source[outcome.source] = outcome.stats
        result.statuses[outcome.source] = outcome.status
        result.totals.merge(outcome.stats)

    if outcomes:
        try:
            _write_logs(session_factory, context.run_id, outcomes)
        except SQLAlchemyError as exc:
            logger.exception("[EventSync] Failed to write sync logs for run {}", context.run_id)
            result.totals.errors.append(f"Failed to write sync logs: {exc}")

    result.duration_ms = _elapsed_ms(started)
    logger.info(
        "[EventSync] Completed in {}ms. created={} updated={} invalidated={} venues={} errors={}",
        result.duration_ms,
        result.totals.events_created,
        result.totals.events_updated,
        result.totals.events_invalidated,
        result.totals.venues_created,
        len(result.totals.errors),
    )
    return result


def run_venue_discovery(
    settings: Settings | None = None,
    *,
    source: SourceAdapter | None = None,
    session_factory: sessionmaker[Session] | None = None,
    cancel_event: threading.Event | None = None,
) -> VenueDiscoveryResult:
    """Run places discovery. Missing credentials are reported as an error, not skipped silently."""
    settings = settings or get_settings()
    source = source or GooglePlacesSource(settings)
    started = time.perf_counter()

    if not source.is_configured():
        message = str(SourceNotConfiguredError("GOOGLE_PLACES_API_KEY"))
        logger.warning("[VenueDiscovery] {}, skipping discovery", message)
        return VenueDiscoveryResult(
            run_id=str(uuid4()),
            errors=[message],
            duration_ms=_elapsed_ms(started),
        )

    if session_factory is None:
        init_db()
        session_factory = SessionLocal

    context = _build_context(settings, session_factory, cancel_event, None)
    logger.info("[VenueDiscovery] Starting run {}", context.run_id)
    outcome = _run_source(source, context)

    result = VenueDiscoveryResult(
        run_id=context.run_id,
        venues_discovered=outcome.stats.venues_created + outcome.stats.venues_updated,
        venues_updated=outcome.stats.venues_updated,
        venues_new=outcome.stats.venues_created,
        errors=list(outcome.stats.errors),
    )
    try:
        _write_logs(session_factory, context.run_id, [outcome])
    except SQLAlchemyError as exc:
        logger.exception("[VenueDiscovery] Failed to write sync log for run {}", context.run_id)
        result.errors.append(f"Failed to write sync logs: {exc}")

    result.duration_ms = _elapsed_ms(started)
    logger.info(
        "[VenueDiscovery] Completed in {}ms. new={} updated={} errors={}",
        result.duration_ms,
        result.venues_new,
        result.venues_updated,
        len(result.errors),
    )
    return result


def seed_categories(session_factory: sessionmaker[Session]) -> None:
    with session_scope(session_factory) as session:
        CatalogRepository(session).add_categories(CATEGORY_SEEDS)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync events and venues from external providers")
    parser.add_argument(
        "--discover-venues",
        action="store_true",
        help="Run Google Places venue discovery instead of the event sync",
    )
    parser.add_argument(
        "--source",
        action="append",
        default=None,
        help="Restrict the event sync to a source name (repeatable)",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Write JSON summary to the specified path",
    )
    return parser.parse_args()


def _write_summary(path: Path, summary: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def main() -> None:
    args = _parse_args()
    settings = get_settings()
    init_db()
    seed_categories(SessionLocal)

    cancel_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: cancel_event.set())

    if args.discover_venues:
        summary = run_venue_discovery(
            settings, session_factory=SessionLocal, cancel_event=cancel_event
        ).to_dict()
    else:
        sources = default_event_sources(settings)
        if args.source:
            wanted = set(args.source)
            sources = [source for source in sources if source.name in wanted]
        summary = run_event_sync(
            settings,
            sources=sources,
            session_factory=SessionLocal,
            cancel_event=cancel_event,
        ).to_dict()

    if args.summary_path:
        _write_summary(args.summary_path, summary)
        logger.info("Wrote sync summary to {}", args.summary_path)


if __name__ == "__main__":
    main()
