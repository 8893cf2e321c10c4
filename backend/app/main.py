from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from loguru import logger

from . import schemas
from .core.config import Settings, get_settings, settings
from .db import get_db, init_db
from .domain import CatalogError, EventCandidate, VenueCandidate, VenueNotFoundError
from .matching import MatchThresholds
from .services.catalog_service import CatalogService
from pipelines.sync_run import run_event_sync, run_venue_discovery

app = FastAPI(title="Event Catalog Sync API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _catalog_service(
    db=Depends(get_db),
    app_settings: Settings = Depends(get_settings),
) -> CatalogService:
    """Provide the catalog service wired with a SQLAlchemy session."""

    return CatalogService(db, MatchThresholds.from_settings(app_settings))


def _require_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
    app_settings: Settings = Depends(get_settings),
) -> None:
    secret = app_settings.cron_secret
    if secret and authorization != f"Bearer {secret}":
        logger.warning("Rejected unauthorized cron trigger")
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.post("/venues/match", response_model=schemas.VenueMatchResult | None, tags=["matching"])
def match_venue(
    candidate: schemas.VenueCandidateIn,
    service: CatalogService = Depends(_catalog_service),
):
    """Resolve a venue candidate against the catalog; null when nothing matches."""

    match = service.match_venue(VenueCandidate(**candidate.model_dump()))
    if match is None:
        return None
    return schemas.VenueMatchResult(
        venue=schemas.Venue.model_validate(match.venue),
        confidence=match.confidence,
        reason=match.reason.value,
    )


@app.post("/events/match", response_model=schemas.EventMatchResult | None, tags=["matching"])
def match_event(
    candidate: schemas.EventCandidateIn,
    service: CatalogService = Depends(_catalog_service),
):
    """Resolve an event candidate against the catalog; null when nothing matches."""

    match = service.match_event(EventCandidate(**candidate.model_dump()))
    if match is None:
        return None
    return schemas.EventMatchResult(
        event=schemas.Event.model_validate(match.event),
        confidence=match.confidence,
        reason=match.reason.value,
    )


@app.get("/admin/duplicates", response_model=schemas.DuplicatePairList, tags=["admin"])
def list_duplicates(
    *,
    min_confidence: Annotated[float, Query(ge=0, le=1)] = 0.0,
    service: CatalogService = Depends(_catalog_service),
):
    """Likely duplicate events, highest confidence first. Read-only."""

    pairs = [pair for pair in service.duplicate_events() if pair.confidence >= min_confidence]
    items = [
        schemas.DuplicatePair(
            event_a=schemas.Event.model_validate(pair.event_a),
            event_b=schemas.Event.model_validate(pair.event_b),
            confidence=pair.confidence,
            reason=pair.reason.value,
        )
        for pair in pairs
    ]
    return schemas.DuplicatePairList(total=len(items), items=items)


@app.post("/admin/venues/merge", response_model=schemas.Venue, tags=["admin"])
def merge_venues(
    request: schemas.MergeVenuesRequest,
    service: CatalogService = Depends(_catalog_service),
):
    """Fold a reviewed duplicate venue into the primary venue."""

    try:
        return service.merge_venues(request.primary_id, request.duplicate_id)
    except VenueNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except CatalogError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/sync-logs", response_model=schemas.SyncLogList, tags=["sync"])
def list_sync_logs(
    *,
    source: Annotated[str | None, Query(description="Restrict to one source")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    service: CatalogService = Depends(_catalog_service),
):
    """Most recent sync audit rows first."""

    return schemas.SyncLogList(items=list(service.sync_logs(source=source, limit=limit)))


@app.get("/sync-logs/latest", response_model=schemas.SyncLogList, tags=["sync"])
def latest_sync_logs(service: CatalogService = Depends(_catalog_service)):
    """The newest audit row for each source."""

    return schemas.SyncLogList(items=list(service.latest_sync_logs()))


@app.post(
    "/cron/sync-events",
    response_model=schemas.SyncRunResponse,
    tags=["sync"],
    dependencies=[Depends(_require_cron_secret)],
)
def cron_sync_events(app_settings: Settings = Depends(get_settings)):
    """Run the event sync across every configured source."""

    start_time = datetime.now(timezone.utc)
    result = run_event_sync(app_settings)
    return schemas.SyncRunResponse(
        start_time=start_time,
        end_time=datetime.now(timezone.utc),
        result=result.to_dict(),
    )


@app.post(
    "/cron/discover-venues",
    response_model=schemas.SyncRunResponse,
    tags=["sync"],
    dependencies=[Depends(_require_cron_secret)],
)
def cron_discover_venues(app_settings: Settings = Depends(get_settings)):
    """Run Google Places venue discovery."""

    start_time = datetime.now(timezone.utc)
    result = run_venue_discovery(app_settings)
    return schemas.SyncRunResponse(
        start_time=start_time,
        end_time=datetime.now(timezone.utc),
        result=result.to_dict(),
    )
