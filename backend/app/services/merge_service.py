"""Manual venue merge used once a reviewer confirms two venues are the same place."""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from app.domain import CatalogError, VenueNotFoundError
from app.models import Venue
from app.repositories import CatalogRepository

FILL_BLANK_FIELDS = (
    "address",
    "city",
    "state",
    "zip_code",
    "latitude",
    "longitude",
    "image_url",
    "website",
    "capacity",
)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def reconcile_venue_fields(primary: Venue, duplicate: Venue) -> dict[str, Any]:
    """Return the field updates the primary venue should receive from the duplicate."""
    updates: dict[str, Any] = {}

    if duplicate.description and len(duplicate.description) > len(primary.description or ""):
        updates["description"] = duplicate.description

    if _is_blank(primary.google_place_id) and not _is_blank(duplicate.google_place_id):
        updates["google_place_id"] = duplicate.google_place_id

    if duplicate.google_rating is not None and (
        primary.google_rating is None or duplicate.google_rating > primary.google_rating
    ):
        updates["google_rating"] = duplicate.google_rating

    for field_name in FILL_BLANK_FIELDS:
        current = getattr(primary, field_name)
        incoming = getattr(duplicate, field_name)
        if _is_blank(current) and not _is_blank(incoming):
            updates[field_name] = incoming

    if duplicate.is_verified and not primary.is_verified:
        updates["is_verified"] = True

    return updates


def merge_venues(session: Session, primary_id: str, duplicate_id: str) -> Venue:
    """Fold ``duplicate_id`` into ``primary_id`` and return the refreshed primary.

    Events are re-pointed, the duplicate row is removed and the reconciled
    fields are written to the primary. The caller owns the transaction, so
    running inside ``session_scope`` applies all of it atomically. Running
    again after a partial failure is safe since the duplicate then has no
    events left to move.
    """
    if primary_id == duplicate_id:
        raise CatalogError("Cannot merge a venue into itself")

    repo = CatalogRepository(session)
    primary = repo.get_venue(primary_id)
    if primary is None:
        raise VenueNotFoundError(primary_id, role="primary")
    duplicate = repo.get_venue(duplicate_id)
    if duplicate is None:
        raise VenueNotFoundError(duplicate_id, role="duplicate")

    updates = reconcile_venue_fields(primary, duplicate)
    moved = repo.reassign_events(duplicate.id, primary.id)

    # The duplicate must be gone before its place id can move onto the primary.
    session.expire(duplicate, ["events"])
    repo.delete_venue(duplicate)

    for field_name, value in updates.items():
        setattr(primary, field_name, value)
    session.flush()
    session.refresh(primary)

    logger.info(
        "Merged venue {} into {}: moved {} events, updated fields {}",
        duplicate_id,
        primary_id,
        moved,
        sorted(updates),
    )
    return primary
