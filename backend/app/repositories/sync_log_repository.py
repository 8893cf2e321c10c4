"""Append-only access to the sync audit trail."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from app.models import SyncLog


class SyncLogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def append(
        self,
        *,
        source: str,
        status: str,
        events_created: int,
        events_updated: int,
        venues_created: int,
        errors: list[str] | None,
        duration_ms: int,
        started_at: datetime,
        completed_at: datetime,
        run_id: str | None = None,
    ) -> SyncLog:
        entry = SyncLog(
            run_id=run_id,
            source=source,
            status=status,
            events_created=events_created,
            events_updated=events_updated,
            venues_created=venues_created,
            errors=list(errors) if errors else None,
            duration_ms=duration_ms,
            started_at=started_at,
            completed_at=completed_at,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    # ------------------------------------------------------------------
    # Queries

    def list_recent(self, *, limit: int = 50, source: str | None = None) -> Sequence[SyncLog]:
        stmt = select(SyncLog)
        if source:
            stmt = stmt.where(SyncLog.source == source)
        stmt = stmt.order_by(desc(SyncLog.started_at)).limit(limit)
        return self._session.execute(stmt).scalars().all()

    def list_for_run(self, run_id: str) -> Sequence[SyncLog]:
        stmt = select(SyncLog).where(SyncLog.run_id == run_id).order_by(SyncLog.source)
        return self._session.execute(stmt).scalars().all()

    def latest_per_source(self) -> Sequence[SyncLog]:
        latest = (
            select(SyncLog.source, func.max(SyncLog.started_at).label("started_at"))
            .group_by(SyncLog.source)
            .subquery()
        )
        stmt = (
            select(SyncLog)
            .join(
                latest,
                (SyncLog.source == latest.c.source) & (SyncLog.started_at == latest.c.started_at),
            )
            .order_by(SyncLog.source)
        )
        rows = self._session.execute(stmt).scalars().all()
        seen: set[str] = set()
        unique: list[SyncLog] = []
        for row in rows:
            if row.source in seen:
                continue
            seen.add(row.source)
            unique.append(row)
        return unique
