from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.matching import MatchThresholds
from ingestion.base import CategoryCache


@dataclass(slots=True)
class SyncContext:
    """Runtime context handed to every source job in one orchestration run."""

    run_id: str
    settings: Settings
    session_factory: sessionmaker[Session]
    category_cache: CategoryCache
    thresholds: MatchThresholds
    cancel_event: threading.Event = field(default_factory=threading.Event)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
