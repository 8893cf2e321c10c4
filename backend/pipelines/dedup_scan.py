from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from loguru import logger

from app.core.config import get_settings
from app.db import SessionLocal, init_db, session_scope
from app.domain import DuplicatePair
from app.matching import MatchThresholds
from app.services.dedup_service import DuplicateScanner, summarize_pairs


def _pair_to_dict(pair: DuplicatePair) -> dict[str, Any]:
    def event_dict(event) -> dict[str, Any]:
        return {
            "id": event.id,
            "title": event.title,
            "start_date": event.start_date.isoformat(),
            "venue_id": event.venue_id,
            "external_source": event.external_source,
            "external_id": event.external_id,
        }

    return {
        "event_a": event_dict(pair.event_a),
        "event_b": event_dict(pair.event_b),
        "confidence": pair.confidence,
        "reason": pair.reason.value,
    }


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Report likely duplicate events for review. Never modifies the catalog."
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=0.0,
        help="Only report pairs at or above this confidence",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the pair list as JSON to this path instead of stdout",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    settings = get_settings()
    init_db()

    with session_scope(SessionLocal) as session:
        scanner = DuplicateScanner(session, MatchThresholds.from_settings(settings))
        pairs = [
            pair for pair in scanner.deduplicate_events() if pair.confidence >= args.min_confidence
        ]
        report = {
            "counts": summarize_pairs(pairs),
            "pairs": [_pair_to_dict(pair) for pair in pairs],
        }
        # Read-only scan; nothing to persist.
        session.rollback()

    payload = json.dumps(report, indent=2, sort_keys=True) + "\n"
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload, encoding="utf-8")
        logger.info("Wrote {} duplicate pairs to {}", len(pairs), args.output)
    else:
        print(payload, end="")


if __name__ == "__main__":
    main()
