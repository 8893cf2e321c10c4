import argparse
import json
import sys

from loguru import logger

from app.db import init_db, session_scope
from app.domain import CatalogError
from app.services.merge_service import merge_venues


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Merge a duplicate venue into a primary venue after manual review"
    )
    parser.add_argument("primary_id", help="Venue id that survives the merge")
    parser.add_argument("duplicate_id", help="Venue id that is folded in and deleted")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    init_db()

    try:
        with session_scope() as session:
            venue = merge_venues(session, args.primary_id, args.duplicate_id)
            merged = {
                "id": venue.id,
                "name": venue.name,
                "city": venue.city,
                "google_place_id": venue.google_place_id,
                "is_verified": venue.is_verified,
            }
    except CatalogError as exc:
        logger.error("Merge failed: {}", exc)
        sys.exit(1)

    print(json.dumps(merged, indent=2))


if __name__ == "__main__":
    main()
