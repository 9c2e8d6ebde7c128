"""
Seed (or clear) the sample users and events shown on the admin dashboard.

Uses the same backend selection as the API: Firestore when
FIREBASE_PROJECT_ID is set, otherwise the in-memory store, which is only
useful together with --print-summary.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portal.dashboard import compute_analytics
from portal.dependencies import get_document_store
from portal.sample_data import clear_sample_data, create_sample_data
from shared.types import TimeRange

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed dashboard sample data")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete sample documents instead of creating them",
    )
    parser.add_argument(
        "--print-summary",
        action="store_true",
        help="Log today's dashboard totals afterwards",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = get_document_store()

    if args.clear:
        counts = clear_sample_data(db)
        logger.info("Deleted %d documents", sum(counts.values()))
    else:
        counts = create_sample_data(db)
        logger.info("Created %d documents", sum(counts.values()))

    if args.print_summary:
        summary = compute_analytics(db, TimeRange.TODAY)
        logger.info(
            "Downloads: %d, page views: %d, unique users: %d",
            summary.total_downloads,
            summary.total_page_views,
            summary.unique_users,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
