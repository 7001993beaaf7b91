"""
scripts/sweep_event_ids.py

One pass of the event id ledger sweep, for cron or manual use when the API
process isn't running its own sweeper.
Run:
  python scripts/sweep_event_ids.py [--database-url URL] [--retention-seconds N]
"""

from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from pathlib import Path
import sys

# Running as `python scripts/sweep_event_ids.py` puts `scripts/` on sys.path,
# not the project root.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def main() -> int:
    from sentence_base import settings
    from sentence_base.db import make_engine
    from sentence_base.services.idempotency import purge_expired_event_ids

    parser = argparse.ArgumentParser(description="Purge expired event id records.")
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    parser.add_argument(
        "--retention-seconds", type=int, default=settings.EVENT_ID_RETENTION_SECONDS
    )
    parser.add_argument("--page-size", type=int, default=settings.EVENT_ID_SWEEP_PAGE_SIZE)
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    purged = purge_expired_event_ids(
        make_engine(args.database_url),
        retention=timedelta(seconds=args.retention_seconds),
        page_size=args.page_size,
    )
    print(f"Purged {purged} event id records")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
