from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from .. import settings
from ..models import EventIdRecord, utcnow

logger = logging.getLogger(__name__)


def event_id_exists(session: Session, event_id: str) -> bool:
    return session.get(EventIdRecord, event_id) is not None


def record_event_id(session: Session, event_id: str, now: Optional[datetime] = None) -> None:
    session.add(EventIdRecord(event_id=event_id, created_at=now or utcnow()))


def purge_expired_event_ids(
    bind: Engine,
    *,
    now: Optional[datetime] = None,
    retention: Optional[timedelta] = None,
    page_size: Optional[int] = None,
) -> int:
    """
    Delete ledger records older than the retention window, one page per
    batched write, until a page comes back empty. Returns how many were purged.

    A record younger than the window must survive: dropping it early would
    let a late duplicate delivery count twice.
    """
    now = now or utcnow()
    retention = retention or timedelta(seconds=settings.EVENT_ID_RETENTION_SECONDS)
    page_size = page_size or settings.EVENT_ID_SWEEP_PAGE_SIZE
    threshold = now - retention

    purged = 0
    while True:
        with Session(bind) as session:
            page = session.exec(
                select(EventIdRecord.event_id)
                .where(EventIdRecord.created_at < threshold)
                .limit(page_size)
            ).all()
            if not page:
                break
            session.execute(delete(EventIdRecord).where(EventIdRecord.event_id.in_(list(page))))
            session.commit()
        purged += len(page)

    logger.info("Purged %d event id records older than %s", purged, threshold.isoformat())
    return purged


SWEEP_JOB_ID = "event_id_sweep"


def create_sweep_scheduler(bind: Engine, interval_seconds: Optional[int] = None) -> BackgroundScheduler:
    """Build (but don't start) the scheduler that runs the ledger sweep periodically."""
    interval_seconds = interval_seconds or settings.EVENT_ID_SWEEP_INTERVAL_SECONDS
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        func=purge_expired_event_ids,
        trigger="interval",
        seconds=interval_seconds,
        args=[bind],
        id=SWEEP_JOB_ID,
        name="Event id ledger sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler
