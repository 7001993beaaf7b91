"""
Live document counters.

`update_counters` is called once per document create/delete notification,
possibly more than once for the same notification. The event id ledger makes
every logical event count exactly once: the counter updates and the ledger
record commit together or not at all.
"""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..errors import TransactionConflictError
from ..models import (
    META_COUNTERS_DOCUMENT_ID,
    UNCOUNTED_COLLECTIONS,
    USER_COUNTER_COLUMNS,
    Collection,
    Meta,
    User,
)
from ..notifications import ChangeEvent, ChangeKind
from .idempotency import event_id_exists, record_event_id
from .transactions import transactional

logger = logging.getLogger(__name__)


def _update_user_counter(session: Session, user_uid: str, collection: Collection, delta: int) -> None:
    column = getattr(User, USER_COUNTER_COLUMNS[collection])
    result = session.execute(
        update(User).where(User.uid == user_uid).values({column: column + delta})
    )
    if result.rowcount == 0:
        # The user is already gone; nothing left to count against.
        logger.debug("Skipping %s counter of missing user %s", collection.value, user_uid)


def _update_meta_counter(session: Session, collection: Collection, delta: int) -> None:
    column = getattr(Meta, collection.value)
    result = session.execute(
        update(Meta)
        .where(Meta.id == META_COUNTERS_DOCUMENT_ID)
        .values({column: column + delta})
    )
    if result.rowcount == 0:
        session.add(Meta(id=META_COUNTERS_DOCUMENT_ID, **{collection.value: delta}))


@transactional
def _apply_change(session: Session, change: ChangeEvent) -> bool:
    if event_id_exists(session, change.event_id):
        logger.debug("Event %s already processed", change.event_id)
        return False

    delta = 1 if change.kind == ChangeKind.CREATE else -1

    if change.user_uid is not None and change.collection in USER_COUNTER_COLUMNS:
        _update_user_counter(session, change.user_uid, change.collection, delta)
    _update_meta_counter(session, change.collection, delta)
    record_event_id(session, change.event_id)
    return True


def update_counters(session: Session, change: ChangeEvent) -> bool:
    """Apply one change notification. Returns False when it was a no-op."""
    if change.collection in UNCOUNTED_COLLECTIONS:
        return False
    try:
        return _apply_change(session, change)
    except TransactionConflictError as exc:
        # A concurrent delivery of the same event won the ledger insert.
        if isinstance(exc.__cause__, IntegrityError) and event_id_exists(session, change.event_id):
            logger.debug("Event %s processed concurrently", change.event_id)
            return False
        raise
