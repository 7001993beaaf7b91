"""
Document change notifications.

Every committed insert or delete of a known collection is turned into a
ChangeEvent with its own event id and handed to the dispatcher once the
transaction has committed. Changes of rolled back transactions are dropped.

Delivery is at-least-once: a failed delivery is retried with the same event
id, so the receiver has to be idempotent (see services/counters.py).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlmodel import Session

from . import settings
from .models import UNCOUNTED_COLLECTIONS, Collection, collection_of

logger = logging.getLogger(__name__)

_PENDING_CHANGES_KEY = "sentence_base.pending_changes"


class ChangeKind(str, Enum):
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    event_id: str
    collection: Collection
    kind: ChangeKind
    document_id: str
    user_uid: Optional[str] = None


Dispatcher = Callable[[Engine, list[ChangeEvent]], None]

_enabled = True
_dispatcher: Optional[Dispatcher] = None


def enable() -> None:
    global _enabled
    _enabled = True


def disable() -> None:
    global _enabled
    _enabled = False


def set_dispatcher(dispatcher: Optional[Dispatcher]) -> None:
    """Replace how committed changes are delivered; None restores the default."""
    global _dispatcher
    _dispatcher = dispatcher


def _change_for(document: Any, kind: ChangeKind) -> Optional[ChangeEvent]:
    collection = collection_of(document)
    # Counter bookkeeping must not notify about itself.
    if collection is None or collection in UNCOUNTED_COLLECTIONS:
        return None
    mapper = inspect(document).mapper
    document_id = mapper.primary_key_from_instance(document)[0]
    return ChangeEvent(
        event_id=uuid.uuid4().hex,
        collection=collection,
        kind=kind,
        document_id=str(document_id),
        user_uid=getattr(document, "user_uid", None),
    )


def deliver(bind: Engine, changes: Iterable[ChangeEvent], attempts: Optional[int] = None) -> None:
    from .services.counters import update_counters

    attempts = attempts or settings.COUNTER_DELIVERY_ATTEMPTS
    for change in changes:
        for attempt in range(1, attempts + 1):
            try:
                with Session(bind) as session:
                    update_counters(session, change)
                break
            except Exception:
                if attempt == attempts:
                    logger.exception(
                        "Giving up on %s event %s for %s after %d attempts",
                        change.kind.value,
                        change.event_id,
                        change.collection.value,
                        attempts,
                    )
                else:
                    logger.warning(
                        "Delivery of event %s failed (attempt %d/%d), retrying",
                        change.event_id,
                        attempt,
                        attempts,
                    )


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, flush_context) -> None:
    if not _enabled:
        return
    pending = session.info.setdefault(_PENDING_CHANGES_KEY, [])
    for kind, documents in ((ChangeKind.CREATE, session.new), (ChangeKind.DELETE, session.deleted)):
        for document in documents:
            change = _change_for(document, kind)
            if change is not None:
                pending.append(change)


@event.listens_for(Session, "after_commit")
def _dispatch_changes(session: Session) -> None:
    changes = session.info.pop(_PENDING_CHANGES_KEY, None)
    if not changes:
        return
    dispatcher = _dispatcher or deliver
    dispatcher(session.get_bind(), changes)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session: Session) -> None:
    session.info.pop(_PENDING_CHANGES_KEY, None)
