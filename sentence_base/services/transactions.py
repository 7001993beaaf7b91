from __future__ import annotations

import functools
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlmodel import Session

from ..errors import TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs for serialization failure and deadlock.
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})
_CONFLICT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
)


def is_conflict(exc: DBAPIError) -> bool:
    """Whether a store error means another transaction got in the way."""
    if isinstance(exc, IntegrityError):
        return True
    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _CONFLICT_MESSAGES)


def transactional(fn: Callable[..., T]) -> Callable[..., T]:
    """
    Run `fn(session, ...)` as one store transaction.

    The session must not have a transaction in progress. Any exception rolls
    everything back; lock and serialization conflicts come out as
    TransactionConflictError, other store errors propagate unchanged.
    """

    @functools.wraps(fn)
    def wrapper(session: Session, *args, **kwargs) -> T:
        try:
            with session.begin():
                return fn(session, *args, **kwargs)
        except (OperationalError, IntegrityError) as exc:
            if not is_conflict(exc):
                raise
            logger.warning("%s aborted by the store: %s", fn.__name__, exc.orig)
            raise TransactionConflictError() from exc

    return wrapper
