from __future__ import annotations

import logging

from sqlmodel import Session

from ..errors import UserExistsError
from ..models import User
from .transactions import transactional

logger = logging.getLogger(__name__)


@transactional
def create_user_document(session: Session, uid: str) -> str:
    """Create the user document for a freshly registered identity."""
    if session.get(User, uid) is not None:
        raise UserExistsError()
    user = User(uid=uid, pending_sentences=0)
    session.add(user)
    logger.info("Registered user %s", uid)
    return uid
