from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ..deps import get_current_user_uid, get_session
from ..models import User
from ..services.users import create_user_document
from .api import success_response

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", status_code=201)
def register(
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    return success_response({"uid": create_user_document(session, user_uid)})


@router.get("/me")
def me(
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    user = session.get(User, user_uid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return success_response(
        {
            "uid": user.uid,
            "pendingSentences": user.pending_sentences,
            "counters": user.counters,
        }
    )
