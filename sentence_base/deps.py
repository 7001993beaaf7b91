from __future__ import annotations

from typing import Generator

from fastapi import HTTPException, Request
from sqlmodel import Session

from .db import engine


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def get_current_user_uid(request: Request) -> str:
    # The identity layer verifies credentials and puts the uid into the signed
    # session cookie; we only read it back.
    uid = request.session.get("uid")
    if not uid:
        raise HTTPException(status_code=403, detail="Not logged in.")
    return uid
