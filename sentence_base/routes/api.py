from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..deps import get_current_user_uid, get_session
from ..schemas import BacklogBatchCreate, BatchCreate, SentenceCreate, SentenceUpdate
from ..services.batches import assemble_batch, assemble_batch_from_backlog
from ..services.sentences import (
    add_sentence,
    delete_sentence,
    edit_sentence,
    get_pending_sentences,
)
from ..services.tags import clean_tags

router = APIRouter(prefix="/api/v1", tags=["api"])


def success_response(data: Optional[dict[str, Any]] = None) -> dict:
    return {"success": True, "data": data}


@router.get("/sentences")
def list_pending_sentences(
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    return success_response({"sentences": get_pending_sentences(session, user_uid)})


@router.post("/sentences")
def create_sentence(
    payload: SentenceCreate,
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    sentence_id = add_sentence(
        session,
        user_uid,
        payload.dictionary_form,
        payload.reading,
        payload.sentence,
        clean_tags(payload.tags),
    )
    return success_response({"sentenceId": sentence_id})


@router.post("/sentences/{sentence_id}")
def update_sentence(
    sentence_id: str,
    payload: SentenceUpdate,
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    edit_sentence(session, user_uid, sentence_id, payload.sentence, clean_tags(payload.tags))
    return success_response()


@router.delete("/sentences/{sentence_id}")
def remove_sentence(
    sentence_id: str,
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    delete_sentence(session, user_uid, sentence_id)
    return success_response()


@router.post("/batches")
def create_batch(
    payload: BatchCreate,
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    batch_id = assemble_batch(session, user_uid, payload.sentences)
    return success_response({"batchId": batch_id})


@router.post("/batches/backlog")
def create_batch_from_backlog(
    payload: BacklogBatchCreate,
    user_uid: str = Depends(get_current_user_uid),
    session: Session = Depends(get_session),
) -> dict:
    batch_id = assemble_batch_from_backlog(
        session,
        user_uid,
        payload.sentences,
        payload.mark_as_mined,
        payload.push_to_the_end,
    )
    return success_response({"batchId": batch_id})
