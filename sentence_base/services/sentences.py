from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, select

from .. import settings
from ..errors import InvalidReferenceError, LimitExceededError
from ..models import Sentence, User, Word, utcnow
from .tags import dedupe_tags
from .transactions import transactional

logger = logging.getLogger(__name__)


def _get_pending_sentence(session: Session, user_uid: str, sentence_id: str) -> Sentence:
    # Foreign, missing and already batched sentences all look the same to the
    # caller so that existence doesn't leak across users.
    matches = session.exec(
        select(Sentence)
        .where(
            Sentence.id == sentence_id,
            Sentence.user_uid == user_uid,
            Sentence.is_pending == True,  # noqa: E712
        )
        .limit(2)
    ).all()
    if len(matches) != 1:
        raise InvalidReferenceError()
    return matches[0]


def get_pending_sentences(session: Session, user_uid: str) -> list[dict[str, Any]]:
    sentences = session.exec(
        select(Sentence)
        .where(Sentence.user_uid == user_uid, Sentence.is_pending == True)  # noqa: E712
        .order_by(Sentence.created_at.desc(), Sentence.id)
    ).all()
    if not sentences:
        return []

    word_ids = {sentence.word_id for sentence in sentences}
    words = {
        word.id: word
        for word in session.exec(select(Word).where(Word.id.in_(list(word_ids)))).all()
    }

    result = []
    for sentence in sentences:
        word = words.get(sentence.word_id)
        result.append(
            {
                "sentenceId": sentence.id,
                "wordId": sentence.word_id,
                "dictionaryForm": word.dictionary_form if word else "unknown",
                "reading": word.reading if word else "unknown",
                "sentence": sentence.sentence,
                "frequency": word.frequency if word else 0,
                "tags": sentence.tags,
            }
        )
    return result


@transactional
def add_sentence(
    session: Session,
    user_uid: str,
    dictionary_form: str,
    reading: str,
    sentence: str,
    tags: list[str],
) -> str:
    """
    Add a pending sentence for (dictionary_form, reading), creating the word on
    first use. Adding a sentence to an already mined word re-surfaces it.
    """
    user = session.get(User, user_uid)
    if user is None:
        raise InvalidReferenceError("User document doesn't exist.")
    if user.pending_sentences >= settings.MAXIMUM_PENDING_SENTENCES:
        logger.info("User %s hit the pending sentences limit", user_uid)
        raise LimitExceededError()

    now = utcnow()
    word = session.exec(
        select(Word).where(
            Word.user_uid == user_uid,
            Word.dictionary_form == dictionary_form,
            Word.reading == reading,
        )
    ).first()

    if word is None:
        word = Word(
            user_uid=user_uid,
            dictionary_form=dictionary_form,
            reading=reading,
            frequency=1,
            is_mined=False,
            bury_level=0,
            created_at=now,
            updated_at=now,
        )
        session.add(word)
        session.flush()
    else:
        session.execute(
            update(Word)
            .where(Word.id == word.id)
            .values(frequency=Word.frequency + 1, is_mined=False, updated_at=now)
        )

    new_sentence = Sentence(
        user_uid=user_uid,
        word_id=word.id,
        sentence=sentence,
        tags=dedupe_tags(tags),
        is_pending=True,
        is_mined=False,
        created_at=now,
        updated_at=now,
    )
    session.add(new_sentence)
    session.execute(
        update(User)
        .where(User.uid == user_uid)
        .values(pending_sentences=User.pending_sentences + 1)
    )

    logger.info("Added sentence %s (word %s) for user %s", new_sentence.id, word.id, user_uid)
    return new_sentence.id


@transactional
def delete_sentence(session: Session, user_uid: str, sentence_id: str) -> None:
    sentence = _get_pending_sentence(session, user_uid, sentence_id)
    word_id = sentence.word_id
    now = utcnow()

    word = session.get(Word, word_id)
    if word is not None and word.frequency <= 0:
        logger.warning("Word %s frequency drops below zero on sentence delete", word_id)

    session.delete(sentence)
    session.execute(
        update(User)
        .where(User.uid == user_uid)
        .values(pending_sentences=User.pending_sentences - 1)
    )
    session.execute(
        update(Word)
        .where(Word.id == word_id)
        .values(frequency=Word.frequency - 1, updated_at=now)
    )
    logger.info("Deleted sentence %s for user %s", sentence_id, user_uid)


@transactional
def edit_sentence(
    session: Session, user_uid: str, sentence_id: str, sentence: str, tags: list[str]
) -> None:
    target = _get_pending_sentence(session, user_uid, sentence_id)
    target.sentence = sentence
    target.tags = dedupe_tags(tags)
    target.updated_at = utcnow()
    session.add(target)
