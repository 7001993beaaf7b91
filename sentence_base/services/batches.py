"""
Batch assembly.

Two ways of turning sentences into an immutable Batch:

* `assemble_batch` closes a mining session. It reads the user's whole
  pending pool: the selected sentences get mined, everything else drops to
  the backlog, and the user's pending count goes back to zero.
* `assemble_batch_from_backlog` revisits old material. It touches only the
  ids it's given and can also mark words as mined or bury them without
  mining any sentence for them.

Both run as one transaction and either apply every change or none.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import update
from sqlmodel import Session, select

from ..errors import DuplicateIdsError, InvalidSelectionError, MissingWordError
from ..models import Batch, Sentence, User, Word, utcnow
from .transactions import transactional

logger = logging.getLogger(__name__)


def as_id_set(ids: Iterable[str]) -> frozenset[str]:
    """Treat an id list as a set, rejecting lists that repeat an id."""
    ids = list(ids)
    id_set = frozenset(ids)
    if len(id_set) != len(ids):
        raise DuplicateIdsError("The same ID was passed more than once.")
    return id_set


def _snapshot(sentence: Sentence, word: Word) -> dict[str, Any]:
    return {
        "sentenceId": sentence.id,
        "sentence": sentence.sentence,
        "wordDictionaryForm": word.dictionary_form,
        "wordReading": word.reading,
        "tags": list(sentence.tags),
    }


def _create_batch(
    session: Session, user_uid: str, snapshots: list[dict[str, Any]], now: datetime
) -> Batch:
    batch = Batch(user_uid=user_uid, sentences=snapshots, created_at=now, updated_at=now)
    session.add(batch)
    return batch


@transactional
def _assemble_batch(session: Session, user_uid: str, sentence_ids: frozenset[str]) -> str:
    now = utcnow()

    # The whole pending pool, not just the requested ids: whatever isn't
    # selected leaves the pool as part of this pass.
    pending_pool = session.exec(
        select(Sentence)
        .where(Sentence.user_uid == user_uid, Sentence.is_pending == True)  # noqa: E712
        .order_by(Sentence.created_at, Sentence.id)
    ).all()

    selected = [sentence for sentence in pending_pool if sentence.id in sentence_ids]
    untouched = [sentence for sentence in pending_pool if sentence.id not in sentence_ids]

    words: dict[str, Word] = {}
    for sentence in selected:
        if sentence.word_id in words:
            continue
        word = session.exec(
            select(Word).where(Word.id == sentence.word_id, Word.user_uid == user_uid)
        ).first()
        if word is None:
            logger.warning(
                "Sentence %s of user %s references missing word %s",
                sentence.id,
                user_uid,
                sentence.word_id,
            )
            raise MissingWordError()
        words[word.id] = word

    if len(selected) != len(sentence_ids):
        raise InvalidSelectionError()

    snapshots = [_snapshot(sentence, words[sentence.word_id]) for sentence in selected]

    if untouched:
        session.execute(
            update(Sentence)
            .where(Sentence.id.in_([sentence.id for sentence in untouched]))
            .values(is_pending=False, updated_at=now)
        )
    session.execute(
        update(Sentence)
        .where(Sentence.id.in_([sentence.id for sentence in selected]))
        .values(is_pending=False, is_mined=True, updated_at=now)
    )
    session.execute(
        update(Word)
        .where(Word.id.in_(list(words)))
        .values(is_mined=True, updated_at=now)
    )

    batch = _create_batch(session, user_uid, snapshots, now)
    # Nothing can be pending after this pass, so reset instead of decrementing.
    session.execute(update(User).where(User.uid == user_uid).values(pending_sentences=0))

    logger.info(
        "Assembled batch %s for user %s: %d mined, %d moved to backlog",
        batch.id,
        user_uid,
        len(selected),
        len(untouched),
    )
    return batch.id


def assemble_batch(session: Session, user_uid: str, sentence_ids: Iterable[str]) -> str:
    """Mine the selected pending sentences and close out the pending pool."""
    requested = as_id_set(sentence_ids)
    if not requested:
        raise InvalidSelectionError()
    return _assemble_batch(session, user_uid, requested)


def _resolve_unmined_words(
    session: Session, user_uid: str, word_ids: frozenset[str]
) -> list[Word]:
    if not word_ids:
        return []
    return list(
        session.exec(
            select(Word).where(
                Word.id.in_(list(word_ids)),
                Word.user_uid == user_uid,
                Word.is_mined == False,  # noqa: E712
            )
        ).all()
    )


@transactional
def _assemble_batch_from_backlog(
    session: Session,
    user_uid: str,
    sentence_ids: frozenset[str],
    mark_as_mined: frozenset[str],
    push_to_the_end: frozenset[str],
) -> str:
    now = utcnow()

    sentences = session.exec(
        select(Sentence)
        .where(
            Sentence.id.in_(list(sentence_ids)),
            Sentence.user_uid == user_uid,
            Sentence.is_pending == False,  # noqa: E712
            Sentence.is_mined == False,  # noqa: E712
        )
        .order_by(Sentence.created_at, Sentence.id)
    ).all()
    if len(sentences) != len(sentence_ids):
        raise InvalidSelectionError()

    sentence_word_ids = frozenset(sentence.word_id for sentence in sentences)
    words = {
        word.id: word for word in _resolve_unmined_words(session, user_uid, sentence_word_ids)
    }
    if len(words) != len(sentence_word_ids):
        raise MissingWordError()

    words_to_mine = _resolve_unmined_words(session, user_uid, mark_as_mined)
    if len(words_to_mine) != len(mark_as_mined):
        raise InvalidSelectionError(field="markAsMined")

    words_to_bury = _resolve_unmined_words(session, user_uid, push_to_the_end)
    if len(words_to_bury) != len(push_to_the_end):
        raise InvalidSelectionError(field="pushToTheEnd")

    snapshots = [_snapshot(sentence, words[sentence.word_id]) for sentence in sentences]

    mined_word_ids = list(sentence_word_ids | mark_as_mined)
    session.execute(
        update(Word)
        .where(Word.id.in_(mined_word_ids))
        .values(is_mined=True, updated_at=now)
    )
    if push_to_the_end:
        session.execute(
            update(Word)
            .where(Word.id.in_(list(push_to_the_end)))
            .values(bury_level=Word.bury_level + 1, updated_at=now)
        )
    session.execute(
        update(Sentence)
        .where(Sentence.id.in_(list(sentence_ids)))
        .values(is_mined=True, updated_at=now)
    )

    batch = _create_batch(session, user_uid, snapshots, now)

    logger.info(
        "Assembled backlog batch %s for user %s: %d sentences, %d words marked, %d words buried",
        batch.id,
        user_uid,
        len(sentences),
        len(mark_as_mined),
        len(push_to_the_end),
    )
    return batch.id


def assemble_batch_from_backlog(
    session: Session,
    user_uid: str,
    sentence_ids: Iterable[str],
    mark_as_mined: Iterable[str] = (),
    push_to_the_end: Iterable[str] = (),
) -> str:
    """
    Mine backlog sentences (seen but never mined), optionally marking extra
    words as mined and burying others one level deeper.

    The three id sets have to be pairwise disjoint. The user's pending count
    is left alone.
    """
    sentence_set = as_id_set(sentence_ids)
    mine_set = as_id_set(mark_as_mined)
    bury_set = as_id_set(push_to_the_end)

    if (sentence_set & mine_set) or (sentence_set & bury_set) or (mine_set & bury_set):
        raise DuplicateIdsError()
    if not sentence_set:
        raise InvalidSelectionError()

    return _assemble_batch_from_backlog(session, user_uid, sentence_set, mine_set, bury_set)
