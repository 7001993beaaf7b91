from __future__ import annotations

from sqlmodel import Session, select

from sentence_base.models import META_COUNTERS_DOCUMENT_ID, Meta, Sentence, User, Word


def word_of(fetch, sentence_id: str) -> Word:
    sentence = fetch(Sentence, sentence_id)
    return fetch(Word, sentence.word_id)


def meta_counters(engine) -> Meta:
    with Session(engine) as session:
        return session.get(Meta, META_COUNTERS_DOCUMENT_ID)


def user_of(engine, uid: str) -> User:
    with Session(engine) as session:
        return session.get(User, uid)


def pending_sentences_of(engine, uid: str) -> list[Sentence]:
    with Session(engine) as session:
        return list(
            session.exec(
                select(Sentence).where(Sentence.user_uid == uid, Sentence.is_pending == True)  # noqa: E712
            ).all()
        )


def words_of(engine, uid: str) -> list[Word]:
    with Session(engine) as session:
        return list(session.exec(select(Word).where(Word.user_uid == uid)).all())


def sentences_of(engine, uid: str) -> list[Sentence]:
    with Session(engine) as session:
        return list(session.exec(select(Sentence).where(Sentence.user_uid == uid)).all())
