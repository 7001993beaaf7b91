from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

META_COUNTERS_DOCUMENT_ID = "counters"


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Collection(str, Enum):
    WORDS = "words"
    SENTENCES = "sentences"
    BATCHES = "batches"
    USERS = "users"
    META = "meta"
    EVENT_IDS = "eventIds"


# Counting these would feed the counter handler its own writes.
UNCOUNTED_COLLECTIONS = frozenset({Collection.META, Collection.EVENT_IDS})

# Collections whose documents carry `user_uid` and get a per-user counter.
USER_COUNTER_COLUMNS = {
    Collection.WORDS: "words_counter",
    Collection.SENTENCES: "sentences_counter",
    Collection.BATCHES: "batches_counter",
}


class User(SQLModel, table=True):
    __tablename__ = "users"

    uid: str = Field(primary_key=True)
    pending_sentences: int = Field(default=0)
    words_counter: int = Field(default=0)
    sentences_counter: int = Field(default=0)
    batches_counter: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def counters(self) -> dict[str, int]:
        return {
            collection.value: getattr(self, column)
            for collection, column in USER_COUNTER_COLUMNS.items()
        }


class Word(SQLModel, table=True):
    __tablename__ = "words"
    __table_args__ = (
        UniqueConstraint("user_uid", "dictionary_form", "reading", name="uq_words_user_form_reading"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    user_uid: str = Field(foreign_key="users.uid", index=True)
    dictionary_form: str
    reading: str
    frequency: int = Field(default=0)
    is_mined: bool = Field(default=False)
    bury_level: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Sentence(SQLModel, table=True):
    __tablename__ = "sentences"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_uid: str = Field(foreign_key="users.uid", index=True)
    word_id: str = Field(foreign_key="words.id", index=True)
    sentence: str
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_pending: bool = Field(default=True, index=True)
    is_mined: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Batch(SQLModel, table=True):
    """Immutable snapshot of the sentences mined together."""

    __tablename__ = "batches"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_uid: str = Field(foreign_key="users.uid", index=True)
    # [{sentenceId, sentence, wordDictionaryForm, wordReading, tags}, ...]
    sentences: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Meta(SQLModel, table=True):
    """Singleton row with the global per-collection document counts."""

    __tablename__ = "meta"

    id: str = Field(default=META_COUNTERS_DOCUMENT_ID, primary_key=True)
    words: int = Field(default=0)
    sentences: int = Field(default=0)
    batches: int = Field(default=0)
    users: int = Field(default=0)


class EventIdRecord(SQLModel, table=True):
    __tablename__ = "eventIds"

    event_id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)


def collection_of(document: Any) -> Optional[Collection]:
    tablename = getattr(type(document), "__tablename__", None)
    try:
        return Collection(tablename)
    except ValueError:
        return None
