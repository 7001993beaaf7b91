from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .settings import MAXIMUM_PENDING_SENTENCES


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class SentenceCreate(BaseModel):
    dictionary_form: str = Field(alias="dictionaryForm", min_length=1, max_length=32)
    reading: str = Field(min_length=1, max_length=64)
    sentence: str = Field(min_length=1, max_length=512)
    tags: list[str]

    @field_validator("dictionary_form", "reading", "sentence", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)


class SentenceUpdate(BaseModel):
    sentence: str = Field(min_length=1, max_length=512)
    tags: list[str]

    @field_validator("sentence", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)


class BatchCreate(BaseModel):
    sentences: list[str] = Field(min_length=1, max_length=MAXIMUM_PENDING_SENTENCES)


class BacklogBatchCreate(BaseModel):
    sentences: list[str] = Field(min_length=1)
    mark_as_mined: list[str] = Field(default_factory=list, alias="markAsMined")
    push_to_the_end: list[str] = Field(default_factory=list, alias="pushToTheEnd")
