from __future__ import annotations

from typing import Any, Callable, Optional

import pytest
from sqlmodel import Session

from sentence_base import notifications
from sentence_base.db import init_db, make_engine
from sentence_base.services.batches import assemble_batch
from sentence_base.services.sentences import add_sentence
from sentence_base.services.users import create_user_document


@pytest.fixture
def engine(tmp_path):
    test_engine = make_engine(f"sqlite:///{tmp_path / 'sentence_base.db'}")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def call(engine) -> Callable[..., Any]:
    """Run one core operation in a fresh session, the way a request would."""

    def _call(operation: Callable[..., Any], *args, **kwargs) -> Any:
        with Session(engine) as session:
            return operation(session, *args, **kwargs)

    return _call


@pytest.fixture
def fetch(engine) -> Callable[..., Any]:
    def _fetch(model, key) -> Optional[Any]:
        with Session(engine) as session:
            return session.get(model, key)

    return _fetch


@pytest.fixture
def user_uid(call) -> str:
    return call(create_user_document, "user-1")


@pytest.fixture
def other_uid(call) -> str:
    return call(create_user_document, "user-2")


@pytest.fixture
def captured_changes():
    """Hold back change notifications instead of applying them."""
    changes: list[notifications.ChangeEvent] = []
    notifications.set_dispatcher(lambda bind, batch: changes.extend(batch))
    yield changes
    notifications.set_dispatcher(None)


@pytest.fixture
def add(call, user_uid) -> Callable[..., str]:
    def _add(dictionary_form: str, reading: str, sentence: str = "例文。", tags=("some", "tags"), uid=None) -> str:
        return call(add_sentence, uid or user_uid, dictionary_form, reading, sentence, list(tags))

    return _add


@pytest.fixture
def prepare_backlog(add, call, user_uid) -> Callable[..., list[str]]:
    """Add sentences and push them to the backlog by mining an unrelated one."""

    def _prepare(pairs, uid=None) -> list[str]:
        uid = uid or user_uid
        sentence_ids = [add(form, reading, uid=uid) for form, reading in pairs]
        anchor = add(f"anchor-{len(sentence_ids)}", "アンカー", uid=uid)
        call(assemble_batch, uid, [anchor])
        return sentence_ids

    return _prepare
