from __future__ import annotations

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from sentence_base import notifications
from sentence_base.errors import InvalidSelectionError
from sentence_base.models import Collection, EventIdRecord
from sentence_base.notifications import ChangeEvent, ChangeKind, deliver
from sentence_base.services import counters
from sentence_base.services.batches import assemble_batch
from sentence_base.services.counters import update_counters
from sentence_base.services.sentences import delete_sentence, edit_sentence
from sentence_base.services.users import create_user_document

from helpers import meta_counters, user_of


def _ledger_size(engine) -> int:
    with Session(engine) as session:
        return len(session.exec(select(EventIdRecord)).all())


def _batch_created(event_id: str, user_uid: str) -> ChangeEvent:
    return ChangeEvent(
        event_id=event_id,
        collection=Collection.BATCHES,
        kind=ChangeKind.CREATE,
        document_id="batch-1",
        user_uid=user_uid,
    )


def test_counters_follow_document_lifecycle(engine, add, call, user_uid):
    first = add("猫", "ネコ")
    add("猫", "ネコ")
    add("犬", "イヌ")

    meta = meta_counters(engine)
    assert (meta.users, meta.words, meta.sentences, meta.batches) == (1, 2, 3, 0)
    assert user_of(engine, user_uid).counters == {"words": 2, "sentences": 3, "batches": 0}

    call(delete_sentence, user_uid, first)
    call(assemble_batch, user_uid, [add("家", "イエ")])

    meta = meta_counters(engine)
    assert (meta.users, meta.words, meta.sentences, meta.batches) == (1, 3, 3, 1)
    assert user_of(engine, user_uid).counters == {"words": 3, "sentences": 3, "batches": 1}


def test_counters_are_kept_per_user(engine, add, user_uid, other_uid):
    add("猫", "ネコ")
    add("猫", "ネコ", uid=other_uid)
    add("犬", "イヌ", uid=other_uid)

    assert user_of(engine, user_uid).counters["sentences"] == 1
    assert user_of(engine, other_uid).counters["sentences"] == 2
    assert meta_counters(engine).sentences == 3
    assert meta_counters(engine).users == 2


def test_updates_do_not_count(engine, add, call, user_uid):
    sentence_id = add("猫", "ネコ")
    before = meta_counters(engine)

    call(edit_sentence, user_uid, sentence_id, "変わった。", [])

    after = meta_counters(engine)
    assert (after.words, after.sentences) == (before.words, before.sentences)


def test_rolled_back_writes_are_not_counted(engine, add, call, user_uid):
    add("猫", "ネコ")

    with pytest.raises(InvalidSelectionError):
        call(assemble_batch, user_uid, ["does-not-exist"])

    assert meta_counters(engine).batches == 0
    assert user_of(engine, user_uid).counters["batches"] == 0


def test_duplicate_delivery_counts_once(engine, add, captured_changes, user_uid):
    add("猫", "ネコ")
    changes = list(captured_changes)
    ledger_before = _ledger_size(engine)
    assert {change.collection for change in changes} == {Collection.WORDS, Collection.SENTENCES}
    assert meta_counters(engine).sentences == 0

    deliver(engine, changes)
    deliver(engine, changes)

    assert meta_counters(engine).sentences == 1
    assert meta_counters(engine).words == 1
    assert user_of(engine, user_uid).counters == {"words": 1, "sentences": 1, "batches": 0}
    assert _ledger_size(engine) == ledger_before + 2


def test_duplicate_create_and_delete_net_to_zero(engine, add, call, captured_changes, user_uid):
    sentence_id = add("猫", "ネコ")
    call(delete_sentence, user_uid, sentence_id)
    [create] = [c for c in captured_changes if c.collection == Collection.SENTENCES and c.kind == ChangeKind.CREATE]
    [remove] = [c for c in captured_changes if c.kind == ChangeKind.DELETE]
    assert remove.document_id == sentence_id

    for change in (create, create, remove, remove):
        deliver(engine, [change])

    assert meta_counters(engine).sentences == 0
    assert user_of(engine, user_uid).counters["sentences"] == 0


def test_update_counters_reports_processed_events(engine, call, user_uid):
    change = _batch_created("event-1", user_uid)

    assert call(update_counters, change) is True
    assert call(update_counters, change) is False
    assert meta_counters(engine).batches == 1
    assert user_of(engine, user_uid).counters["batches"] == 1


def test_excluded_collections_are_ignored(engine, call):
    before = _ledger_size(engine)
    for collection in (Collection.META, Collection.EVENT_IDS):
        change = ChangeEvent(
            event_id=f"event-{collection.value}",
            collection=collection,
            kind=ChangeKind.CREATE,
            document_id="whatever",
        )
        assert call(update_counters, change) is False

    assert _ledger_size(engine) == before


def test_missing_user_only_updates_global_counter(engine, call):
    change = ChangeEvent(
        event_id="event-orphan",
        collection=Collection.WORDS,
        kind=ChangeKind.DELETE,
        document_id="word-1",
        user_uid="deleted-user",
    )

    assert call(update_counters, change) is True
    assert meta_counters(engine).words == -1
    assert user_of(engine, "deleted-user") is None


def test_user_creation_counts_globally(engine, call):
    call(create_user_document, "user-a")
    call(create_user_document, "user-b")

    assert meta_counters(engine).users == 2


def test_disabled_notifications_skip_counting(engine, add, user_uid):
    notifications.disable()
    try:
        add("猫", "ネコ")
    finally:
        notifications.enable()

    assert meta_counters(engine).sentences == 0
    assert user_of(engine, user_uid).counters["sentences"] == 0


def test_failed_delivery_is_retried_with_the_same_event_id(engine, user_uid, monkeypatch):
    attempts = []

    def flaky(session, change):
        attempts.append(change.event_id)
        if len(attempts) == 1:
            raise SQLAlchemyError("database is locked")
        return update_counters(session, change)

    monkeypatch.setattr(counters, "update_counters", flaky)

    deliver(engine, [_batch_created("event-retry", user_uid)])

    assert attempts == ["event-retry", "event-retry"]
    assert meta_counters(engine).batches == 1


def test_delivery_gives_up_without_raising(engine, user_uid, monkeypatch):
    def broken(session, change):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(counters, "update_counters", broken)

    deliver(engine, [_batch_created("event-lost", user_uid)], attempts=2)

    assert meta_counters(engine).batches == 0


def test_counter_bookkeeping_is_not_notified(engine, add, captured_changes, user_uid):
    add("猫", "ネコ")
    changes = list(captured_changes)
    captured_changes.clear()

    deliver(engine, changes)

    assert meta_counters(engine).sentences == 1
    assert captured_changes == []
