import json
import logging
from datetime import date

import pytest

from techtree.core.errors import RecordError
from techtree.core.io.kv_store import MemoryKeyValueStore
from techtree.core.journal.records import (
    DAILY_QUESTIONS,
    DailyAnswer,
    DailyRecords,
    Event,
    answer_key,
    event_key,
)

DAY = date(2024, 5, 1)


def _records(kv=None):
    records = DailyRecords(kv if kv is not None else MemoryKeyValueStore())
    records.load_records()
    return records


def test_daily_questions():
    assert [q.key for q in DAILY_QUESTIONS] == ["q1", "q2", "q3"]
    assert DAILY_QUESTIONS[1].type == "evaluation"


def test_keys_are_per_day():
    assert answer_key(DAY) == "@dailyAnswer:2024-05-01"
    assert event_key(DAY) == "@event:2024-05-01"


def test_unanswered_day_is_empty():
    assert _records().answer_for(DAY) == DailyAnswer()


def test_save_answer_is_stored_and_reloaded():
    kv = MemoryKeyValueStore()
    records = _records(kv)
    answer = DailyAnswer(done_today="Read a book", self_rating=1, improvement="Sleep earlier")
    records.save_daily_answer(DAY, answer)

    assert json.loads(kv.get(answer_key(DAY))) == {"q1": "Read a book", "q2": 1, "q3": "Sleep earlier"}
    assert _records(kv).answer_for(DAY) == answer
    assert _records(kv).answered_dates() == ["2024-05-01"]


def test_save_answer_rejects_bad_rating():
    records = _records()
    with pytest.raises(RecordError) as exc:
        records.save_daily_answer(DAY, DailyAnswer(self_rating=5))
    assert exc.value.code == "E_INVALID_ENUM"
    assert records.answered_dates() == []


def test_delete_answer():
    kv = MemoryKeyValueStore()
    records = _records(kv)
    records.save_daily_answer(DAY, DailyAnswer(done_today="x"))
    records.delete_daily_answer(DAY)
    assert kv.get(answer_key(DAY)) is None
    assert records.answer_for(DAY) == DailyAnswer()


def test_events_get_increasing_ids_per_day():
    records = _records()
    first = records.save_event(DAY, Event(title="Dentist"))
    second = records.save_event(DAY, Event(title="Gym", memo="legs"))
    other_day = records.save_event(date(2024, 5, 2), Event(title="Call mom"))

    assert (first.id, second.id, other_day.id) == (1, 2, 1)
    assert [e.title for e in records.events_for(DAY)] == ["Dentist", "Gym"]


def test_edit_event_keeps_position():
    kv = MemoryKeyValueStore()
    records = _records(kv)
    records.save_event(DAY, Event(title="Dentist"))
    records.save_event(DAY, Event(title="Gym"))
    records.save_event(DAY, Event(id=1, title="Dentist", memo="10am"))

    reloaded = _records(kv).events_for(DAY)
    assert [(e.id, e.memo) for e in reloaded] == [(1, "10am"), (2, "")]


def test_edit_unknown_event_raises():
    records = _records()
    with pytest.raises(RecordError) as exc:
        records.save_event(DAY, Event(id=7, title="Ghost"))
    assert exc.value.code == "E_EVENT_NOT_FOUND"


def test_deleting_last_event_removes_the_key():
    kv = MemoryKeyValueStore()
    records = _records(kv)
    records.save_event(DAY, Event(title="Dentist"))
    records.save_event(DAY, Event(title="Gym"))

    records.delete_event(DAY, 1)
    assert [e.id for e in records.events_for(DAY)] == [2]
    records.delete_event(DAY, 2)
    assert kv.get(event_key(DAY)) is None
    assert records.events_for(DAY) == []

    with pytest.raises(RecordError):
        records.delete_event(DAY, 2)


def test_unreadable_records_are_skipped(caplog):
    kv = MemoryKeyValueStore(
        {
            answer_key(DAY): "{broken",
            answer_key(date(2024, 5, 2)): json.dumps({"q1": "ok", "q2": 0, "q3": ""}),
            event_key(DAY): json.dumps({"not": "a list"}),
            "@techTree:data": "[]",
        }
    )
    with caplog.at_level(logging.WARNING, logger="techtree"):
        records = _records(kv)

    assert records.answered_dates() == ["2024-05-02"]
    assert records.answer_for(date(2024, 5, 2)).self_rating == 0
    assert records.events_for(DAY) == []
    assert "Skipping unreadable journal record" in caplog.text
