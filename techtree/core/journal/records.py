"""Daily reflective answers and calendar events, one storage key per day."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Literal, Optional

from techtree.core.errors import RecordError
from techtree.core.io.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ANSWER_KEY_PREFIX = "@dailyAnswer:"
EVENT_KEY_PREFIX = "@event:"


@dataclass(frozen=True)
class DailyQuestion:
    key: str
    text: str
    type: Literal["text", "evaluation"]


DAILY_QUESTIONS: tuple[DailyQuestion, ...] = (
    DailyQuestion(key="q1", text="What did you do today?", type="text"),
    DailyQuestion(key="q2", text="How would you rate yourself today?", type="evaluation"),
    DailyQuestion(key="q3", text="How could you do better than yourself today?", type="text"),
)


@dataclass(frozen=True)
class DailyAnswer:
    done_today: str = ""
    # 1 = good day, 0 = bad day, None = not rated
    self_rating: Optional[int] = None
    improvement: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"q1": self.done_today, "q2": self.self_rating, "q3": self.improvement}

    @classmethod
    def from_dict(cls, data: Any) -> "DailyAnswer":
        if not isinstance(data, dict):
            raise ValueError("daily answer must be an object")
        q1, q2, q3 = data.get("q1", ""), data.get("q2"), data.get("q3", "")
        if not isinstance(q1, str) or not isinstance(q3, str):
            raise ValueError("q1 and q3 must be strings")
        if q2 not in (0, 1, None) or isinstance(q2, bool):
            raise ValueError("q2 must be 0, 1 or null")
        return cls(done_today=q1, self_rating=q2, improvement=q3)


@dataclass(frozen=True)
class Event:
    title: str
    memo: str = ""
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "memo": self.memo}

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        if not isinstance(data, dict):
            raise ValueError("event must be an object")
        eid, title, memo = data.get("id"), data.get("title"), data.get("memo", "")
        if not isinstance(eid, int) or isinstance(eid, bool):
            raise ValueError("event id must be an integer")
        if not isinstance(title, str) or not isinstance(memo, str):
            raise ValueError("event title and memo must be strings")
        return cls(id=eid, title=title, memo=memo)


def answer_key(day: date) -> str:
    return f"{ANSWER_KEY_PREFIX}{day.isoformat()}"


def event_key(day: date) -> str:
    return f"{EVENT_KEY_PREFIX}{day.isoformat()}"


class DailyRecords:
    """
    Journal records over a key-value store.

    Writes go to storage first and only then to the in-memory copy, so a
    failed write (which propagates) leaves memory matching storage.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv
        self.answers: dict[str, DailyAnswer] = {}
        self.events: dict[str, list[Event]] = {}

    def load_records(self) -> None:
        answers: dict[str, DailyAnswer] = {}
        events: dict[str, list[Event]] = {}
        for key in self.kv.keys():
            raw = self.kv.get(key)
            if raw is None:
                continue
            try:
                if key.startswith(ANSWER_KEY_PREFIX):
                    answers[key[len(ANSWER_KEY_PREFIX):]] = DailyAnswer.from_dict(json.loads(raw))
                elif key.startswith(EVENT_KEY_PREFIX):
                    items = json.loads(raw)
                    if not isinstance(items, list):
                        raise ValueError("events must be an array")
                    events[key[len(EVENT_KEY_PREFIX):]] = [Event.from_dict(item) for item in items]
            except ValueError as e:
                logger.warning(f"Skipping unreadable journal record {key}: {e}")
        self.answers = answers
        self.events = events
        logger.debug(f"Loaded {len(answers)} answers and {len(events)} event days")

    def answer_for(self, day: date) -> DailyAnswer:
        return self.answers.get(day.isoformat(), DailyAnswer())

    def answered_dates(self) -> list[str]:
        return sorted(self.answers.keys())

    def save_daily_answer(self, day: date, answer: DailyAnswer) -> None:
        if answer.self_rating not in (0, 1, None):
            raise RecordError(
                code="E_INVALID_ENUM",
                message="self_rating must be 0, 1 or None",
                path="q2",
            )
        self.kv.set(answer_key(day), json.dumps(answer.to_dict(), ensure_ascii=False))
        self.answers[day.isoformat()] = answer

    def delete_daily_answer(self, day: date) -> None:
        self.kv.remove(answer_key(day))
        self.answers.pop(day.isoformat(), None)

    def events_for(self, day: date) -> list[Event]:
        return list(self.events.get(day.isoformat(), []))

    def save_event(self, day: date, event: Event) -> Event:
        """Update the event with event.id, or add it under the next free id for that day."""
        day_events = self.events_for(day)
        if event.id:
            if not any(e.id == event.id for e in day_events):
                raise _event_not_found(day, event.id)
            saved = event
            updated = [saved if e.id == event.id else e for e in day_events]
        else:
            next_id = max((e.id or 0 for e in day_events), default=0) + 1
            saved = replace(event, id=next_id)
            updated = day_events + [saved]

        self.kv.set(event_key(day), json.dumps([e.to_dict() for e in updated], ensure_ascii=False))
        self.events[day.isoformat()] = updated
        return saved

    def delete_event(self, day: date, event_id: int) -> None:
        day_events = self.events_for(day)
        updated = [e for e in day_events if e.id != event_id]
        if len(updated) == len(day_events):
            raise _event_not_found(day, event_id)

        if updated:
            self.kv.set(event_key(day), json.dumps([e.to_dict() for e in updated], ensure_ascii=False))
            self.events[day.isoformat()] = updated
        else:
            self.kv.remove(event_key(day))
            self.events.pop(day.isoformat(), None)


def _event_not_found(day: date, event_id: int) -> RecordError:
    return RecordError(
        code="E_EVENT_NOT_FOUND",
        message=f"no event {event_id} on {day.isoformat()}",
        path="event_id",
    )
