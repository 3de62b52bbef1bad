from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone, tzinfo
import json
import logging
import secrets
import string
from typing import Any, Callable

from .clock import Clock, RealClock
from .db import KeyValueStore, from_utc_text, to_utc_text
from .engine import TimerMode

logger = logging.getLogger(__name__)

SESSIONS_KEY = "pomodoro_sessions"
_ID_ALPHABET = string.digits + string.ascii_lowercase

PersistErrorHook = Callable[[Exception], None]


@dataclass(frozen=True)
class Session:
    id: str
    start_time: datetime
    end_time: datetime
    duration: int
    mode: TimerMode
    task_id: str | None = None
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": to_utc_text(self.start_time),
            "endTime": to_utc_text(self.end_time),
            "duration": self.duration,
            "mode": self.mode.value,
            "taskId": self.task_id,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Session:
        task_id = payload.get("taskId")
        return cls(
            id=str(payload["id"]),
            start_time=from_utc_text(str(payload["startTime"])),
            end_time=from_utc_text(str(payload["endTime"])),
            duration=int(payload.get("duration", 0)),
            mode=TimerMode(payload["mode"]),
            task_id=str(task_id) if task_id is not None else None,
            completed=bool(payload.get("completed", False)),
        )


class SessionLedger:
    """Lifecycle of timed sessions, persisted as one JSON document.

    Storage is best-effort: a failed load starts empty and a failed save is
    logged (and reported to ``on_persist_error``) without undoing the change.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock | None = None,
        on_persist_error: PersistErrorHook | None = None,
        storage_key: str = SESSIONS_KEY,
    ) -> None:
        self.store = store
        self.clock = clock or RealClock()
        self.on_persist_error = on_persist_error
        self.storage_key = storage_key
        self._sessions: list[Session] = []
        self._load()

    def start_session(self, mode: TimerMode | str, task_id: str | None = None) -> str:
        now = self.clock.now()
        session = Session(
            id=self._generate_id(now),
            start_time=now,
            end_time=now,
            duration=0,
            mode=TimerMode(mode),
            task_id=task_id,
            completed=False,
        )
        self._sessions.append(session)
        self._save()
        logger.debug("Session started: id=%s mode=%s task=%s", session.id, session.mode.value, task_id)
        return session.id

    def complete_session(self, session_id: str, completed: bool = True) -> Session | None:
        index = self._index_of(session_id)
        if index is None:
            return None

        session = self._sessions[index]
        end_time = self.clock.now()
        updated = replace(
            session,
            end_time=end_time,
            duration=(end_time - session.start_time) // timedelta(seconds=1),
            completed=bool(completed),
        )
        self._sessions[index] = updated
        self._save()
        return updated

    def cancel_session(self, session_id: str) -> bool:
        index = self._index_of(session_id)
        if index is None:
            return False
        del self._sessions[index]
        self._save()
        return True

    def get_session(self, session_id: str) -> Session | None:
        index = self._index_of(session_id)
        return self._sessions[index] if index is not None else None

    def get_all_sessions(self) -> list[Session]:
        return list(self._sessions)

    def get_sessions_by_date(self, day: date, tz: tzinfo = timezone.utc) -> list[Session]:
        return [s for s in self._sessions if s.start_time.astimezone(tz).date() == day]

    def get_sessions_by_date_range(self, start: datetime, end: datetime) -> list[Session]:
        start, end = _aware(start), _aware(end)
        return [s for s in self._sessions if start <= s.start_time <= end]

    def get_sessions_by_task(self, task_id: str) -> list[Session]:
        return [s for s in self._sessions if s.task_id == task_id]

    def get_completed_sessions(self) -> list[Session]:
        return [s for s in self._sessions if s.completed]

    def clear_all_sessions(self) -> None:
        self._sessions = []
        self._save()

    def clear_sessions_before(self, cutoff: datetime) -> int:
        cutoff = _aware(cutoff)
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if s.start_time >= cutoff]
        removed = before - len(self._sessions)
        self._save()
        return removed

    def _index_of(self, session_id: str) -> int | None:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                return index
        return None

    def _generate_id(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            candidate = f"session_{millis}_{suffix}"
            if self._index_of(candidate) is None:
                return candidate

    def _load(self) -> None:
        try:
            raw = self.store.get(self.storage_key)
            if not raw:
                return
            payload = json.loads(raw)
            self._sessions = [Session.from_dict(item) for item in payload]
        except Exception as exc:
            logger.exception("Failed to load sessions from store key %s", self.storage_key)
            self._sessions = []
            self._report(exc)

    def _save(self) -> None:
        try:
            payload = [session.to_dict() for session in self._sessions]
            self.store.set(self.storage_key, json.dumps(payload, ensure_ascii=False))
        except Exception as exc:
            logger.exception("Failed to save sessions to store key %s", self.storage_key)
            self._report(exc)

    def _report(self, exc: Exception) -> None:
        if self.on_persist_error is None:
            return
        try:
            self.on_persist_error(exc)
        except Exception:
            logger.exception("Error in persistence error hook")


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
