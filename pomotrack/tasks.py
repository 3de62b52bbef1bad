from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
import json
import logging
import secrets
import string
from typing import Any, Callable, Protocol

from .clock import Clock, RealClock
from .db import KeyValueStore, from_utc_text, to_utc_text
from .errors import InvalidTaskError, TaskCompletedError, TaskNotFoundError
from .events import EventBus

logger = logging.getLogger(__name__)

TASKS_KEY = "pomodoro_tasks"
_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    created_at: datetime
    description: str | None = None
    completed_at: datetime | None = None
    is_completed: bool = False
    estimated_pomodoros: int = 0
    completed_pomodoros: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdAt": to_utc_text(self.created_at),
            "completedAt": to_utc_text(self.completed_at) if self.completed_at else None,
            "isCompleted": self.is_completed,
            "estimatedPomodoros": self.estimated_pomodoros,
            "completedPomodoros": self.completed_pomodoros,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Task:
        completed_at = payload.get("completedAt")
        return cls(
            id=str(payload["id"]),
            title=str(payload["title"]),
            description=payload.get("description"),
            created_at=from_utc_text(str(payload["createdAt"])),
            completed_at=from_utc_text(str(completed_at)) if completed_at else None,
            is_completed=bool(payload.get("isCompleted", False)),
            estimated_pomodoros=int(payload.get("estimatedPomodoros", 0)),
            completed_pomodoros=int(payload.get("completedPomodoros", 0)),
        )


@dataclass(frozen=True)
class TaskStats:
    total_tasks: int
    completed_tasks: int
    active_tasks: int
    total_estimated_pomodoros: int
    total_completed_pomodoros: int
    completion_rate: float


class TaskEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    COMPLETED = "completed"
    POMODORO_ASSOCIATED = "pomodoroAssociated"


class TaskRepository(Protocol):
    def get_by_id(self, task_id: str) -> Task | None:
        ...

    def associate_pomodoro(self, task_id: str) -> None:
        ...

    def get_all_tasks(self) -> list[Task]:
        ...


_UNSET: Any = object()


class TaskManager:
    """Task store kept in memory and written through to a key-value store.

    Unlike the session ledger, a failed save propagates to the caller.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock | None = None,
        storage_key: str = TASKS_KEY,
    ) -> None:
        self.store = store
        self.clock = clock or RealClock()
        self.storage_key = storage_key
        self._events: EventBus[TaskEvent, Task] = EventBus(TaskEvent)
        self._tasks: list[Task] = self._load()

    def create_task(
        self,
        title: str,
        estimated_pomodoros: int = 1,
        description: str | None = None,
    ) -> Task:
        clean_title = (title or "").strip()
        if not clean_title:
            raise InvalidTaskError("Task title cannot be empty")
        if estimated_pomodoros < 0:
            raise InvalidTaskError("Estimated pomodoros cannot be negative")

        task = Task(
            id=self._generate_id(),
            title=clean_title,
            description=description.strip() if description else None,
            created_at=self.clock.now(),
            estimated_pomodoros=int(estimated_pomodoros),
        )
        self._tasks.append(task)
        self._save()
        self._events.emit(TaskEvent.CREATED, task)
        return task

    def get_all_tasks(self) -> list[Task]:
        return list(self._tasks)

    def get_active_tasks(self) -> list[Task]:
        return [task for task in self._tasks if not task.is_completed]

    def get_completed_tasks(self) -> list[Task]:
        return [task for task in self._tasks if task.is_completed]

    def filter_tasks(
        self,
        is_completed: bool | None = None,
        created_after: datetime | None = None,
        created_before: datetime | None = None,
        has_description: bool | None = None,
    ) -> list[Task]:
        items: list[Task] = []
        for task in self._tasks:
            if is_completed is not None and task.is_completed != is_completed:
                continue
            if created_after is not None and task.created_at < created_after:
                continue
            if created_before is not None and task.created_at > created_before:
                continue
            if has_description is not None:
                if bool(task.description and task.description.strip()) != has_description:
                    continue
            items.append(task)
        return items

    def get_by_id(self, task_id: str) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = _UNSET,
        estimated_pomodoros: int | None = None,
        is_completed: bool | None = None,
    ) -> Task:
        index = self._index_of(task_id)
        if index is None:
            raise TaskNotFoundError(task_id)
        task = self._tasks[index]

        changes: dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                raise InvalidTaskError("Task title cannot be empty")
            changes["title"] = title.strip()
        if description is not _UNSET:
            changes["description"] = description
        if estimated_pomodoros is not None:
            if estimated_pomodoros < 0:
                raise InvalidTaskError("Estimated pomodoros cannot be negative")
            changes["estimated_pomodoros"] = int(estimated_pomodoros)

        just_completed = False
        if is_completed is True and not task.is_completed:
            changes["is_completed"] = True
            changes["completed_at"] = self.clock.now()
            just_completed = True
        elif is_completed is False and task.is_completed:
            changes["is_completed"] = False
            changes["completed_at"] = None

        updated = replace(task, **changes)
        self._tasks[index] = updated
        self._save()
        if just_completed:
            self._events.emit(TaskEvent.COMPLETED, updated)
        self._events.emit(TaskEvent.UPDATED, updated)
        return updated

    def mark_task_as_completed(self, task_id: str) -> Task:
        return self.update_task(task_id, is_completed=True)

    def delete_task(self, task_id: str) -> bool:
        index = self._index_of(task_id)
        if index is None:
            return False
        task = self._tasks.pop(index)
        self._save()
        self._events.emit(TaskEvent.DELETED, task)
        return True

    def associate_pomodoro(self, task_id: str) -> None:
        index = self._index_of(task_id)
        if index is None:
            raise TaskNotFoundError(task_id)
        task = self._tasks[index]
        if task.is_completed:
            raise TaskCompletedError("Cannot associate pomodoro with completed task")

        updated = replace(task, completed_pomodoros=task.completed_pomodoros + 1)
        self._tasks[index] = updated
        self._save()
        self._events.emit(TaskEvent.POMODORO_ASSOCIATED, updated)

    def get_task_stats(self) -> TaskStats:
        total = len(self._tasks)
        completed = sum(1 for task in self._tasks if task.is_completed)
        return TaskStats(
            total_tasks=total,
            completed_tasks=completed,
            active_tasks=total - completed,
            total_estimated_pomodoros=sum(task.estimated_pomodoros for task in self._tasks),
            total_completed_pomodoros=sum(task.completed_pomodoros for task in self._tasks),
            completion_rate=(completed / total * 100) if total else 0.0,
        )

    def clear_all_tasks(self) -> None:
        self._tasks = []
        self.store.delete(self.storage_key)

    def subscribe(self, event_type: TaskEvent | str, callback: Callable[[Task], None]) -> None:
        self._events.subscribe(event_type, callback)

    def unsubscribe(self, event_type: TaskEvent | str, callback: Callable[[Task], None]) -> None:
        self._events.unsubscribe(event_type, callback)

    def _index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _generate_id(self) -> str:
        millis = int(self.clock.now().timestamp() * 1000)
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"task-{millis}-{suffix}"

    def _load(self) -> list[Task]:
        try:
            raw = self.store.get(self.storage_key)
            if not raw:
                return []
            return [Task.from_dict(item) for item in json.loads(raw)]
        except Exception:
            logger.exception("Failed to load tasks from store key %s", self.storage_key)
            return []

    def _save(self) -> None:
        payload = [task.to_dict() for task in self._tasks]
        self.store.set(self.storage_key, json.dumps(payload, ensure_ascii=False))
