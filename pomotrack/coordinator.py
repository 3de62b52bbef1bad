from __future__ import annotations

from dataclasses import dataclass
import logging

from .engine import TimerMode
from .errors import NoActiveSessionError, TaskCompletedError, TaskNotFoundError
from .ledger import Session, SessionLedger
from .tasks import Task, TaskRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentSession:
    session_id: str
    task_id: str | None


@dataclass(frozen=True)
class TaskPomodoroStats:
    total_sessions: int
    completed_sessions: int
    total_work_time: int
    average_session_duration: float
    completion_rate: float


@dataclass(frozen=True)
class TaskPomodoroSummary:
    task_id: str
    task_title: str
    estimated_pomodoros: int
    completed_pomodoros: int
    actual_sessions: int
    completion_percentage: float


class TaskSessionCoordinator:
    """Links ledger sessions to tasks; at most one session is in flight.

    The completed session is authoritative. Crediting the task afterwards is
    best-effort and never rolls the session back.
    """

    def __init__(self, ledger: SessionLedger, tasks: TaskRepository) -> None:
        self.ledger = ledger
        self.tasks = tasks
        self._current_session_id: str | None = None
        self._current_task_id: str | None = None

    def start_pomodoro_session(self, mode: TimerMode | str, task_id: str | None = None) -> str:
        if task_id:
            self._require_open_task(task_id, "Cannot start pomodoro session for completed task")

        session_id = self.ledger.start_session(mode, task_id or None)
        self._current_session_id = session_id
        self._current_task_id = task_id or None
        logger.info("Pomodoro session started: id=%s mode=%s task=%s", session_id, TimerMode(mode).value, task_id)
        return session_id

    def complete_pomodoro_session(self, completed: bool = True) -> Session | None:
        if not self._current_session_id:
            raise NoActiveSessionError("No active pomodoro session to complete")

        task_id = self._current_task_id
        try:
            session = self.ledger.complete_session(self._current_session_id, completed)
            if session and completed and session.mode is TimerMode.WORK and task_id:
                try:
                    self.tasks.associate_pomodoro(task_id)
                except Exception:
                    logger.exception("Failed to update task pomodoro count: task=%s", task_id)
        finally:
            self._current_session_id = None
            self._current_task_id = None
        return session

    def cancel_pomodoro_session(self) -> bool:
        if not self._current_session_id:
            return False

        cancelled = self.ledger.cancel_session(self._current_session_id)
        if cancelled:
            self._current_session_id = None
            self._current_task_id = None
        return cancelled

    def get_current_session(self) -> CurrentSession | None:
        if not self._current_session_id:
            return None
        return CurrentSession(session_id=self._current_session_id, task_id=self._current_task_id)

    def switch_session_task(self, task_id: str | None) -> None:
        if not self._current_session_id:
            raise NoActiveSessionError("No active session to switch task for")
        if task_id:
            self._require_open_task(task_id, "Cannot associate session with completed task")

        # only the credit target changes; the persisted session keeps its task_id
        self._current_task_id = task_id or None

    def get_task_pomodoro_history(self, task_id: str) -> list[Session]:
        if self.tasks.get_by_id(task_id) is None:
            raise TaskNotFoundError(task_id)
        return self.ledger.get_sessions_by_task(task_id)

    def get_task_pomodoro_stats(self, task_id: str) -> TaskPomodoroStats:
        sessions = self.get_task_pomodoro_history(task_id)
        work_sessions = [s for s in sessions if s.mode is TimerMode.WORK]
        completed = [s for s in work_sessions if s.completed]

        total_work_time = sum(s.duration for s in completed)
        return TaskPomodoroStats(
            total_sessions=len(work_sessions),
            completed_sessions=len(completed),
            total_work_time=total_work_time,
            average_session_duration=(total_work_time / len(completed)) if completed else 0.0,
            completion_rate=(len(completed) / len(work_sessions) * 100) if work_sessions else 0.0,
        )

    def get_all_tasks_pomodoro_summary(self) -> list[TaskPomodoroSummary]:
        summary: list[TaskPomodoroSummary] = []
        for task in self.tasks.get_all_tasks():
            stats = self.get_task_pomodoro_stats(task.id)
            percentage = (
                task.completed_pomodoros / task.estimated_pomodoros * 100
                if task.estimated_pomodoros > 0
                else 0.0
            )
            summary.append(
                TaskPomodoroSummary(
                    task_id=task.id,
                    task_title=task.title,
                    estimated_pomodoros=task.estimated_pomodoros,
                    completed_pomodoros=task.completed_pomodoros,
                    actual_sessions=stats.completed_sessions,
                    completion_percentage=percentage,
                )
            )
        return summary

    def _require_open_task(self, task_id: str, completed_message: str) -> Task:
        task = self.tasks.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.is_completed:
            raise TaskCompletedError(completed_message)
        return task
