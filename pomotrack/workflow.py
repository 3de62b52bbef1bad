from __future__ import annotations

import logging

from .coordinator import TaskSessionCoordinator
from .engine import CountdownEngine, TimerMode, TimerState, next_mode
from .events import TimerEvent
from .ledger import Session
from .settings import TimerSettings

logger = logging.getLogger(__name__)


class PomodoroWorkflow:
    """Caller-side glue between the countdown engine and the coordinator.

    The engine stays a pure timer; this class opens a session when a countdown
    starts, closes it when the countdown completes and moves on to the next
    mode, auto-starting it when the settings ask for that.
    """

    def __init__(self, engine: CountdownEngine, coordinator: TaskSessionCoordinator) -> None:
        self.engine = engine
        self.coordinator = coordinator
        self.task_id: str | None = None
        self.last_session: Session | None = None
        self.engine.subscribe(TimerEvent.COMPLETE, self._on_complete)

    def close(self) -> None:
        self.engine.unsubscribe(TimerEvent.COMPLETE, self._on_complete)

    def state(self) -> TimerState:
        return self.engine.get_state()

    def start(self, task_id: str | None = None) -> TimerState:
        state = self.engine.get_state()
        if state.is_running:
            return state
        if task_id is not None:
            self.task_id = task_id or None
        elif self.task_id is not None and not self._task_is_open(self.task_id):
            logger.info("Dropping remembered task %s: missing or completed", self.task_id)
            self.task_id = None
        self._close_mismatched_session(state.mode)
        if self.coordinator.get_current_session() is None:
            session_task = self.task_id if state.mode is TimerMode.WORK else None
            self.coordinator.start_pomodoro_session(state.mode, session_task)
        self.engine.start()
        return self.engine.get_state()

    def pause(self) -> TimerState:
        self.engine.pause()
        return self.engine.get_state()

    def reset(self) -> TimerState:
        self.engine.reset()
        self._abandon_session()
        return self.engine.get_state()

    def switch_mode(self, mode: TimerMode | str) -> TimerState:
        self._abandon_session()
        self.engine.switch_mode(mode)
        return self.engine.get_state()

    def skip(self) -> TimerState:
        return self.switch_mode(next_mode(self.engine.get_state(), self.engine.settings))

    def set_task(self, task_id: str | None) -> None:
        if self.coordinator.get_current_session() is not None:
            self.coordinator.switch_session_task(task_id)
        self.task_id = task_id or None

    def update_settings(self, settings: TimerSettings) -> TimerState:
        self.engine.update_settings(settings)
        return self.engine.get_state()

    def _abandon_session(self) -> None:
        if self.coordinator.get_current_session() is None:
            return
        self.last_session = self.coordinator.complete_pomodoro_session(completed=False)

    def _task_is_open(self, task_id: str) -> bool:
        task = self.coordinator.tasks.get_by_id(task_id)
        return task is not None and not task.is_completed

    def _close_mismatched_session(self, mode: TimerMode) -> None:
        # a session opened directly on the coordinator may be for another mode
        current = self.coordinator.get_current_session()
        if current is None:
            return
        session = self.coordinator.ledger.get_session(current.session_id)
        if session is None or session.mode is not mode:
            self._abandon_session()

    def _on_complete(self, state: TimerState) -> None:
        if self.coordinator.get_current_session() is not None:
            self.last_session = self.coordinator.complete_pomodoro_session(completed=True)

        settings = self.engine.settings
        target = next_mode(state, settings)
        self.engine.switch_mode(target)
        auto_start = settings.auto_start_work if target is TimerMode.WORK else settings.auto_start_breaks
        logger.info("Advanced to %s (auto start: %s)", target.value, auto_start)
        if auto_start:
            self.start()
