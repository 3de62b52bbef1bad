from __future__ import annotations

import logging
from pathlib import Path
import queue
from threading import RLock
from typing import Any

from ..clock import Clock, RealClock, Scheduler, ThreadScheduler
from ..coordinator import TaskSessionCoordinator
from ..db import KeyValueStore, SqliteKeyValueStore
from ..engine import CountdownEngine, TimerState
from ..events import TimerEvent
from ..ledger import SessionLedger
from ..settings import TimerSettings, load_settings, save_settings
from ..tasks import TaskManager
from ..workflow import PomodoroWorkflow

logger = logging.getLogger(__name__)


class PomodoroService:
    """One engine/ledger/coordinator stack shared by every API request.

    Ticks arrive on the scheduler thread; every entry point here takes the
    same lock the scheduler holds while ticking.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings_path: Path | None = None,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.lock = RLock()
        self.settings_path = settings_path
        self.store = store
        self.clock = clock or RealClock()
        self.persist_errors = 0
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []

        settings = load_settings(settings_path) if settings_path is not None else TimerSettings()
        self.ledger = SessionLedger(store, clock=self.clock, on_persist_error=self._on_persist_error)
        self.tasks = TaskManager(store, clock=self.clock)
        self.coordinator = TaskSessionCoordinator(self.ledger, self.tasks)
        self.engine = CountdownEngine(settings, scheduler or ThreadScheduler(self.lock))
        self.workflow = PomodoroWorkflow(self.engine, self.coordinator)
        for event in TimerEvent:
            self.engine.subscribe(event, self._forwarder(event))

    @classmethod
    def from_paths(cls, db_path: Path, settings_path: Path | None = None) -> PomodoroService:
        return cls(SqliteKeyValueStore(db_path), settings_path=settings_path)

    def state(self) -> TimerState:
        with self.lock:
            return self.engine.get_state()

    def settings(self) -> TimerSettings:
        with self.lock:
            return self.engine.settings

    def update_settings(self, settings: TimerSettings) -> TimerSettings:
        settings.validate()
        with self.lock:
            if self.settings_path is not None:
                save_settings(settings, self.settings_path)
            self.workflow.update_settings(settings)
            return self.engine.settings

    def subscribe(self) -> queue.Queue[dict[str, Any]]:
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=200)
        with self.lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[dict[str, Any]]) -> None:
        with self.lock:
            self._subscribers = [item for item in self._subscribers if item is not q]

    def _forwarder(self, event: TimerEvent):
        def forward(state: TimerState) -> None:
            self._broadcast({"event": event.value, **state.to_dict()})

        return forward

    def _broadcast(self, event: dict[str, Any]) -> None:
        alive: list[queue.Queue[dict[str, Any]]] = []
        for q in self._subscribers:
            try:
                q.put_nowait(event)
                alive.append(q)
            except queue.Full:
                continue
        self._subscribers = alive

    def _on_persist_error(self, exc: Exception) -> None:
        self.persist_errors += 1
        self._broadcast({"event": "persistError", "message": str(exc)})
