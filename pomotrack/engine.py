from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Callable

from .clock import CancelHandle, Scheduler, ThreadScheduler
from .events import EventBus, TimerEvent
from .settings import TimerSettings

logger = logging.getLogger(__name__)

TICK_INTERVAL_SEC = 1.0


class TimerMode(str, Enum):
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


@dataclass(frozen=True)
class TimerState:
    mode: TimerMode
    time_remaining: int
    is_running: bool
    current_cycle: int

    def to_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode.value,
            "timeRemaining": self.time_remaining,
            "isRunning": self.is_running,
            "currentCycle": self.current_cycle,
        }


TimerCallback = Callable[[TimerState], None]


def duration_for(mode: TimerMode | str, settings: TimerSettings) -> int:
    """Configured length of ``mode`` in seconds."""
    mode = TimerMode(mode)
    if mode is TimerMode.SHORT_BREAK:
        minutes = settings.short_break_duration
    elif mode is TimerMode.LONG_BREAK:
        minutes = settings.long_break_duration
    else:
        minutes = settings.work_duration
    return int(minutes) * 60


def next_mode(state: TimerState, settings: TimerSettings) -> TimerMode:
    """Mode that follows a finished countdown of ``state.mode``.

    Every ``long_break_interval``-th completed work countdown earns a long break.
    """
    if state.mode is not TimerMode.WORK:
        return TimerMode.WORK
    interval = max(1, settings.long_break_interval)
    if state.current_cycle > 0 and state.current_cycle % interval == 0:
        return TimerMode.LONG_BREAK
    return TimerMode.SHORT_BREAK


class CountdownEngine:
    """Mode/time state machine driven by a periodic one-second tick.

    Public mutators never raise; calls that make no sense in the current
    state are ignored. Listeners always receive a post-mutation snapshot.
    """

    def __init__(
        self,
        settings: TimerSettings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._settings = settings or TimerSettings()
        self._scheduler = scheduler or ThreadScheduler()
        self._cancel_tick: CancelHandle | None = None
        self._events: EventBus[TimerEvent, TimerState] = EventBus(TimerEvent)
        self._state = TimerState(
            mode=TimerMode.WORK,
            time_remaining=duration_for(TimerMode.WORK, self._settings),
            is_running=False,
            current_cycle=0,
        )

    @property
    def settings(self) -> TimerSettings:
        return self._settings

    def get_state(self) -> TimerState:
        return self._state

    def start(self) -> None:
        if self._state.is_running:
            return
        self._state = replace(self._state, is_running=True)
        self._cancel_tick = self._scheduler.schedule(self._tick, TICK_INTERVAL_SEC)
        logger.debug("Timer started: mode=%s remaining=%ss", self._state.mode.value, self._state.time_remaining)
        self._emit(TimerEvent.START)

    def pause(self) -> None:
        if not self._state.is_running:
            return
        self._stop_tick()
        self._state = replace(self._state, is_running=False)
        logger.debug("Timer paused: mode=%s remaining=%ss", self._state.mode.value, self._state.time_remaining)
        self._emit(TimerEvent.PAUSE)

    def reset(self) -> None:
        if self._state.is_running:
            self.pause()
        self._state = replace(
            self._state,
            time_remaining=duration_for(self._state.mode, self._settings),
        )
        self._emit(TimerEvent.RESET)

    def switch_mode(self, mode: TimerMode | str) -> None:
        try:
            new_mode = TimerMode(mode)
        except ValueError:
            logger.warning("Ignoring switch to unknown mode %r", mode)
            return
        if self._state.is_running:
            self.pause()
        self._state = replace(
            self._state,
            mode=new_mode,
            time_remaining=duration_for(new_mode, self._settings),
        )
        self._emit(TimerEvent.MODE_CHANGE)

    def update_settings(self, settings: TimerSettings) -> None:
        self._settings = settings
        # a running countdown keeps its length until the next reset/switch_mode
        if not self._state.is_running:
            self._state = replace(
                self._state,
                time_remaining=duration_for(self._state.mode, settings),
            )
            self._emit(TimerEvent.TICK)

    def subscribe(self, event_type: TimerEvent | str, callback: TimerCallback) -> None:
        self._events.subscribe(event_type, callback)

    def unsubscribe(self, event_type: TimerEvent | str, callback: TimerCallback) -> None:
        self._events.unsubscribe(event_type, callback)

    def unsubscribe_all(self, event_type: TimerEvent | str | None = None) -> None:
        self._events.unsubscribe_all(event_type)

    def listener_count(self, event_type: TimerEvent | str) -> int:
        return self._events.listener_count(event_type)

    def _tick(self) -> None:
        if not self._state.is_running or self._state.time_remaining <= 0:
            return
        self._state = replace(self._state, time_remaining=self._state.time_remaining - 1)
        self._emit(TimerEvent.TICK)
        if self._state.time_remaining == 0:
            self._complete()

    def _complete(self) -> None:
        # pause goes out before complete, so complete listeners see is_running=False
        self.pause()
        if self._state.mode is TimerMode.WORK:
            self._state = replace(self._state, current_cycle=self._state.current_cycle + 1)
        logger.info(
            "Countdown complete: mode=%s cycle=%s", self._state.mode.value, self._state.current_cycle
        )
        self._emit(TimerEvent.COMPLETE)

    def _stop_tick(self) -> None:
        if self._cancel_tick is not None:
            cancel, self._cancel_tick = self._cancel_tick, None
            cancel()

    def _emit(self, event: TimerEvent) -> None:
        self._events.emit(event, self._state)
