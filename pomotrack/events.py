from __future__ import annotations

from enum import Enum
import logging
from typing import Callable, Generic, TypeVar

from .errors import UnsupportedEventError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)
T = TypeVar("T")


class TimerEvent(str, Enum):
    TICK = "tick"
    START = "start"
    PAUSE = "pause"
    RESET = "reset"
    MODE_CHANGE = "modeChange"
    COMPLETE = "complete"


class EventBus(Generic[E, T]):
    """Per-event-type listener lists with ordered, failure-isolated fan-out.

    The set of event types is closed: it is fixed by the enum passed in.
    """

    def __init__(self, event_types: type[E]) -> None:
        self._event_types = event_types
        self._listeners: dict[E, list[Callable[[T], None]]] = {
            event: [] for event in event_types
        }

    def subscribe(self, event_type: E | str, callback: Callable[[T], None]) -> None:
        event = self._coerce(event_type)
        if event is None:
            raise UnsupportedEventError(event_type)
        self._listeners[event].append(callback)

    def unsubscribe(self, event_type: E | str, callback: Callable[[T], None]) -> None:
        event = self._coerce(event_type)
        if event is None:
            return
        listeners = self._listeners[event]
        if callback in listeners:
            listeners.remove(callback)

    def unsubscribe_all(self, event_type: E | str | None = None) -> None:
        if event_type is None:
            for listeners in self._listeners.values():
                listeners.clear()
            return
        event = self._coerce(event_type)
        if event is not None:
            self._listeners[event].clear()

    def listener_count(self, event_type: E | str) -> int:
        event = self._coerce(event_type)
        if event is None:
            return 0
        return len(self._listeners[event])

    def emit(self, event: E, payload: T) -> None:
        # iterate over a copy so callbacks may (un)subscribe while being notified
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Error in %s event callback %r", event.value, callback)

    def _coerce(self, event_type: object) -> E | None:
        if isinstance(event_type, self._event_types):
            return event_type
        try:
            return self._event_types(event_type)
        except ValueError:
            return None
