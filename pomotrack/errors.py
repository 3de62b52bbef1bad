from __future__ import annotations


class PomodoroError(Exception):
    """Base class for errors raised by pomotrack."""


class UnsupportedEventError(PomodoroError, ValueError):
    def __init__(self, event_type: object) -> None:
        super().__init__(f"Unsupported event type: {event_type}")
        self.event_type = event_type


class TaskNotFoundError(PomodoroError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} not found")
        self.task_id = task_id


class TaskCompletedError(PomodoroError, ValueError):
    pass


class NoActiveSessionError(PomodoroError, RuntimeError):
    pass


class InvalidSettingsError(PomodoroError, ValueError):
    pass


class InvalidTaskError(PomodoroError, ValueError):
    pass
