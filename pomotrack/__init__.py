"""pomotrack: countdown engine, session ledger and task/session coordination for pomodoro timers."""

from .coordinator import TaskSessionCoordinator
from .engine import CountdownEngine, TimerMode, TimerState
from .events import TimerEvent
from .ledger import Session, SessionLedger
from .settings import TimerSettings
from .tasks import Task, TaskManager

__version__ = "0.1.0"

__all__ = [
    "CountdownEngine",
    "Session",
    "SessionLedger",
    "Task",
    "TaskManager",
    "TaskSessionCoordinator",
    "TimerEvent",
    "TimerMode",
    "TimerSettings",
    "TimerState",
    "__version__",
]
