from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..coordinator import TaskPomodoroStats, TaskPomodoroSummary
from ..engine import TimerState
from ..ledger import Session
from ..settings import TimerSettings
from ..tasks import Task


ModeName = Literal["work", "shortBreak", "longBreak"]


class HealthOut(BaseModel):
    status: str = Field(default="ok")
    timer_running: bool
    mode: ModeName


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    settings_path: str | None
    persist_errors: int
    platform: str


class TimerStateOut(BaseModel):
    mode: ModeName
    time_remaining: int
    is_running: bool
    current_cycle: int
    session_id: str | None = None
    task_id: str | None = None

    @classmethod
    def build(cls, state: TimerState, session_id: str | None = None, task_id: str | None = None) -> TimerStateOut:
        return cls(
            mode=state.mode.value,
            time_remaining=state.time_remaining,
            is_running=state.is_running,
            current_cycle=state.current_cycle,
            session_id=session_id,
            task_id=task_id,
        )


class TimerStartRequest(BaseModel):
    task_id: str | None = None


class ModeRequest(BaseModel):
    mode: ModeName


class SettingsModel(BaseModel):
    work_duration: int = Field(default=25, ge=1, le=120)
    short_break_duration: int = Field(default=5, ge=1, le=60)
    long_break_duration: int = Field(default=15, ge=1, le=120)
    long_break_interval: int = Field(default=4, ge=1, le=10)
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    sound_enabled: bool = True
    notifications_enabled: bool = True

    @classmethod
    def build(cls, settings: TimerSettings) -> SettingsModel:
        return cls(**vars(settings))

    def to_settings(self) -> TimerSettings:
        return TimerSettings(**self.model_dump())


class SessionOut(BaseModel):
    id: str
    start_time: datetime
    end_time: datetime
    duration: int
    mode: ModeName
    task_id: str | None = None
    completed: bool

    @classmethod
    def build(cls, session: Session) -> SessionOut:
        return cls(
            id=session.id,
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration,
            mode=session.mode.value,
            task_id=session.task_id,
            completed=session.completed,
        )


class ClearResult(BaseModel):
    removed: int


class TaskOut(BaseModel):
    id: str
    title: str
    description: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    is_completed: bool
    estimated_pomodoros: int
    completed_pomodoros: int

    @classmethod
    def build(cls, task: Task) -> TaskOut:
        return cls(**vars(task))


class TaskCreateRequest(BaseModel):
    title: str
    description: str | None = None
    estimated_pomodoros: int = Field(default=1, ge=0)


class TaskPomodoroStatsOut(BaseModel):
    total_sessions: int
    completed_sessions: int
    total_work_time: int
    average_session_duration: float
    completion_rate: float

    @classmethod
    def build(cls, stats: TaskPomodoroStats) -> TaskPomodoroStatsOut:
        return cls(**vars(stats))


class TaskSummaryOut(BaseModel):
    task_id: str
    task_title: str
    estimated_pomodoros: int
    completed_pomodoros: int
    actual_sessions: int
    completion_percentage: float

    @classmethod
    def build(cls, item: TaskPomodoroSummary) -> TaskSummaryOut:
        return cls(**vars(item))


class PomodoroStartRequest(BaseModel):
    mode: ModeName = "work"
    task_id: str | None = None


class PomodoroCompleteRequest(BaseModel):
    completed: bool = True


class SwitchTaskRequest(BaseModel):
    task_id: str | None = None


class CurrentSessionOut(BaseModel):
    session_id: str
    task_id: str | None = None


class PomodoroCompleteOut(BaseModel):
    session: SessionOut | None = None


class CancelOut(BaseModel):
    cancelled: bool
