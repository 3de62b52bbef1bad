from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import threading
import time
from typing import Callable, Protocol


TickCallback = Callable[[], None]
CancelHandle = Callable[[], None]


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, callback: TickCallback, interval_sec: float) -> CancelHandle:
        ...


class RealClock:
    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def sleep(self, seconds: float) -> None:
        time.sleep(max(0.0, seconds))


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._current = base

    def now(self) -> datetime:
        return self._current

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self._current += timedelta(seconds=max(0.0, seconds))


class ThreadScheduler:
    """Runs each scheduled callback on its own daemon thread.

    When a lock is given, every callback runs while holding it, so callers
    that take the same lock never race with a tick.
    """

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock

    def schedule(self, callback: TickCallback, interval_sec: float) -> CancelHandle:
        stop = threading.Event()
        interval = max(0.001, float(interval_sec))

        def loop() -> None:
            next_at = time.monotonic() + interval
            while not stop.wait(max(0.0, next_at - time.monotonic())):
                next_at += interval
                if self._lock is None:
                    callback()
                    continue
                with self._lock:
                    if stop.is_set():
                        break
                    callback()

        worker = threading.Thread(target=loop, name="pomotrack-tick", daemon=True)
        worker.start()
        return stop.set


@dataclass
class _FakeJob:
    callback: TickCallback
    interval_sec: float
    elapsed: float = 0.0
    active: bool = True


class FakeScheduler:
    """Deterministic scheduler: nothing fires until advance() is called."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self._jobs: list[_FakeJob] = []

    @property
    def active_jobs(self) -> int:
        return sum(1 for job in self._jobs if job.active)

    def schedule(self, callback: TickCallback, interval_sec: float) -> CancelHandle:
        job = _FakeJob(callback=callback, interval_sec=max(1e-9, float(interval_sec)))
        self._jobs.append(job)

        def cancel() -> None:
            job.active = False

        return cancel

    def advance(self, seconds: int) -> None:
        for _ in range(max(0, int(seconds))):
            if self.clock is not None:
                self.clock.advance(1)
            for job in list(self._jobs):
                if not job.active:
                    continue
                job.elapsed += 1
                while job.active and job.elapsed >= job.interval_sec:
                    job.elapsed -= job.interval_sec
                    job.callback()
            self._jobs = [job for job in self._jobs if job.active]
