from __future__ import annotations

from datetime import datetime, timezone
import unittest
from unittest import mock

from pomotrack.clock import FakeClock
from pomotrack.coordinator import CurrentSession, TaskSessionCoordinator
from pomotrack.db import MemoryKeyValueStore
from pomotrack.engine import TimerMode
from pomotrack.errors import NoActiveSessionError, TaskCompletedError, TaskNotFoundError
from pomotrack.ledger import SessionLedger
from pomotrack.tasks import TaskManager


class TestTaskSessionCoordinator(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
        store = MemoryKeyValueStore()
        self.ledger = SessionLedger(store, clock=self.clock)
        self.tasks = TaskManager(store, clock=self.clock)
        self.coordinator = TaskSessionCoordinator(self.ledger, self.tasks)

    def completed_pomodoros(self, task_id: str) -> int:
        task = self.tasks.get_by_id(task_id)
        assert task is not None
        return task.completed_pomodoros

    def test_completed_work_session_credits_task(self) -> None:
        task = self.tasks.create_task("Write report", 3)
        session_id = self.coordinator.start_pomodoro_session(TimerMode.WORK, task.id)
        self.assertEqual(self.coordinator.get_current_session(), CurrentSession(session_id, task.id))

        self.clock.advance(1500)
        session = self.coordinator.complete_pomodoro_session(completed=True)
        assert session is not None
        self.assertTrue(session.completed)
        self.assertEqual(session.duration, 1500)
        self.assertEqual(session.task_id, task.id)
        self.assertEqual(self.completed_pomodoros(task.id), 1)
        self.assertIsNone(self.coordinator.get_current_session())

    def test_completed_task_cannot_start_session(self) -> None:
        task = self.tasks.create_task("Done")
        self.tasks.mark_task_as_completed(task.id)
        with self.assertRaises(TaskCompletedError) as ctx:
            self.coordinator.start_pomodoro_session("work", task.id)
        self.assertEqual(str(ctx.exception), "Cannot start pomodoro session for completed task")
        self.assertEqual(self.ledger.get_all_sessions(), [])
        self.assertIsNone(self.coordinator.get_current_session())

    def test_unknown_task_cannot_start_session(self) -> None:
        with self.assertRaises(TaskNotFoundError):
            self.coordinator.start_pomodoro_session("work", "task-missing")
        self.assertEqual(self.ledger.get_all_sessions(), [])

    def test_non_credit_cases(self) -> None:
        task = self.tasks.create_task("Focus", 4)

        self.coordinator.start_pomodoro_session(TimerMode.SHORT_BREAK, task.id)
        self.coordinator.complete_pomodoro_session(completed=True)

        self.coordinator.start_pomodoro_session(TimerMode.WORK, task.id)
        self.coordinator.complete_pomodoro_session(completed=False)

        self.coordinator.start_pomodoro_session(TimerMode.WORK)
        self.coordinator.complete_pomodoro_session(completed=True)

        self.assertEqual(self.completed_pomodoros(task.id), 0)
        self.assertEqual(len(self.ledger.get_all_sessions()), 3)

    def test_complete_without_session_raises(self) -> None:
        with self.assertRaises(NoActiveSessionError) as ctx:
            self.coordinator.complete_pomodoro_session()
        self.assertEqual(str(ctx.exception), "No active pomodoro session to complete")

    def test_failed_credit_keeps_completed_session(self) -> None:
        task = self.tasks.create_task("Flaky")
        self.coordinator.start_pomodoro_session("work", task.id)
        self.clock.advance(60)
        with mock.patch.object(self.tasks, "associate_pomodoro", side_effect=OSError("disk full")):
            with self.assertLogs("pomotrack.coordinator", level="ERROR"):
                session = self.coordinator.complete_pomodoro_session()
        assert session is not None
        self.assertTrue(session.completed)
        self.assertTrue(self.ledger.get_session(session.id).completed)  # type: ignore[union-attr]
        self.assertIsNone(self.coordinator.get_current_session())

    def test_task_completed_mid_session_is_not_credited(self) -> None:
        task = self.tasks.create_task("Race")
        self.coordinator.start_pomodoro_session("work", task.id)
        self.tasks.mark_task_as_completed(task.id)
        with self.assertLogs("pomotrack.coordinator", level="ERROR"):
            session = self.coordinator.complete_pomodoro_session()
        assert session is not None
        self.assertTrue(session.completed)
        self.assertEqual(self.completed_pomodoros(task.id), 0)

    def test_cancel_removes_session(self) -> None:
        self.assertFalse(self.coordinator.cancel_pomodoro_session())
        session_id = self.coordinator.start_pomodoro_session("work")
        self.assertTrue(self.coordinator.cancel_pomodoro_session())
        self.assertIsNone(self.ledger.get_session(session_id))
        self.assertIsNone(self.coordinator.get_current_session())

    def test_switch_session_task_changes_credit_only(self) -> None:
        first = self.tasks.create_task("First")
        second = self.tasks.create_task("Second")
        session_id = self.coordinator.start_pomodoro_session("work", first.id)
        self.coordinator.switch_session_task(second.id)

        self.assertEqual(self.coordinator.get_current_session(), CurrentSession(session_id, second.id))
        stored = self.ledger.get_session(session_id)
        assert stored is not None
        self.assertEqual(stored.task_id, first.id)

        self.coordinator.complete_pomodoro_session()
        self.assertEqual(self.completed_pomodoros(first.id), 0)
        self.assertEqual(self.completed_pomodoros(second.id), 1)

    def test_switch_session_task_errors(self) -> None:
        task = self.tasks.create_task("t")
        with self.assertRaises(NoActiveSessionError) as no_session:
            self.coordinator.switch_session_task(task.id)
        self.assertEqual(str(no_session.exception), "No active session to switch task for")

        self.coordinator.start_pomodoro_session("work")
        self.tasks.mark_task_as_completed(task.id)
        with self.assertRaises(TaskCompletedError) as completed:
            self.coordinator.switch_session_task(task.id)
        self.assertEqual(str(completed.exception), "Cannot associate session with completed task")

        self.coordinator.switch_session_task(None)
        current = self.coordinator.get_current_session()
        assert current is not None
        self.assertIsNone(current.task_id)

    def test_stats_and_summary(self) -> None:
        task = self.tasks.create_task("Stats", 4)
        other = self.tasks.create_task("Idle", 0)

        for seconds, completed in ((1500, True), (1200, True), (300, False)):
            self.coordinator.start_pomodoro_session("work", task.id)
            self.clock.advance(seconds)
            self.coordinator.complete_pomodoro_session(completed=completed)
        self.coordinator.start_pomodoro_session("shortBreak", task.id)
        self.clock.advance(300)
        self.coordinator.complete_pomodoro_session()

        history = self.coordinator.get_task_pomodoro_history(task.id)
        self.assertEqual(len(history), 4)

        stats = self.coordinator.get_task_pomodoro_stats(task.id)
        self.assertEqual(stats.total_sessions, 3)
        self.assertEqual(stats.completed_sessions, 2)
        self.assertEqual(stats.total_work_time, 2700)
        self.assertAlmostEqual(stats.average_session_duration, 1350.0)
        self.assertAlmostEqual(stats.completion_rate, 200 / 3)

        empty = self.coordinator.get_task_pomodoro_stats(other.id)
        self.assertEqual((empty.total_sessions, empty.average_session_duration, empty.completion_rate), (0, 0.0, 0.0))

        summary = {item.task_id: item for item in self.coordinator.get_all_tasks_pomodoro_summary()}
        self.assertEqual(summary[task.id].completed_pomodoros, 2)
        self.assertEqual(summary[task.id].actual_sessions, 2)
        self.assertAlmostEqual(summary[task.id].completion_percentage, 50.0)
        self.assertEqual(summary[other.id].completion_percentage, 0.0)

        with self.assertRaises(TaskNotFoundError):
            self.coordinator.get_task_pomodoro_stats("task-missing")


if __name__ == "__main__":
    unittest.main()
