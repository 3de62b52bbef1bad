from __future__ import annotations

from datetime import datetime, timezone
import unittest

from pomotrack.clock import FakeClock, FakeScheduler
from pomotrack.coordinator import TaskSessionCoordinator
from pomotrack.db import MemoryKeyValueStore
from pomotrack.engine import CountdownEngine, TimerMode
from pomotrack.ledger import SessionLedger
from pomotrack.settings import TimerSettings
from pomotrack.tasks import TaskManager
from pomotrack.workflow import PomodoroWorkflow


def build(settings: TimerSettings) -> tuple[PomodoroWorkflow, FakeScheduler, TaskManager, SessionLedger]:
    clock = FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
    scheduler = FakeScheduler(clock)
    store = MemoryKeyValueStore()
    ledger = SessionLedger(store, clock=clock)
    tasks = TaskManager(store, clock=clock)
    engine = CountdownEngine(settings, scheduler)
    workflow = PomodoroWorkflow(engine, TaskSessionCoordinator(ledger, tasks))
    return workflow, scheduler, tasks, ledger


class TestPomodoroWorkflow(unittest.TestCase):
    def test_work_completion_records_and_advances(self) -> None:
        workflow, scheduler, tasks, ledger = build(TimerSettings(work_duration=1, short_break_duration=1))
        task = tasks.create_task("Deep work", 2)

        workflow.start(task.id)
        scheduler.advance(60)

        state = workflow.state()
        self.assertEqual(state.mode, TimerMode.SHORT_BREAK)
        self.assertEqual(state.time_remaining, 60)
        self.assertFalse(state.is_running)
        self.assertEqual(state.current_cycle, 1)

        sessions = ledger.get_all_sessions()
        self.assertEqual(len(sessions), 1)
        self.assertTrue(sessions[0].completed)
        self.assertEqual(sessions[0].duration, 60)
        self.assertEqual(tasks.get_by_id(task.id).completed_pomodoros, 1)  # type: ignore[union-attr]
        self.assertEqual(workflow.last_session, sessions[0])
        self.assertIsNone(workflow.coordinator.get_current_session())

    def test_break_sessions_carry_no_task(self) -> None:
        workflow, scheduler, tasks, ledger = build(
            TimerSettings(work_duration=1, short_break_duration=1, auto_start_breaks=True)
        )
        task = tasks.create_task("Focus")
        workflow.start(task.id)
        scheduler.advance(120)

        sessions = ledger.get_all_sessions()
        self.assertEqual([s.mode for s in sessions], [TimerMode.WORK, TimerMode.SHORT_BREAK])
        self.assertEqual([s.task_id for s in sessions], [task.id, None])
        self.assertEqual(workflow.state().mode, TimerMode.WORK)
        self.assertFalse(workflow.state().is_running)

    def test_long_break_after_interval(self) -> None:
        workflow, scheduler, _, ledger = build(
            TimerSettings(
                work_duration=1,
                short_break_duration=1,
                long_break_duration=2,
                long_break_interval=2,
                auto_start_breaks=True,
                auto_start_work=True,
            )
        )
        workflow.start()
        # work, short break, work, then into the long break
        scheduler.advance(60 * 3)
        state = workflow.state()
        self.assertEqual(state.mode, TimerMode.LONG_BREAK)
        self.assertTrue(state.is_running)
        self.assertEqual(state.current_cycle, 2)
        self.assertEqual(
            [s.mode for s in ledger.get_completed_sessions()],
            [TimerMode.WORK, TimerMode.SHORT_BREAK, TimerMode.WORK],
        )

    def test_reset_closes_session_as_incomplete(self) -> None:
        workflow, scheduler, _, ledger = build(TimerSettings())
        workflow.start()
        scheduler.advance(30)
        workflow.reset()

        self.assertEqual(workflow.state().time_remaining, 1500)
        session = ledger.get_all_sessions()[0]
        self.assertFalse(session.completed)
        self.assertEqual(session.duration, 30)
        self.assertIsNone(workflow.coordinator.get_current_session())

    def test_pause_and_resume_keep_one_session(self) -> None:
        workflow, scheduler, _, ledger = build(TimerSettings())
        workflow.start()
        scheduler.advance(10)
        workflow.pause()
        workflow.start()
        scheduler.advance(10)
        self.assertEqual(len(ledger.get_all_sessions()), 1)
        self.assertEqual(workflow.state().time_remaining, 1480)

    def test_skip_moves_to_next_mode(self) -> None:
        workflow, _, _, ledger = build(TimerSettings())
        workflow.start()
        state = workflow.skip()
        self.assertEqual(state.mode, TimerMode.SHORT_BREAK)
        self.assertFalse(ledger.get_all_sessions()[0].completed)

    def test_set_task_retargets_running_session(self) -> None:
        workflow, scheduler, tasks, _ = build(TimerSettings(work_duration=1))
        first = tasks.create_task("first")
        second = tasks.create_task("second")
        workflow.start(first.id)
        workflow.set_task(second.id)
        scheduler.advance(60)
        self.assertEqual(tasks.get_by_id(first.id).completed_pomodoros, 0)  # type: ignore[union-attr]
        self.assertEqual(tasks.get_by_id(second.id).completed_pomodoros, 1)  # type: ignore[union-attr]
        self.assertEqual(workflow.task_id, second.id)

    def test_auto_start_forgets_task_completed_during_break(self) -> None:
        workflow, scheduler, tasks, ledger = build(
            TimerSettings(work_duration=1, short_break_duration=1, auto_start_breaks=True, auto_start_work=True)
        )
        task = tasks.create_task("Finish during break")
        workflow.start(task.id)
        scheduler.advance(60)
        tasks.mark_task_as_completed(task.id)
        scheduler.advance(60)

        state = workflow.state()
        self.assertEqual(state.mode, TimerMode.WORK)
        self.assertTrue(state.is_running)
        self.assertIsNone(workflow.task_id)
        current = workflow.coordinator.get_current_session()
        assert current is not None
        self.assertIsNone(current.task_id)
        self.assertEqual([s.task_id for s in ledger.get_all_sessions()], [task.id, None, None])

    def test_manual_start_forgets_deleted_task(self) -> None:
        workflow, _, tasks, _ = build(TimerSettings())
        task = tasks.create_task("Gone")
        workflow.task_id = task.id
        tasks.delete_task(task.id)

        state = workflow.start()
        self.assertTrue(state.is_running)
        self.assertIsNone(workflow.task_id)

    def test_start_replaces_session_opened_for_other_mode(self) -> None:
        workflow, scheduler, tasks, ledger = build(TimerSettings(work_duration=1))
        task = tasks.create_task("Credited")
        stray = workflow.coordinator.start_pomodoro_session(TimerMode.SHORT_BREAK)

        workflow.start(task.id)
        scheduler.advance(60)

        closed = ledger.get_session(stray)
        assert closed is not None
        self.assertFalse(closed.completed)
        completed = ledger.get_completed_sessions()
        self.assertEqual([(s.mode, s.task_id) for s in completed], [(TimerMode.WORK, task.id)])
        self.assertEqual(tasks.get_by_id(task.id).completed_pomodoros, 1)  # type: ignore[union-attr]

    def test_update_settings_when_idle(self) -> None:
        workflow, _, _, _ = build(TimerSettings())
        state = workflow.update_settings(TimerSettings(work_duration=40))
        self.assertEqual(state.time_remaining, 2400)

    def test_close_detaches_from_engine(self) -> None:
        workflow, scheduler, _, ledger = build(TimerSettings(work_duration=1))
        workflow.start()
        workflow.close()
        scheduler.advance(60)
        self.assertEqual(workflow.state().mode, TimerMode.WORK)
        self.assertIsNotNone(workflow.coordinator.get_current_session())
        self.assertEqual(ledger.get_completed_sessions(), [])


if __name__ == "__main__":
    unittest.main()
