from __future__ import annotations

import io
from pathlib import Path
import unittest
from unittest import mock

from pomotrack import cli
from pomotrack.db import SqliteKeyValueStore
from pomotrack.engine import TimerMode
from pomotrack.ledger import SessionLedger
from pomotrack.settings import TimerSettings, save_settings
from pomotrack.tasks import TaskManager
from pomotrack.tests.test_helpers import local_tmp_dir


class TestCLI(unittest.TestCase):
    def run_cli(self, tmp: Path, *args: str) -> tuple[int, str]:
        out = io.StringIO()
        code = cli.main(["--db", str(tmp / "pomotrack.sqlite"), "--settings", str(tmp / "settings.json"), *args], stream=out)
        return code, out.getvalue()

    def test_run_rejects_zero_cycles(self) -> None:
        with local_tmp_dir() as tmp:
            with self.assertRaises(SystemExit) as exc:
                self.run_cli(tmp, "run", "--cycles", "0")
            self.assertEqual(exc.exception.code, 2)

    def test_sessions_rejects_bad_date(self) -> None:
        with local_tmp_dir() as tmp:
            with self.assertRaises(SystemExit) as exc:
                self.run_cli(tmp, "sessions", "--date", "2026/03/02")
            self.assertEqual(exc.exception.code, 2)

    def test_tasks_add_list_done(self) -> None:
        with local_tmp_dir() as tmp:
            code, output = self.run_cli(tmp, "tasks", "add", "整理笔记", "--estimate", "3")
            self.assertEqual(code, 0)
            task_id = output.strip().split("：")[-1]

            code, output = self.run_cli(tmp, "tasks", "list")
            self.assertEqual(code, 0)
            self.assertIn("整理笔记", output)
            self.assertIn("0/3", output)

            code, _ = self.run_cli(tmp, "tasks", "done", task_id)
            self.assertEqual(code, 0)
            _, output = self.run_cli(tmp, "tasks", "list")
            self.assertIn("暂无任务", output)
            _, output = self.run_cli(tmp, "tasks", "list", "--all")
            self.assertIn("[x]", output)

            code, output = self.run_cli(tmp, "tasks", "delete", "task-missing")
            self.assertEqual(code, 1)

    def test_domain_errors_exit_with_one(self) -> None:
        with local_tmp_dir() as tmp:
            code, output = self.run_cli(tmp, "tasks", "add", "   ")
            self.assertEqual(code, 1)
            self.assertIn("Task title cannot be empty", output)

            code, output = self.run_cli(tmp, "stats", "--task", "task-missing")
            self.assertEqual(code, 1)
            self.assertIn("Task with id task-missing not found", output)

    def test_settings_set_show_reset(self) -> None:
        with local_tmp_dir() as tmp:
            code, output = self.run_cli(tmp, "settings", "set", "workDuration=50", "autoStartBreaks=true")
            self.assertEqual(code, 0)
            self.assertIn("workDuration = 50", output)
            self.assertIn("autoStartBreaks = True", output)

            _, output = self.run_cli(tmp, "settings", "show")
            self.assertIn("workDuration = 50", output)

            code, output = self.run_cli(tmp, "settings", "set", "workDuration=500")
            self.assertEqual(code, 1)

            with self.assertRaises(SystemExit) as exc:
                self.run_cli(tmp, "settings", "set", "volume=3")
            self.assertEqual(exc.exception.code, 2)

            _, output = self.run_cli(tmp, "settings", "reset")
            self.assertIn("workDuration = 25", output)

    def test_run_records_session_and_credits_task(self) -> None:
        with local_tmp_dir() as tmp:
            save_settings(TimerSettings(work_duration=1), tmp / "settings.json")
            store = SqliteKeyValueStore(tmp / "pomotrack.sqlite")
            task = TaskManager(store).create_task("快速测试")

            with mock.patch("pomotrack.engine.TICK_INTERVAL_SEC", 0.001):
                code, output = self.run_cli(tmp, "run", "--task", task.id, "--cycles", "1")

            self.assertEqual(code, 0)
            self.assertIn("已完成工作周期 1 个", output)

            sessions = SessionLedger(store).get_all_sessions()
            self.assertEqual(len(sessions), 1)
            self.assertIs(sessions[0].mode, TimerMode.WORK)
            self.assertTrue(sessions[0].completed)
            self.assertEqual(sessions[0].task_id, task.id)
            self.assertEqual(TaskManager(store).get_by_id(task.id).completed_pomodoros, 1)  # type: ignore[union-attr]

            code, output = self.run_cli(tmp, "sessions", "--completed", "--task", task.id)
            self.assertEqual(code, 0)
            self.assertIn(sessions[0].id, output)

    def test_format_helpers(self) -> None:
        self.assertEqual(cli.format_countdown(1500), "25:00")
        self.assertEqual(cli.format_countdown(3725), "01:02:05")
        self.assertEqual(cli.format_duration(65), "1分05秒")
        self.assertEqual(cli.format_duration(3600), "1小时00分00秒")


if __name__ == "__main__":
    unittest.main()
