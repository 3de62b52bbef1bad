from __future__ import annotations

import argparse
from datetime import date, datetime, time as dtime
import logging
from pathlib import Path
import sys
import threading
from typing import TextIO

from .clock import ThreadScheduler
from .coordinator import TaskSessionCoordinator
from .db import SqliteKeyValueStore, default_db_path
from .engine import CountdownEngine, TimerMode, TimerState
from .errors import PomodoroError
from .events import TimerEvent
from .ledger import SessionLedger
from .settings import TimerSettings, default_settings_path, load_settings, reset_settings, save_settings
from .tasks import TaskManager
from .workflow import PomodoroWorkflow

MODE_LABELS = {
    TimerMode.WORK: "工作",
    TimerMode.SHORT_BREAK: "短休息",
    TimerMode.LONG_BREAK: "长休息",
}


def format_countdown(seconds: int) -> str:
    total = max(0, seconds)
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{sec:02d}"
    return f"{minutes:02d}:{sec:02d}"


def format_duration(seconds: int | float) -> str:
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}小时{minutes:02d}分{sec:02d}秒"
    return f"{minutes}分{sec:02d}秒"


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"日期格式错误：{value}，请使用 YYYY-MM-DD") from exc


def parse_since(value: str) -> datetime:
    text = value.strip()
    local_tz = datetime.now().astimezone().tzinfo
    try:
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), dtime.min).replace(tzinfo=local_tz)
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=local_tz)
        return dt
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"时间格式错误：{value}，请使用 YYYY-MM-DD 或 ISO 日期时间"
        ) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pomotrack",
        description="pomotrack：番茄钟倒计时、会话记录与任务进度",
    )
    parser.add_argument("--db", default=None, help="SQLite 数据库路径（默认 pomotrack/data/pomotrack.sqlite）")
    parser.add_argument("--settings", default=None, help="设置文件路径（默认 pomotrack/data/settings.json）")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="开始番茄钟")
    run_parser.add_argument("--task", default=None, help="关联的任务 ID")
    run_parser.add_argument("--cycles", type=int, default=1, help="完成多少个工作周期后结束")

    sessions_parser = subparsers.add_parser("sessions", help="查看会话记录")
    sessions_parser.add_argument("--date", dest="day", type=parse_day, default=None, help="按日期过滤（UTC）")
    sessions_parser.add_argument("--task", default=None, help="按任务 ID 过滤")
    sessions_parser.add_argument("--completed", action="store_true", help="只显示完整完成的会话")

    tasks_parser = subparsers.add_parser("tasks", help="管理任务")
    tasks_sub = tasks_parser.add_subparsers(dest="tasks_command", required=True)
    add_parser = tasks_sub.add_parser("add", help="新建任务")
    add_parser.add_argument("title", help="任务标题")
    add_parser.add_argument("--estimate", type=int, default=1, help="预计番茄钟数")
    add_parser.add_argument("--description", default=None, help="任务描述")
    list_parser = tasks_sub.add_parser("list", help="列出任务")
    list_parser.add_argument("--all", action="store_true", help="包括已完成任务")
    done_parser = tasks_sub.add_parser("done", help="标记任务完成")
    done_parser.add_argument("task_id")
    delete_parser = tasks_sub.add_parser("delete", help="删除任务")
    delete_parser.add_argument("task_id")

    stats_parser = subparsers.add_parser("stats", help="任务番茄钟统计")
    stats_parser.add_argument("--task", default=None, help="只看某个任务")

    clear_parser = subparsers.add_parser("clear", help="清除旧会话")
    clear_parser.add_argument("--before", type=parse_since, required=True, help="清除此时间之前开始的会话")

    settings_parser = subparsers.add_parser("settings", help="查看或修改设置")
    settings_sub = settings_parser.add_subparsers(dest="settings_command", required=True)
    settings_sub.add_parser("show", help="显示当前设置")
    set_parser = settings_sub.add_parser("set", help="修改设置，例如 workDuration=50")
    set_parser.add_argument("pairs", nargs="+", help="key=value")
    settings_sub.add_parser("reset", help="恢复默认设置")

    serve_parser = subparsers.add_parser("serve", help="启动 HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8765)

    return parser


def main(argv: list[str] | None = None, stream: TextIO | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    out = stream or sys.stdout
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db_path = Path(args.db) if args.db else default_db_path()
    settings_path = Path(args.settings) if args.settings else default_settings_path()

    if args.command == "serve":
        return _handle_serve(args, db_path, settings_path)
    if args.command == "settings":
        return _handle_settings(args, settings_path, out, parser)

    store = SqliteKeyValueStore(db_path)
    ledger = SessionLedger(store)
    tasks = TaskManager(store)
    coordinator = TaskSessionCoordinator(ledger, tasks)

    try:
        if args.command == "run":
            return _handle_run(args, coordinator, load_settings(settings_path), out, parser)
        if args.command == "sessions":
            return _handle_sessions(args, ledger, out)
        if args.command == "tasks":
            return _handle_tasks(args, tasks, out)
        if args.command == "stats":
            return _handle_stats(args, coordinator, out)
        if args.command == "clear":
            removed = ledger.clear_sessions_before(args.before)
            out.write(f"已清除 {removed} 条会话。\n")
            return 0
    except PomodoroError as exc:
        out.write(f"错误：{exc}\n")
        return 1

    parser.print_help()
    return 2


def _handle_run(
    args: argparse.Namespace,
    coordinator: TaskSessionCoordinator,
    settings: TimerSettings,
    out: TextIO,
    parser: argparse.ArgumentParser,
) -> int:
    if args.cycles < 1:
        parser.error("--cycles 必须大于等于 1")

    lock = threading.RLock()
    engine = CountdownEngine(settings, ThreadScheduler(lock))
    workflow = PomodoroWorkflow(engine, coordinator)
    finished = threading.Event()
    work_done = 0

    def on_tick(state: TimerState) -> None:
        out.write(f"\r{MODE_LABELS[state.mode]} 剩余 {format_countdown(state.time_remaining)}")
        out.flush()

    def on_complete(state: TimerState) -> None:
        nonlocal work_done
        session = workflow.last_session
        if session is not None:
            out.write(
                f"\r{MODE_LABELS[session.mode]}阶段完成，用时 {format_duration(session.duration)}"
                f"，已完成工作周期 {state.current_cycle}\n"
            )
        if settings.sound_enabled:
            out.write("\a")
        out.flush()
        if session is not None and session.mode is TimerMode.WORK:
            work_done += 1
        if work_done >= args.cycles:
            finished.set()
            return
        if not engine.get_state().is_running:
            workflow.start()

    engine.subscribe(TimerEvent.TICK, on_tick)
    # registered after the workflow, so the session is already closed here
    engine.subscribe(TimerEvent.COMPLETE, on_complete)

    out.write(
        f"开始番茄钟：工作 {settings.work_duration} 分钟，短休息 {settings.short_break_duration} 分钟，"
        f"长休息 {settings.long_break_duration} 分钟，目标 {args.cycles} 个工作周期\n"
    )
    out.flush()

    with lock:
        workflow.start(args.task)

    try:
        while not finished.wait(0.5):
            pass
    except KeyboardInterrupt:
        with lock:
            workflow.reset()
        out.write("\n会话已中断，已保存当前记录。\n")
        out.flush()
        return 130
    finally:
        with lock:
            engine.pause()
            workflow.close()

    out.write(f"番茄钟完成：已完成工作周期 {work_done} 个。\n")
    out.flush()
    return 0


def _handle_sessions(args: argparse.Namespace, ledger: SessionLedger, out: TextIO) -> int:
    if args.day is not None:
        sessions = ledger.get_sessions_by_date(args.day)
    elif args.task:
        sessions = ledger.get_sessions_by_task(args.task)
    else:
        sessions = ledger.get_all_sessions()

    if args.task:
        sessions = [s for s in sessions if s.task_id == args.task]
    if args.completed:
        sessions = [s for s in sessions if s.completed]

    if not sessions:
        out.write("没有匹配记录。\n")
        return 0

    for item in sessions:
        start_text = item.start_time.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        state_text = "完成" if item.completed else "中断"
        out.write(
            f"{item.id} | {start_text} | {MODE_LABELS[item.mode]} | {format_duration(item.duration)} | "
            f"{state_text} | 任务: {item.task_id or '-'}\n"
        )
    return 0


def _handle_tasks(args: argparse.Namespace, tasks: TaskManager, out: TextIO) -> int:
    if args.tasks_command == "add":
        task = tasks.create_task(args.title, estimated_pomodoros=args.estimate, description=args.description)
        out.write(f"任务已创建：{task.id}\n")
        return 0

    if args.tasks_command == "done":
        task = tasks.mark_task_as_completed(args.task_id)
        out.write(f"任务已完成：{task.title}\n")
        return 0

    if args.tasks_command == "delete":
        if not tasks.delete_task(args.task_id):
            out.write(f"未找到任务：{args.task_id}\n")
            return 1
        out.write("任务已删除。\n")
        return 0

    items = tasks.get_all_tasks() if args.all else tasks.get_active_tasks()
    if not items:
        out.write("暂无任务。\n")
        return 0
    for task in items:
        mark = "x" if task.is_completed else " "
        out.write(
            f"[{mark}] {task.id} | {task.title} | "
            f"{task.completed_pomodoros}/{task.estimated_pomodoros} 番茄钟\n"
        )
    return 0


def _handle_stats(args: argparse.Namespace, coordinator: TaskSessionCoordinator, out: TextIO) -> int:
    if args.task:
        stats = coordinator.get_task_pomodoro_stats(args.task)
        out.write(f"工作会话: {stats.total_sessions} 次\n")
        out.write(f"完成工作会话: {stats.completed_sessions} 次\n")
        out.write(f"工作时长: {format_duration(stats.total_work_time)}\n")
        out.write(f"平均时长: {format_duration(stats.average_session_duration)}\n")
        out.write(f"完成率: {stats.completion_rate:.1f}%\n")
        return 0

    summary = coordinator.get_all_tasks_pomodoro_summary()
    if not summary:
        out.write("暂无任务。\n")
        return 0
    for item in summary:
        out.write(
            f"{item.task_title} | {item.completed_pomodoros}/{item.estimated_pomodoros} 番茄钟 | "
            f"完成会话 {item.actual_sessions} 次 | 进度 {item.completion_percentage:.0f}%\n"
        )
    return 0


def _handle_settings(
    args: argparse.Namespace,
    settings_path: Path,
    out: TextIO,
    parser: argparse.ArgumentParser,
) -> int:
    if args.settings_command == "reset":
        settings = reset_settings(settings_path)
    elif args.settings_command == "set":
        payload = load_settings(settings_path).to_dict()
        for pair in args.pairs:
            if "=" not in pair:
                parser.error(f"无效设置格式: {pair}，应为 key=value")
            key, value = pair.split("=", 1)
            if key.strip() not in payload:
                parser.error(f"未知设置项: {key.strip()}")
            payload[key.strip()] = value.strip()
        try:
            settings = TimerSettings.from_dict(payload)
            save_settings(settings, settings_path)
        except ValueError as exc:
            out.write(f"错误：{exc}\n")
            return 1
    else:
        settings = load_settings(settings_path)

    for key, value in settings.to_dict().items():
        out.write(f"{key} = {value}\n")
    return 0


def _handle_serve(args: argparse.Namespace, db_path: Path, settings_path: Path) -> int:
    import uvicorn

    from .api.app import create_app

    uvicorn.run(create_app(db_path=db_path, settings_path=settings_path), host=args.host, port=args.port, log_level="warning")
    return 0
