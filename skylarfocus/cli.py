"""
Command-line interface for SkylarFocus.

Usage:
    python run.py --add-task "Write report" --quota 2 --unit pomodoros
    python run.py --list-tasks
    python run.py --start task-1            # mode follows the task's unit
    python run.py --start task-1 --mode count_up
    python run.py --pause | --resume | --stop | --complete | --skip-break
    python run.py --status
    python run.py --watch 60                # tick the timer for a minute
    python run.py --stats
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from loguru import logger

from .app import FocusApp
from .core.config import env, get_config
from .core.errors import ConfigurationError, get_error_message
from .core.logger import setup_logging
from .focus.driver import TimerDriver
from .focus.models import FocusMode, QuotaUnit, TransitionResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SkylarFocus - focus session timer")
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument("--user", type=str, help="User name (default: SKYLAR_USER or 'anon')")
    parser.add_argument("--date", type=str, metavar="YYYY-MM-DD", help="Plan date (default: today)")

    # Tasks
    parser.add_argument("--add-task", type=str, metavar="TEXT", help="Add a task to today's plan")
    parser.add_argument("--quota", type=int, default=0, help="Quota for --add-task")
    parser.add_argument("--unit", type=str, default=QuotaUnit.MINUTES.value,
                        choices=[u.value for u in QuotaUnit], help="Quota unit for --add-task")
    parser.add_argument("--list-tasks", action="store_true", help="Show today's plan")
    parser.add_argument("--remove-task", type=str, metavar="TASK_ID", help="Delete a task")

    # Timer
    parser.add_argument("--start", type=str, metavar="TASK_ID", help="Start focusing on a task")
    parser.add_argument("--mode", type=str, choices=[m.value for m in FocusMode if m != FocusMode.IDLE],
                        help="Session mode for --start")
    parser.add_argument("--pause", action="store_true", help="Pause the timer")
    parser.add_argument("--resume", action="store_true", help="Resume the timer")
    parser.add_argument("--stop", action="store_true", help="Stop the session")
    parser.add_argument("--complete", action="store_true", help="Mark the focused task done")
    parser.add_argument("--skip-break", action="store_true", help="End the current break")
    parser.add_argument("--status", action="store_true", help="Show timer status")
    parser.add_argument("--watch", type=float, metavar="SECONDS", help="Run the timer in the foreground")
    parser.add_argument("--stats", action="store_true", help="Show focus statistics")
    return parser


def _report(result: TransitionResult) -> int:
    if result.ok:
        print(f"✅ {result.message}")
        return 0
    print(f"❌ {result.message}")
    return 1


def _print_status(app: FocusApp) -> None:
    status = app.engine.status()
    if status.task_ref is None:
        print(f"⏸  {status.label}")
        return
    task = app.plan.get_task(status.task_ref)
    name = task.text if task else status.task_ref
    print(f"⏱  {status.label} {status.time_text} - {name}")
    if status.progress_text:
        print(f"   Progress: {status.progress_text} ({status.progress_percent:.0f}%)")
    print(f"   Pomodoros this cycle: {status.cycle_count}")


def _print_tasks(app: FocusApp) -> None:
    tasks = app.plan.list_tasks()
    if not tasks:
        print("No tasks planned for today.")
        return
    print(f"Plan for {app.plan_date}:")
    for task in tasks:
        mark = "✓" if task.completed else " "
        if task.unit == QuotaUnit.POMODOROS:
            progress = f"{task.actual_pomodoros}/{task.duration} pomodoros"
        else:
            progress = f"{task.actual_duration}/{task.duration} min"
        print(f"  [{mark}] {task.id}: {task.text} ({progress})")


async def _watch(app: FocusApp, seconds: float) -> None:
    driver = TimerDriver(app.engine)
    app.engine.on_tick = lambda remaining: print(f"\r{app.engine.status().time_text}   ", end="", flush=True)
    app.engine.on_interval_end = lambda message: print(f"\n🔔 {message}")
    await driver.run_for(seconds)
    print()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = get_config(args.config)
    except ConfigurationError as e:
        print(f"❌ {get_error_message('configuration', detailed=True)}")
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(cfg)
    app = FocusApp(cfg, user=args.user or env().user, plan_date=args.date)
    if app.restored_message:
        print(f"ℹ️  {app.restored_message}")

    if args.add_task:
        task = app.add_task(args.add_task, quota=args.quota, unit=args.unit)
        print(f"✅ Added {task.id}: {task.text}")
        return 0

    if args.remove_task:
        if app.remove_task(args.remove_task):
            print(f"✅ Removed {args.remove_task}")
            return 0
        print(f"❌ No task {args.remove_task}")
        return 1

    if args.list_tasks:
        _print_tasks(app)
        return 0

    if args.start:
        return _report(app.engine.start(args.start, args.mode))
    if args.pause:
        return _report(app.engine.pause())
    if args.resume:
        return _report(app.engine.resume())
    if args.stop:
        return _report(app.engine.stop())
    if args.complete:
        return _report(app.engine.complete_task())
    if args.skip_break:
        return _report(app.engine.skip_break())

    if args.watch:
        asyncio.run(_watch(app, args.watch))
        _print_status(app)
        return 0

    if args.stats:
        print(app.history.format_stats(app.clock.today()))
        return 0

    # Default: status. Catch up on anything that expired while not running.
    app.engine.tick()
    _print_status(app)
    return 0
