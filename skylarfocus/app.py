"""
Application wiring for SkylarFocus.

Builds the focus engine and its collaborators from configuration for one
user and plan date.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .core.clock import Clock, SystemClock
from .core.config import SkylarConfig, ensure_directories
from .focus.engine import FocusSessionEngine
from .focus.history import FocusHistory
from .focus.models import QuotaUnit, Task
from .focus.notifications import LogNotifier, NotificationSink
from .focus.reconciler import ProgressReconciler
from .storage.kv import SQLiteKeyValueStore
from .storage.tasks import PLAN, TASK_LIST, SQLiteTaskCollection


class FocusApp:
    """
    Focus engine with SQLite-backed stores.

    Usage:
        app = FocusApp(config, user="sky")
        app.add_task("Write report", quota=2, unit="pomodoros")
        app.engine.start(task.id)
    """

    def __init__(
        self,
        config: Optional[SkylarConfig] = None,
        user: Optional[str] = None,
        plan_date: Optional[str] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.config = config or SkylarConfig()
        ensure_directories(self.config)
        self.clock = clock or SystemClock()
        self.user = user or "anon"
        self.plan_date = plan_date or self.clock.today().isoformat()

        tasks_db = self.config.data_path(self.config.storage.tasks_db)
        self.plan = SQLiteTaskCollection(tasks_db, name=f"{PLAN}:{self.user}:{self.plan_date}")
        self.task_list = SQLiteTaskCollection(tasks_db, name=f"{TASK_LIST}:{self.user}")
        self.store = SQLiteKeyValueStore(self.config.data_path(self.config.storage.sessions_db))
        self.history = FocusHistory(self.config.data_path(self.config.storage.history_db))

        if notifier is None and self.config.notifications.enabled:
            notifier = LogNotifier()

        self.reconciler = ProgressReconciler(self.plan, self.task_list)
        self.engine = FocusSessionEngine(
            reconciler=self.reconciler,
            store=self.store,
            clock=self.clock,
            user=self.user,
            plan_date=self.plan_date,
            timer=self.config.timer,
            notifier=notifier,
            history=self.history,
        )
        self.restored_message = self.engine.restore_session()
        logger.debug(f"FocusApp ready for {self.user} on {self.plan_date}")

    def _next_task_id(self) -> str:
        existing = {t.id for t in self.task_list.list_tasks()}
        n = len(existing) + 1
        while f"task-{n}" in existing:
            n += 1
        return f"task-{n}"

    def add_task(
        self,
        text: str,
        quota: int = 0,
        unit: QuotaUnit | str = QuotaUnit.MINUTES,
        environment_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> Task:
        """Add a task to the owning list and to today's plan."""
        task = Task(
            id=task_id or self._next_task_id(),
            text=text,
            duration=quota,
            unit=QuotaUnit(unit),
            environment_id=environment_id,
        )
        self.task_list.add_task(task)
        self.plan.add_task(task)
        logger.info(f"Added task {task.id}: {text}")
        return task

    def remove_task(self, task_id: str) -> bool:
        """Delete a task from both collections, ending any session on it."""
        removed_plan = self.plan.remove_task(task_id)
        removed_list = self.task_list.remove_task(task_id)
        self.engine.handle_task_removed(task_id)
        return removed_plan or removed_list

