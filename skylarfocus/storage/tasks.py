"""
Task collections.

The planner keeps each task twice: once in the day's plan and once in the
environment list it came from. Both are exposed through the same
TaskCollection interface so the reconciler can treat them alike.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from ..focus.models import QuotaUnit, Task

PLAN = "plan"
TASK_LIST = "list"

PATCHABLE_FIELDS = {
    "text",
    "duration",
    "unit",
    "actual_duration",
    "actual_pomodoros",
    "completed",
    "environment_id",
}


def _apply_patch(task: Task, patch: Dict[str, Any]) -> Task:
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch task fields: {sorted(unknown)}")
    changes = dict(patch)
    if "unit" in changes:
        changes["unit"] = QuotaUnit(changes["unit"])
    return replace(task, **changes)


class TaskCollection(ABC):
    """A named collection of tasks keyed by id."""

    name: str = "tasks"

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]:
        """Return a copy of the task, or None."""

    @abstractmethod
    def update_task(self, task_id: str, patch: Dict[str, Any]) -> Optional[Task]:
        """Apply a field patch. Returns the updated task, or None if absent."""

    @abstractmethod
    def add_task(self, task: Task) -> Task:
        """Insert or replace a task."""

    @abstractmethod
    def remove_task(self, task_id: str) -> bool:
        """Delete a task. Returns True if it existed."""

    @abstractmethod
    def list_tasks(self) -> List[Task]:
        """All tasks in insertion order."""


class InMemoryTaskCollection(TaskCollection):
    """Task collection held in a dict."""

    def __init__(self, name: str = "tasks", tasks: Optional[List[Task]] = None):
        self.name = name
        self._tasks: Dict[str, Task] = {}
        for task in tasks or []:
            self.add_task(task)

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    def update_task(self, task_id: str, patch: Dict[str, Any]) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        updated = _apply_patch(task, patch)
        self._tasks[task_id] = updated
        return replace(updated)

    def add_task(self, task: Task) -> Task:
        self._tasks[task.id] = replace(task)
        return replace(task)

    def remove_task(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def list_tasks(self) -> List[Task]:
        return [replace(t) for t in self._tasks.values()]


class SQLiteTaskCollection(TaskCollection):
    """
    Task collection persisted in SQLite.

    Several collections can share one database file; rows are scoped by
    collection name.
    """

    def __init__(self, db_path: str | Path = "data/tasks.db", name: str = PLAN):
        self.db_path = Path(db_path)
        self.name = name
        self._init_db()

    def _init_db(self):
        """Initialize SQLite database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    text TEXT NOT NULL DEFAULT '',
                    duration INTEGER NOT NULL DEFAULT 0,
                    unit TEXT NOT NULL DEFAULT 'minutes',
                    actual_duration INTEGER NOT NULL DEFAULT 0,
                    actual_pomodoros INTEGER NOT NULL DEFAULT 0,
                    completed BOOLEAN DEFAULT FALSE,
                    environment_id TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (collection, id)
                )
            """)
            conn.commit()

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            text=row["text"],
            duration=row["duration"],
            unit=QuotaUnit(row["unit"]),
            actual_duration=row["actual_duration"],
            actual_pomodoros=row["actual_pomodoros"],
            completed=bool(row["completed"]),
            environment_id=row["environment_id"],
        )

    def get_task(self, task_id: str) -> Optional[Task]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM tasks WHERE collection = ? AND id = ?",
                (self.name, task_id),
            ).fetchone()
        return self._row_to_task(row) if row else None

    def update_task(self, task_id: str, patch: Dict[str, Any]) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None
        updated = _apply_patch(task, patch)
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("""
                UPDATE tasks
                SET text = ?, duration = ?, unit = ?, actual_duration = ?,
                    actual_pomodoros = ?, completed = ?, environment_id = ?
                WHERE collection = ? AND id = ?
            """, (
                updated.text,
                updated.duration,
                updated.unit.value,
                updated.actual_duration,
                updated.actual_pomodoros,
                updated.completed,
                updated.environment_id,
                self.name,
                task_id,
            ))
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return updated

    def add_task(self, task: Task) -> Task:
        with sqlite3.connect(self.db_path) as conn:
            position = conn.execute(
                "SELECT COALESCE(MAX(position), 0) + 1 FROM tasks WHERE collection = ?",
                (self.name,),
            ).fetchone()[0]
            conn.execute("""
                INSERT OR REPLACE INTO tasks
                    (collection, id, text, duration, unit, actual_duration,
                     actual_pomodoros, completed, environment_id, position)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                self.name,
                task.id,
                task.text,
                task.duration,
                task.unit.value,
                task.actual_duration,
                task.actual_pomodoros,
                task.completed,
                task.environment_id,
                position,
            ))
            conn.commit()
        logger.debug(f"Stored task {task.id} in {self.name}")
        return replace(task)

    def remove_task(self, task_id: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE collection = ? AND id = ?",
                (self.name, task_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def list_tasks(self) -> List[Task]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM tasks WHERE collection = ? ORDER BY position",
                (self.name,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]
