"""
Progress reconciliation.

Credits focus progress to a task in both places it is stored (the day's
plan and its originating list). Both copies are updated or neither is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Tuple

from loguru import logger

from ..core.errors import MissingTaskReferenceError
from .models import Task

if TYPE_CHECKING:
    from ..storage.tasks import TaskCollection

PatchBuilder = Callable[[Task], Dict[str, Any]]


class ProgressReconciler:
    """
    Applies progress deltas to the plan copy and the list copy of a task.

    Usage:
        reconciler = ProgressReconciler(plan, task_list)
        reconciler.flush("task-1", minutes=2)
        reconciler.flush("task-1", minutes=25, pomodoros=1)
    """

    def __init__(self, plan: TaskCollection, task_list: TaskCollection):
        self.plan = plan
        self.task_list = task_list

    def _copies(self, task_ref: str) -> Tuple[Task, Task]:
        plan_task = self.plan.get_task(task_ref)
        if plan_task is None:
            raise MissingTaskReferenceError(task_ref, self.plan.name)
        list_task = self.task_list.get_task(task_ref)
        if list_task is None:
            raise MissingTaskReferenceError(task_ref, self.task_list.name)
        return plan_task, list_task

    def exists(self, task_ref: str) -> bool:
        """Whether the task is present in both collections."""
        return (
            self.plan.get_task(task_ref) is not None
            and self.task_list.get_task(task_ref) is not None
        )

    def get_task(self, task_ref: str) -> Task:
        """
        The plan copy of a task.

        Raises:
            MissingTaskReferenceError: If either copy is gone.
        """
        plan_task, _ = self._copies(task_ref)
        return plan_task

    def _apply_to_both(self, task_ref: str, build_patch: PatchBuilder) -> Task:
        plan_task, list_task = self._copies(task_ref)
        plan_patch = build_patch(plan_task)
        list_patch = build_patch(list_task)

        updated = self.plan.update_task(task_ref, plan_patch)
        if updated is None:
            raise MissingTaskReferenceError(task_ref, self.plan.name)

        rollback = {key: getattr(plan_task, key) for key in plan_patch}
        try:
            list_updated = self.task_list.update_task(task_ref, list_patch)
        except Exception:
            self.plan.update_task(task_ref, rollback)
            raise
        if list_updated is None:
            self.plan.update_task(task_ref, rollback)
            raise MissingTaskReferenceError(task_ref, self.task_list.name)
        return updated

    def flush(self, task_ref: str, minutes: int = 0, pomodoros: int = 0) -> Task:
        """
        Add progress to both copies of a task.

        Completion is recomputed from each copy's own quota and unit and is
        never cleared.

        Args:
            task_ref: Task id
            minutes: Whole minutes to add to actual_duration
            pomodoros: Whole pomodoros to add to actual_pomodoros

        Returns:
            The updated plan copy

        Raises:
            MissingTaskReferenceError: If either copy is gone. Nothing is written.
        """
        if minutes < 0 or pomodoros < 0:
            raise ValueError("progress deltas must be non-negative")
        if minutes == 0 and pomodoros == 0:
            return self.get_task(task_ref)

        def build_patch(task: Task) -> Dict[str, Any]:
            progressed = Task(
                id=task.id,
                duration=task.duration,
                unit=task.unit,
                actual_duration=task.actual_duration + minutes,
                actual_pomodoros=task.actual_pomodoros + pomodoros,
            )
            return {
                "actual_duration": progressed.actual_duration,
                "actual_pomodoros": progressed.actual_pomodoros,
                "completed": task.completed or progressed.quota_met(),
            }

        updated = self._apply_to_both(task_ref, build_patch)
        logger.info(
            f"Credited {minutes} min / {pomodoros} pomodoro(s) to {task_ref} "
            f"(now {updated.actual_duration} min, {updated.actual_pomodoros} pomodoros)"
        )
        return updated

    def mark_completed(self, task_ref: str) -> Task:
        """Mark both copies completed regardless of quota."""
        updated = self._apply_to_both(task_ref, lambda task: {"completed": True})
        logger.info(f"Task {task_ref} marked completed")
        return updated
