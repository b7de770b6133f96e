"""Shared fixtures for the focus engine tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from skylarfocus.core.clock import FakeClock
from skylarfocus.focus.engine import FocusSessionEngine
from skylarfocus.focus.models import QuotaUnit, Task
from skylarfocus.focus.reconciler import ProgressReconciler
from skylarfocus.storage.kv import MemoryKeyValueStore
from skylarfocus.storage.tasks import PLAN, TASK_LIST, InMemoryTaskCollection

START_MS = 1_700_000_000_000


def make_tasks():
    return [
        Task(id="t1", text="Write report", duration=4, unit=QuotaUnit.POMODOROS),
        Task(id="t2", text="Read chapter", duration=5, unit=QuotaUnit.MINUTES),
    ]


@pytest.fixture
def clock():
    return FakeClock(start_ms=START_MS)


@pytest.fixture
def plan():
    return InMemoryTaskCollection(PLAN, make_tasks())


@pytest.fixture
def task_list():
    return InMemoryTaskCollection(TASK_LIST, make_tasks())


@pytest.fixture
def reconciler(plan, task_list):
    return ProgressReconciler(plan, task_list)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def engine(reconciler, store, clock):
    return FocusSessionEngine(
        reconciler=reconciler,
        store=store,
        clock=clock,
        user="sky",
        plan_date="2023-11-14",
    )
