"""Storage backends for tasks and session snapshots."""

from .kv import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from .tasks import (
    PLAN,
    TASK_LIST,
    InMemoryTaskCollection,
    SQLiteTaskCollection,
    TaskCollection,
)

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "PLAN",
    "TASK_LIST",
    "InMemoryTaskCollection",
    "SQLiteTaskCollection",
    "TaskCollection",
]
