"""
Snapshot codec for session state.

Snapshots are versioned JSON. Timing fields are absolute epoch timestamps,
so a session restored after the process was unloaded keeps counting from
wall-clock time.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from loguru import logger

from ..core.errors import CorruptSnapshotError
from .models import FocusMode, SessionState

SNAPSHOT_VERSION = 1
STORAGE_KEY_BASE = "skylarfocus:timerState"


def storage_key(user: Optional[str], plan_date: Optional[str]) -> str:
    """Key a user's snapshot for one plan date."""
    return f"{STORAGE_KEY_BASE}:{user or 'anon'}:{plan_date or 'global'}"


def snapshot(state: SessionState) -> bytes:
    """Serialize a session state."""
    payload = {
        "v": SNAPSHOT_VERSION,
        "mode": state.mode.value,
        "taskRef": state.task_ref,
        "cycleCount": state.cycle_count,
        "isRunning": state.is_running,
        "accumulatedSeconds": state.accumulated_seconds,
        "runSinceEpochMs": state.run_since_ms,
        "remainingSeconds": state.remaining_seconds,
        "endsAtEpochMs": state.ends_at_ms,
        "flushedSeconds": state.flushed_seconds,
        "lastTaskRef": state.last_task_ref,
    }
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def _int(payload: Dict[str, Any], key: str, default: int = 0) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise CorruptSnapshotError(f"{key} is not an integer")
    return value


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    if payload.get(key) is None:
        return None
    return _int(payload, key)


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise CorruptSnapshotError(f"{key} is not a string")
    return value


def decode(data: bytes) -> SessionState:
    """
    Deserialize a snapshot strictly.

    Raises:
        CorruptSnapshotError: If the bytes are not a valid snapshot.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptSnapshotError(f"unreadable snapshot: {e}") from e

    if not isinstance(payload, dict):
        raise CorruptSnapshotError("snapshot is not an object")
    if payload.get("v") != SNAPSHOT_VERSION:
        raise CorruptSnapshotError(f"unsupported snapshot version {payload.get('v')!r}")

    try:
        mode = FocusMode(payload.get("mode"))
    except ValueError as e:
        raise CorruptSnapshotError(f"unknown mode {payload.get('mode')!r}") from e

    is_running = payload.get("isRunning", False)
    if not isinstance(is_running, bool):
        raise CorruptSnapshotError("isRunning is not a boolean")

    state = SessionState(
        mode=mode,
        task_ref=_optional_str(payload, "taskRef"),
        cycle_count=_int(payload, "cycleCount"),
        is_running=is_running,
        accumulated_seconds=_int(payload, "accumulatedSeconds"),
        run_since_ms=_optional_int(payload, "runSinceEpochMs"),
        remaining_seconds=_int(payload, "remainingSeconds"),
        ends_at_ms=_optional_int(payload, "endsAtEpochMs"),
        flushed_seconds=_int(payload, "flushedSeconds"),
        last_task_ref=_optional_str(payload, "lastTaskRef"),
    )

    try:
        state.validate()
    except ValueError as e:
        raise CorruptSnapshotError(str(e)) from e
    return state


def restore(data: Optional[bytes]) -> SessionState:
    """
    Deserialize a snapshot, falling back to idle.

    Missing or corrupt data is never fatal: it restores an idle session.
    """
    if not data:
        return SessionState.idle()
    try:
        return decode(data)
    except CorruptSnapshotError as e:
        logger.warning(f"Discarding corrupt timer snapshot: {e}")
        return SessionState.idle()
