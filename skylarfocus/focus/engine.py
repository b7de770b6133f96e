"""
Focus session engine for SkylarFocus.

Drives one user's focus timer:
- Count-up (stopwatch) sessions credited in whole minutes
- 25/5/15 pomodoro cycle with a long break every 4th interval
- Snapshots after every transition so a reload resumes the session
- Progress written to both the plan copy and the list copy of a task
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Union

from loguru import logger

from ..core.clock import Clock, SystemClock
from ..core.config import TimerConfig
from ..core.errors import (
    BestEffort,
    FocusError,
    InvalidTransitionError,
    MissingTaskReferenceError,
    message_for,
)
from ..storage.kv import KeyValueStore
from .codec import restore, snapshot, storage_key
from .cycle import interval_seconds, next_break
from .duration import elapsed_seconds, format_time, remaining_seconds, whole_minutes
from .history import FocusHistory
from .models import FocusMode, FocusStatus, QuotaUnit, SessionState, Task, TransitionResult
from .notifications import NotificationSink, send_notification
from .reconciler import ProgressReconciler


class FocusSessionEngine:
    """
    Focus timer state machine.

    All timing is derived from the clock, so ``tick()`` may be called at any
    cadence (or skipped entirely while the host is suspended) without
    drifting.

    Usage:
        engine = FocusSessionEngine(reconciler, store, user="sky", plan_date="2026-10-19")
        engine.restore_session()
        engine.start("task-1")          # mode follows the task's quota unit
        engine.tick()                   # call about once a second
        engine.pause()
        engine.resume()
        engine.stop()
    """

    def __init__(
        self,
        reconciler: ProgressReconciler,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        user: Optional[str] = None,
        plan_date: Optional[str] = None,
        timer: Optional[TimerConfig] = None,
        notifier: Optional[NotificationSink] = None,
        history: Optional[FocusHistory] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        on_interval_end: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the engine.

        Args:
            reconciler: Writes progress into the task collections
            store: Key-value store for session snapshots
            clock: Time source (default: system clock)
            user: User the snapshot belongs to
            plan_date: Plan date (YYYY-MM-DD) the snapshot belongs to
            timer: Interval lengths and cycle settings
            notifier: Optional sink for expiry/break notifications
            history: Optional log of credited focus time
            on_tick: Callback every tick (receives the displayed seconds)
            on_interval_end: Callback when an interval expires (receives message)
        """
        self.reconciler = reconciler
        self.store = store
        self.clock = clock or SystemClock()
        self.timer = timer or TimerConfig()
        self.notifier = notifier
        self.history = history
        self.on_tick = on_tick
        self.on_interval_end = on_interval_end

        self.user = user or "anon"
        self.plan_date = plan_date or self.clock.today().isoformat()
        self.storage_key = storage_key(self.user, self.plan_date)

        self.state = SessionState.idle()

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def mode(self) -> FocusMode:
        return self.state.mode

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def display_seconds(self) -> int:
        """Elapsed seconds for count-up, remaining seconds for count-down, 0 when idle."""
        state = self.state
        if state.mode == FocusMode.COUNT_UP:
            return elapsed_seconds(state.accumulated_seconds, state.run_since_ms, self.clock.now())
        if state.mode.is_count_down:
            return remaining_seconds(state.remaining_seconds, state.ends_at_ms, self.clock.now())
        return 0

    def status(self) -> FocusStatus:
        """Current session for display, including task progress when available."""
        state = self.state
        seconds = self.display_seconds()
        status = FocusStatus(
            mode=state.mode,
            task_ref=state.task_ref,
            seconds=seconds,
            is_running=state.is_running,
            cycle_count=state.cycle_count,
            label="Ready to focus",
            time_text=format_time(seconds),
        )
        if state.is_idle:
            return status

        task = None
        if self.reconciler.exists(state.task_ref):
            task = self.reconciler.get_task(state.task_ref)

        if state.mode == FocusMode.SHORT_BREAK:
            status.label = "Short break"
        elif state.mode == FocusMode.LONG_BREAK:
            status.label = "Long break"
        elif state.mode == FocusMode.FOCUS and task is not None and task.duration > 0:
            status.label = f"Focusing... ({task.actual_pomodoros + 1} of {task.duration})"
        else:
            status.label = "Focusing..."
        if not state.is_running:
            status.label = f"Paused: {status.label}"

        if task is not None:
            self._fill_progress(status, task, seconds)
        return status

    def _fill_progress(self, status: FocusStatus, task: Task, seconds: int) -> None:
        if task.unit == QuotaUnit.POMODOROS:
            fraction = 0.0
            if self.state.mode == FocusMode.FOCUS:
                fraction = (self.timer.focus_seconds - seconds) / self.timer.focus_seconds
            status.progress_text = f"{task.actual_pomodoros} / {task.duration} pomodoros"
            if task.duration > 0:
                status.progress_percent = (task.actual_pomodoros + fraction) / task.duration * 100
        else:
            unflushed = 0
            if self.state.mode == FocusMode.COUNT_UP:
                unflushed = max(0, seconds - self.state.flushed_seconds)
            status.progress_text = (
                f"{task.actual_duration + whole_minutes(unflushed)} / {task.duration} min"
            )
            if task.duration > 0:
                total = task.actual_duration * 60 + unflushed
                status.progress_percent = total / (task.duration * 60) * 100

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist(self) -> None:
        with BestEffort("Timer snapshot write", level="ERROR"):
            self.store.set(self.storage_key, snapshot(self.state))

    def _set_state(self, state: SessionState) -> None:
        state.validate()
        self.state = state
        self._persist()

    def restore_session(self) -> Optional[str]:
        """
        Load the persisted session for this user and plan date.

        A running session stays running: its absolute timestamps keep it in
        step with wall-clock time spent unloaded.

        Returns:
            A message describing what was restored, or None
        """
        data = None
        with BestEffort("Timer snapshot read", level="WARNING"):
            data = self.store.get(self.storage_key)

        state = restore(data)
        if state.is_idle:
            self.state = state
            return None

        if not self.reconciler.exists(state.task_ref):
            self.state = state
            self._teardown(MissingTaskReferenceError(state.task_ref))
            return None

        self.state = state
        if state.is_running:
            logger.info(f"Restored running {state.mode.value} session for {state.task_ref}")
            return "Timer restored and running"
        logger.info(f"Restored paused {state.mode.value} session for {state.task_ref}")
        return "Timer restored (paused)"

    # =========================================================================
    # Failure paths
    # =========================================================================

    def _reject(self, operation: str, reason: str) -> TransitionResult:
        error = InvalidTransitionError(operation, reason)
        logger.debug(f"Rejected {operation}: {reason}")
        return TransitionResult(False, str(error), error)

    def _teardown(self, error: FocusError) -> TransitionResult:
        """
        Drop the session after its task vanished. Pending progress is discarded.

        The idle snapshot that replaces it keeps the cycle count.
        """
        logger.warning(f"Tearing down {self.state.mode.value} session: {error}")
        self._set_state(SessionState.idle(cycle_count=self.state.cycle_count))
        return TransitionResult(False, message_for(error), error)

    def _storage_failure(self, operation: str, error: Exception) -> TransitionResult:
        """Report a task store failure. The session is left as it was."""
        logger.error(f"Task store failed during {operation}: {error}")
        return TransitionResult(False, message_for(error), error)

    def _task_missing(self) -> Optional[MissingTaskReferenceError]:
        task_ref = self.state.task_ref
        if task_ref is not None and not self.reconciler.exists(task_ref):
            return MissingTaskReferenceError(task_ref)
        return None

    def handle_task_removed(self, task_id: str) -> bool:
        """
        Notify the engine that a task was deleted by a collaborator.

        Returns:
            True if the active session was torn down
        """
        if self.state.task_ref != task_id:
            return False
        self._teardown(MissingTaskReferenceError(task_id))
        return True

    # =========================================================================
    # Count-up crediting
    # =========================================================================

    def _freeze(self, state: SessionState, now: int) -> SessionState:
        if state.mode == FocusMode.COUNT_UP:
            return replace(
                state,
                accumulated_seconds=elapsed_seconds(state.accumulated_seconds, state.run_since_ms, now),
                run_since_ms=None,
                is_running=False,
            )
        return replace(
            state,
            remaining_seconds=remaining_seconds(state.remaining_seconds, state.ends_at_ms, now),
            ends_at_ms=None,
            is_running=False,
        )

    def _credit_count_up(self, state: SessionState, now: int) -> SessionState:
        """
        Credit whole minutes accumulated since the last flush.

        The partial minute is dropped and the next window starts at the
        current elapsed value.

        Raises:
            MissingTaskReferenceError: If the task is gone. Nothing is credited.
        """
        window = state.accumulated_seconds - state.flushed_seconds
        minutes = whole_minutes(window)
        if minutes > 0:
            self.reconciler.flush(state.task_ref, minutes=minutes)
            if self.history is not None:
                with BestEffort("Focus history write", level="WARNING"):
                    self.history.record_session(
                        state.task_ref,
                        started_at=datetime.fromtimestamp((now - window * 1000) / 1000),
                        ended_at=datetime.fromtimestamp(now / 1000),
                        minutes=minutes,
                    )
        return replace(state, flushed_seconds=state.accumulated_seconds)

    # =========================================================================
    # Intents
    # =========================================================================

    def start(
        self,
        task_ref: str,
        mode: Union[FocusMode, str, None] = None,
    ) -> TransitionResult:
        """
        Start a session on a task.

        Args:
            task_ref: Task id (must exist in the plan and its list)
            mode: Session mode; defaults to focus for pomodoro-quota tasks
                  and count-up for minute-quota tasks
        """
        if not self.state.is_idle:
            return self._reject("start", f"a {self.state.mode.value} session is already active")

        try:
            task = self.reconciler.get_task(task_ref)
        except MissingTaskReferenceError as e:
            logger.warning(f"Cannot start focus on {task_ref}: {e}")
            return TransitionResult(False, message_for(e), e)
        except Exception as e:
            return self._storage_failure("start", e)

        if mode is None:
            mode = FocusMode.FOCUS if task.unit == QuotaUnit.POMODOROS else FocusMode.COUNT_UP
        try:
            mode = FocusMode(mode)
        except ValueError:
            return self._reject("start", f"unknown mode {mode!r}")
        if mode == FocusMode.IDLE:
            return self._reject("start", "idle is not a session mode")

        now = self.clock.now()
        state = SessionState(
            mode=mode,
            task_ref=task_ref,
            cycle_count=self.state.cycle_count,
            is_running=True,
            last_task_ref=task_ref,
        )
        if mode == FocusMode.COUNT_UP:
            state.run_since_ms = now
            message = f"Started focusing on '{task.text}'."
        else:
            seconds = interval_seconds(mode, self.timer)
            state.remaining_seconds = seconds
            state.ends_at_ms = now + seconds * 1000
            if mode == FocusMode.FOCUS:
                message = f"Starting {seconds // 60}-minute focus session on '{task.text}'."
            else:
                message = f"Starting {seconds // 60}-minute break."

        self._set_state(state)
        logger.info(f"Session started: {mode.value} on {task_ref}")
        return TransitionResult(True, message)

    def pause(self) -> TransitionResult:
        """Pause the running session. Count-up sessions credit whole minutes."""
        expired = self._catch_up()
        if expired is not None and not expired.ok:
            return expired
        if self.state.is_idle:
            return self._reject("pause", "no session is active")
        if not self.state.is_running:
            return self._reject("pause", "the session is already paused")

        now = self.clock.now()
        state = self._freeze(self.state, now)
        try:
            missing = self._task_missing()
            if missing:
                return self._teardown(missing)
            if state.mode == FocusMode.COUNT_UP:
                state = self._credit_count_up(state, now)
        except MissingTaskReferenceError as e:
            return self._teardown(e)
        except Exception as e:
            return self._storage_failure("pause", e)

        self._set_state(state)
        logger.info(f"Session paused at {format_time(self.display_seconds())}")
        return TransitionResult(True, f"Timer paused at {format_time(self.display_seconds())}.")

    def resume(self) -> TransitionResult:
        """Resume a paused session from its frozen value."""
        if self.state.is_idle:
            return self._reject("resume", "no session is active")
        if self.state.is_running:
            return self._reject("resume", "the session is already running")

        try:
            missing = self._task_missing()
        except Exception as e:
            return self._storage_failure("resume", e)
        if missing:
            return self._teardown(missing)

        now = self.clock.now()
        if self.state.mode == FocusMode.COUNT_UP:
            state = replace(self.state, run_since_ms=now, is_running=True)
        else:
            state = replace(
                self.state,
                ends_at_ms=now + self.state.remaining_seconds * 1000,
                is_running=True,
            )
        self._set_state(state)
        logger.info(f"Session resumed at {format_time(self.display_seconds())}")
        return TransitionResult(True, f"Timer resumed. {format_time(self.display_seconds())}")

    def stop(self) -> TransitionResult:
        """End the session. Count-up sessions credit whole minutes first."""
        expired = self._catch_up()
        if expired is not None and not expired.ok:
            return expired
        if self.state.is_idle:
            return self._reject("stop", "no session is active")

        task_ref = self.state.task_ref
        try:
            missing = self._task_missing()
            if missing:
                return self._teardown(missing)
            if self.state.mode == FocusMode.COUNT_UP:
                now = self.clock.now()
                self._credit_count_up(self._freeze(self.state, now), now)
        except MissingTaskReferenceError as e:
            return self._teardown(e)
        except Exception as e:
            return self._storage_failure("stop", e)

        self._set_state(SessionState.idle(self.state.cycle_count, last_task_ref=task_ref))
        logger.info(f"Session on {task_ref} stopped")
        return TransitionResult(True, "Focus session ended.")

    def complete_task(self) -> TransitionResult:
        """
        Mark the focused task done and end the session.

        A focus interval that ran out before this call is credited first, and
        the break it started is dropped.
        """
        expired = self._catch_up()
        if expired is not None and not expired.ok:
            return expired
        if self.state.is_idle:
            return self._reject("complete", "no session is active")
        if self.state.mode.is_break and expired is None:
            return self._reject("complete", "a break is in progress")

        task_ref = self.state.task_ref
        try:
            missing = self._task_missing()
            if missing:
                return self._teardown(missing)
            if self.state.mode == FocusMode.COUNT_UP:
                now = self.clock.now()
                self._credit_count_up(self._freeze(self.state, now), now)
            task = self.reconciler.mark_completed(task_ref)
        except MissingTaskReferenceError as e:
            return self._teardown(e)
        except Exception as e:
            return self._storage_failure("complete", e)

        self._set_state(SessionState.idle(self.state.cycle_count, last_task_ref=task_ref))
        return TransitionResult(True, f"Nice work! '{task.text}' is done.")

    def skip_break(self) -> TransitionResult:
        """End the current break early."""
        expired = self._catch_up()
        if expired is not None and not expired.ok:
            return expired
        if not self.state.mode.is_break:
            return self._reject("skip break", "no break is in progress")

        task_ref = self.state.task_ref
        self._set_state(SessionState.idle(self.state.cycle_count, last_task_ref=task_ref))
        logger.info("Break skipped")
        return TransitionResult(True, "Break skipped. Ready to focus!")

    # =========================================================================
    # Ticking
    # =========================================================================

    def _catch_up(self) -> Optional[TransitionResult]:
        """
        Fire an expiry that no tick has observed yet.

        Returns:
            None if nothing had run out, otherwise the expiry outcome
        """
        state = self.state
        if not (state.is_running and state.mode.is_count_down):
            return None
        if self.display_seconds() > 0:
            return None
        return self._on_interval_expired()

    def tick(self) -> int:
        """
        Advisory poll, about once a second while running.

        Fires interval expiry when a count-down reaches zero. Task store
        failures are logged and retried on the next tick.

        Returns:
            The displayed seconds after the tick
        """
        if self.state.is_idle or not self.state.is_running:
            return self.display_seconds()

        try:
            missing = self._task_missing()
        except Exception as e:
            self._storage_failure("tick", e)
            return self.display_seconds()
        if missing:
            self._teardown(missing)
            return 0

        self._catch_up()
        seconds = self.display_seconds()

        if self.on_tick:
            with BestEffort("Tick callback"):
                self.on_tick(seconds)
        return seconds

    def _on_interval_expired(self) -> TransitionResult:
        """
        Move a count-down whose time is up to its next state.

        Focus credits one pomodoro and starts a break. A break returns to
        idle. If crediting fails the state is left as it was so the next
        tick or intent retries.
        """
        state = self.state
        now = self.clock.now()

        if state.mode == FocusMode.FOCUS:
            minutes = self.timer.focus_minutes
            try:
                task = self.reconciler.flush(state.task_ref, minutes=minutes, pomodoros=1)
            except MissingTaskReferenceError as e:
                return self._teardown(e)
            except Exception as e:
                return self._storage_failure("interval expiry", e)

            if self.history is not None:
                with BestEffort("Focus history write", level="WARNING"):
                    self.history.record_pomodoro(
                        task.id, task.text, minutes, datetime.fromtimestamp(now / 1000)
                    )
            send_notification(
                self.notifier,
                "Pomodoro finished",
                f"Completed one pomodoro for: {task.text}" if task.text else "Pomodoro finished",
            )

            break_mode = next_break(state.cycle_count, self.timer.sessions_before_long_break)
            seconds = interval_seconds(break_mode, self.timer)
            auto_start = self.timer.auto_start_breaks
            self._set_state(replace(
                state,
                mode=break_mode,
                cycle_count=state.cycle_count + 1,
                is_running=auto_start,
                remaining_seconds=seconds,
                ends_at_ms=now + seconds * 1000 if auto_start else None,
            ))

            long_break = break_mode == FocusMode.LONG_BREAK
            if long_break:
                message = (
                    f"Great work! You've completed {state.cycle_count + 1} pomodoros. "
                    f"Time for a {seconds // 60}-minute long break!"
                )
            else:
                message = f"Focus session complete! Time for a {seconds // 60}-minute break."
            if auto_start:
                send_notification(
                    self.notifier,
                    "Break started",
                    "Long break started" if long_break else "Short break started",
                )

        elif state.mode.is_break:
            self._set_state(SessionState.idle(state.cycle_count, last_task_ref=state.task_ref))
            message = "Break's over! Ready to start another focus session?"
            send_notification(self.notifier, "Break ended", "Break is over, ready to focus!")
        else:
            return TransitionResult(True, "")

        logger.info(f"Focus timer: {message}")
        if self.on_interval_end:
            with BestEffort("Interval callback"):
                self.on_interval_end(message)
        return TransitionResult(True, message)
