"""
Unit tests for the focus session engine.

Tests:
- Intent transitions and rejected intents
- Count-up crediting (pause/resume/stop)
- Pomodoro expiry and the break cycle
- Snapshot persistence and restore
- Forced teardown when the task disappears
"""

from dataclasses import replace

import pytest

from skylarfocus.core.config import TimerConfig
from skylarfocus.core.errors import InvalidTransitionError, MissingTaskReferenceError
from skylarfocus.focus.codec import decode, snapshot
from skylarfocus.focus.engine import FocusSessionEngine
from skylarfocus.focus.history import FocusHistory
from skylarfocus.focus.models import FocusMode, SessionState
from skylarfocus.focus.notifications import CallbackNotifier
from skylarfocus.focus.reconciler import ProgressReconciler
from skylarfocus.storage.tasks import TASK_LIST, InMemoryTaskCollection


class FlakyCollection(InMemoryTaskCollection):
    """Collection whose reads or writes can be made to fail."""

    def __init__(self, name, tasks):
        super().__init__(name, tasks)
        self.failing_reads = 0
        self.failing_writes = 0

    def get_task(self, task_id):
        if self.failing_reads:
            self.failing_reads -= 1
            raise OSError("database is locked")
        return super().get_task(task_id)

    def update_task(self, task_id, patch):
        if self.failing_writes:
            self.failing_writes -= 1
            raise OSError("database is locked")
        return super().update_task(task_id, patch)


def finish_focus(engine, clock):
    """Run a full focus interval and tick once at expiry."""
    engine.start("t1", FocusMode.FOCUS)
    clock.advance_seconds(1500)
    engine.tick()


def finish_break(engine, clock):
    clock.advance_seconds(engine.display_seconds())
    engine.tick()


class TestStart:
    """Tests for starting sessions."""

    def test_mode_follows_task_unit(self, engine):
        assert engine.start("t1")
        assert engine.mode == FocusMode.FOCUS
        assert engine.state.remaining_seconds == 1500

        engine.stop()
        assert engine.start("t2")
        assert engine.mode == FocusMode.COUNT_UP
        assert engine.state.accumulated_seconds == 0

    def test_count_down_anchors_end_timestamp(self, engine, clock):
        engine.start("t1", FocusMode.FOCUS)
        assert engine.is_running
        assert engine.state.ends_at_ms == clock.now() + 1500 * 1000
        assert engine.state.run_since_ms is None

    def test_count_up_anchors_start_timestamp(self, engine, clock):
        engine.start("t2", "count_up")
        assert engine.state.run_since_ms == clock.now()
        assert engine.state.ends_at_ms is None

    def test_break_modes_can_be_started(self, engine):
        engine.start("t1", FocusMode.LONG_BREAK)
        assert engine.display_seconds() == 900

    def test_start_requires_idle(self, engine):
        engine.start("t1")
        result = engine.start("t2")

        assert not result.ok
        assert isinstance(result.error, InvalidTransitionError)
        assert engine.state.task_ref == "t1"

    def test_start_unknown_task(self, engine):
        result = engine.start("ghost")

        assert not result.ok
        assert isinstance(result.error, MissingTaskReferenceError)
        assert engine.state.is_idle

    def test_start_rejects_idle_mode(self, engine):
        assert not engine.start("t1", FocusMode.IDLE).ok
        assert not engine.start("t1", "turbo").ok
        assert engine.state.is_idle


class TestRejectedIntents:
    """Invalid transitions are signalled no-ops."""

    def test_idle_rejects_everything(self, engine):
        for intent in (engine.pause, engine.resume, engine.stop, engine.complete_task, engine.skip_break):
            result = intent()
            assert not result.ok
            assert isinstance(result.error, InvalidTransitionError)
        assert engine.state == SessionState.idle()

    def test_resume_while_running(self, engine):
        engine.start("t1")
        before = replace(engine.state)

        result = engine.resume()

        assert not result.ok
        assert engine.state == before

    def test_pause_while_paused(self, engine):
        engine.start("t1")
        engine.pause()
        assert not engine.pause().ok

    def test_complete_during_break(self, engine, clock):
        finish_focus(engine, clock)
        assert engine.mode == FocusMode.SHORT_BREAK

        result = engine.complete_task()
        assert not result.ok
        assert engine.mode == FocusMode.SHORT_BREAK


class TestCountUp:
    """Stopwatch sessions credit whole minutes."""

    def test_pause_resume_keeps_displayed_value(self, engine, clock):
        engine.start("t2")
        clock.advance_seconds(125)
        before = engine.display_seconds()

        engine.pause()
        clock.advance_seconds(600)  # paused time does not count
        engine.resume()

        assert engine.display_seconds() == before == 125

    def test_scenario_c_no_double_count(self, engine, clock, plan, task_list):
        engine.start("t2")
        clock.advance_seconds(125)
        engine.pause()
        assert plan.get_task("t2").actual_duration == 2

        clock.advance_seconds(75)   # t=200
        engine.resume()
        clock.advance_seconds(200)  # t=400
        engine.stop()

        assert plan.get_task("t2").actual_duration == 5
        assert task_list.get_task("t2").actual_duration == 5
        assert engine.state.is_idle

    def test_partial_minute_is_dropped(self, engine, clock, plan):
        engine.start("t2")
        clock.advance_seconds(59)
        engine.pause()
        engine.resume()
        clock.advance_seconds(59)
        engine.stop()

        assert plan.get_task("t2").actual_duration == 0

    def test_stop_after_pause_does_not_recredit(self, engine, clock, plan):
        engine.start("t2")
        clock.advance_seconds(180)
        engine.pause()
        engine.stop()

        assert plan.get_task("t2").actual_duration == 3

    def test_quota_reached_marks_completed(self, engine, clock, plan):
        engine.start("t2")
        clock.advance_seconds(5 * 60)
        engine.pause()

        assert plan.get_task("t2").completed
        assert engine.mode == FocusMode.COUNT_UP

    def test_tick_reports_elapsed(self, engine, clock):
        engine.start("t2")
        clock.advance_seconds(42)
        assert engine.tick() == 42


class TestCountDown:
    """Pomodoro and break intervals."""

    def test_pause_does_not_credit(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(1400)
        engine.pause()
        engine.stop()

        task = plan.get_task("t1")
        assert task.actual_pomodoros == 0
        assert task.actual_duration == 0

    def test_pause_resume_keeps_remaining(self, engine, clock):
        engine.start("t1")
        clock.advance_seconds(100)
        engine.pause()
        assert engine.state.remaining_seconds == 1400

        clock.advance_seconds(1000)
        engine.resume()
        assert engine.display_seconds() == 1400
        assert engine.state.ends_at_ms == clock.now() + 1400 * 1000

    def test_remaining_is_non_increasing(self, engine, clock):
        engine.start("t1")
        last = engine.display_seconds()
        for step in (1, 7, 0.4, 30, 500, 2, 961):
            clock.advance_seconds(step)
            value = engine.display_seconds()
            assert 0 <= value <= last
            last = value
        assert last == 0

    def test_scenario_a_focus_expiry(self, engine, clock, plan, task_list):
        engine.start("t1", FocusMode.FOCUS)
        clock.advance_seconds(1500)
        engine.tick()

        for task in (plan.get_task("t1"), task_list.get_task("t1")):
            assert task.actual_pomodoros == 1
            assert task.actual_duration == 25
        assert engine.state.cycle_count == 1
        assert engine.mode == FocusMode.SHORT_BREAK
        assert engine.state.remaining_seconds == 300
        assert engine.is_running
        assert engine.display_seconds() == 300

    def test_expiry_fires_exactly_once(self, engine, clock, plan):
        fired = []
        engine.on_interval_end = fired.append

        engine.start("t1")
        clock.advance_seconds(1500)
        engine.tick()
        engine.tick()
        clock.advance_seconds(1)
        engine.tick()

        assert len(fired) == 1
        assert plan.get_task("t1").actual_pomodoros == 1

    def test_late_tick_still_fires_once(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(4000)  # host was suspended
        engine.tick()

        assert plan.get_task("t1").actual_pomodoros == 1
        assert engine.mode == FocusMode.SHORT_BREAK

    def test_break_end_returns_to_idle(self, engine, clock):
        finish_focus(engine, clock)
        finish_break(engine, clock)

        assert engine.state.is_idle
        assert engine.state.task_ref is None
        assert engine.state.last_task_ref == "t1"
        assert engine.state.cycle_count == 1

    def test_scenario_b_long_break_after_four(self, engine, clock):
        for i in range(4):
            finish_focus(engine, clock)
            if i < 3:
                assert engine.mode == FocusMode.SHORT_BREAK
                finish_break(engine, clock)

        assert engine.mode == FocusMode.LONG_BREAK
        assert engine.state.remaining_seconds == 900
        assert engine.state.cycle_count == 4

        # The counter is not reset after the long break
        finish_break(engine, clock)
        assert engine.state.cycle_count == 4
        finish_focus(engine, clock)
        assert engine.state.cycle_count == 5
        assert engine.mode == FocusMode.SHORT_BREAK

    def test_pomodoro_quota_marks_completed(self, engine, clock, plan):
        for _ in range(4):
            finish_focus(engine, clock)
            finish_break(engine, clock)
        assert plan.get_task("t1").completed

    def test_skip_break(self, engine, clock, plan):
        finish_focus(engine, clock)
        result = engine.skip_break()

        assert result.ok
        assert engine.state.is_idle
        assert plan.get_task("t1").actual_pomodoros == 1

    def test_breaks_can_wait_for_user(self, reconciler, store, clock):
        engine = FocusSessionEngine(
            reconciler, store, clock=clock, timer=TimerConfig(auto_start_breaks=False)
        )
        finish_focus(engine, clock)

        assert engine.mode == FocusMode.SHORT_BREAK
        assert not engine.is_running
        clock.advance_seconds(1000)
        assert engine.display_seconds() == 300
        assert engine.resume().ok


class TestCompleteTask:
    """Tests for explicit completion."""

    def test_count_up_flushes_then_completes(self, engine, clock, plan, task_list):
        engine.start("t2")
        clock.advance_seconds(150)
        result = engine.complete_task()

        assert result.ok
        assert plan.get_task("t2").actual_duration == 2
        assert plan.get_task("t2").completed
        assert task_list.get_task("t2").completed
        assert engine.state.is_idle

    def test_focus_completes_without_credit(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(600)
        engine.complete_task()

        task = plan.get_task("t1")
        assert task.completed
        assert task.actual_pomodoros == 0


class TestPersistence:
    """Snapshots follow every transition."""

    def test_snapshot_written_on_start(self, engine, store):
        engine.start("t1")
        assert decode(store.get(engine.storage_key)) == engine.state

    def test_snapshot_updated_on_pause(self, engine, store, clock):
        engine.start("t2")
        clock.advance_seconds(30)
        engine.pause()

        saved = decode(store.get(engine.storage_key))
        assert not saved.is_running
        assert saved.accumulated_seconds == 30

    def test_restore_running_session(self, engine, store, reconciler, clock):
        engine.start("t2")
        clock.advance_seconds(90)

        reloaded = FocusSessionEngine(
            reconciler, store, clock=clock, user="sky", plan_date="2023-11-14"
        )
        message = reloaded.restore_session()

        assert message == "Timer restored and running"
        assert reloaded.display_seconds() == 90

    def test_restore_paused_session(self, engine, store, reconciler, clock):
        engine.start("t1")
        clock.advance_seconds(60)
        engine.pause()

        reloaded = FocusSessionEngine(
            reconciler, store, clock=clock, user="sky", plan_date="2023-11-14"
        )
        assert reloaded.restore_session() == "Timer restored (paused)"
        assert reloaded.display_seconds() == 1440

    def test_restore_nothing(self, engine):
        assert engine.restore_session() is None
        assert engine.state.is_idle

    def test_restore_corrupt_snapshot(self, engine, store):
        store.set(engine.storage_key, b'{"v": 1, "mode": ')
        assert engine.restore_session() is None
        assert engine.state.is_idle

    def test_scenario_e_expired_while_unloaded(self, engine, store, clock, plan):
        state = SessionState(
            mode=FocusMode.FOCUS,
            task_ref="t1",
            is_running=True,
            remaining_seconds=1500,
            ends_at_ms=clock.now() - 10 * 60 * 1000,
        )
        store.set(engine.storage_key, snapshot(state))

        assert engine.restore_session() == "Timer restored and running"
        assert engine.display_seconds() == 0

        engine.tick()
        engine.tick()

        assert plan.get_task("t1").actual_pomodoros == 1
        assert engine.mode == FocusMode.SHORT_BREAK

    def test_storage_failure_is_not_fatal(self, reconciler, clock):
        class BrokenStore:
            def get(self, key):
                raise OSError("disk gone")

            def set(self, key, value):
                raise OSError("disk gone")

            def delete(self, key):
                raise OSError("disk gone")

        engine = FocusSessionEngine(reconciler, BrokenStore(), clock=clock)
        assert engine.restore_session() is None
        assert engine.start("t1").ok
        assert engine.stop().ok


class TestForcedTeardown:
    """Sessions end when their task disappears."""

    def test_scenario_d_task_deleted_while_running(self, engine, store, clock, plan, task_list):
        engine.start("t2")
        clock.advance_seconds(300)
        task_list.remove_task("t2")

        engine.tick()

        assert engine.state.is_idle
        assert decode(store.get(engine.storage_key)).is_idle
        assert plan.get_task("t2").actual_duration == 0

    def test_intent_observes_missing_task(self, engine, store, plan):
        engine.start("t1")
        plan.remove_task("t1")

        result = engine.pause()

        assert not result.ok
        assert isinstance(result.error, MissingTaskReferenceError)
        assert engine.state.is_idle
        assert decode(store.get(engine.storage_key)).is_idle

    def test_handle_task_removed(self, engine, store):
        engine.start("t1")
        assert not engine.handle_task_removed("t2")
        assert engine.handle_task_removed("t1")
        assert engine.state.is_idle
        assert decode(store.get(engine.storage_key)).is_idle

    def test_restore_with_missing_task(self, engine, store, task_list, reconciler, clock):
        engine.start("t2")
        task_list.remove_task("t2")

        reloaded = FocusSessionEngine(
            reconciler, store, clock=clock, user="sky", plan_date="2023-11-14"
        )
        assert reloaded.restore_session() is None
        assert reloaded.state.is_idle
        assert decode(store.get(engine.storage_key)).is_idle

    def test_cycle_count_survives_teardown(self, engine, clock, plan):
        finish_focus(engine, clock)
        finish_break(engine, clock)
        engine.start("t1")
        plan.remove_task("t1")
        engine.tick()

        assert engine.state.cycle_count == 1

    def test_cycle_count_survives_teardown_and_reload(self, engine, store, reconciler, clock, plan):
        finish_focus(engine, clock)
        finish_break(engine, clock)
        engine.start("t1")
        plan.remove_task("t1")
        engine.tick()

        reloaded = FocusSessionEngine(
            reconciler, store, clock=clock, user="sky", plan_date="2023-11-14"
        )
        reloaded.restore_session()

        assert reloaded.state.is_idle
        assert reloaded.state.cycle_count == 1


class TestSideEffects:
    """Notifications, history and status."""

    def test_notifications_on_cycle(self, engine, clock):
        sent = []
        engine.notifier = CallbackNotifier(lambda title, body: sent.append(title))

        finish_focus(engine, clock)
        finish_break(engine, clock)

        assert sent == ["Pomodoro finished", "Break started", "Break ended"]

    def test_failing_notifier_is_swallowed(self, engine, clock, plan):
        def boom(title, body):
            raise RuntimeError("no display")

        engine.notifier = CallbackNotifier(boom)
        finish_focus(engine, clock)

        assert engine.mode == FocusMode.SHORT_BREAK
        assert plan.get_task("t1").actual_pomodoros == 1

    def test_history_records(self, engine, clock, tmp_path):
        engine.history = FocusHistory(tmp_path / "history.db")

        finish_focus(engine, clock)
        finish_break(engine, clock)
        engine.start("t2")
        clock.advance_seconds(130)
        engine.stop()

        records = engine.history.get_recent()
        assert sorted(r.kind for r in records) == ["pomodoro", "session"]
        stats = engine.history.get_stats(clock.today())
        assert stats.today_pomodoros == 1
        assert stats.today_minutes == 27

    def test_status_for_focus(self, engine, clock):
        engine.start("t1")
        clock.advance_seconds(750)

        status = engine.status()
        assert status.label == "Focusing... (1 of 4)"
        assert status.time_text == "12:30"
        assert status.progress_text == "0 / 4 pomodoros"
        assert status.progress_percent == pytest.approx(12.5)

    def test_status_for_count_up(self, engine, clock):
        engine.start("t2")
        clock.advance_seconds(120)

        status = engine.status()
        assert status.label == "Focusing..."
        assert status.progress_text == "2 / 5 min"
        assert status.progress_percent == pytest.approx(40.0)

    def test_status_when_paused_and_idle(self, engine):
        assert engine.status().label == "Ready to focus"
        engine.start("t2")
        engine.pause()
        assert engine.status().label.startswith("Paused")

    def test_paused_break_is_not_announced(self, reconciler, store, clock):
        sent = []
        engine = FocusSessionEngine(
            reconciler, store, clock=clock, timer=TimerConfig(auto_start_breaks=False),
            notifier=CallbackNotifier(lambda title, body: sent.append(title)),
        )
        finish_focus(engine, clock)

        assert engine.mode == FocusMode.SHORT_BREAK
        assert sent == ["Pomodoro finished"]


class TestMissedTicks:
    """Intents arriving after a count-down ran out, with no tick in between."""

    def test_stop_credits_expired_focus(self, engine, clock, plan, task_list):
        engine.start("t1")
        clock.advance_seconds(1600)

        result = engine.stop()

        assert result.ok
        assert engine.state.is_idle
        assert engine.state.cycle_count == 1
        assert plan.get_task("t1").actual_pomodoros == 1
        assert plan.get_task("t1").actual_duration == 25
        assert task_list.get_task("t1").actual_pomodoros == 1

    def test_pause_lands_in_break(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(1600)

        result = engine.pause()

        assert result.ok
        assert engine.mode == FocusMode.SHORT_BREAK
        assert not engine.is_running
        assert engine.display_seconds() == 300
        assert plan.get_task("t1").actual_pomodoros == 1

    def test_complete_credits_expired_focus(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(1500)

        result = engine.complete_task()

        assert result.ok
        assert engine.state.is_idle
        task = plan.get_task("t1")
        assert task.completed
        assert task.actual_pomodoros == 1

    def test_expired_break_ends_before_intent(self, engine, clock):
        finish_focus(engine, clock)
        clock.advance_seconds(400)

        result = engine.skip_break()

        assert not result.ok
        assert engine.state.is_idle
        assert engine.state.last_task_ref == "t1"

    def test_no_double_credit_after_catch_up(self, engine, clock, plan):
        engine.start("t1")
        clock.advance_seconds(1600)
        engine.pause()
        engine.tick()
        engine.stop()

        assert plan.get_task("t1").actual_pomodoros == 1


class TestTaskStoreFailures:
    """Task store errors are reported and leave the session untouched."""

    @pytest.fixture
    def flaky_list(self, task_list):
        return FlakyCollection(TASK_LIST, task_list.list_tasks())

    @pytest.fixture
    def flaky_engine(self, plan, flaky_list, store, clock):
        return FocusSessionEngine(ProgressReconciler(plan, flaky_list), store, clock=clock)

    def test_stop_reports_failed_flush(self, flaky_engine, flaky_list, clock, plan):
        flaky_engine.start("t2")
        clock.advance_seconds(180)
        before = replace(flaky_engine.state)
        flaky_list.failing_writes = 1

        result = flaky_engine.stop()

        assert not result.ok
        assert isinstance(result.error, OSError)
        assert result.message
        assert flaky_engine.state == before
        assert plan.get_task("t2").actual_duration == 0

        assert flaky_engine.stop().ok
        assert plan.get_task("t2").actual_duration == 3
        assert flaky_list.get_task("t2").actual_duration == 3

    def test_pause_reports_failed_read(self, flaky_engine, flaky_list, clock):
        flaky_engine.start("t2")
        clock.advance_seconds(90)
        flaky_list.failing_reads = 1

        result = flaky_engine.pause()

        assert not result.ok
        assert flaky_engine.is_running

    def test_expiry_retried_on_next_tick(self, flaky_engine, flaky_list, clock, plan):
        flaky_engine.start("t1")
        clock.advance_seconds(1500)
        flaky_list.failing_writes = 1

        assert flaky_engine.tick() == 0
        assert flaky_engine.mode == FocusMode.FOCUS
        assert plan.get_task("t1").actual_pomodoros == 0

        flaky_engine.tick()
        assert flaky_engine.mode == FocusMode.SHORT_BREAK
        assert plan.get_task("t1").actual_pomodoros == 1
        assert flaky_list.get_task("t1").actual_pomodoros == 1

    def test_tick_survives_failed_read(self, flaky_engine, flaky_list, clock):
        flaky_engine.start("t2")
        clock.advance_seconds(30)
        flaky_list.failing_reads = 1

        assert flaky_engine.tick() == 30
        assert flaky_engine.mode == FocusMode.COUNT_UP

    def test_start_reports_failed_read(self, flaky_engine, flaky_list):
        flaky_list.failing_reads = 1

        result = flaky_engine.start("t1")

        assert not result.ok
        assert flaky_engine.state.is_idle
