"""Tests for dev_rhythm.engine."""

import csv

import pytest

from dev_rhythm.conflict import ConflictCheck
from dev_rhythm.models import DisabledNotice, InputNotice, TickEvent, TrackingStatus
from dev_rhythm.registry import SessionRegistry
from helpers import press, write_ledger


class ToggleCheck(ConflictCheck):
    name = "toggle"

    def __init__(self):
        self.reason = None
        self.calls = 0

    def detect(self):
        self.calls += 1
        return self.reason


class BrokenCheck(ConflictCheck):
    name = "broken"

    def detect(self):
        raise RuntimeError("boom")


def ledger_rows(path):
    with path.open(newline="") as handle:
        return list(csv.DictReader(handle))


def collect(engine, event_type):
    received = []
    engine.bus.subscribe(event_type, received.append)
    return received


@pytest.fixture
def history(ledger_path):
    write_ledger(
        ledger_path,
        ["Username", "Total Time (sec)", "Active Time (sec)"],
        [["alice", "100.00", "40.00"], ["alice", "50.00", "20.00"]],
    )
    return ledger_path


class TestTotals:
    def test_history_loaded_at_startup(self, make_engine, history):
        engine = make_engine()
        assert engine.historical.total_project_us == 150_000_000
        assert engine.historical.total_active_us == 60_000_000

    def test_unarmed_reports_zero_active_and_idle(self, make_engine, clock, history):
        engine = make_engine()
        clock.advance(10)
        tick = engine.tick()
        assert tick == TickEvent(total_project_ms=160_000, total_active_ms=0, is_idle=True)

        press(engine, clock, 1)
        tick = engine.tick()
        assert tick.total_active_ms == 0
        assert tick.is_idle is False
        assert engine.recent_active_seconds() == 0

    def test_armed_reports_history_plus_live(self, make_engine, clock, history):
        engine = make_engine()
        press(engine, clock, 0, 4, 4)
        tick = engine.tick()
        assert tick.total_active_ms == 60_000 + 8_000
        assert tick.total_project_ms == 150_000 + 8_000

    def test_session_then_break_scenario(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 0, 4, 4, 400)
        summary = engine.summary()
        assert summary.session_count == 1
        assert summary.break_count == 1
        assert summary.total_active_ms == 8_000
        assert summary.total_break_ms == 400_000
        assert summary.current_session_ms == 0

    def test_idle_after_threshold_without_input(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 0, 2)
        clock.advance(299)
        assert engine.tick().is_idle is False
        clock.advance(1)
        assert engine.tick().is_idle is True


class TestPublishing:
    def test_ticks_and_input_notices_reach_subscribers(self, make_engine, clock):
        engine = make_engine()
        ticks = collect(engine, TickEvent)
        notices = collect(engine, InputNotice)

        press(engine, clock, 0)
        engine.tick()

        assert notices == [InputNotice(epoch_ms=clock.epoch_ms())]
        # One tick composed for the input, one from the ticker.
        assert len(ticks) == 2

    def test_failing_subscriber_does_not_break_engine(self, make_engine, clock):
        engine = make_engine()

        def explode(event):
            raise RuntimeError("subscriber failure")

        engine.bus.subscribe(TickEvent, explode)
        press(engine, clock, 0, 1)
        assert engine.tick() is not None


class TestRecentWindow:
    def test_recent_active_seconds_follow_minute_buckets(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 5, 60, 60)
        # Inputs at +5s, +65s and +125s past a minute boundary; the current
        # bucket ends at +120s so the last input is not yet counted.
        assert engine.recent_active_seconds() == 60

        press(engine, clock, 30)
        assert engine.recent_active_seconds() == 60

        clock.advance(30)
        assert engine.recent_active_seconds() == 150

    def test_ticker_refreshes_window(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 0, 30)
        clock.advance(60)
        engine.tick()
        assert engine._window.cache.bucket != -1


class TestFinalize:
    def test_close_writes_single_row(self, make_engine, clock, ledger_path):
        engine = make_engine()
        press(engine, clock, 0, 4, 4, 400, 10)
        clock.advance(5)
        engine.close()
        engine.close()

        rows = ledger_rows(ledger_path)
        assert len(rows) == 1
        row = rows[0]
        assert row["Username"] == "alice"
        assert row["Project"] == "myapp"
        assert row["Total Time (sec)"] == "423.00"
        assert row["Active Time (sec)"] == "18.00"
        assert row["Break Time (sec)"] == "400.00"
        assert row["Total Mini Sessions"] == "2"
        assert row["Max Mini Session (sec)"] == "10.00"
        assert row["Min Mini Session (sec)"] == "8.00"

    def test_single_input_then_hour_of_silence(self, make_engine, clock, ledger_path):
        engine = make_engine()
        press(engine, clock, 0)
        clock.advance(3600)
        engine.close()

        row = ledger_rows(ledger_path)[0]
        assert row["Total Mini Sessions"] == "0"
        assert row["Active Time (sec)"] == "0.00"
        assert row["Avg Mini Session (sec)"] == "0.00"

    def test_inputs_after_close_are_ignored(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 0, 1)
        engine.close()
        press(engine, clock, 1)
        assert engine.classifier.state.input_count == 2
        assert engine.tick() is None

    def test_write_failure_is_swallowed(self, make_engine, clock, tmp_path):
        engine = make_engine(ledger_path=tmp_path)
        press(engine, clock, 0, 1)
        engine.close()


class TestConflicts:
    def test_trip_writes_once_and_freezes_counters(self, make_engine, clock, ledger_path):
        check = ToggleCheck()
        engine = make_engine(extra_checks=[check])
        ticks = collect(engine, TickEvent)
        notices = collect(engine, DisabledNotice)
        press(engine, clock, 0, 4, 4)

        assert engine.check_conflicts() is False
        check.reason = "two projects in one window"
        assert engine.check_conflicts() is True
        assert engine.disabled is True
        assert notices == [DisabledNotice(reason="two projects in one window")]

        before = engine.summary()
        ticks.clear()
        for _ in range(1000):
            press(engine, clock, 0.5)
        assert engine.tick() is None
        after = engine.summary()

        assert ticks == []
        assert engine.classifier.state.input_count == 3
        assert after.session_count == before.session_count
        assert after.total_active_ms == before.total_active_ms
        assert after.disabled is True

        engine.check_conflicts()
        engine.close()
        assert len(ledger_rows(ledger_path)) == 1
        assert len(notices) == 1

    def test_project_time_stops_at_disable(self, make_engine, clock):
        check = ToggleCheck()
        engine = make_engine(extra_checks=[check])
        press(engine, clock, 0, 4, 4)
        check.reason = "conflict"
        engine.check_conflicts()
        frozen = engine.summary()

        clock.advance(600)
        later = engine.summary()
        assert frozen.total_project_ms == 8_000
        assert later.total_project_ms == frozen.total_project_ms
        assert later.total_active_ms == frozen.total_active_ms

    def test_project_time_stops_at_close(self, make_engine, clock):
        engine = make_engine()
        press(engine, clock, 0, 2)
        engine.close()
        clock.advance(60)
        assert engine.summary().total_project_ms == 2_000

    def test_check_runs_once_after_trip(self, make_engine):
        check = ToggleCheck()
        check.reason = "conflict"
        engine = make_engine(extra_checks=[check])
        engine.check_conflicts()
        engine.check_conflicts()
        assert check.calls == 1

    def test_failing_check_is_treated_as_no_conflict(self, make_engine):
        engine = make_engine(extra_checks=[BrokenCheck()])
        assert engine.check_conflicts() is False
        assert engine.disabled is False

    def test_multiple_project_roots_disable_tracking(self, make_engine, project_root):
        engine = make_engine()
        assert engine.notify_environment_changed() is False

        (project_root / ".idea").mkdir()
        assert engine.notify_environment_changed() is False

        (project_root / "attached").mkdir()
        (project_root / "attached" / ".idea").mkdir()
        assert engine.notify_environment_changed() is True
        assert "project roots" in engine.disabled_reason

    def test_shared_window_disables_second_session(self, make_engine, tmp_path):
        registry = SessionRegistry(tmp_path / "sessions")
        first = make_engine(registry=registry, window_id="frame-1")
        second = make_engine(registry=registry, window_id="frame-1", project="other")
        elsewhere = make_engine(registry=registry, window_id="frame-2", project="third")
        try:
            first.start()
            assert first.disabled is False
            elsewhere.start()
            assert elsewhere.disabled is False
            second.start()
            assert second.disabled is True
            assert first.check_conflicts() is True
            assert elsewhere.check_conflicts() is False
        finally:
            for engine in (first, second, elsewhere):
                engine.close()
        assert registry.live_sessions() == []


class TestSuppressedStatus:
    @pytest.fixture
    def status_path(self, tmp_path):
        path = tmp_path / "status.csv"
        path.write_text(
            "Username,Project,Date,Time,Epoch (us),Random,Status\n"
            "alice,myapp,2024-01-01,10:00:00.000000,1,0.900000,Do not Show\n"
        )
        return path

    def test_suppressed_engine_publishes_nothing(self, make_engine, clock, status_path):
        engine = make_engine(status_path=status_path)
        ticks = collect(engine, TickEvent)
        notices = collect(engine, InputNotice)
        assert engine.status is TrackingStatus.SUPPRESSED

        press(engine, clock, 0, 1, 1)
        clock.advance(60)
        assert engine.tick() is None
        assert ticks == []
        assert notices == []
        assert engine.recent_active_seconds() == 0
        assert engine.summary().suppressed is True

    def test_suppressed_engine_still_records_sessions(
        self, make_engine, clock, status_path, ledger_path
    ):
        engine = make_engine(status_path=status_path)
        press(engine, clock, 0, 4, 4, 400)
        assert engine.classifier.state.input_count == 4

        engine.close()
        row = ledger_rows(ledger_path)[0]
        assert row["Total Time (sec)"] == "408.00"
        assert row["Active Time (sec)"] == "8.00"
        assert row["Break Time (sec)"] == "400.00"
        assert row["Total Mini Sessions"] == "1"
