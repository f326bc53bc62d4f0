"""Tests for the Qt timer engine on a manual clock.

Covers: countdown ticks, pause/resume freezing, active duration that
excludes paused time, signal sequencing over a full fixed-length run,
skip, stop, interruption handling, and cross-thread commands.
"""

import threading
from datetime import datetime

import pytest

from focuspair.timer.clock import ManualClock
from focuspair.timer.engine import TimerEngine
from focuspair.timer.phases import Phase, TimerConfig

from helpers import SignalCollector


@pytest.fixture
def fixed_engine(qapp, clock):
    """Four units, a long rest after the third."""
    config = TimerConfig(30, 10, 20, cycle_length=3, total_units=4)
    return TimerEngine(config, clock)


# ═══════════════════════════════════════════════════════════════════════════
#  COUNTDOWN
# ═══════════════════════════════════════════════════════════════════════════


class TestCountdown:

    def test_initial_state_is_idle(self, engine):
        assert engine.current_phase == Phase.IDLE
        assert not engine.is_running
        assert engine.current_unit_duration is None

    def test_start_enters_active(self, engine, clock):
        engine.start()
        assert engine.current_phase == Phase.ACTIVE
        assert engine.time_remaining == 30
        assert clock.is_active

    def test_tick_decrements_remaining(self, engine, clock):
        c = SignalCollector()
        engine.tick.connect(c)
        engine.start()
        clock.tick(3)
        assert engine.time_remaining == 27
        assert c.items == [29.0, 28.0, 27.0]

    def test_remaining_never_increases_within_phase(self, engine, clock):
        engine.start()
        previous = engine.time_remaining
        for _ in range(29):
            clock.tick()
            assert engine.time_remaining <= previous
            previous = engine.time_remaining

    def test_progress_follows_countdown(self, engine, clock):
        engine.start()
        clock.advance(15)
        assert engine.progress == pytest.approx(0.5)

    def test_start_is_noop_while_running(self, engine, clock):
        engine.start()
        clock.advance(5)
        engine.start()
        assert engine.time_remaining == 25


# ═══════════════════════════════════════════════════════════════════════════
#  PAUSE / RESUME
# ═══════════════════════════════════════════════════════════════════════════


class TestPauseResume:

    def test_pause_freezes_remaining(self, engine, clock):
        engine.start()
        clock.advance(5)
        engine.pause()
        clock.advance(100)
        assert engine.time_remaining == 25
        assert engine.current_phase == Phase.ACTIVE
        assert engine.is_paused

    def test_pause_stops_the_clock(self, engine, clock):
        engine.start()
        engine.pause()
        assert not clock.is_active

    def test_resume_continues_countdown(self, engine, clock):
        engine.start()
        clock.advance(5)
        engine.pause()
        clock.advance(60)
        engine.resume()
        clock.advance(5)
        assert engine.time_remaining == 20

    def test_paused_changed_signal(self, engine):
        c = SignalCollector()
        engine.paused_changed.connect(c)
        engine.start()
        engine.pause()
        engine.resume()
        assert c.items == [True, False]

    def test_pause_when_idle_emits_nothing(self, engine):
        c = SignalCollector()
        engine.paused_changed.connect(c)
        engine.pause()
        engine.resume()
        assert len(c) == 0

    def test_duration_excludes_paused_time(self, engine, clock):
        c = SignalCollector()
        engine.unit_completed.connect(c)
        engine.start()
        clock.advance(10)
        engine.pause()
        clock.advance(60)
        engine.resume()
        clock.advance(20)

        assert len(c) == 1
        assert c.last.duration == pytest.approx(30.0)
        assert c.last.started_at == datetime(2024, 1, 1, 9, 0, 0)
        assert c.last.phase == Phase.ACTIVE

    def test_current_unit_duration_while_paused(self, engine, clock):
        engine.start()
        clock.advance(8)
        engine.pause()
        clock.advance(30)
        assert engine.current_unit_duration == pytest.approx(8.0)

    def test_handle_interruption_pauses(self, engine, clock):
        engine.start()
        clock.advance(3)
        engine.handle_interruption()
        assert engine.is_paused
        clock.advance(10)
        assert engine.time_remaining == 27

    def test_handle_interruption_when_idle_is_noop(self, engine):
        engine.handle_interruption()
        assert engine.current_phase == Phase.IDLE
        assert not engine.is_paused


# ═══════════════════════════════════════════════════════════════════════════
#  FULL RUN
# ═══════════════════════════════════════════════════════════════════════════


class TestFullRun:

    def test_fixed_run_signals(self, fixed_engine, clock):
        units = SignalCollector()
        phases_seen = SignalCollector()
        finished = SignalCollector()
        fixed_engine.unit_completed.connect(units)
        fixed_engine.phase_changed.connect(phases_seen)
        fixed_engine.finished.connect(finished)

        fixed_engine.start()
        clock.advance(200)

        assert len(units) == 4
        assert [u.unit_index for u in units.items] == [0, 1, 2, 3]
        assert all(u.duration == pytest.approx(30.0) for u in units.items)
        assert len(finished) == 1
        assert phases_seen.items == [
            Phase.ACTIVE,
            Phase.SHORT_REST,
            Phase.ACTIVE,
            Phase.SHORT_REST,
            Phase.ACTIVE,
            Phase.LONG_REST,
            Phase.ACTIVE,
            Phase.COMPLETED,
        ]
        assert fixed_engine.current_phase == Phase.COMPLETED
        assert not clock.is_active

    def test_run_takes_exactly_its_durations(self, fixed_engine, clock):
        finished = SignalCollector()
        fixed_engine.finished.connect(finished)
        fixed_engine.start()
        clock.advance(159)
        assert len(finished) == 0
        clock.advance(1)
        assert len(finished) == 1

    def test_unit_start_times_follow_the_clock(self, fixed_engine, clock):
        units = SignalCollector()
        fixed_engine.unit_completed.connect(units)
        fixed_engine.start()
        clock.advance(200)
        offsets = [
            (u.started_at - datetime(2024, 1, 1, 9, 0, 0)).total_seconds()
            for u in units.items
        ]
        assert offsets == [0, 40, 80, 130]

    def test_rests_reach_phase_completed_only(self, fixed_engine, clock):
        all_phases = SignalCollector()
        units = SignalCollector()
        fixed_engine.phase_completed.connect(all_phases)
        fixed_engine.unit_completed.connect(units)
        fixed_engine.start()
        clock.advance(200)
        rests = [c for c in all_phases.items if c.phase.is_rest]
        assert len(rests) == 3
        assert len(units) == 4

    def test_restart_after_completed(self, qapp, clock):
        engine = TimerEngine(TimerConfig(10, 5, 5, cycle_length=0, total_units=1), clock)
        engine.start()
        clock.advance(10)
        assert engine.current_phase == Phase.COMPLETED
        engine.start()
        assert engine.current_phase == Phase.ACTIVE
        assert engine.state.units_completed == 0
        assert clock.is_active

    def test_preparation_is_not_a_unit(self, qapp, clock):
        config = TimerConfig(10, 5, 5, cycle_length=0, preparation_duration=5,
                             total_units=1)
        engine = TimerEngine(config, clock)
        units = SignalCollector()
        engine.unit_completed.connect(units)
        engine.start()
        assert engine.current_phase == Phase.PREPARING
        clock.advance(15)
        assert len(units) == 1
        assert units.last.duration == pytest.approx(10.0)


# ═══════════════════════════════════════════════════════════════════════════
#  SKIP / STOP
# ═══════════════════════════════════════════════════════════════════════════


class TestSkipStop:

    def test_skip_during_active_is_noop(self, engine, clock):
        engine.start()
        clock.advance(5)
        engine.skip_current_phase()
        assert engine.current_phase == Phase.ACTIVE
        assert engine.time_remaining == 25

    def test_skip_rest_moves_to_next_unit(self, engine, clock):
        completed = SignalCollector()
        engine.phase_completed.connect(completed)
        engine.start()
        clock.advance(30)
        assert engine.current_phase == Phase.SHORT_REST

        clock.advance(4)
        engine.skip_current_phase()
        assert engine.current_phase == Phase.ACTIVE
        assert engine.state.unit_index == 1
        assert engine.time_remaining == 30
        assert completed.last.skipped is True
        assert completed.last.duration == pytest.approx(4.0)

    def test_skip_paused_rest_restarts_clock(self, engine, clock):
        paused = SignalCollector()
        engine.paused_changed.connect(paused)
        engine.start()
        clock.advance(30)
        engine.pause()
        engine.skip_current_phase()
        assert engine.current_phase == Phase.ACTIVE
        assert not engine.is_paused
        assert clock.is_active
        assert paused.items == [True, False]

    def test_stop_discards_partial_unit(self, engine, clock):
        units = SignalCollector()
        phases_seen = SignalCollector()
        engine.unit_completed.connect(units)
        engine.phase_changed.connect(phases_seen)
        engine.start()
        clock.advance(20)
        engine.stop()
        assert engine.current_phase == Phase.IDLE
        assert len(units) == 0
        assert phases_seen.last == Phase.IDLE
        assert not clock.is_active

    def test_stop_while_paused_clears_pause(self, engine, clock):
        paused = SignalCollector()
        engine.paused_changed.connect(paused)
        engine.start()
        engine.pause()
        engine.stop()
        assert not engine.is_paused
        assert paused.items == [True, False]

    def test_stop_when_idle_emits_nothing(self, engine):
        phases_seen = SignalCollector()
        engine.phase_changed.connect(phases_seen)
        engine.stop()
        assert len(phases_seen) == 0


# ═══════════════════════════════════════════════════════════════════════════
#  CONFIGURE / THREADING
# ═══════════════════════════════════════════════════════════════════════════


class TestConfigure:

    def test_configure_when_idle(self, engine, clock):
        engine.configure(TimerConfig(5, 1, 1, cycle_length=0))
        engine.start()
        assert engine.time_remaining == 5

    def test_configure_ignored_while_running(self, engine, clock, scenario_config):
        engine.start()
        engine.configure(TimerConfig(5, 1, 1, cycle_length=0))
        assert engine.config is scenario_config

    def test_default_clock_is_real(self, qapp):
        engine = TimerEngine()
        assert not isinstance(engine.clock, ManualClock)
        assert engine.config.active_duration == 25 * 60

    def test_command_from_other_thread_is_queued(self, qapp, engine, clock):
        worker = threading.Thread(target=engine.start)
        worker.start()
        worker.join()
        # posted, not yet run
        assert engine.current_phase == Phase.IDLE

        qapp.processEvents()
        assert engine.current_phase == Phase.ACTIVE
        assert clock.is_active
