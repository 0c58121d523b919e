"""
Tests for the wellness break scheduler.

Run with: pytest -q
"""
from datetime import timedelta

import pytest

from conftest import FakePresenter, FakeProbe, parse_mmss
from core import BreakScheduler, SchedulerState, format_remaining
from meeting import ProbeUnavailable
from settings import SettingsStore


class TestFormatRemaining:

    def test_pads_minutes_and_seconds(self):
        assert format_remaining(65) == "01:05"

    def test_floors_fractions(self):
        assert format_remaining(59.99) == "00:59"

    def test_clamps_negative_to_zero(self):
        assert format_remaining(-3) == "00:00"

    def test_minutes_beyond_two_digits(self):
        assert format_remaining(120 * 60) == "120:00"


class TestStart:

    def test_start_arms_full_interval(self, breaks, clock):
        breaks.start()

        assert breaks.state == SchedulerState.ARMED
        assert breaks.deadline == clock.now() + timedelta(minutes=1)
        assert len(clock.pending()) == 1

    @pytest.mark.parametrize("interval", [1, 5, 20, 90])
    def test_status_right_after_start_is_within_interval(self, clock, probe, presenter, interval):
        settings = SettingsStore(initial={'wellness_interval': interval})
        scheduler = BreakScheduler(clock, settings, probe, presenter)

        scheduler.start()
        remaining = parse_mmss(scheduler.status())

        assert 0 < remaining <= interval * 60

    def test_disabled_goes_idle(self, clock, probe, presenter):
        settings = SettingsStore(initial={'wellness_enabled': False})
        scheduler = BreakScheduler(clock, settings, probe, presenter)

        scheduler.start()

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.status() == "Disabled"
        assert clock.pending() == []

    def test_status_before_start_is_idle(self, breaks):
        assert breaks.status() == "Idle"

    def test_status_counts_down(self, breaks, clock):
        breaks.start()
        clock.advance(15)

        assert breaks.status() == "00:45"

    def test_start_twice_keeps_one_timer(self, breaks, clock):
        breaks.start()
        clock.advance(10)
        breaks.start()

        assert len(clock.pending()) == 1
        assert breaks.deadline == clock.now() + timedelta(minutes=1)


class TestBreakCycle:

    def test_presents_when_not_busy_then_rearms(self, breaks, clock, probe, presenter):
        start = clock.now()
        breaks.start()

        clock.advance(60)
        assert breaks.state == SchedulerState.PRESENTING
        assert breaks.status() == "Blur in progress"
        assert presenter.shown == [20]
        assert probe.calls == 1

        clock.advance(20)
        assert breaks.state == SchedulerState.ARMED
        assert breaks.deadline == start + timedelta(seconds=140)
        assert presenter.closed == 1
        assert len(clock.pending()) == 1

    def test_busy_once_defers_five_minutes(self, clock, settings, presenter):
        probe = FakeProbe(answers=[True, False])
        scheduler = BreakScheduler(clock, settings, probe, presenter)
        start = clock.now()
        scheduler.start()

        clock.advance(60)
        assert scheduler.state == SchedulerState.DEFERRED
        assert scheduler.deadline == start + timedelta(seconds=360)
        assert scheduler.status() == "05:00"
        assert presenter.shown == []

        clock.advance(299)
        assert scheduler.state == SchedulerState.DEFERRED

        clock.advance(1)
        assert scheduler.state == SchedulerState.PRESENTING
        assert presenter.shown == [20]

    def test_deferral_does_not_ask_again(self, clock, settings, presenter):
        probe = FakeProbe(default=True)
        scheduler = BreakScheduler(clock, settings, probe, presenter)
        scheduler.start()

        clock.advance(60 + 300)

        assert scheduler.state == SchedulerState.PRESENTING
        assert probe.calls == 1

    def test_probe_asked_once_per_cycle(self, breaks, clock, probe):
        breaks.start()
        clock.advance(80)
        clock.advance(80)

        assert probe.calls == 2

    def test_status_while_checking_meeting(self, breaks, clock, probe):
        seen = []
        probe.hook = lambda: seen.append(breaks.status())
        breaks.start()

        clock.advance(60)

        assert seen == ["Blur in progress"]

    def test_dismiss_rearms_early(self, breaks, clock, presenter):
        breaks.start()
        clock.advance(65)

        presenter.on_dismiss()

        assert breaks.state == SchedulerState.ARMED
        assert breaks.deadline == clock.now() + timedelta(minutes=1)
        assert len(clock.pending()) == 1

    def test_late_dismiss_after_timeout_is_ignored(self, breaks, clock, presenter):
        breaks.start()
        clock.advance(60)
        stale_dismiss = presenter.on_dismiss
        clock.advance(20)
        deadline = breaks.deadline

        stale_dismiss()

        assert breaks.deadline == deadline
        assert len(clock.pending()) == 1


class TestFailures:

    def test_probe_error_fails_open(self, clock, settings, presenter):
        probe = FakeProbe(answers=[ProbeUnavailable("tasklist missing")])
        scheduler = BreakScheduler(clock, settings, probe, presenter)
        scheduler.start()

        clock.advance(60)

        assert scheduler.state == SchedulerState.PRESENTING
        assert presenter.shown == [20]

    def test_presentation_failure_still_rearms(self, clock, settings, probe):
        presenter = FakePresenter(fail=True)
        scheduler = BreakScheduler(clock, settings, probe, presenter)
        start = clock.now()
        scheduler.start()

        clock.advance(60)
        assert scheduler.state == SchedulerState.PRESENTING

        clock.advance(20)
        assert scheduler.state == SchedulerState.ARMED
        assert scheduler.deadline == start + timedelta(seconds=140)


class TestPauseResume:

    @pytest.mark.parametrize("elapsed, answers", [
        (10, []),          # armed
        (60, [True]),      # deferred
        (60, [False]),     # presenting
    ])
    def test_pause_always_reads_paused(self, clock, settings, presenter, elapsed, answers):
        scheduler = BreakScheduler(clock, settings, FakeProbe(answers=answers), presenter)
        scheduler.start()
        clock.advance(elapsed)

        scheduler.pause()

        assert scheduler.status() == "Paused"
        assert scheduler.state == SchedulerState.IDLE
        assert clock.pending() == []

    def test_pause_closes_live_overlay(self, breaks, clock, presenter):
        breaks.start()
        clock.advance(60)

        breaks.pause()

        assert presenter.closed == 1

    def test_pause_when_idle_is_noop(self, breaks):
        generation = breaks.generation
        breaks.pause()

        assert breaks.generation == generation
        assert breaks.status() == "Idle"

    def test_resume_gives_fresh_full_interval(self, breaks, clock):
        breaks.start()
        clock.advance(30)
        breaks.pause()
        clock.advance(100)

        breaks.resume()

        assert breaks.deadline == clock.now() + timedelta(minutes=1)
        assert breaks.status() == "01:00"

    def test_resume_when_armed_is_noop(self, breaks, clock):
        breaks.start()
        clock.advance(30)
        deadline = breaks.deadline

        breaks.resume()

        assert breaks.deadline == deadline
        assert len(clock.pending()) == 1

    def test_paused_scheduler_never_fires(self, breaks, clock, presenter):
        breaks.start()
        breaks.pause()

        clock.advance(3600)

        assert presenter.shown == []

    def test_probe_result_after_pause_is_discarded(self, breaks, clock, probe, presenter):
        probe.answers = [True]
        probe.hook = breaks.pause
        breaks.start()

        clock.advance(60)

        assert breaks.status() == "Paused"
        assert clock.pending() == []
        assert presenter.shown == []

    def test_dismiss_after_pause_is_discarded(self, breaks, clock, presenter):
        breaks.start()
        clock.advance(60)
        dismiss = presenter.on_dismiss
        breaks.pause()

        dismiss()

        assert breaks.status() == "Paused"
        assert clock.pending() == []

    def test_stop_reads_idle(self, breaks, clock):
        breaks.start()
        breaks.stop()

        assert breaks.status() == "Idle"
        assert clock.pending() == []
