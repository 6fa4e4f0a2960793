"""
Tests for the simulation clock (TimeControl).

Tests cover:
1. Time grows linearly with the step count
2. Output ticks: count, no double fires, large steps
3. Termination by final time, max steps and set_time truncation
4. Step size changes and input validation
"""

import pytest

from amrwave.config import ConfigurationError
from amrwave.solvers.time_control import TimeControl


def run_to_end(tc: TimeControl):
    """Advance until done; return (times at tick, number of steps)."""
    ticks = []
    while not tc.done():
        tc.advance_time_step()
        if tc.at_tick():
            ticks.append(tc.time)
    return ticks, tc.step_number


class TestClock:
    """Basic clock behaviour."""

    def test_time_grows_linearly(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        for n in range(1, 6):
            tc.advance_time_step()
            assert tc.step_number == n
            assert tc.time == pytest.approx(0.1 * n)

    def test_step_size_change_keeps_time(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        tc.advance_time_step()
        tc.set_time_step(0.05)
        assert tc.time == pytest.approx(0.1)
        tc.advance_time_step()
        assert tc.time == pytest.approx(0.15)
        assert tc.time_step == 0.05

    def test_setup_resets_state(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        run_to_end(tc)
        tc.setup(2.0, 0.5, 0.2)
        assert tc.time == 0.0
        assert tc.step_number == 0
        assert tc.output_step_number == 0
        assert not tc.done()


class TestTicks:
    """Output cadence."""

    def test_four_ticks_for_quarter_interval(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        ticks, n_steps = run_to_end(tc)

        assert n_steps == 10
        assert len(ticks) == 4
        assert tc.output_step_number == 4
        assert ticks[-1] == pytest.approx(1.0)

    def test_tick_fires_once_per_advance(self):
        tc = TimeControl()
        tc.setup(1.0, 0.1, 0.1)
        tc.advance_time_step()
        assert tc.at_tick()
        assert not tc.at_tick()
        assert tc.output_step_number == 1

    def test_no_tick_before_first_step(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        assert not tc.at_tick()

    def test_step_larger_than_interval(self):
        tc = TimeControl()
        tc.setup(1.0, 0.1, 0.35)
        ticks, n_steps = run_to_end(tc)

        assert n_steps == 3
        # One tick per step even though each step crosses several multiples
        assert len(ticks) == 3

    def test_ticks_follow_step_size_change(self):
        tc = TimeControl()
        tc.setup(1.0, 0.5, 0.1)
        ticks = []
        while not tc.done():
            tc.advance_time_step()
            if tc.step_number == 3:
                tc.set_time_step(0.05)
            if tc.at_tick():
                ticks.append(tc.time)
        assert len(ticks) == 2
        assert ticks[0] == pytest.approx(0.5)
        assert ticks[1] == pytest.approx(1.0)


class TestTermination:
    """done() conditions."""

    def test_max_steps(self):
        tc = TimeControl()
        tc.setup(10.0, 1.0, 0.1, max_steps=3)
        _, n_steps = run_to_end(tc)
        assert n_steps == 3
        assert tc.time == pytest.approx(0.3)

    def test_set_time_truncates(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        tc.advance_time_step()
        assert not tc.done()
        tc.set_time(tc.final_time)
        assert tc.done()

    def test_unbounded_steps(self):
        tc = TimeControl()
        tc.setup(0.5, 0.25, 0.1, max_steps=None)
        _, n_steps = run_to_end(tc)
        assert n_steps == 5


class TestValidation:
    """Invalid inputs raise ConfigurationError."""

    @pytest.mark.parametrize("final_time, interval, dt", [
        (0.0, 0.25, 0.1),
        (1.0, 0.0, 0.1),
        (1.0, 0.25, 0.0),
        (1.0, 0.25, -0.1),
    ])
    def test_non_positive_values(self, final_time, interval, dt):
        with pytest.raises(ConfigurationError):
            TimeControl().setup(final_time, interval, dt)

    def test_invalid_max_steps(self):
        with pytest.raises(ConfigurationError):
            TimeControl().setup(1.0, 0.25, 0.1, max_steps=0)

    def test_non_finite_step(self):
        tc = TimeControl()
        tc.setup(1.0, 0.25, 0.1)
        with pytest.raises(ConfigurationError):
            tc.set_time_step(float('inf'))
