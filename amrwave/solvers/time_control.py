"""
Simulation clock for explicit time integration.

TimeControl owns the current time, step size, step counter and output
cadence. The step size may change at any point (after mesh adaptation);
time only ever grows by the step size in effect when ``advance_time_step``
is called, or is force-set through ``set_time`` to truncate a run.

Comparisons against the final time and against output multiples use a
tolerance proportional to the current step size, so accumulated rounding
(e.g. ten steps of 0.1 reaching 0.9999999999999999) neither skips nor
double-fires an output and still terminates at 1.0.
"""

import math
from typing import Optional

from loguru import logger

from amrwave.config.schema import ConfigurationError

# Fraction of a step treated as "the same time"
TIME_TOLERANCE = 1e-6


class TimeControl:
    """Deterministic step/tick sequencing for a run."""

    def __init__(self):
        self._time = 0.0
        self._start_time = 0.0
        self._final_time = 1.0
        self._output_interval = 1.0
        self._time_step = 0.0
        self._step = 0
        self._max_steps: Optional[int] = None
        self._output_step = 0
        self._next_output_time = 1.0
        self._last_tick_step = -1

    def setup(self, final_time: float, output_interval: float,
              initial_step_size: float, max_steps: Optional[int] = None) -> None:
        """Reset the clock to zero for a new run."""
        if not final_time > 0:
            raise ConfigurationError(f"final_time must be positive, got {final_time}")
        if not output_interval > 0:
            raise ConfigurationError(f"output_interval must be positive, got {output_interval}")
        if max_steps is not None and max_steps < 1:
            raise ConfigurationError(f"max_steps must be >= 1 or None, got {max_steps}")

        self._time = 0.0
        self._start_time = 0.0
        self._final_time = float(final_time)
        self._output_interval = float(output_interval)
        self._step = 0
        self._max_steps = max_steps
        self._output_step = 0
        self._next_output_time = self._output_interval
        self._last_tick_step = -1
        self.set_time_step(initial_step_size)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def time(self) -> float:
        return self._time

    @property
    def time_step(self) -> float:
        return self._time_step

    @property
    def step_number(self) -> int:
        return self._step

    @property
    def output_step_number(self) -> int:
        """Number of output ticks that have fired so far."""
        return self._output_step

    @property
    def final_time(self) -> float:
        return self._final_time

    @property
    def output_interval(self) -> float:
        return self._output_interval

    @property
    def max_steps(self) -> Optional[int]:
        return self._max_steps

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def set_time_step(self, value: float) -> None:
        if not (value > 0 and math.isfinite(value)):
            raise ConfigurationError(f"Time step must be positive and finite, got {value}")
        if self._time_step and value != self._time_step:
            logger.debug(f"Time step {self._time_step:.4e} -> {value:.4e} at t = {self._time:.4f}")
        self._time_step = float(value)

    def advance_time_step(self) -> None:
        self._step += 1
        self._time += self._time_step

    def set_time(self, value: float) -> None:
        """Force the clock to ``value``; ``set_time(final_time)`` ends the run."""
        self._time = float(value)

    def _tolerance(self) -> float:
        return TIME_TOLERANCE * self._time_step

    def done(self) -> bool:
        if self._time >= self._final_time - self._tolerance():
            return True
        return self._max_steps is not None and self._step >= self._max_steps

    def at_tick(self) -> bool:
        """
        True if the time crossed the next output multiple since the last tick.

        Fires at most once per ``advance_time_step``. When one step jumps
        over several multiples, only one tick is reported and the next
        output time moves past the current time.
        """
        if self._last_tick_step == self._step:
            return False

        tol = self._tolerance()
        if self._time < self._next_output_time - tol:
            return False

        self._output_step += 1
        self._last_tick_step = self._step
        # Recompute from the multiple count instead of accumulating the interval
        n_passed = math.floor((self._time - self._start_time + tol) / self._output_interval)
        self._next_output_time = self._start_time + (n_passed + 1) * self._output_interval
        return True

    def __repr__(self) -> str:
        return (f"TimeControl(t={self._time:.6g}, dt={self._time_step:.4e}, "
                f"step={self._step}, final={self._final_time:.6g})")
