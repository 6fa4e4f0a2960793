"""
Tests for the run driver.

Tests cover:
1. Output cadence of a full run
2. Stability monitor and truncation of unstable runs
3. Short runs with every integrator
4. Adaptive runs and file output
"""

import math
import os

import pytest
from loguru import logger

from amrwave.config import ConfigurationError
from amrwave.numerics.diagnostics import ErrorNorms
from amrwave.solvers.problem import LinearizedEulerProblem, StabilityMonitor


class ScriptedNormsProblem(LinearizedEulerProblem):
    """Reports pre-set density errors at successive outputs."""

    def __init__(self, config, errors, magnitude=1000.0):
        super().__init__(config)
        self.scripted = list(errors)
        self.magnitude = magnitude

    def compute_output_norms(self):
        error = self.scripted[min(len(self.history), len(self.scripted) - 1)]
        return ErrorNorms(density=error, momentum=error, energy=error,
                          density_magnitude=self.magnitude)


@pytest.fixture
def tick_config(small_config):
    """8 x 8 mesh, cfl 0.8 -> dt = 0.1, outputs every 0.25 up to 1.0."""
    small_config.time.cfl = 0.8
    small_config.time.final_time = 1.0
    small_config.time.output_interval = 0.25
    small_config.mesh.n_adaptive_refinements = 0
    return small_config


class TestStabilityMonitor:

    def test_first_values_are_reference(self):
        monitor = StabilityMonitor(100.0, 1.5)
        assert monitor.record(0.1, 1.0)
        assert monitor.record(0.5, 10.0)
        assert monitor.first_error == 0.1
        assert monitor.first_magnitude == 1.0
        assert monitor.last_error == 0.5

    def test_verdict_is_sticky(self):
        monitor = StabilityMonitor(100.0, 1.5)
        monitor.record(0.01, 1.0)
        assert not monitor.record(2.0, 1.0)
        assert not monitor.record(0.01, 1.0)

    def test_growth_factor(self):
        monitor = StabilityMonitor(100.0, 1.5)
        monitor.record(0.001, 1.0)
        assert monitor.record(0.05, 1.0)
        assert not monitor.record(0.2, 1.0)

    def test_magnitude_factor(self):
        monitor = StabilityMonitor(100.0, 1.5)
        monitor.record(1.0, 1.0)
        assert monitor.record(1.4, 1.0)
        assert not monitor.record(1.6, 1.0)

    def test_non_finite(self):
        monitor = StabilityMonitor()
        monitor.record(0.1, 1.0)
        assert not monitor.record(math.nan, 1.0)
        assert not monitor.record(math.inf, 1.0)

    def test_empty_is_stable(self):
        assert StabilityMonitor().stable


class TestOutputCadence:

    def test_ticks_and_steps(self, tick_config):
        tick_config.integrator.kind = "classrk4"
        result = LinearizedEulerProblem(tick_config).run()

        assert result.n_steps == 10
        assert result.final_time == pytest.approx(1.0)
        assert len(result.history) == 5
        assert [r.output_step for r in result.history] == [0, 1, 2, 3, 4]
        assert result.history[0].time == 0.0
        assert result.history[-1].time == pytest.approx(1.0)
        assert result.n_cells == 64

    def test_max_steps(self, tick_config):
        tick_config.time.max_time_steps = 4
        result = LinearizedEulerProblem(tick_config).run()
        assert result.n_steps == 4
        assert result.final_time == pytest.approx(0.4)

    def test_invalid_config_rejected(self, small_config):
        small_config.discretization.degree = 7
        with pytest.raises(ConfigurationError):
            LinearizedEulerProblem(small_config)


class TestTruncation:

    def test_growth_truncates_run(self, tick_config):
        tick_config.stability.enabled = True
        result = ScriptedNormsProblem(tick_config, [1.0, 2.0, 150.0, 3.0, 4.0]).run()

        assert not result.stable
        assert len(result.history) == 3
        assert result.n_steps == 5
        assert result.final_time == pytest.approx(1.0)

    def test_truncation_logs_solution_bounds(self, tick_config):
        tick_config.stability.enabled = True
        messages = []
        handler = logger.add(messages.append, level="WARNING", format="{message}")
        try:
            ScriptedNormsProblem(tick_config, [1.0, 150.0]).run()
        finally:
            logger.remove(handler)
        assert any(m.startswith("Solution at truncation: rho [") for m in messages)
        assert any("nan=False" in m for m in messages)

    def test_magnitude_truncates_run(self, tick_config):
        tick_config.stability.enabled = True
        result = ScriptedNormsProblem(tick_config, [1.0, 1.6], magnitude=1.0).run()
        assert not result.stable
        assert len(result.history) == 2
        assert result.n_steps == 3

    def test_no_truncation_when_disabled(self, tick_config):
        tick_config.stability.enabled = False
        result = ScriptedNormsProblem(tick_config, [1.0, 2.0, 150.0, 3.0, 4.0]).run()

        # The verdict is still reported but the run goes to the end
        assert not result.stable
        assert len(result.history) == 5
        assert result.n_steps == 10


INTEGRATOR_SETTINGS = [
    ("expleuler", 10, 4),
    ("classrk4", 10, 4),
    ("lsrk33reg2", 10, 4),
    ("lsrk45reg2", 10, 4),
    ("lsrk59reg2", 10, 4),
    ("lsrk45reg3", 10, 4),
    ("ssprk", 3, 3),
    ("ssprk", 10, 4),
]


class TestShortRuns:

    @pytest.mark.parametrize("kind, stages, order", INTEGRATOR_SETTINGS)
    def test_stable_with_every_integrator(self, small_config, kind, stages, order):
        small_config.integrator.kind = kind
        small_config.integrator.ssp_stages = stages
        small_config.integrator.ssp_order = order
        small_config.time.cfl = 0.1
        small_config.stability.enabled = True

        result = LinearizedEulerProblem(small_config).run()

        assert result.stable
        # Adaptation may change the step size, so the last step can overshoot
        assert result.final_time > 0.1 - 1e-9
        assert all(math.isfinite(r.error_density) for r in result.history)

    def test_adaptive_run(self, small_config):
        small_config.problem.case = 2
        small_config.problem.wave_vector = [1, 1, 0]
        small_config.mesh.n_adaptive_refinements = 2
        problem = LinearizedEulerProblem(small_config)
        result = problem.run()

        levels = problem.mesh.levels
        assert levels.min() >= 3
        assert levels.max() <= 5
        assert problem.mesh.is_balanced()
        assert problem.baseline_error is not None and problem.baseline_error > 0
        assert result.n_cells == problem.mesh.n_active_cells
        assert problem.solutions.shape == (problem.mesh.n_active_cells, 4)

    def test_no_baseline_without_adaptive_levels(self, tick_config):
        tick_config.time.final_time = 0.2
        problem = LinearizedEulerProblem(tick_config)
        problem.run()
        assert problem.baseline_error is None

    def test_3d_run(self, small_config):
        small_config.discretization.dimension = 3
        small_config.mesh.n_refinements = 2
        small_config.mesh.n_adaptive_refinements = 0
        small_config.time.final_time = 0.1
        result = LinearizedEulerProblem(small_config).run()
        # dt = 0.2 * 0.25
        assert result.n_cells == 64
        assert result.n_steps == 2


class TestFileOutput:

    def test_writes_vtk_series_and_plot(self, small_config, tmp_path):
        small_config.output.enabled = True
        small_config.output.directory = str(tmp_path)
        result = LinearizedEulerProblem(small_config).run()

        first = tmp_path / "sol_deg1_LinearizedEuler_case1_ref3_step000.vtk"
        assert first.exists()
        assert (tmp_path / "sol_deg1_LinearizedEuler_case1_ref3.vtk.series").exists()
        assert (tmp_path / "deg1_case1_errors.pdf").exists()
        assert str(first) in result.output_files
        vtk_files = [f for f in os.listdir(tmp_path) if f.endswith('.vtk')]
        assert len(vtk_files) == len(result.history)
