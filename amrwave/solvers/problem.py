"""
Run driver for the linearized Euler equations on an adaptive mesh.

One run:
    1. Uniform mesh with ``n_refinements`` levels, clock set up with
       Δt = CFL * min h
    2. Operator from the degree table, state vectors, projected initial field
    3. ``n_adaptive_refinements`` passes of adapt + re-project; the largest
       cell error after the last pass becomes the baseline for the relative
       refinement thresholds
    4. Initial output, then the time loop:
           advance clock -> swap buffers -> integrate ->
           adapt every ``adaptive_refinement_interval`` steps -> output at tick

Stability monitoring: at every output the L2 density error is compared
with its first recorded value and with the first recorded density norm.
Growth beyond ``growth_factor`` or ``magnitude_factor`` (or a non-finite
error) marks the run unstable; with the stability analysis enabled the
run is then truncated by moving the clock to the final time.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
from loguru import logger

from amrwave.config.schema import SimulationConfig, validate_config
from amrwave.grid.forest import AdaptiveMesh
from amrwave.io.output import VTKWriter
from amrwave.io.plotting import plot_error_history
from amrwave.numerics.diagnostics import (
    ErrorNorms,
    compute_cell_errors,
    compute_error_norms,
    compute_solution_bounds,
)
from amrwave.physics.exact_solutions import ExactSolution, exact_solution_from_config
from amrwave.solvers.adaptivity import AdaptationResult, AdaptiveMeshController, MeshLevelBounds
from amrwave.solvers.factory import create_operator
from amrwave.solvers.time_control import TimeControl
from amrwave.solvers.time_stepping import compute_time_step_size, create_integrator
from amrwave.utils.logging import log_banner
from amrwave.utils.parallel import ParallelContext, SerialContext


@dataclass
class OutputRecord:
    """Diagnostics captured at one output event."""
    time: float
    step: int
    output_step: int
    n_cells: int
    error_density: float
    error_momentum: float
    error_energy: float
    density_magnitude: float


@dataclass
class RunResult:
    """Outcome of one complete run."""
    stable: bool
    n_steps: int
    final_time: float
    n_cells: int
    history: List[OutputRecord] = field(default_factory=list)
    wall_time_compute: float = 0.0
    wall_time_adapt: float = 0.0
    wall_time_output: float = 0.0
    output_files: List[str] = field(default_factory=list)


class StabilityMonitor:
    """Tracks the error norm across outputs and decides whether a run blew up."""

    def __init__(self, growth_factor: float = 100.0, magnitude_factor: float = 1.5):
        self.growth_factor = growth_factor
        self.magnitude_factor = magnitude_factor
        self.first_error: Optional[float] = None
        self.first_magnitude: Optional[float] = None
        self.last_error: Optional[float] = None
        self.blown_up = False

    def record(self, error: float, magnitude: float) -> bool:
        """Store one output's error norm; returns the verdict so far."""
        if self.first_error is None:
            self.first_error = error
            self.first_magnitude = magnitude
        self.last_error = error
        # Once unstable, a later small error does not make the run stable again
        if (not math.isfinite(error)
                or error > self.growth_factor * self.first_error
                or error > self.magnitude_factor * self.first_magnitude):
            self.blown_up = True
        return self.stable

    @property
    def stable(self) -> bool:
        return not self.blown_up


class LinearizedEulerProblem:
    """
    Time-dependent linearized Euler simulation with adaptive mesh refinement.

    Parameters
    ----------
    config : SimulationConfig
        Validated on construction.
    context : ParallelContext, optional
        Reductions and rank information; serial by default.
    """

    def __init__(self, config: SimulationConfig, context: Optional[ParallelContext] = None):
        self.config = validate_config(config)
        self.context = context if context is not None else SerialContext()

        self.dim = config.discretization.dimension
        self.degree = config.discretization.degree
        self.bounds = MeshLevelBounds.from_budget(config.mesh.n_refinements,
                                                  config.mesh.n_adaptive_refinements)

        self.time_control = TimeControl()
        self.adaptivity = AdaptiveMeshController(config.adaptivity, self.time_control,
                                                 config.time.cfl, self.context)
        self.monitor = StabilityMonitor(config.stability.growth_factor,
                                        config.stability.magnitude_factor)

        self.mesh: Optional[AdaptiveMesh] = None
        self.operator = None
        self.solutions: Optional[np.ndarray] = None
        self.tmp_solutions: Optional[np.ndarray] = None
        self.baseline_error: Optional[float] = None
        self.history: List[OutputRecord] = []
        self.writer: Optional[VTKWriter] = None
        self.output_files: List[str] = []
        self.timers: Dict[str, float] = {'compute': 0.0, 'adapt': 0.0, 'output': 0.0}

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def exact_solution(self, t: float) -> ExactSolution:
        return exact_solution_from_config(self.config.problem, self.dim,
                                          self.config.mesh.length, t)

    def make_grid(self) -> None:
        self.mesh = AdaptiveMesh(self.dim, self.config.mesh.length)
        self.mesh.refine_global(self.config.mesh.n_refinements)
        logger.info(f"Uniform mesh: {self.mesh.n_active_cells} cells "
                    f"(level {self.bounds.min_level}, max level {self.bounds.max_level})")

    def make_dofs(self) -> None:
        """(Re)build operator structures and state vectors for the current mesh."""
        self.operator.setup(self.mesh)
        self.solutions = self.operator.initialize_state()
        self.tmp_solutions = np.empty_like(self.solutions)
        self.time_control.set_time_step(
            compute_time_step_size(self.mesh, self.config.time.cfl, self.context))

    def project_initial_field(self) -> None:
        self.operator.project_initial_field(self.solutions,
                                            self.exact_solution(self.time_control.time))

    def _max_cell_error(self) -> float:
        error = np.zeros(self.mesh.n_active_cells)
        self.operator.estimate_error(self.solutions, np.empty_like(self.solutions), error)
        return self.context.max(float(error.max()))

    # ------------------------------------------------------------------
    # Adaptation and output
    # ------------------------------------------------------------------

    def adapt_mesh(self) -> AdaptationResult:
        t0 = time.perf_counter()
        result = self.adaptivity.adapt(self.mesh, self.solutions, self.operator,
                                       self.bounds, self.baseline_error)
        self.solutions = result.solution
        self.tmp_solutions = np.empty_like(self.solutions)
        self.timers['adapt'] += time.perf_counter() - t0
        return result

    def compute_output_norms(self) -> ErrorNorms:
        return compute_error_norms(self.mesh, self.solutions,
                                   self.exact_solution(self.time_control.time),
                                   self.degree + 2, self.context)

    def output_results(self) -> None:
        t0 = time.perf_counter()
        tc = self.time_control
        norms = self.compute_output_norms()

        record = OutputRecord(
            time=tc.time,
            step=tc.step_number,
            output_step=tc.output_step_number,
            n_cells=self.mesh.n_active_cells,
            error_density=norms.density,
            error_momentum=norms.momentum,
            error_energy=norms.energy,
            density_magnitude=norms.density_magnitude,
        )
        self.history.append(record)
        logger.info(f"t = {tc.time:10.5f}  step {tc.step_number:6d}  cells {record.n_cells:7d}  "
                    f"|rho| = {norms.density_magnitude:.4e}  err rho = {norms.density:.4e}  "
                    f"m = {norms.momentum:.4e}  E = {norms.energy:.4e}")

        stable = self.monitor.record(norms.density, norms.density_magnitude)
        if not stable and self.config.stability.enabled:
            logger.warning(f"Instability detected at t = {tc.time:.5f}: error {norms.density:.4e} "
                           f"(first {self.monitor.first_error:.4e}, "
                           f"|rho| first {self.monitor.first_magnitude:.4e}); stopping run")
            bounds = compute_solution_bounds(self.solutions)
            logger.warning(f"Solution at truncation: rho [{bounds['rho_min']:.4e}, "
                           f"{bounds['rho_max']:.4e}], E [{bounds['energy_min']:.4e}, "
                           f"{bounds['energy_max']:.4e}], |m| max {bounds['momentum_max']:.4e}, "
                           f"nan={bounds['has_nan']}, inf={bounds['has_inf']}")
            tc.set_time(tc.final_time)

        if self.writer is not None:
            exact = self.exact_solution(tc.time)
            errors = compute_cell_errors(self.mesh, self.solutions, exact, self.degree + 1)
            estimate = np.zeros(self.mesh.n_active_cells)
            self.operator.estimate_error(self.solutions, np.empty_like(self.solutions), estimate)
            filename = self.writer.write(self.mesh, self.solutions, errors, estimate,
                                         output_step=tc.output_step_number, time=tc.time)
            self.output_files.append(filename)

        self.timers['output'] += time.perf_counter() - t0

    def cfl_stable(self) -> bool:
        return self.monitor.stable

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> RunResult:
        cfg = self.config
        tc = self.time_control

        log_banner(f"Linearized Euler: dim={self.dim} degree={self.degree} "
                   f"case={cfg.problem.case} cfl={cfg.time.cfl}")

        self.make_grid()
        tc.setup(cfg.time.final_time, cfg.time.output_interval,
                 compute_time_step_size(self.mesh, cfg.time.cfl, self.context),
                 cfg.time.max_time_steps)
        logger.info(f"Time step size: {tc.time_step:.4e}, final time {tc.final_time}")

        self.operator = create_operator(self.degree, self.dim, cfg.problem.sound_speed)
        self.make_dofs()
        self.project_initial_field()

        n_adaptive = cfg.mesh.n_adaptive_refinements
        for cycle in range(n_adaptive):
            result = self.adapt_mesh()
            self.project_initial_field()
            logger.info(f"Initial adaptation {cycle + 1}/{n_adaptive}: "
                        f"{result.n_cells_before} -> {result.n_cells_after} cells")
            if cycle == n_adaptive - 1:
                self.baseline_error = self._max_cell_error()
                logger.info(f"Baseline cell error: {self.baseline_error:.4e}")

        if cfg.output.enabled and cfg.output.write_vtk:
            self.writer = VTKWriter(cfg.output.directory, self.degree, self.operator.name(),
                                    cfg.problem.case, cfg.mesh.n_refinements, self.context)
        self.output_results()

        integrator = create_integrator(cfg.integrator.kind, cfg.integrator.ssp_stages,
                                       cfg.integrator.ssp_order)
        logger.info(f"Integrator: {integrator.name} ({integrator.n_stages} stages, "
                    f"order {integrator.order})")

        interval = cfg.mesh.adaptive_refinement_interval
        while not tc.done():
            tc.advance_time_step()

            t0 = time.perf_counter()
            self.solutions, self.tmp_solutions = self.tmp_solutions, self.solutions
            integrator.perform_time_step(self.tmp_solutions, self.solutions,
                                         tc.time_step, self.operator)
            self.timers['compute'] += time.perf_counter() - t0

            if n_adaptive > 0 and tc.step_number % interval == 0:
                self.adapt_mesh()

            if tc.at_tick():
                self.output_results()

        stable = self.cfl_stable()
        self._finalize_output()

        log_banner("Run finished" if stable else "Run finished (UNSTABLE)")
        logger.info(f"Steps: {tc.step_number}, final time {tc.time:.5f}, "
                    f"cells {self.mesh.n_active_cells}")
        logger.info(f"Wall time: compute {self.timers['compute']:.3f}s, "
                    f"adapt {self.timers['adapt']:.3f}s, output {self.timers['output']:.3f}s")

        return RunResult(
            stable=stable,
            n_steps=tc.step_number,
            final_time=tc.time,
            n_cells=self.mesh.n_active_cells,
            history=list(self.history),
            wall_time_compute=self.timers['compute'],
            wall_time_adapt=self.timers['adapt'],
            wall_time_output=self.timers['output'],
            output_files=list(self.output_files),
        )

    def _finalize_output(self) -> None:
        out = self.config.output
        if not out.enabled:
            return
        if self.writer is not None:
            series = self.writer.finalize()
            if series:
                self.output_files.append(series)
        if out.plot_history and self.context.is_root:
            name = f"deg{self.degree}_case{self.config.problem.case}"
            path = plot_error_history(self.history, out.directory, name)
            if path:
                self.output_files.append(path)
