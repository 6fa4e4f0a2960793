"""
Error-driven adaptive mesh refinement.

One adaptation event is an explicit ordered pipeline:

    estimate error -> flag -> prepare mesh -> snapshot solution ->
    execute topology change -> operator.setup + new state ->
    interpolate snapshot -> new step size

Flagging policy:
    1. Fixed number: the worst ``refine_fraction`` of the cells (by error)
       are flagged for refinement, the best ``coarsen_fraction`` for
       coarsening.
    2. Level bounds: no refinement at ``max_level``, no coarsening at
       ``min_level``.
    3. Relative override, once the baseline error B of the initial
       condition is known:
          error < refine_threshold  * B  -> refinement cleared
          error < coarsen_threshold * B  -> coarsening requested
"""

from typing import NamedTuple, Optional, Tuple

import numpy as np
import numpy.typing as npt
from loguru import logger

from amrwave.config.schema import AdaptivityConfig, ConfigurationError
from amrwave.grid.forest import MeshAdaptationError
from amrwave.grid.transfer import SolutionTransfer
from amrwave.solvers.time_stepping import compute_time_step_size
from amrwave.utils.parallel import ParallelContext, SerialContext

NDArrayFloat = npt.NDArray[np.floating]


class MeshLevelBounds(NamedTuple):
    """Allowed refinement levels; min is the baseline uniform refinement."""
    min_level: int
    max_level: int

    @classmethod
    def from_budget(cls, n_refinements: int, n_adaptive_refinements: int) -> 'MeshLevelBounds':
        if n_refinements < 0 or n_adaptive_refinements < 0:
            raise ConfigurationError("Refinement counts must be non-negative")
        return cls(n_refinements, n_refinements + n_adaptive_refinements)


class AdaptationResult(NamedTuple):
    """Outcome of one adaptation event."""
    solution: NDArrayFloat
    refine_flags: np.ndarray    # Policy flags before mesh reconciliation
    coarsen_flags: np.ndarray
    n_refined: int
    n_coarsened: int
    n_cells_before: int
    n_cells_after: int
    time_step: float
    max_error: float


def flag_fixed_number(error: NDArrayFloat, refine_fraction: float,
                      coarsen_fraction: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Flag a fixed fraction of cells with the largest / smallest error.

    Returns boolean masks (refine, coarsen); they never overlap as long as
    the fractions add up to at most one.
    """
    n = error.shape[0]
    n_refine = int(refine_fraction * n)
    n_coarsen = int(coarsen_fraction * n)
    n_coarsen = min(n_coarsen, n - n_refine)

    order = np.argsort(error, kind='stable')
    refine = np.zeros(n, dtype=bool)
    coarsen = np.zeros(n, dtype=bool)
    if n_refine > 0:
        refine[order[n - n_refine:]] = True
    if n_coarsen > 0:
        coarsen[order[:n_coarsen]] = True
    return refine, coarsen


class AdaptiveMeshController:
    """
    Runs adaptation events on a mesh/solution/operator triple.

    Parameters
    ----------
    config : AdaptivityConfig
        Flagging fractions and baseline thresholds.
    time_control : TimeControl
        Receives the new step size after every event.
    cfl : float
        Courant number used to derive the step size.
    context : ParallelContext, optional
        Reductions for the global minimum cell size.
    """

    def __init__(self, config: AdaptivityConfig, time_control, cfl: float,
                 context: Optional[ParallelContext] = None):
        self.config = config
        self.time_control = time_control
        self.cfl = cfl
        self.context = context if context is not None else SerialContext()

    def compute_flags(self, error: NDArrayFloat, levels: np.ndarray, bounds: MeshLevelBounds,
                      baseline: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Apply fixed-number flagging, level bounds and the baseline override."""
        cfg = self.config
        refine, coarsen = flag_fixed_number(error, cfg.refine_fraction, cfg.coarsen_fraction)

        at_max = levels >= bounds.max_level
        at_min = levels <= bounds.min_level
        refine &= ~at_max
        coarsen &= ~at_min

        if baseline is not None:
            refine &= ~(error < cfg.refine_threshold * baseline)
            coarsen |= error < cfg.coarsen_threshold * baseline
            # The override must not request a level below the baseline mesh
            coarsen &= ~at_min
            coarsen &= ~refine

        return refine, coarsen

    def adapt(self, mesh, solution: NDArrayFloat, operator, bounds: MeshLevelBounds,
              baseline: Optional[float] = None) -> AdaptationResult:
        """Run one adaptation event and return the transferred solution."""
        n_before = mesh.n_active_cells

        error = np.zeros(n_before)
        scratch = np.empty_like(solution)
        operator.estimate_error(solution, scratch, error)
        max_error = self.context.max(float(error.max()) if n_before else 0.0)

        refine, coarsen = self.compute_flags(error, mesh.levels, bounds, baseline)
        mesh.set_flags(refine, coarsen)
        n_refine, n_coarsen = mesh.prepare_coarsening_and_refinement(
            min_level=bounds.min_level, max_level=bounds.max_level)

        transfer = SolutionTransfer(mesh)
        transfer.prepare_for_coarsening_and_refinement(solution)

        try:
            change = mesh.execute_coarsening_and_refinement()
        except MeshAdaptationError:
            raise
        except Exception as exc:
            raise MeshAdaptationError(f"Topology change failed: {exc}") from exc

        operator.setup(mesh)
        new_solution = operator.initialize_state()
        new_solution[:] = transfer.interpolate(change)

        dt = compute_time_step_size(mesh, self.cfl, self.context)
        self.time_control.set_time_step(dt)

        logger.debug(
            f"Adapted mesh: {n_before} -> {mesh.n_active_cells} cells "
            f"({change.n_refined} refined, {change.n_coarsened} coarsened), dt = {dt:.4e}")

        return AdaptationResult(
            solution=new_solution,
            refine_flags=refine,
            coarsen_flags=coarsen,
            n_refined=change.n_refined,
            n_coarsened=change.n_coarsened,
            n_cells_before=n_before,
            n_cells_after=mesh.n_active_cells,
            time_step=dt,
            max_error=max_error,
        )
