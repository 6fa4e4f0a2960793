"""Diagnostic quantities for solution analysis: error norms and field checks."""

from typing import Any, Dict, NamedTuple

import numpy as np
import numpy.typing as npt

from amrwave.constants import RHO_IDX, momentum_slice, energy_index
from amrwave.numerics.quadrature import cell_quadrature, cell_averages
from amrwave.utils.parallel import ParallelContext, SerialContext

NDArrayFloat = npt.NDArray[np.floating]


class ErrorNorms(NamedTuple):
    """Global L2 errors per component group plus the density norm."""
    density: float
    momentum: float
    energy: float
    density_magnitude: float


def compute_error_norms(mesh, state: NDArrayFloat, exact_solution, n_points: int,
                        context: ParallelContext = None) -> ErrorNorms:
    """
    L2 norms of U_h - u over the domain, integrated with an ``n_points``
    Gauss rule per direction, reduced over all ranks.
    """
    if context is None:
        context = SerialContext()
    dim = mesh.dim
    quad = cell_quadrature(mesh, n_points)
    n_cells, n_q, _ = quad.points.shape

    exact = exact_solution(quad.points.reshape(-1, dim)).reshape(n_cells, n_q, -1)
    diff_sq = (state[:, None, :] - exact) ** 2
    # ∫_K f ≈ |K| Σ_q w_q f(x_q)
    cell_integrals = mesh.volumes[:, None] * np.einsum('q,cqk->ck', quad.weights, diff_sq)
    rho_sq = mesh.volumes * state[:, RHO_IDX] ** 2

    def global_norm(local_sq: float) -> float:
        return float(np.sqrt(context.sum(local_sq)))

    return ErrorNorms(
        density=global_norm(cell_integrals[:, RHO_IDX].sum()),
        momentum=global_norm(cell_integrals[:, momentum_slice(dim)].sum()),
        energy=global_norm(cell_integrals[:, energy_index(dim)].sum()),
        density_magnitude=global_norm(rho_sq.sum()),
    )


def compute_cell_errors(mesh, state: NDArrayFloat, exact_solution, n_points: int) -> NDArrayFloat:
    """Cell-wise error: exact cell average minus the discrete value."""
    quad = cell_quadrature(mesh, n_points)
    return cell_averages(quad, exact_solution) - state


def compute_solution_bounds(state: NDArrayFloat) -> Dict[str, Any]:
    """Check solution for anomalies and report component ranges."""
    dim = state.shape[1] - 2
    rho = state[:, RHO_IDX]
    energy = state[:, energy_index(dim)]
    momentum_mag = np.linalg.norm(state[:, momentum_slice(dim)], axis=1)

    return {
        'has_nan': bool(np.any(np.isnan(state))),
        'has_inf': bool(np.any(np.isinf(state))),
        'rho_min': float(rho.min()),
        'rho_max': float(rho.max()),
        'energy_min': float(energy.min()),
        'energy_max': float(energy.max()),
        'momentum_max': float(momentum_mag.max()),
    }
