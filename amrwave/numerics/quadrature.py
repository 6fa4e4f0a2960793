"""Tensor-product Gauss-Legendre quadrature on the active cells of the mesh."""

import itertools
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

NDArrayFloat = npt.NDArray[np.floating]


class CellQuadrature(NamedTuple):
    """Quadrature points per cell and weights normalised to sum to one."""
    points: NDArrayFloat   # (n_cells, n_q, dim)
    weights: NDArrayFloat  # (n_q,)


def reference_rule(n_points: int, dim: int):
    """Gauss-Legendre nodes on [0, 1]^dim with weights summing to one."""
    nodes_1d, weights_1d = np.polynomial.legendre.leggauss(n_points)
    nodes_1d = 0.5 * (nodes_1d + 1.0)
    weights_1d = 0.5 * weights_1d

    nodes = np.array(list(itertools.product(nodes_1d, repeat=dim)))
    weights = np.array([np.prod(w) for w in itertools.product(weights_1d, repeat=dim)])
    return nodes, weights


def cell_quadrature(mesh, n_points: int) -> CellQuadrature:
    """Map the reference rule to every active cell of ``mesh``."""
    nodes, weights = reference_rule(n_points, mesh.dim)
    lower = mesh.lower_corners
    sizes = mesh.sizes
    points = lower[:, None, :] + sizes[:, None, None] * nodes[None, :, :]
    return CellQuadrature(points=points, weights=weights)


def cell_averages(quadrature: CellQuadrature, function) -> NDArrayFloat:
    """
    Cell averages of a vector-valued function.

    ``function`` maps points ``(m, dim)`` to values ``(m, n_comp)``.
    """
    n_cells, n_q, dim = quadrature.points.shape
    values = function(quadrature.points.reshape(-1, dim))
    values = values.reshape(n_cells, n_q, -1)
    return np.einsum('q,cqk->ck', quadrature.weights, values)
