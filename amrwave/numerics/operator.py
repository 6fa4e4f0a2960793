"""
Spatial operators: the narrow interface between the control layer and the
discretization, plus the reference finite-volume implementation for the
linearized Euler equations on the adaptive Cartesian mesh.

The control layer (time stepping, adaptivity, stability search) only ever
calls the methods of ``SpatialOperator``.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

import numpy as np
import numpy.typing as npt

from amrwave.constants import n_components
from amrwave.numerics.error_estimator import estimate_jump_indicator
from amrwave.numerics.fluxes import FluxConfig, compute_rusanov_flux
from amrwave.numerics.quadrature import CellQuadrature, cell_quadrature, cell_averages

NDArrayFloat = npt.NDArray[np.floating]


class SpatialOperator(ABC):
    """Discrete right-hand side L(U) of dU/dt = L(U) on an adaptive mesh."""

    @abstractmethod
    def setup(self, mesh) -> None:
        """Rebuild evaluation structures after a mesh or degree change."""
        ...

    @abstractmethod
    def initialize_state(self) -> NDArrayFloat:
        """Zeroed state vector laid out for the current mesh."""
        ...

    @abstractmethod
    def project_initial_field(self, state: NDArrayFloat, exact_solution) -> None:
        ...

    @abstractmethod
    def estimate_error(self, state: NDArrayFloat, scratch: NDArrayFloat,
                       out: NDArrayFloat) -> None:
        """Fill ``out`` with one non-negative error value per active cell."""
        ...

    @abstractmethod
    def perform_residual(self, state: NDArrayFloat) -> NDArrayFloat:
        ...

    @abstractmethod
    def name(self) -> str:
        ...


class FaceConnectivity(NamedTuple):
    """All faces of the mesh, each seen from its lower (left) cell."""
    left: np.ndarray    # Cell on the lower side
    right: np.ndarray   # Cell on the upper side
    axis: np.ndarray    # Normal direction
    area: NDArrayFloat  # Face measure (the smaller of the two cells' faces)


def build_face_connectivity(mesh) -> FaceConnectivity:
    """
    Enumerate every face exactly once by looking through the upper face of
    each cell. A coarse cell facing finer ones yields one sub-face per fine
    neighbour, so hanging faces are handled without special cases.
    """
    sizes = mesh.sizes
    left, right, axes, area = [], [], [], []
    for i in range(mesh.n_active_cells):
        for axis in range(mesh.dim):
            for j in mesh.face_neighbors(i, axis, +1):
                left.append(i)
                right.append(j)
                axes.append(axis)
                area.append(min(sizes[i], sizes[j]) ** (mesh.dim - 1))
    return FaceConnectivity(
        left=np.array(left, dtype=np.int64),
        right=np.array(right, dtype=np.int64),
        axis=np.array(axes, dtype=np.int64),
        area=np.array(area, dtype=float),
    )


class LinearizedEulerOperator(SpatialOperator):
    """
    Finite-volume discretization with Rusanov fluxes.

    Parameters
    ----------
    degree : int
        Polynomial degree; sets the Gauss-Legendre order (degree + 1 points
        per direction) used for projections.
    dimension : int
        Space dimension.
    flux_config : FluxConfig, optional
        Sound speed and dissipation scaling.
    """

    def __init__(self, degree: int, dimension: int, flux_config: Optional[FluxConfig] = None):
        self.degree = degree
        self.dimension = dimension
        self.flux_config = flux_config if flux_config is not None else FluxConfig()
        self.mesh = None
        self.faces: Optional[FaceConnectivity] = None
        self.quadrature: Optional[CellQuadrature] = None
        self._volumes: Optional[NDArrayFloat] = None
        self._faces_by_axis = []

    @property
    def n_components(self) -> int:
        return n_components(self.dimension)

    @property
    def n_quadrature_points(self) -> int:
        return self.degree + 1

    def name(self) -> str:
        return "LinearizedEuler"

    def setup(self, mesh) -> None:
        if mesh.dim != self.dimension:
            raise ValueError(f"Operator built for dimension {self.dimension}, mesh has {mesh.dim}")
        self.mesh = mesh
        self.faces = build_face_connectivity(mesh)
        self.quadrature = cell_quadrature(mesh, self.n_quadrature_points)
        self._volumes = mesh.volumes

        self._faces_by_axis = []
        for axis in range(self.dimension):
            sel = self.faces.axis == axis
            self._faces_by_axis.append(
                (axis, self.faces.left[sel], self.faces.right[sel], self.faces.area[sel]))

    def _check_setup(self, state: NDArrayFloat) -> None:
        if self.mesh is None:
            raise RuntimeError("setup(mesh) must be called before evaluating the operator")
        expected = (self.mesh.n_active_cells, self.n_components)
        if state.shape != expected:
            raise ValueError(f"State shape {state.shape} does not match {expected}")

    def initialize_state(self) -> NDArrayFloat:
        if self.mesh is None:
            raise RuntimeError("setup(mesh) must be called before initialize_state()")
        return np.zeros((self.mesh.n_active_cells, self.n_components))

    def project_initial_field(self, state: NDArrayFloat, exact_solution) -> None:
        self._check_setup(state)
        state[:] = cell_averages(self.quadrature, exact_solution)

    def perform_residual(self, state: NDArrayFloat) -> NDArrayFloat:
        self._check_setup(state)
        residual = np.zeros_like(state)
        for axis, left, right, area in self._faces_by_axis:
            flux = compute_rusanov_flux(state[left], state[right], axis, self.flux_config)
            flux *= area[:, None]
            np.subtract.at(residual, left, flux)
            np.add.at(residual, right, flux)
        residual /= self._volumes[:, None]
        return residual

    def estimate_error(self, state: NDArrayFloat, scratch: NDArrayFloat,
                       out: NDArrayFloat) -> None:
        self._check_setup(state)
        # scratch plays the role of the ghosted vector that neighbour reads go through
        np.copyto(scratch, state)
        estimate_jump_indicator(scratch, self.faces, self.mesh.sizes, out)

    def __repr__(self) -> str:
        return f"LinearizedEulerOperator(degree={self.degree}, dim={self.dimension})"
