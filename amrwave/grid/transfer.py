"""
Transfer of cell-average state across a mesh topology change.

Rules:
- Untouched cells: copied
- Refined cells: every child inherits the parent value
- Coarsened cells: the parent takes the average of its children

Children of a cell have equal volume, so both rules conserve the integral
of every component exactly.
"""

from typing import Optional

import numpy as np
import numpy.typing as npt

from .forest import AdaptiveMesh, MeshAdaptationError, TopologyChange, children_of, parent_of

NDArrayFloat = npt.NDArray[np.floating]


class SolutionTransfer:
    """Snapshot a solution before adaptation and map it onto the new mesh."""

    def __init__(self, mesh: AdaptiveMesh):
        self.mesh = mesh
        self._values: Optional[NDArrayFloat] = None
        self._lookup = {}

    def prepare_for_coarsening_and_refinement(self, solution: NDArrayFloat) -> None:
        if solution.ndim != 2 or solution.shape[0] != self.mesh.n_active_cells:
            raise MeshAdaptationError(
                f"Solution shape {solution.shape} does not match "
                f"{self.mesh.n_active_cells} active cells")
        self._values = np.array(solution, copy=True)
        self._lookup = {key: i for i, key in enumerate(self.mesh.cells)}

    def interpolate(self, change: Optional[TopologyChange] = None) -> NDArrayFloat:
        """Return the snapshot mapped onto the mesh's current cells."""
        if self._values is None:
            raise MeshAdaptationError("interpolate() called before prepare_for_coarsening_and_refinement()")
        if change is not None and len(change.old_cells) != self._values.shape[0]:
            raise MeshAdaptationError("Topology change does not start from the snapshot mesh")

        new_cells = self.mesh.cells
        result = np.empty((len(new_cells), self._values.shape[1]), dtype=self._values.dtype)

        for i, key in enumerate(new_cells):
            j = self._lookup.get(key)
            if j is not None:
                result[i] = self._values[j]
                continue

            j = self._ancestor_row(key)
            if j is not None:
                result[i] = self._values[j]
                continue

            rows = [self._lookup.get(child) for child in children_of(key)]
            if any(r is None for r in rows):
                raise MeshAdaptationError(f"No source data for new cell {key}")
            result[i] = self._values[rows].mean(axis=0)

        return result

    def _ancestor_row(self, key) -> Optional[int]:
        parent = parent_of(key)
        while parent is not None:
            j = self._lookup.get(parent)
            if j is not None:
                return j
            parent = parent_of(parent)
        return None
