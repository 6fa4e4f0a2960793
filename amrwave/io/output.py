"""
VTK Output Writer for adaptive mesh solutions.

This module writes cell-average solutions on the adaptive Cartesian mesh
to VTK files for visualization in ParaView, VisIt or other VTK-compatible
viewers.

Supports:
- Legacy VTK ASCII format (unstructured grid of pixels/voxels)
- Scalar fields: density, energy, component errors, error estimate
- Vector fields: momentum, momentum error
- One file per rank and output step, plus a ``.visit`` manifest written by
  rank 0 when more than one rank takes part
- ``.vtk.series`` index for loading a time series in ParaView

File naming:
    sol_deg{degree}_{operator}_case{case}_ref{refinements}_step{NNN}[_Proc{rank}].vtk
"""

import os
from typing import Dict, List, Optional, Sequence

import numpy as np

from amrwave.constants import RHO_IDX, momentum_slice, energy_index
from amrwave.io._array_utils import sanitize_array
from amrwave.utils.parallel import ParallelContext, SerialContext

# VTK cell types for axis-aligned cells
VTK_PIXEL = 8
VTK_VOXEL = 11


def solution_filename(degree: int, operator_name: str, case: int, n_refinements: int,
                      output_step: int, rank: Optional[int] = None) -> str:
    """Base name (no extension) of one output file."""
    name = f"sol_deg{degree}_{operator_name}_case{case}_ref{n_refinements}_step{output_step:03d}"
    if rank is not None:
        name += f"_Proc{rank}"
    return name


def write_vtk(filename: str,
              mesh,
              solution: np.ndarray,
              errors: Optional[np.ndarray] = None,
              error_estimate: Optional[np.ndarray] = None,
              time: Optional[float] = None) -> str:
    """
    Write solution to a VTK file for visualization.

    Parameters
    ----------
    filename : str
        Output filename (will add .vtk extension if not present).
    mesh : AdaptiveMesh
        Mesh providing the cell vertices.
    solution : ndarray, shape (n_cells, dim + 2)
        State [density, momentum, energy].
    errors : ndarray, shape (n_cells, dim + 2), optional
        Cell-wise error against the exact solution.
    error_estimate : ndarray, shape (n_cells,), optional
        Refinement indicator.
    time : float, optional
        Simulation time stored as field data.

    Returns
    -------
    str
        Path to the written file.

    Notes
    -----
    Cells are written as VTK_PIXEL (2D) or VTK_VOXEL (3D) with their own
    corner points, so hanging nodes need no special treatment. Solution
    values are CELL_DATA since the finite-volume state is cell-averaged.
    """
    if not filename.endswith('.vtk'):
        filename = filename + '.vtk'

    output_dir = os.path.dirname(filename)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    dim = mesh.dim
    n_cells = mesh.n_active_cells
    if solution.shape != (n_cells, dim + 2):
        raise ValueError(f"Solution shape {solution.shape} incompatible with mesh "
                         f"({n_cells} cells, dim={dim})")
    if errors is not None and errors.shape != solution.shape:
        raise ValueError(f"Error field has wrong shape: {errors.shape}")
    if error_estimate is not None and error_estimate.shape != (n_cells,):
        raise ValueError(f"Error estimate has wrong shape: {error_estimate.shape}")

    vertices = mesh.cell_vertices()
    n_verts = vertices.shape[1]
    points = vertices.reshape(-1, dim)
    cell_type = VTK_PIXEL if dim == 2 else VTK_VOXEL

    with open(filename, 'w') as f:
        # Header
        f.write("# vtk DataFile Version 3.0\n")
        f.write("Linearized Euler solution - adaptive mesh\n")
        f.write("ASCII\n")
        f.write("DATASET UNSTRUCTURED_GRID\n")

        if time is not None:
            f.write("FIELD FieldData 1\n")
            f.write("TIME 1 1 double\n")
            f.write(f"{time:.16e}\n")

        f.write(f"POINTS {points.shape[0]} float\n")
        for p in points:
            z = p[2] if dim == 3 else 0.0
            f.write(f"{p[0]:.10e} {p[1]:.10e} {z:.10e}\n")

        f.write(f"\nCELLS {n_cells} {n_cells * (n_verts + 1)}\n")
        for c in range(n_cells):
            ids = " ".join(str(c * n_verts + k) for k in range(n_verts))
            f.write(f"{n_verts} {ids}\n")

        f.write(f"\nCELL_TYPES {n_cells}\n")
        for _ in range(n_cells):
            f.write(f"{cell_type}\n")

        f.write(f"\nCELL_DATA {n_cells}\n")
        _write_state_fields(f, solution, dim, prefix="")
        if errors is not None:
            _write_state_fields(f, errors, dim, prefix="error_")
        if error_estimate is not None:
            _write_scalar_field(f, "error_estimate", error_estimate)

    return filename


def _write_state_fields(f, state: np.ndarray, dim: int, prefix: str):
    _write_scalar_field(f, f"{prefix}density", state[:, RHO_IDX])
    _write_vector_field(f, f"{prefix}momentum", state[:, momentum_slice(dim)])
    _write_scalar_field(f, f"{prefix}energy", state[:, energy_index(dim)])


def _write_scalar_field(f, name: str, data: np.ndarray):
    """Write a scalar field to VTK file."""
    f.write(f"SCALARS {name} float 1\n")
    f.write("LOOKUP_TABLE default\n")
    for value in sanitize_array(data):
        f.write(f"{value:.10e}\n")


def _write_vector_field(f, name: str, data: np.ndarray):
    """Write a vector field to VTK file (padded to three components)."""
    f.write(f"VECTORS {name} float\n")
    data = sanitize_array(data)
    for row in data:
        vz = row[2] if row.shape[0] > 2 else 0.0
        f.write(f"{row[0]:.10e} {row[1]:.10e} {vz:.10e}\n")


def write_manifest(filename: str, piece_files: Sequence[str]) -> str:
    """
    Write a VisIt multi-block manifest listing the per-rank pieces.

    Paths are stored relative to the manifest's directory.
    """
    if not filename.endswith('.visit'):
        filename = filename + '.visit'
    output_dir = os.path.dirname(filename)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    base = output_dir or '.'
    with open(filename, 'w') as f:
        f.write(f"!NBLOCKS {len(piece_files)}\n")
        for piece in piece_files:
            f.write(f"{os.path.relpath(piece, base)}\n")
    return filename


class VTKWriter:
    """
    Class-based VTK writer for managing output during a run.

    Example
    -------
    >>> writer = VTKWriter("output", degree=2, operator_name="LinearizedEuler",
    ...                    case=1, n_refinements=3)
    >>> writer.write(mesh, solution, output_step=0, time=0.0)
    >>> writer.finalize()  # Writes .vtk.series file
    """

    def __init__(self,
                 directory: str,
                 degree: int,
                 operator_name: str,
                 case: int,
                 n_refinements: int,
                 context: Optional[ParallelContext] = None):
        self.directory = directory
        self.degree = degree
        self.operator_name = operator_name
        self.case = case
        self.n_refinements = n_refinements
        self.context = context if context is not None else SerialContext()
        self.solutions: Dict[int, str] = {}   # Maps output step to filename
        self.times: Dict[int, float] = {}

    def _base(self, output_step: int, rank: Optional[int] = None) -> str:
        name = solution_filename(self.degree, self.operator_name, self.case,
                                 self.n_refinements, output_step, rank)
        return os.path.join(self.directory, name)

    def write(self,
              mesh,
              solution: np.ndarray,
              errors: Optional[np.ndarray] = None,
              error_estimate: Optional[np.ndarray] = None,
              output_step: int = 0,
              time: float = 0.0) -> str:
        """
        Write this rank's piece for one output step.

        Returns
        -------
        str
            Path to the written file.
        """
        ctx = self.context
        rank = ctx.rank if ctx.size > 1 else None
        filename = write_vtk(self._base(output_step, rank), mesh, solution,
                             errors, error_estimate, time)

        if ctx.size > 1 and ctx.is_root:
            pieces = [self._base(output_step, r) + ".vtk" for r in range(ctx.size)]
            write_manifest(self._base(output_step), pieces)

        self.solutions[output_step] = filename
        self.times[output_step] = time
        return filename

    def manifest_files(self) -> List[str]:
        return [self._base(step) + ".visit" for step in sorted(self.solutions)]

    def finalize(self) -> str:
        """
        Write .vtk.series file for ParaView time series loading.

        Returns
        -------
        str
            Path to the .vtk.series file.
        """
        if not self.solutions:
            return ""

        os.makedirs(self.directory or '.', exist_ok=True)
        series_filename = os.path.join(
            self.directory,
            f"sol_deg{self.degree}_{self.operator_name}_case{self.case}_ref{self.n_refinements}.vtk.series")

        with open(series_filename, 'w') as f:
            f.write('{\n')
            f.write('  "file-series-version" : "1.0",\n')
            f.write('  "files" : [\n')

            sorted_items = sorted(self.solutions.items())
            for idx, (step, vtk_file) in enumerate(sorted_items):
                comma = "," if idx < len(sorted_items) - 1 else ""
                vtk_basename = os.path.basename(vtk_file)
                f.write(f'    {{ "name" : "{vtk_basename}", "time" : {self.times[step]!r} }}{comma}\n')

            f.write('  ]\n')
            f.write('}\n')

        return series_filename
