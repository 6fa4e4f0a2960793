"""
I/O module for the adaptive wave solver.

Provides VTK writers for solutions on the adaptive mesh and plots of run
diagnostics.
"""

from .output import write_vtk, write_manifest, solution_filename, VTKWriter

__all__ = ['write_vtk', 'write_manifest', 'solution_filename', 'VTKWriter']
