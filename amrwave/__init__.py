"""
amrwave: explicit time integration of the linearized Euler equations on an
adaptively refined Cartesian mesh, with error-driven refinement and an
automatic Courant number stability search.
"""

__version__ = "0.1.0"
