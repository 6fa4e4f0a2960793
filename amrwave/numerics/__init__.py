"""
Numerical methods for the linearized Euler equations.

This package provides:
    - Physical and Rusanov numerical fluxes
    - The SpatialOperator interface and its finite-volume implementation
    - Jump-based error indicator
    - Gauss-Legendre cell quadrature and error norms
"""

from .fluxes import FluxConfig, compute_normal_flux, compute_rusanov_flux
from .operator import SpatialOperator, LinearizedEulerOperator, FaceConnectivity, build_face_connectivity
from .error_estimator import estimate_jump_indicator
from .diagnostics import ErrorNorms, compute_error_norms, compute_cell_errors, compute_solution_bounds

__all__ = [
    'FluxConfig',
    'compute_normal_flux',
    'compute_rusanov_flux',
    'SpatialOperator',
    'LinearizedEulerOperator',
    'FaceConnectivity',
    'build_face_connectivity',
    'estimate_jump_indicator',
    'ErrorNorms',
    'compute_error_norms',
    'compute_cell_errors',
    'compute_solution_bounds',
]
