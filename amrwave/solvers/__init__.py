"""
Solver components for the adaptive wave solver.

This package provides:
    - TimeControl: clock, step size and output cadence
    - Explicit integrators (Euler, RK4, low-storage RK, SSP-RK)
    - Adaptive mesh controller
    - Run driver and Courant number stability search
"""

from .time_control import TimeControl

from .time_stepping import (
    IntegratorType,
    ExplicitIntegrator,
    ExplicitEuler,
    ClassicalRK4,
    LowStorageRK33Reg2,
    LowStorageRK45Reg2,
    LowStorageRK59Reg2,
    LowStorageRK45Reg3,
    SSPRK,
    create_integrator,
    compute_time_step_size,
)

from .adaptivity import (
    AdaptiveMeshController,
    AdaptationResult,
    MeshLevelBounds,
)

__all__ = [
    # Time control
    'TimeControl',
    # Time stepping
    'IntegratorType',
    'ExplicitIntegrator',
    'ExplicitEuler',
    'ClassicalRK4',
    'LowStorageRK33Reg2',
    'LowStorageRK45Reg2',
    'LowStorageRK59Reg2',
    'LowStorageRK45Reg3',
    'SSPRK',
    'create_integrator',
    'compute_time_step_size',
    # Adaptivity
    'AdaptiveMeshController',
    'AdaptationResult',
    'MeshLevelBounds',
]
