"""
Shared pytest fixtures for the test suite.

This module provides small meshes, configurations and simple operators
that keep end-to-end runs fast.
"""

import numpy as np
import pytest

from amrwave.config import SimulationConfig
from amrwave.grid.forest import AdaptiveMesh
from amrwave.utils.parallel import ParallelContext, SerialContext


# =============================================================================
# Helpers
# =============================================================================

class FakeContext(ParallelContext):
    """Pretends to be one rank of a multi-rank run; reductions are local."""

    def __init__(self, rank: int = 0, size: int = 2):
        self._rank = rank
        self._size = size

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._size

    def min(self, value):
        return float(value)

    def max(self, value):
        return float(value)

    def sum(self, value):
        return float(value)


class LinearDecayOperator:
    """dU/dt = lam * U; only what the integrators need."""

    def __init__(self, lam: float = -1.0):
        self.lam = lam
        self.n_evaluations = 0

    def perform_residual(self, state):
        self.n_evaluations += 1
        return self.lam * state


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def serial_context():
    return SerialContext()


@pytest.fixture
def uniform_mesh_2d():
    """Periodic unit square, 8 x 8 cells."""
    mesh = AdaptiveMesh(2)
    mesh.refine_global(3)
    return mesh


@pytest.fixture
def small_config():
    """Fast 2D run: 8 x 8 base mesh, one adaptive level, no files."""
    config = SimulationConfig()
    config.discretization.degree = 1
    config.discretization.dimension = 2
    config.time.cfl = 0.2
    config.time.final_time = 0.1
    config.time.output_interval = 0.05
    config.mesh.n_refinements = 3
    config.mesh.n_adaptive_refinements = 1
    config.mesh.adaptive_refinement_interval = 2
    config.integrator.kind = "classrk4"
    config.output.enabled = False
    return config


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
