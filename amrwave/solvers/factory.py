"""
Factory functions for operators, problems and stability searches.

Operators are dispatched through a table keyed by polynomial degree so
that an unsupported degree fails with a clear configuration error before
any mesh is built.
"""

from functools import partial
from typing import Callable, Dict, Optional

from amrwave.config.schema import ConfigurationError, SimulationConfig
from amrwave.constants import SUPPORTED_DEGREES, SUPPORTED_DIMENSIONS
from amrwave.numerics.fluxes import FluxConfig
from amrwave.numerics.operator import LinearizedEulerOperator, SpatialOperator
from amrwave.utils.parallel import ParallelContext

OPERATOR_TABLE: Dict[int, Callable[..., SpatialOperator]] = {
    degree: partial(LinearizedEulerOperator, degree) for degree in SUPPORTED_DEGREES
}


def create_operator(degree: int, dimension: int, sound_speed: float = 1.0) -> SpatialOperator:
    """
    Build the spatial operator for a degree/dimension pair.

    Raises
    ------
    ConfigurationError
        If the degree or dimension is not implemented.
    """
    if dimension not in SUPPORTED_DIMENSIONS:
        raise ConfigurationError(
            f"Dimension {dimension} not implemented; expected one of {SUPPORTED_DIMENSIONS}")
    builder = OPERATOR_TABLE.get(degree)
    if builder is None:
        raise ConfigurationError(
            f"Degree {degree} not implemented; expected one of {sorted(OPERATOR_TABLE)}")
    return builder(dimension, FluxConfig(sound_speed=sound_speed))


def create_problem(config: SimulationConfig, context: Optional[ParallelContext] = None):
    """Create a single run from a validated configuration."""
    from amrwave.solvers.problem import LinearizedEulerProblem
    return LinearizedEulerProblem(config, context)


def create_stability_search(config: SimulationConfig, context: Optional[ParallelContext] = None):
    """Create a Courant number search whose trials are full runs of ``config``."""
    from amrwave.solvers.stability import CFLStabilitySearch
    return CFLStabilitySearch.from_config(config, context)
