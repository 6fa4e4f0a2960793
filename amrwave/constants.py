"""
Global constants for the adaptive wave solver.

This module defines the layout of the state vector and the supported
discretization parameters so that array shapes and indexing stay
consistent throughout the codebase.
"""

# State vector components: [density, momentum_1..dim, energy]
RHO_IDX = 0         # Density
MOMENTUM_START = 1  # First momentum component

SUPPORTED_DIMENSIONS = (2, 3)
SUPPORTED_DEGREES = (1, 2, 3, 4, 5)

# Number of children per refined cell
CHILDREN_PER_DIM = 2


def n_components(dim: int) -> int:
    """Number of conserved variables for a given space dimension."""
    return dim + 2


def momentum_slice(dim: int) -> slice:
    """
    Return the slice of the momentum components in the state array.

    Parameters
    ----------
    dim : int
        Space dimension.

    Returns
    -------
    slice
        ``U[:, momentum_slice(dim)]`` has shape ``(n_cells, dim)``.
    """
    return slice(MOMENTUM_START, MOMENTUM_START + dim)


def energy_index(dim: int) -> int:
    """Index of the energy component."""
    return dim + 1
