"""
Fluxes of the linearized Euler equations about a quiescent base state.

Physics: acoustic perturbations of density ρ, momentum m and energy E
with base sound speed c.
    - State vector: U = [ρ, m_1..m_dim, E]
    - ρ_t + ∇·m = 0,  m_t + ∇E = 0,  E_t + c²∇·m = 0

Normal flux through a face with unit normal n:
    F·n = (m·n,  E n,  c² m·n)

The flux Jacobian has eigenvalues {-c, 0, ..., 0, +c}; the Rusanov (local
Lax-Friedrichs) numerical flux uses the maximum wave speed c:
    F* = ½ (F(U_L) + F(U_R))·n - ½ c (U_R - U_L)

Faces of the Cartesian mesh are axis-aligned, so the normal is a unit
vector e_axis pointing from the left (lower) to the right (upper) cell.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from amrwave.constants import RHO_IDX, MOMENTUM_START, energy_index

NDArrayFloat = npt.NDArray[np.floating]


@dataclass
class FluxConfig:
    """Configuration for the numerical flux."""

    sound_speed: float = 1.0
    # Scale of the upwind dissipation (1 = Rusanov, 0 = central)
    dissipation: float = 1.0


def compute_normal_flux(U: NDArrayFloat, axis: int, sound_speed: float) -> NDArrayFloat:
    """
    Physical flux F(U)·e_axis.

    Parameters
    ----------
    U : ndarray, shape (n, dim + 2)
        States.
    axis : int
        Direction of the face normal.
    sound_speed : float
        Base state speed of sound c.

    Returns
    -------
    ndarray, shape (n, dim + 2)
    """
    dim = U.shape[1] - 2
    m_n = U[:, MOMENTUM_START + axis]
    E = U[:, energy_index(dim)]

    F = np.zeros_like(U)
    F[:, RHO_IDX] = m_n
    F[:, MOMENTUM_START + axis] = E
    F[:, energy_index(dim)] = sound_speed**2 * m_n
    return F


def compute_rusanov_flux(U_L: NDArrayFloat, U_R: NDArrayFloat, axis: int,
                         cfg: FluxConfig = None) -> NDArrayFloat:
    """Rusanov numerical flux from the left state to the right state along ``axis``."""
    if cfg is None:
        cfg = FluxConfig()
    c = cfg.sound_speed
    central = 0.5 * (compute_normal_flux(U_L, axis, c) + compute_normal_flux(U_R, axis, c))
    return central - 0.5 * cfg.dissipation * c * (U_R - U_L)
