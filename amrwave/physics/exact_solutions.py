"""
Closed-form solutions of the linearized Euler equations about rest.

    ρ_t + ∇·m     = 0
    m_t + ∇E      = 0
    E_t + c² ∇·m  = 0

Any profile g travelling along a unit direction d,

    ρ = g(d·x - c t),   m = c d ρ,   E = c² ρ,

solves the system exactly. The direction comes from an integer wave vector
K so that the profile is periodic in the box [0, L]^dim:

    θ(x, t) = (K·x - c |K| t) / L

Case 1: plane wave      ρ = A sin(2π θ)
Case 2: Gaussian pulse  ρ = A exp(-w(θ)² / (2 σ²)),  w = θ - 1/2 wrapped to [-1/2, 1/2)
"""

from enum import IntEnum
from typing import Sequence

import numpy as np
import numpy.typing as npt

from amrwave.constants import RHO_IDX, momentum_slice, energy_index, n_components

NDArrayFloat = npt.NDArray[np.floating]


class InitialCase(IntEnum):
    PLANE_WAVE = 1
    GAUSSIAN_PULSE = 2


class ExactSolution:
    """
    Exact solution at a fixed time, evaluated on arrays of points.

    Parameters
    ----------
    time : float
        Evaluation time.
    case : int
        1 = plane sine wave, 2 = Gaussian pulse.
    dim : int
        Space dimension.
    sound_speed : float
        Speed of sound c of the base state.
    wave_vector : sequence of int
        Integer wave vector K; only the first ``dim`` entries are used.
    amplitude : float
        Peak density perturbation A.
    pulse_width : float
        Standard deviation σ of the pulse in phase units (case 2).
    length : float
        Box edge length L.
    """

    def __init__(self, time: float, case: int, dim: int, sound_speed: float = 1.0,
                 wave_vector: Sequence[int] = (1, 0, 0), amplitude: float = 1.0,
                 pulse_width: float = 0.05, length: float = 1.0):
        self.time = float(time)
        self.case = InitialCase(case)
        self.dim = dim
        self.sound_speed = float(sound_speed)
        self.amplitude = float(amplitude)
        self.pulse_width = float(pulse_width)
        self.length = float(length)

        self.wave_vector = np.asarray(list(wave_vector)[:dim], dtype=float)
        if self.wave_vector.shape != (dim,):
            raise ValueError(f"wave_vector needs {dim} components, got {list(wave_vector)}")
        self.wave_number = float(np.linalg.norm(self.wave_vector))
        if self.wave_number == 0.0:
            raise ValueError("wave_vector must not be zero")
        self.direction = self.wave_vector / self.wave_number

    def phase(self, points: NDArrayFloat) -> NDArrayFloat:
        points = np.asarray(points, dtype=float)
        return (points @ self.wave_vector
                - self.sound_speed * self.wave_number * self.time) / self.length

    def profile(self, theta: NDArrayFloat) -> NDArrayFloat:
        if self.case is InitialCase.PLANE_WAVE:
            return self.amplitude * np.sin(2.0 * np.pi * theta)
        w = np.mod(theta, 1.0) - 0.5
        return self.amplitude * np.exp(-0.5 * (w / self.pulse_width) ** 2)

    def __call__(self, points: NDArrayFloat) -> NDArrayFloat:
        """Evaluate all components at ``points`` of shape ``(n, dim)``."""
        points = np.asarray(points, dtype=float)
        rho = self.profile(self.phase(points))

        values = np.empty((points.shape[0], n_components(self.dim)))
        values[:, RHO_IDX] = rho
        values[:, momentum_slice(self.dim)] = self.sound_speed * rho[:, None] * self.direction[None, :]
        values[:, energy_index(self.dim)] = self.sound_speed ** 2 * rho
        return values

    def __repr__(self) -> str:
        return (f"ExactSolution(case={self.case.name}, t={self.time:.4g}, "
                f"K={self.wave_vector.tolist()}, c={self.sound_speed})")


def exact_solution_from_config(problem_config, dim: int, length: float, time: float = 0.0) -> ExactSolution:
    """Build the exact solution described by a ``ProblemConfig``."""
    return ExactSolution(
        time=time,
        case=problem_config.case,
        dim=dim,
        sound_speed=problem_config.sound_speed,
        wave_vector=problem_config.wave_vector,
        amplitude=problem_config.amplitude,
        pulse_width=problem_config.pulse_width,
        length=length,
    )
