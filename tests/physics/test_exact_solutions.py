"""
Tests for the closed-form linearized Euler solutions.

Tests cover:
1. The PDE residual vanishes (finite differences in space and time)
2. Periodicity in the box
3. Component relations and evaluation shapes
"""

import numpy as np
import pytest

from amrwave.config import ProblemConfig
from amrwave.physics.exact_solutions import (
    ExactSolution,
    InitialCase,
    exact_solution_from_config,
)


def pde_residual(case, dim, wave_vector, sound_speed, points, t=0.3, eps=1e-5):
    """Residual of ρ_t + ∇·m, m_t + ∇E, E_t + c²∇·m at ``points``."""
    def at(time):
        return ExactSolution(time, case, dim, sound_speed, wave_vector, length=1.0)

    u_t = (at(t + eps)(points) - at(t - eps)(points)) / (2 * eps)

    u = at(t)
    grads = []
    for axis in range(dim):
        shift = np.zeros(dim)
        shift[axis] = eps
        grads.append((u(points + shift) - u(points - shift)) / (2 * eps))

    div_m = sum(grads[a][:, 1 + a] for a in range(dim))
    res = np.empty_like(u_t)
    res[:, 0] = u_t[:, 0] + div_m
    for a in range(dim):
        res[:, 1 + a] = u_t[:, 1 + a] + grads[a][:, dim + 1]
    res[:, dim + 1] = u_t[:, dim + 1] + sound_speed**2 * div_m
    return res


class TestPDE:
    """The exact solution satisfies the linearized Euler equations."""

    @pytest.mark.parametrize("dim, wave_vector", [(2, [1, 0]), (2, [1, 2]), (3, [2, -1, 1])])
    def test_plane_wave(self, rng, dim, wave_vector):
        points = rng.random((20, dim))
        res = pde_residual(1, dim, wave_vector, 1.3, points)
        np.testing.assert_allclose(res, 0.0, atol=1e-5)

    def test_gaussian_pulse(self, rng):
        points = rng.random((30, 2))
        res = pde_residual(2, 2, [1, 1], 1.0, points)
        np.testing.assert_allclose(res, 0.0, atol=1e-3)


class TestProperties:
    """Shape, periodicity and component relations."""

    def test_shape(self):
        u = ExactSolution(0.0, 1, 3)
        assert u(np.zeros((5, 3))).shape == (5, 5)

    @pytest.mark.parametrize("case", [1, 2])
    def test_periodic(self, rng, case):
        u = ExactSolution(0.17, case, 2, wave_vector=[2, 1], length=2.0)
        points = 2.0 * rng.random((10, 2))
        for axis in range(2):
            shift = np.zeros(2)
            shift[axis] = 2.0
            np.testing.assert_allclose(u(points + shift), u(points), atol=1e-12)

    def test_component_relations(self, rng):
        c = 2.0
        u = ExactSolution(0.0, 1, 2, sound_speed=c, wave_vector=[3, 4])
        values = u(rng.random((8, 2)))
        rho = values[:, 0]
        np.testing.assert_allclose(values[:, 1], c * 0.6 * rho)
        np.testing.assert_allclose(values[:, 2], c * 0.8 * rho)
        np.testing.assert_allclose(values[:, 3], c**2 * rho)

    def test_pulse_peak(self):
        u = ExactSolution(0.0, InitialCase.GAUSSIAN_PULSE, 2, amplitude=2.0)
        peak = u(np.array([[0.5, 0.3]]))
        assert peak[0, 0] == pytest.approx(2.0)

    def test_travels_one_period(self):
        points = np.array([[0.1, 0.2], [0.7, 0.4]])
        u0 = ExactSolution(0.0, 1, 2, sound_speed=1.0, wave_vector=[1, 0])
        u1 = ExactSolution(1.0, 1, 2, sound_speed=1.0, wave_vector=[1, 0])
        np.testing.assert_allclose(u1(points), u0(points), atol=1e-12)

    def test_zero_wave_vector(self):
        with pytest.raises(ValueError):
            ExactSolution(0.0, 1, 2, wave_vector=[0, 0])

    def test_from_config(self):
        cfg = ProblemConfig(case=2, sound_speed=0.5, wave_vector=[0, 1, 0])
        u = exact_solution_from_config(cfg, dim=2, length=1.0, time=0.25)
        assert u.case is InitialCase.GAUSSIAN_PULSE
        assert u.time == 0.25
        np.testing.assert_allclose(u.direction, [0.0, 1.0])
