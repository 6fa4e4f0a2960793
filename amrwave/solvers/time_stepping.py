"""
Explicit time integrators for the semi-discrete system dU/dt = L(U).

Every scheme advances ``previous`` by one step into ``next_state`` given a
step size and a spatial operator exposing ``perform_residual(state)``.
``next_state`` is always fully overwritten and ``previous`` is left
untouched.

Schemes
-------
- Explicit Euler
- Classical 4-stage Runge-Kutta
- Low-storage 2-register RK ([2R+] form) of Kennedy, Carpenter & Lewis
  (2000): RK3(2)3, RK4(3)5 and RK5(4)9
- Low-storage 3-register RK ([3R+] form) of Kennedy, Carpenter & Lewis
  (2000): RK4(3)5
- Strong-stability-preserving RK(stages, order): (s, 1), (s, 2), (3, 3),
  (4, 3) and (10, 4)

The global step size follows the Courant condition on the smallest cell:
    Δt = CFL * min_K h_K
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Type

import numpy as np
import numpy.typing as npt

from amrwave.config.schema import ConfigurationError
from amrwave.utils.parallel import ParallelContext, SerialContext

NDArrayFloat = npt.NDArray[np.floating]


class IntegratorType(str, Enum):
    """Configuration strings for the supported integrators."""
    EXPLICIT_EULER = "expleuler"
    CLASSICAL_RK4 = "classrk4"
    LSRK33_REG2 = "lsrk33reg2"
    LSRK45_REG2 = "lsrk45reg2"
    LSRK59_REG2 = "lsrk59reg2"
    LSRK45_REG3 = "lsrk45reg3"
    SSPRK = "ssprk"


def compute_time_step_size(mesh, cfl: float, context: ParallelContext = None) -> float:
    """Global step size from the Courant number and the smallest cell edge."""
    if context is None:
        context = SerialContext()
    return cfl * context.min(mesh.minimum_vertex_distance())


class ExplicitIntegrator(ABC):
    """Base class of all explicit one-step schemes."""

    name: str = ""
    n_stages: int = 0
    order: int = 0
    n_registers: int = 0

    @abstractmethod
    def perform_time_step(self, previous: NDArrayFloat, next_state: NDArrayFloat,
                          dt: float, operator) -> None:
        """Advance ``previous`` by ``dt`` and store the result in ``next_state``."""
        ...

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(stages={self.n_stages}, order={self.order}, "
                f"registers={self.n_registers})")


class ExplicitEuler(ExplicitIntegrator):
    """Forward Euler: U^{n+1} = U^n + Δt L(U^n)."""

    name = "Explicit Euler"
    n_stages = 1
    order = 1
    n_registers = 1

    def perform_time_step(self, previous, next_state, dt, operator):
        residual = operator.perform_residual(previous)
        np.copyto(next_state, previous)
        next_state += dt * residual


class ClassicalRK4(ExplicitIntegrator):
    """Classical four-stage, fourth-order Runge-Kutta."""

    name = "Classical RK4"
    n_stages = 4
    order = 4
    n_registers = 4

    def perform_time_step(self, previous, next_state, dt, operator):
        k1 = operator.perform_residual(previous)
        k2 = operator.perform_residual(previous + 0.5 * dt * k1)
        k3 = operator.perform_residual(previous + 0.5 * dt * k2)
        k4 = operator.perform_residual(previous + dt * k3)
        np.copyto(next_state, previous)
        next_state += (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


class LowStorageRK2Register(ExplicitIntegrator):
    """
    Two-register low-storage Runge-Kutta in the [2R+] form.

    With the solution register ``u`` (accumulated in ``next_state``) and a
    stage register ``r`` (initially the previous solution), each stage does:

        k   = L(r)
        r   = u + a_i Δt k      (skipped on the last stage)
        u  += b_i Δt k

    ``A`` holds the s-1 sub-diagonal coefficients, ``B`` the s weights.
    """

    A: List[float] = []
    B: List[float] = []
    n_registers = 2

    def perform_time_step(self, previous, next_state, dt, operator):
        np.copyto(next_state, previous)
        register = np.empty_like(previous)
        stage_state = previous
        last = len(self.B) - 1

        for i, b in enumerate(self.B):
            k = operator.perform_residual(stage_state)
            if i < last:
                np.multiply(k, self.A[i] * dt, out=register)
                register += next_state
                stage_state = register
            next_state += (b * dt) * k


class LowStorageRK33Reg2(LowStorageRK2Register):
    """RK3(2)3[2R+]C of Kennedy, Carpenter & Lewis."""

    name = "LSRK3(2)3 2R"
    n_stages = 3
    order = 3
    A = [0.755726351946097, 0.386954477304099]
    B = [0.245170287303492, 0.184896052186740, 0.569933660509768]


class LowStorageRK45Reg2(LowStorageRK2Register):
    """RK4(3)5[2R+]C of Kennedy, Carpenter & Lewis."""

    name = "LSRK4(3)5 2R"
    n_stages = 5
    order = 4
    A = [970286171893 / 4311952581923,
         6584761158862 / 12103376702013,
         2251764453980 / 15575788980749,
         26877169314380 / 34165994151039]
    B = [1153189308089 / 22510343858157,
         1772645290293 / 4653164025191,
         -1672844663538 / 4480602732383,
         2114624349019 / 3568978502595,
         5198255086312 / 14908931495163]


class LowStorageRK59Reg2(LowStorageRK2Register):
    """RK5(4)9[2R+]S of Kennedy, Carpenter & Lewis."""

    name = "LSRK5(4)9 2R"
    n_stages = 9
    order = 5
    A = [1107026461565 / 5417078080134,
         38141181049399 / 41724347789894,
         493273079041 / 11940823631197,
         1851571280403 / 6147804934346,
         11782306865191 / 62590030070788,
         9452544825720 / 13648368537481,
         4435885630781 / 26285702406235,
         2357909744247 / 11371140753790]
    B = [2274579626619 / 23610510767302,
         693987741272 / 12394497460941,
         -347131529483 / 15096185902911,
         1144057200723 / 32081666971178,
         1562491064753 / 11797114684756,
         13113619727965 / 44346030145118,
         393957816125 / 7825732611452,
         720647959663 / 6565743875477,
         3559252274877 / 14424734981077]


class LowStorageRK3Register(ExplicitIntegrator):
    """
    Three-register low-storage Runge-Kutta in the [3R+] form.

    Stage ``i`` couples to the two previous stages through ``A1`` (a_{i+1,i})
    and ``A2`` (a_{i+2,i}); all older entries equal the weights ``B``. Besides
    the solution ``q`` (accumulated in ``next_state``), a stage register ``y``
    and a partial register ``p`` holding the stage after next are kept::

        k  = L(y)
        y  = p + a_{i+1,i} Δt k      (skipped on the last stage)
        p  = q + a_{i+2,i} Δt k      (skipped on the last two stages)
        q += b_i Δt k
    """

    A1: List[float] = []
    A2: List[float] = []
    B: List[float] = []
    n_registers = 3

    def perform_time_step(self, previous, next_state, dt, operator):
        np.copyto(next_state, previous)
        stage = np.empty_like(previous)
        partial = previous.copy()
        stage_state = previous
        n = len(self.B)

        for i, b in enumerate(self.B):
            k = operator.perform_residual(stage_state)
            if i < n - 1:
                np.multiply(k, self.A1[i] * dt, out=stage)
                stage += partial
                stage_state = stage
            if i < n - 2:
                np.multiply(k, self.A2[i] * dt, out=partial)
                partial += next_state
            next_state += (b * dt) * k


class LowStorageRK45Reg3(LowStorageRK3Register):
    """RK4(3)5[3R+]C of Kennedy, Carpenter & Lewis."""

    name = "LSRK4(3)5 3R"
    n_stages = 5
    order = 4
    A1 = [2365592473904 / 8146167614645,
          4278267785271 / 6823155464066,
          2789585899612 / 8986505720531,
          15310836689591 / 24358012670437]
    A2 = [-722262345248 / 10870640012513,
          1365858020701 / 8494387045469,
          3819021186 / 2763618202291]
    B = [846876320697 / 6523801458457,
         3032295699695 / 12397907741132,
         612618101729 / 6534652265123,
         1155491934595 / 2954287928812,
         707644755468 / 5028292464395]


# Supported (stages, order) pairs beyond the (s, 1) and (s, 2) families
_SSP_FIXED_PAIRS = ((3, 3), (4, 3), (10, 4))


def check_ssp_pair(stages: int, order: int) -> None:
    """Raise ConfigurationError unless ``(stages, order)`` is implemented."""
    if order == 1 and stages >= 1:
        return
    if order == 2 and stages >= 2:
        return
    if (stages, order) in _SSP_FIXED_PAIRS:
        return
    raise ConfigurationError(
        f"Unsupported SSP Runge-Kutta pair (stages={stages}, order={order}); "
        f"supported: (s, 1) s>=1, (s, 2) s>=2, {list(_SSP_FIXED_PAIRS)}")


class SSPRK(ExplicitIntegrator):
    """
    Strong-stability-preserving Runge-Kutta, written as convex combinations
    of forward Euler steps (Shu-Osher form).

    Parameters
    ----------
    stages : int
        Number of stages s.
    order : int
        Order p; supported pairs are (s, 1), (s, 2), (3, 3), (4, 3), (10, 4).
    """

    def __init__(self, stages: int = 10, order: int = 4):
        check_ssp_pair(stages, order)
        self.n_stages = stages
        self.order = order
        self.n_registers = 1 if order == 1 else 2
        self.name = f"SSPRK({stages},{order})"

    def perform_time_step(self, previous, next_state, dt, operator):
        s, p = self.n_stages, self.order
        if p == 1:
            self._step_order1(previous, next_state, dt, operator, s)
        elif p == 2:
            self._step_order2(previous, next_state, dt, operator, s)
        elif (s, p) == (3, 3):
            self._step_33(previous, next_state, dt, operator)
        elif (s, p) == (4, 3):
            self._step_43(previous, next_state, dt, operator)
        else:
            self._step_104(previous, next_state, dt, operator)

    @staticmethod
    def _step_order1(u, out, dt, operator, s):
        # s forward Euler sub-steps of Δt/s
        h = dt / s
        np.copyto(out, u)
        for _ in range(s):
            out += h * operator.perform_residual(out)

    @staticmethod
    def _step_order2(u, out, dt, operator, s):
        # Ketcheson's optimal second-order scheme, CFL coefficient s-1
        h = dt / (s - 1)
        np.copyto(out, u)
        for _ in range(s - 1):
            out += h * operator.perform_residual(out)
        out += h * operator.perform_residual(out)
        out *= (s - 1) / s
        out += u / s

    @staticmethod
    def _step_33(u, out, dt, operator):
        y = u + dt * operator.perform_residual(u)
        y = 0.75 * u + 0.25 * (y + dt * operator.perform_residual(y))
        np.copyto(out, (1.0 / 3.0) * u + (2.0 / 3.0) * (y + dt * operator.perform_residual(y)))

    @staticmethod
    def _step_43(u, out, dt, operator):
        h = 0.5 * dt
        y = u + h * operator.perform_residual(u)
        y = y + h * operator.perform_residual(y)
        y = (2.0 / 3.0) * u + (1.0 / 3.0) * (y + h * operator.perform_residual(y))
        np.copyto(out, y + h * operator.perform_residual(y))

    @staticmethod
    def _step_104(u, out, dt, operator):
        # Ketcheson (2008) low-storage SSPRK(10,4)
        h = dt / 6.0
        q1 = u.copy()
        q2 = u.copy()
        for _ in range(5):
            q1 += h * operator.perform_residual(q1)
        q2 = q2 / 25.0 + (9.0 / 25.0) * q1
        q1 = 15.0 * q2 - 5.0 * q1
        for _ in range(4):
            q1 += h * operator.perform_residual(q1)
        np.copyto(out, q2 + 0.6 * q1 + (dt / 10.0) * operator.perform_residual(q1))


INTEGRATORS: Dict[IntegratorType, Type[ExplicitIntegrator]] = {
    IntegratorType.EXPLICIT_EULER: ExplicitEuler,
    IntegratorType.CLASSICAL_RK4: ClassicalRK4,
    IntegratorType.LSRK33_REG2: LowStorageRK33Reg2,
    IntegratorType.LSRK45_REG2: LowStorageRK45Reg2,
    IntegratorType.LSRK59_REG2: LowStorageRK59Reg2,
    IntegratorType.LSRK45_REG3: LowStorageRK45Reg3,
    IntegratorType.SSPRK: SSPRK,
}


def create_integrator(kind, ssp_stages: int = 10, ssp_order: int = 4) -> ExplicitIntegrator:
    """
    Build an integrator from its configuration string.

    Raises
    ------
    ConfigurationError
        For an unknown kind or an unsupported SSP pair.
    """
    try:
        key = IntegratorType(kind)
    except ValueError:
        raise ConfigurationError(
            f"Unknown integrator '{kind}'; expected one of {[k.value for k in IntegratorType]}"
        ) from None

    if key is IntegratorType.SSPRK:
        return SSPRK(ssp_stages, ssp_order)
    return INTEGRATORS[key]()
