"""
Courant number stability search.

Each trial is a complete simulation run at a candidate Courant number; the
run's stability verdict updates a bracket:

    no stable bound yet       -> step down: subtract ``decrement`` while
                                 cfl / degree^1.5 > ``threshold``,
                                 otherwise divide by ``divisor``
    stable, no unstable bound -> step up by ``increment``
    both bounds known         -> bisect

The search runs for a fixed number of iterations; the scaled values
cfl * degree^1.5 are reported for comparison across degrees.
"""

import copy
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from loguru import logger

from amrwave.config.schema import SimulationConfig, StabilityConfig
from amrwave.utils.logging import log_banner
from amrwave.utils.parallel import ParallelContext


@dataclass
class StabilityTrial:
    """One run of the search."""
    iteration: int
    cfl: float
    stable: bool


@dataclass
class StabilityBracket:
    """Known stable/unstable Courant numbers and the next value to test."""
    stable: Optional[float] = None
    unstable: Optional[float] = None
    test: float = 0.0
    trials: List[StabilityTrial] = field(default_factory=list)

    def record(self, stable_run: bool) -> None:
        if stable_run:
            self.stable = self.test
        else:
            self.unstable = self.test

    @property
    def estimate(self) -> Optional[float]:
        """Midpoint of the bracket, or the single known bound."""
        if self.stable is not None and self.unstable is not None:
            return 0.5 * (self.stable + self.unstable)
        return self.stable if self.stable is not None else self.unstable


def next_test_value(bracket: StabilityBracket, degree: int, config: StabilityConfig) -> float:
    """Courant number for the next trial given the current bracket."""
    if bracket.stable is None:
        if bracket.test / degree**1.5 > config.threshold:
            return bracket.test - config.decrement
        return bracket.test / config.divisor
    if bracket.unstable is None:
        return bracket.test + config.increment
    return 0.5 * (bracket.stable + bracket.unstable)


class CFLStabilitySearch:
    """
    Bisection-style search for the largest stable Courant number.

    Parameters
    ----------
    run_trial : callable
        ``run_trial(cfl) -> bool``: runs a full simulation, True if stable.
    config : StabilityConfig, optional
        Step sizes, threshold and iteration budget.
    """

    def __init__(self, run_trial: Callable[[float], bool],
                 config: Optional[StabilityConfig] = None):
        self.run_trial = run_trial
        self.config = config if config is not None else StabilityConfig()

    @classmethod
    def from_config(cls, config: SimulationConfig,
                    context: Optional[ParallelContext] = None) -> 'CFLStabilitySearch':
        """Trials are runs of ``config`` at the candidate CFL, without file output."""
        from amrwave.solvers.problem import LinearizedEulerProblem

        def run_trial(cfl: float) -> bool:
            trial_config = copy.deepcopy(config)
            trial_config.time.cfl = cfl
            trial_config.stability.enabled = True
            trial_config.output.enabled = False
            return LinearizedEulerProblem(trial_config, context).run().stable

        return cls(run_trial, config.stability)

    def search(self, initial_courant: float, degree: int,
               iteration_budget: Optional[int] = None) -> StabilityBracket:
        budget = iteration_budget if iteration_budget is not None else self.config.iterations
        scale = degree**1.5
        bracket = StabilityBracket(test=initial_courant)

        log_banner(f"CFL stability search: degree {degree}, {budget} iterations")
        for iteration in range(budget):
            cfl = bracket.test
            logger.info(f"Stability iteration {iteration + 1}/{budget}: "
                        f"cfl = {cfl:.5f} (cfl * degree^1.5 = {cfl * scale:.5f})")

            stable = bool(self.run_trial(cfl))
            bracket.trials.append(StabilityTrial(iteration, cfl, stable))
            bracket.record(stable)
            logger.info(f"  -> {'stable' if stable else 'unstable'}")

            bracket.test = next_test_value(bracket, degree, self.config)

        self._report(bracket, scale)
        return bracket

    @staticmethod
    def _report(bracket: StabilityBracket, scale: float) -> None:
        def fmt(value):
            return "n/a" if value is None else f"{value * scale:.5f}"

        log_banner("CFL stability search finished")
        logger.info(f"Unstable cfl * degree^1.5: {fmt(bracket.unstable)}")
        logger.info(f"Stable cfl * degree^1.5:   {fmt(bracket.stable)}")
        logger.info(f"Stability limit estimate:  {fmt(bracket.estimate)}")
