"""
Tests for the Courant number stability search.

Tests cover:
1. Bracket updates and the next-value rule (decrement, division,
   increment, bisection)
2. Scripted search sequences and the iteration budget
3. A short end-to-end search with real runs
"""

import pytest

from amrwave.config import StabilityConfig
from amrwave.solvers.factory import create_stability_search
from amrwave.solvers.stability import (
    CFLStabilitySearch,
    StabilityBracket,
    next_test_value,
)


class ScriptedTrials:
    """Returns pre-set verdicts and remembers the tested Courant numbers."""

    def __init__(self, verdicts):
        self.verdicts = list(verdicts)
        self.tested = []

    def __call__(self, cfl):
        self.tested.append(cfl)
        return self.verdicts[len(self.tested) - 1]


class TestNextValue:

    def test_decrement_while_above_threshold(self):
        bracket = StabilityBracket(unstable=0.8, test=0.8)
        assert next_test_value(bracket, 1, StabilityConfig()) == pytest.approx(0.7)

    def test_divide_below_threshold(self):
        # 0.3 / 2**1.5 < 0.15
        bracket = StabilityBracket(unstable=0.3, test=0.3)
        assert next_test_value(bracket, 2, StabilityConfig()) == pytest.approx(0.1)

    def test_increment_without_unstable_bound(self):
        bracket = StabilityBracket(stable=0.2, test=0.2)
        assert next_test_value(bracket, 3, StabilityConfig()) == pytest.approx(0.25)

    def test_bisect(self):
        bracket = StabilityBracket(stable=0.2, unstable=0.4, test=0.4)
        assert next_test_value(bracket, 1, StabilityConfig()) == pytest.approx(0.3)

    def test_estimate(self):
        assert StabilityBracket().estimate is None
        assert StabilityBracket(stable=0.2).estimate == 0.2
        assert StabilityBracket(unstable=0.6).estimate == 0.6
        assert StabilityBracket(stable=0.2, unstable=0.6).estimate == pytest.approx(0.4)


class TestSearch:

    def test_scripted_sequence(self):
        trials = ScriptedTrials([False, False, True, True, False, True])
        bracket = CFLStabilitySearch(trials).search(0.5, degree=1, iteration_budget=6)

        assert trials.tested == pytest.approx([0.5, 0.4, 0.3, 0.35, 0.375, 0.3625])
        assert bracket.stable == pytest.approx(0.3625)
        assert bracket.unstable == pytest.approx(0.375)
        assert bracket.estimate == pytest.approx(0.36875)
        assert [t.stable for t in bracket.trials] == [False, False, True, True, False, True]

    def test_always_stable_steps_up(self):
        trials = ScriptedTrials([True] * 4)
        bracket = CFLStabilitySearch(trials).search(0.2, degree=2, iteration_budget=4)
        assert trials.tested == pytest.approx([0.2, 0.25, 0.3, 0.35])
        assert bracket.unstable is None
        assert bracket.stable == pytest.approx(0.35)

    def test_immediately_unstable(self):
        trials = ScriptedTrials([False] * 3)
        bracket = CFLStabilitySearch(trials).search(0.3, degree=2, iteration_budget=3)
        assert trials.tested == pytest.approx([0.3, 0.1, 0.1 / 3])
        assert bracket.stable is None
        assert bracket.estimate == pytest.approx(0.1 / 3)

    @pytest.mark.parametrize("limit, initial, degree", [(0.37, 1.0, 1), (0.01, 0.5, 2)])
    def test_full_budget_brackets_limit(self, limit, initial, degree):
        search = CFLStabilitySearch(lambda cfl: cfl <= limit)
        bracket = search.search(initial, degree=degree, iteration_budget=12)

        assert len(bracket.trials) == 12
        assert bracket.stable is not None and bracket.stable > 0
        assert bracket.unstable is not None and bracket.unstable <= initial
        assert bracket.stable <= limit < bracket.unstable
        assert all(t.cfl > 0 for t in bracket.trials)

    def test_default_budget(self):
        config = StabilityConfig(iterations=5)
        trials = ScriptedTrials([True] * 5)
        bracket = CFLStabilitySearch(trials, config).search(0.1, degree=1)
        assert len(bracket.trials) == 5
        assert [t.iteration for t in bracket.trials] == [0, 1, 2, 3, 4]


class TestEndToEnd:

    def test_small_search(self, small_config):
        small_config.mesh.n_adaptive_refinements = 0
        small_config.time.final_time = 0.05
        small_config.time.output_interval = 0.025
        small_config.stability.iterations = 2
        small_config.output.enabled = True  # Trials must switch it off

        search = create_stability_search(small_config)
        bracket = search.search(0.2, degree=1)

        assert len(bracket.trials) == 2
        assert all(t.stable for t in bracket.trials)
        assert bracket.stable == pytest.approx(0.25)
        # The caller's configuration is not modified by the trials
        assert small_config.time.cfl == 0.2
        assert small_config.output.enabled
