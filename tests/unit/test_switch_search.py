"""Unit tests for parkdifficulty.engine.switch_search.

Tests cover:
- Hill climbing over switch points with scripted metrics
- Backward wraparound past infeasible points
- Repay-loan objectives only running the last point
- Incremental stepping against a month budget
"""

import pytest

from parkdifficulty.engine.results import FailureReason, MonthBudget, StepStatus
from parkdifficulty.engine.spending import SpendingStrategy
from parkdifficulty.engine.switch_search import StrategySwitchSearch, SwitchPointResult, strategy_for_month
from parkdifficulty.models.settings import ObjectiveType, ScenarioSettings
from parkdifficulty.models.state import SimulationState


class ScriptedSearch(StrategySwitchSearch):
    """Switch search whose runs finish instantly with a scripted metric."""

    def __init__(self, settings, park, options, metric, feasible=lambda point: True, **kwargs):
        super().__init__(settings, park, options, **kwargs)
        self.metric = metric
        self.is_feasible = feasible
        self.visited = []

    def run_point(self, switch_point, budget):
        if switch_point not in self.results:
            self.visited.append(switch_point)
            state = None
            if self.is_feasible(switch_point):
                state = SimulationState(objective_metric=self.metric(switch_point))
            self.results[switch_point] = SwitchPointResult(switch_point, state)
        return self.results[switch_point]


def run_to_completion(search, months=10000):
    outcome = search.step(MonthBudget(months))
    assert not outcome.is_pending
    return outcome


class TestStrategyForMonth:
    def test_switch(self):
        assert strategy_for_month(4, 5) == SpendingStrategy.PROFIT
        assert strategy_for_month(5, 5) == SpendingStrategy.GUESTCOUNT
        assert strategy_for_month(0, 0) == SpendingStrategy.GUESTCOUNT


class TestSwitchPointResult:
    def test_infeasible_has_no_metric(self):
        result = SwitchPointResult(3)
        assert not result.feasible
        with pytest.raises(ValueError):
            result.objective_metric


class TestHillClimb:
    """Tests for the local search over switch points."""

    def test_starts_halfway(self, settings, park, options):
        search = StrategySwitchSearch(settings, park, options)
        assert search.start_point == 12
        assert search.max_point == 24

    def test_invalid_start(self, settings, park, options):
        with pytest.raises(ValueError):
            StrategySwitchSearch(settings, park, options, start_point=25)

    def test_climbs_to_peak(self, settings, park, options):
        search = ScriptedSearch(settings, park, options, metric=lambda p: -((p - 10) ** 2))
        outcome = run_to_completion(search)
        assert outcome.is_done
        assert outcome.value.switch_point == 10

    def test_flat_metric_stays(self, settings, park, options):
        """Neighbours must be strictly better to move."""
        search = ScriptedSearch(settings, park, options, metric=lambda p: 100)
        outcome = run_to_completion(search)
        assert outcome.value.switch_point == 12
        assert sorted(search.visited) == [11, 12, 13]

    def test_peak_at_end(self, settings, park, options):
        search = ScriptedSearch(settings, park, options, metric=lambda p: p)
        assert run_to_completion(search).value.switch_point == 24

    def test_peak_at_start(self, settings, park, options):
        search = ScriptedSearch(settings, park, options, metric=lambda p: -p)
        assert run_to_completion(search).value.switch_point == 0

    def test_steps_back_past_infeasible(self, settings, park, options):
        search = ScriptedSearch(
            settings, park, options, metric=lambda p: -((p - 3) ** 2), feasible=lambda p: p <= 5
        )
        outcome = run_to_completion(search)
        assert outcome.value.switch_point == 3
        assert search.visited[:8] == [12, 11, 10, 9, 8, 7, 6, 5]

    def test_wraps_to_end(self, settings, park, options):
        search = ScriptedSearch(
            settings, park, options, metric=lambda p: p, feasible=lambda p: p >= 20, start_point=2
        )
        outcome = run_to_completion(search)
        assert outcome.value.switch_point == 24
        assert search.visited[:4] == [2, 1, 0, 24]

    def test_all_infeasible(self, settings, park, options):
        search = ScriptedSearch(settings, park, options, metric=lambda p: 0, feasible=lambda p: False)
        outcome = run_to_completion(search)
        assert outcome.status == StepStatus.FAILED
        assert outcome.reason == FailureReason.INFEASIBLE
        assert sorted(search.visited) == list(range(25))

    def test_outcome_is_cached(self, settings, park, options):
        search = ScriptedSearch(settings, park, options, metric=lambda p: p)
        outcome = run_to_completion(search)
        assert search.step(MonthBudget(0)) is outcome

    def test_repay_objective_runs_last_point_only(self, options, park):
        settings = ScenarioSettings.for_park(options, park, objective_type=ObjectiveType.REPAY_LOAN_AND_PARK_VALUE)
        search = ScriptedSearch(settings, park, options, metric=lambda p: 1000)
        outcome = run_to_completion(search)
        assert search.visited == [24]
        assert outcome.value.switch_point == 24


class TestIncrementalRuns:
    """Tests for real runs spread over several budgets."""

    def test_pending_when_budget_runs_out(self, settings, park, options):
        search = StrategySwitchSearch(settings, park, options, seed=3)
        budget = MonthBudget(1)
        assert search.step(budget).is_pending
        assert budget.used == 1
        assert search.results == {}

    def test_zero_budget(self, settings, park, options):
        search = StrategySwitchSearch(settings, park, options, seed=3)
        assert search.step(MonthBudget(0)).is_pending

    def test_resuming_matches_single_run(self, settings, park, options):
        """Splitting the work over many ticks gives the same answer."""
        whole = StrategySwitchSearch(settings, park, options, seed=3)
        whole_outcome = run_to_completion(whole)

        split = StrategySwitchSearch(settings, park, options, seed=3)
        ticks = 0
        outcome = split.step(MonthBudget(5))
        while outcome.is_pending:
            ticks += 1
            assert ticks < 1000
            outcome = split.step(MonthBudget(5))

        assert outcome.status == whole_outcome.status
        assert sorted(split.results) == sorted(whole.results)
        if outcome.is_done:
            assert outcome.value.switch_point == whole_outcome.value.switch_point
            assert outcome.value.state.model_dump() == whole_outcome.value.state.model_dump()

    def test_finished_run_is_complete(self, settings, park, options):
        search = StrategySwitchSearch(settings, park, options, seed=3)
        outcome = run_to_completion(search)
        if outcome.is_done:
            state = outcome.value.state
            assert state.months_completed == 24
            assert state.is_finished
            assert len(state.activity_log) == 24
