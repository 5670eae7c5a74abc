"""Local search for the best month to switch from profit to guestcount.

The simulated player always starts out making money and switches to growing
the guest count at some point. Each candidate switch month is a full
simulated run; the search walks the switch axis assuming one turning point.

Search Rules:
- Repay-loan objectives are pure profit throughout: only the last point runs
- Otherwise evaluate the trial point and both neighbours, and move to a
  strictly better neighbour until none is better
- An infeasible trial point steps backwards, wrapping from 0 to the end; the
  search fails only when it comes back round to where it started

Runs are incremental. step() spends months from a shared MonthBudget and
keeps partial runs keyed by switch month, so the search resumes exactly
where it stopped on the next call.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from parkdifficulty.engine.results import FailureReason, MonthBudget, StepOutcome
from parkdifficulty.engine.simulator import EconomicSimulator
from parkdifficulty.engine.spending import SpendingStrategy
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import ObjectiveType, ScenarioSettings
from parkdifficulty.models.state import SimulationState
from parkdifficulty.parameters import SWITCH_SEARCH_START_FRACTION

logger = logging.getLogger(__name__)

# Spreads seeds of neighbouring switch points apart
SEED_STRIDE = 1000003


@dataclass(frozen=True)
class SwitchPointResult:
    """Outcome of a complete run with a fixed switch month.

    Attributes:
        switch_point: First month played with the guestcount strategy
        state: Terminal simulation state, None if the run was infeasible
    """

    switch_point: int
    state: Optional[SimulationState] = None

    @property
    def feasible(self) -> bool:
        return self.state is not None

    @property
    def objective_metric(self) -> float:
        if self.state is None:
            raise ValueError(f"Switch point {self.switch_point} is infeasible")
        return self.state.objective_metric


def strategy_for_month(month: int, switch_point: int) -> SpendingStrategy:
    return SpendingStrategy.PROFIT if month < switch_point else SpendingStrategy.GUESTCOUNT


class StrategySwitchSearch:
    """Finds the switch month giving the best objective metric.

    Usage:
        search = StrategySwitchSearch(settings, park, options, seed=7)
        budget = MonthBudget(32)
        outcome = search.step(budget)
        # call step() with fresh budgets while outcome.is_pending
    """

    def __init__(
        self,
        settings: ScenarioSettings,
        park: ParkSnapshot,
        options: SimOptions,
        seed: int = 0,
        start_point: Optional[int] = None,
    ):
        self.settings = settings
        self.park = park
        self.options = options
        self.seed = seed
        self.max_point = settings.total_months
        if start_point is None:
            start_point = int(self.max_point * SWITCH_SEARCH_START_FRACTION)
        if not 0 <= start_point <= self.max_point:
            raise ValueError(f"Start point {start_point} outside [0, {self.max_point}]")
        self.start_point = start_point
        self.trial_point = start_point
        self.results: dict[int, SwitchPointResult] = {}
        self._in_progress: dict[int, EconomicSimulator] = {}
        self._outcome: Optional[StepOutcome[SwitchPointResult]] = None

    def _new_simulator(self, switch_point: int) -> EconomicSimulator:
        rng = random.Random(self.seed * SEED_STRIDE + switch_point)
        return EconomicSimulator(self.settings, self.park, self.options, rng=rng)

    def run_point(self, switch_point: int, budget: MonthBudget) -> Optional[SwitchPointResult]:
        """Advance the run for one switch point.

        Returns:
            The finished result, or None if the budget ran out first
        """
        if switch_point in self.results:
            return self.results[switch_point]

        sim = self._in_progress.get(switch_point)
        if sim is None:
            sim = self._new_simulator(switch_point)
            self._in_progress[switch_point] = sim

        viable = True
        while not sim.state.is_finished:
            if budget.exhausted:
                return None
            sim.update_month(strategy_for_month(sim.state.months_completed, switch_point))
            budget.consume(1)
            if not sim.is_viable():
                viable = False
                break

        # The loan must actually be paid off
        if (
            viable
            and self.settings.objective_type == ObjectiveType.REPAY_LOAN_AND_PARK_VALUE
            and sim.state.objective_metric < 0
        ):
            viable = False

        del self._in_progress[switch_point]
        result = SwitchPointResult(switch_point, sim.state if viable else None)
        self.results[switch_point] = result
        if viable:
            logger.debug(
                f"Switch point {switch_point}: metric {sim.state.objective_metric:.0f}, "
                f"average cash {sim.state.average_end_month_cash:.0f}"
            )
        else:
            logger.debug(f"Switch point {switch_point}: infeasible after month {sim.state.months_completed}")
        return result

    def step(self, budget: MonthBudget) -> StepOutcome[SwitchPointResult]:
        """Continue the search within the given budget.

        Returns:
            PENDING if the budget ran out, DONE with the best switch point's
            result, or FAILED(INFEASIBLE) if no switch point is viable
        """
        if self._outcome is not None:
            return self._outcome

        if self.settings.objective_type == ObjectiveType.REPAY_LOAN_AND_PARK_VALUE:
            result = self.run_point(self.max_point, budget)
            if result is None:
                return StepOutcome.pending()
            return self._finish(result)

        while True:
            current = self.run_point(self.trial_point, budget)
            if current is None:
                return StepOutcome.pending()

            if not current.feasible:
                self.trial_point -= 1
                if self.trial_point < 0:
                    self.trial_point = self.max_point
                if self.trial_point == self.start_point:
                    return self._finish(None)
                continue

            neighbours = []
            if self.trial_point < self.max_point:
                neighbours.append(self.trial_point + 1)
            if self.trial_point > 0:
                neighbours.append(self.trial_point - 1)

            best = current
            for point in neighbours:
                result = self.run_point(point, budget)
                if result is None:
                    return StepOutcome.pending()
                if result.feasible and result.objective_metric > best.objective_metric:
                    best = result

            if best.switch_point == self.trial_point:
                return self._finish(best)
            logger.debug(
                f"Better switch point {best.switch_point}: {best.objective_metric:.0f} "
                f"vs {current.objective_metric:.0f}"
            )
            self.trial_point = best.switch_point

    def _finish(self, result: Optional[SwitchPointResult]) -> StepOutcome[SwitchPointResult]:
        if result is None or not result.feasible:
            self._outcome = StepOutcome.failed(FailureReason.INFEASIBLE)
        else:
            self._outcome = StepOutcome.done(result)
        return self._outcome
