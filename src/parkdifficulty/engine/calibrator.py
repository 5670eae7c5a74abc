"""Two-phase search over financial pressures toward a target average cash.

The calibrator repeatedly makes the scenario a little harder, runs a
StrategySwitchSearch under the new settings, and keeps the change if the best
run is still viable and its average end-of-month cash has not fallen below
the target. Changes that go too far are reverted and that pressure is
exhausted for the round.

Phases:
1. COARSE - Steps of 128 pressure steps, halving down to 64
2. FINE - Steps of 16, halving down to 1, back to 16 after every success
3. COMPLETE - The best pressure vector is loaded into the settings

If no viable vector has been found yet, pressures are eased instead. When
nothing can be eased any further the scenario is unplayable.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from parkdifficulty.engine.results import FailureReason, MonthBudget, StepOutcome
from parkdifficulty.engine.switch_search import StrategySwitchSearch, SwitchPointResult
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import FinancialPressure, ScenarioSettings, build_pressure_bounds
from parkdifficulty.models.state import SimulationState
from parkdifficulty.parameters import (
    COARSE_START_STEP,
    COARSE_STEP_FLOOR,
    EASING_STEP,
    FINE_START_STEP,
    FINE_STEP_FLOOR,
    LAND_COST_MIN_TILES_BOUGHT,
)

if TYPE_CHECKING:
    from parkdifficulty.cli.trace import CalibrationTraceLogger

logger = logging.getLogger(__name__)

# Absorbs float noise when counting steps to a bound (0.1 interest steps)
STEP_COUNT_TOLERANCE = 1e-9


class CalibrationPhase(str, Enum):
    """Phase of the calibration search."""

    COARSE = "coarse"
    FINE = "fine"
    COMPLETE = "complete"


PHASE_STEP_FLOOR = {
    CalibrationPhase.COARSE: COARSE_STEP_FLOOR,
    CalibrationPhase.FINE: FINE_STEP_FLOOR,
}


@dataclass
class CalibrationState:
    """Everything the calibrator needs to resume between ticks.

    Attributes:
        phase: Current phase
        step_size: Pressure steps applied per adjustment
        exhausted: Pressures excluded until the next success or step halving
        best_vector: Pressure vector of the best viable run
        best_average_cash: Average end-of-month cash of the best run
        best_state: Terminal state of the best run
        best_switch_point: Switch month of the best run
        last_pressure: Pressure changed by the last adjustment
        last_delta: Value change the last adjustment actually applied
        evaluations: Pressure vectors evaluated so far
    """

    phase: CalibrationPhase = CalibrationPhase.COARSE
    step_size: int = COARSE_START_STEP
    exhausted: set[FinancialPressure] = field(default_factory=set)
    best_vector: Optional[dict[FinancialPressure, float]] = None
    best_average_cash: Optional[float] = None
    best_state: Optional[SimulationState] = None
    best_switch_point: Optional[int] = None
    last_pressure: Optional[FinancialPressure] = None
    last_delta: float = 0.0
    evaluations: int = 0

    @property
    def has_best(self) -> bool:
        return self.best_vector is not None


@dataclass
class EvaluationRecord:
    """One evaluated pressure vector."""

    evaluation: int
    phase: str
    pressures: dict[str, float]
    viable: bool
    average_end_month_cash: Optional[float]
    switch_point: Optional[int]
    accepted: bool
    step_size: int


@dataclass(frozen=True)
class CalibrationResult:
    """Final calibration output.

    Attributes:
        pressures: Best pressure vector (also loaded into the settings)
        average_end_month_cash: Average end-of-month cash of the best run
        switch_point: Strategy switch month of the best run
        state: Terminal simulation state of the best run
        evaluations: Number of pressure vectors evaluated
    """

    pressures: dict[FinancialPressure, float]
    average_end_month_cash: float
    switch_point: int
    state: SimulationState
    evaluations: int


class DifficultyCalibrator:
    """Tunes financial pressures until simulated cash matches a target.

    The settings object is modified in place while searching and holds the
    best vector once the calibrator is DONE.

    Usage:
        calibrator = DifficultyCalibrator(settings, park, options, seed=1)
        outcome = calibrator.step(options.sim_months_per_tick)
        while outcome.is_pending:
            outcome = calibrator.step(options.sim_months_per_tick)
    """

    def __init__(
        self,
        settings: ScenarioSettings,
        park: ParkSnapshot,
        options: SimOptions,
        target: Optional[float] = None,
        seed: int = 0,
        trace: Optional["CalibrationTraceLogger"] = None,
    ):
        self.settings = settings
        self.park = park
        self.options = options
        self.target = options.cash_tightness if target is None else target
        self.seed = seed
        self.rng = random.Random(seed)
        self.trace = trace
        self.state = CalibrationState()
        self.search: Optional[StrategySwitchSearch] = None
        self._outcome: Optional[StepOutcome[CalibrationResult]] = None

        for pressure, bounds in build_pressure_bounds(options, park).items():
            settings.pressure_bounds.setdefault(pressure, bounds)
        settings.clamp_pressures()

    # -------------------------------------------------------------------------
    # Driving loop
    # -------------------------------------------------------------------------

    def step(self, months: Union[int, MonthBudget]) -> StepOutcome[CalibrationResult]:
        """Continue calibrating for up to the given number of simulated months.

        Args:
            months: Month budget for this tick, or a shared MonthBudget

        Returns:
            PENDING while more ticks are needed, DONE with the result, or
            FAILED(UNPLAYABLE)
        """
        if self._outcome is not None:
            return self._outcome
        budget = months if isinstance(months, MonthBudget) else MonthBudget(months)

        while True:
            if self.search is None:
                self.search = StrategySwitchSearch(self.settings, self.park, self.options, seed=self.seed)
            outcome = self.search.step(budget)
            if outcome.is_pending:
                return StepOutcome.pending()
            self.search = None

            finished = self._handle_result(outcome.value if outcome.is_done else None)
            if finished is not None:
                self._outcome = finished
                return finished

    def _handle_result(self, result: Optional[SwitchPointResult]) -> Optional[StepOutcome[CalibrationResult]]:
        """Judge one evaluated vector and choose the next adjustment.

        Returns:
            None if another vector is ready to evaluate, otherwise the final outcome
        """
        state = self.state
        state.evaluations += 1
        ok = result is not None
        accepted = False

        if result is not None:
            average = result.state.average_end_month_cash
            if not state.has_best:
                accepted = True
            else:
                best_diff = abs(state.best_average_cash - self.target)
                diff = abs(average - self.target)
                if diff <= best_diff and average >= self.target:
                    accepted = True
                elif average < self.target:
                    ok = False
            if accepted:
                state.best_vector = self.settings.pressure_vector()
                state.best_average_cash = average
                state.best_state = result.state
                state.best_switch_point = result.switch_point
                logger.info(
                    f"New best: average cash {average:.0f} (target {self.target:.0f}), "
                    f"switch point {result.switch_point}"
                )

        self._record(result, accepted)

        if ok:
            state.exhausted.clear()
            if state.phase == CalibrationPhase.FINE:
                state.step_size = FINE_START_STEP

        if not state.has_best and not ok:
            if self._adjust(EASING_STEP):
                return None
            logger.info("No viable settings found and nothing left to ease")
            return StepOutcome.failed(FailureReason.UNPLAYABLE)

        if not ok and state.last_pressure is not None:
            self.settings.adjust_pressure(state.last_pressure, -state.last_delta)
            logger.info(
                f"Went too far, reverting {state.last_pressure.value} to "
                f"{self.settings.get_pressure(state.last_pressure)}"
            )
            state.exhausted.add(state.last_pressure)
            state.last_pressure = None

        return self._advance()

    def _advance(self) -> Optional[StepOutcome[CalibrationResult]]:
        """Adjust a pressure, halving the step and changing phase as needed."""
        state = self.state
        while True:
            if self._adjust_at_current_granularity():
                return None
            if state.phase == CalibrationPhase.COARSE:
                state.phase = CalibrationPhase.FINE
                state.step_size = FINE_START_STEP
                state.exhausted.clear()
                logger.info("Coarse phase complete, starting fine phase")
                continue
            return self._complete()

    def _adjust_at_current_granularity(self) -> bool:
        state = self.state
        floor = PHASE_STEP_FLOOR[state.phase]
        while True:
            if self._adjust(state.step_size):
                return True
            if state.step_size <= floor:
                return False
            state.step_size = max(1, state.step_size // 2)
            state.exhausted.clear()
            logger.debug(f"Nothing adjustable, step size now {state.step_size}")

    def _complete(self) -> StepOutcome[CalibrationResult]:
        state = self.state
        if not state.has_best:
            return StepOutcome.failed(FailureReason.UNPLAYABLE)
        self.settings.load_pressure_vector(state.best_vector)
        state.phase = CalibrationPhase.COMPLETE
        logger.info(
            f"Calibration complete after {state.evaluations} evaluations: "
            f"average cash {state.best_average_cash:.0f}"
        )
        return StepOutcome.done(
            CalibrationResult(
                pressures=dict(state.best_vector),
                average_end_month_cash=state.best_average_cash,
                switch_point=state.best_switch_point,
                state=state.best_state,
                evaluations=state.evaluations,
            )
        )

    # -------------------------------------------------------------------------
    # Pressure adjustment
    # -------------------------------------------------------------------------

    def can_adjust(self, pressure: FinancialPressure, amount: int) -> int:
        """Steps of a pressure that can actually be applied.

        Args:
            pressure: Pressure to adjust
            amount: Requested steps (positive is harder)

        Returns:
            Signed number of steps possible, 0 if the pressure is not eligible
        """
        state = self.state
        if pressure in state.exhausted:
            return 0
        if pressure == FinancialPressure.INITIAL_CASH and amount < 0 and state.has_best:
            return 0
        if pressure == FinancialPressure.LAND_COST and (
            state.best_state is None or state.best_state.total_land_bought < LAND_COST_MIN_TILES_BOUGHT
        ):
            return 0

        bounds = self.settings.bounds_for(pressure)
        current = self.settings.get_pressure(pressure)
        proposed = current + amount * bounds.step
        sign = 1 if amount >= 0 else -1
        if bounds.maximum is not None and proposed > bounds.maximum:
            return math.floor((bounds.maximum - current) / abs(bounds.step) + STEP_COUNT_TOLERANCE) * sign
        if bounds.minimum is not None and proposed < bounds.minimum:
            return math.floor((current - bounds.minimum) / abs(bounds.step) + STEP_COUNT_TOLERANCE) * sign
        return amount

    def _adjust(self, amount: int) -> bool:
        """Apply amount steps to a randomly chosen eligible pressure.

        Returns:
            True if a pressure was changed
        """
        state = self.state
        while True:
            candidates = [
                pressure
                for pressure in self.settings.financial_pressures
                if self.can_adjust(pressure, amount) != 0
            ]
            if (
                not candidates
                and not state.has_best
                and self.can_adjust(FinancialPressure.INITIAL_CASH, amount) != 0
            ):
                # Last resort for a scenario that is not yet playable
                candidates = [FinancialPressure.INITIAL_CASH]
            if not candidates:
                return False

            weights = [self.settings.bounds_for(pressure).weight for pressure in candidates]
            pressure = self.rng.choices(candidates, weights=weights)[0]
            steps = self.can_adjust(pressure, amount)
            before = self.settings.get_pressure(pressure)
            self.settings.adjust_pressure(pressure, steps * self.settings.bounds_for(pressure).step)
            delta = self.settings.get_pressure(pressure) - before
            if delta == 0:
                # Rounding swallowed the change
                state.exhausted.add(pressure)
                continue

            state.last_pressure = pressure
            state.last_delta = delta
            logger.info(
                f"Adjust {pressure.value} by {delta:+g} ({state.phase.value}, step {amount}), "
                f"now {self.settings.get_pressure(pressure):g}"
            )
            return True

    def _record(self, result: Optional[SwitchPointResult], accepted: bool) -> None:
        if self.trace is None:
            return
        self.trace.record_evaluation(
            EvaluationRecord(
                evaluation=self.state.evaluations,
                phase=self.state.phase.value,
                pressures={pressure.value: value for pressure, value in self.settings.pressure_vector().items()},
                viable=result is not None,
                average_end_month_cash=result.state.average_end_month_cash if result is not None else None,
                switch_point=result.switch_point if result is not None else None,
                accepted=accepted,
                step_size=self.state.step_size,
            )
        )
