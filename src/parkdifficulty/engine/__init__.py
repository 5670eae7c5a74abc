"""Simulation and search engine for park difficulty calibration.

This module contains the core algorithms:
- simulator: Month-by-month economic simulation of a park
- spending: Spending options and the greedy monthly allocator
- switch_search: Local search for the best strategy switch month
- calibrator: Coarse/fine search over financial pressures
- outcome: Host adjustments derived from the best run

Usage:
    from parkdifficulty.engine import DifficultyCalibrator
    from parkdifficulty.models import ParkSnapshot, ScenarioSettings, SimOptions

    options = SimOptions()
    park = ParkSnapshot(park_size=4000, buyable_land=2000, guests=0)
    settings = ScenarioSettings.for_park(options, park)

    calibrator = DifficultyCalibrator(settings, park, options)
    outcome = calibrator.step(options.sim_months_per_tick)
    while outcome.is_pending:
        outcome = calibrator.step(options.sim_months_per_tick)

    if outcome.is_done:
        print(outcome.value.average_end_month_cash)
"""

from parkdifficulty.engine.calibrator import (
    CalibrationPhase,
    CalibrationResult,
    CalibrationState,
    DifficultyCalibrator,
    EvaluationRecord,
)
from parkdifficulty.engine.outcome import ScenarioOutcome, derive_scenario_outcome, format_activity_log
from parkdifficulty.engine.results import FailureReason, MonthBudget, StepOutcome, StepStatus
from parkdifficulty.engine.simulator import (
    EconomicSimulator,
    MonthSummary,
    NaturalGuestGeneration,
    SoftGuestCapCost,
    initial_state,
)
from parkdifficulty.engine.spending import (
    AdvertisingCampaign,
    AdvertisingOption,
    AllocationReport,
    IncreaseLoanOption,
    RepayLoanOption,
    RideBuildingOption,
    SpendingAllocator,
    SpendingOption,
    SpendingStrategy,
    rank_options,
)
from parkdifficulty.engine.switch_search import StrategySwitchSearch, SwitchPointResult

__all__ = [
    # Results
    "StepStatus",
    "StepOutcome",
    "FailureReason",
    "MonthBudget",
    # Simulator
    "EconomicSimulator",
    "MonthSummary",
    "NaturalGuestGeneration",
    "SoftGuestCapCost",
    "initial_state",
    # Spending
    "SpendingStrategy",
    "AdvertisingCampaign",
    "SpendingOption",
    "RideBuildingOption",
    "AdvertisingOption",
    "RepayLoanOption",
    "IncreaseLoanOption",
    "SpendingAllocator",
    "AllocationReport",
    "rank_options",
    # Searches
    "StrategySwitchSearch",
    "SwitchPointResult",
    "DifficultyCalibrator",
    "CalibrationPhase",
    "CalibrationState",
    "CalibrationResult",
    "EvaluationRecord",
    # Outcome
    "ScenarioOutcome",
    "derive_scenario_outcome",
    "format_activity_log",
]
