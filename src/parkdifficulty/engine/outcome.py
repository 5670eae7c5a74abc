"""Host adjustments derived from a finished calibration.

The best simulated run tells the host how much land the scenario needs to
sell, how much playable area can be removed, and what guest target is
achievable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from parkdifficulty.engine.calibrator import CalibrationResult
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import ObjectiveType, ScenarioSettings
from parkdifficulty.parameters import format_month

# Guest objectives are rounded down to a multiple of this
OBJECTIVE_GUEST_ROUNDING = 50


@dataclass
class ScenarioOutcome:
    """Changes to hand back to the host.

    Attributes:
        unowned_tiles_to_purchasable: Unowned tiles to put up for sale (None = no change)
        ownable_tiles_to_make_unbuyable: Playable tiles to remove (None = no change)
        objective_quantity: Guest target for guest objectives (None = no change)
        activity_log: Month-by-month description of the best run
    """

    unowned_tiles_to_purchasable: Optional[int] = None
    ownable_tiles_to_make_unbuyable: Optional[int] = None
    objective_quantity: Optional[int] = None
    activity_log: list[str] = field(default_factory=list)

    def apply_to(self, settings: ScenarioSettings) -> None:
        """Write the adjustments into the scenario settings."""
        if self.unowned_tiles_to_purchasable is not None:
            settings.num_unowned_tiles_to_purchasable = self.unowned_tiles_to_purchasable
        if self.ownable_tiles_to_make_unbuyable is not None:
            settings.num_ownable_tiles_to_make_unbuyable = self.ownable_tiles_to_make_unbuyable
        if self.objective_quantity is not None:
            settings.objective_quantity = self.objective_quantity


def format_activity_log(months: list[list[str]]) -> list[str]:
    """Flatten per-month activity into lines with a month heading each."""
    lines: list[str] = []
    for index, month_lines in enumerate(months):
        lines.append(f"== {format_month(index)} ==")
        lines.extend(f"  {line}" for line in month_lines)
    return lines


def derive_scenario_outcome(
    settings: ScenarioSettings,
    park: ParkSnapshot,
    options: SimOptions,
    result: CalibrationResult,
) -> ScenarioOutcome:
    """Work out the host adjustments for the best calibrated run.

    Args:
        settings: Calibrated scenario settings
        park: Map analysis results
        options: Tuning options (shrink_space enables playable area removal)
        result: Calibration result holding the best run

    Returns:
        ScenarioOutcome with the adjustments
    """
    best = result.state
    outcome = ScenarioOutcome(activity_log=format_activity_log(best.activity_log))

    already_for_sale = park.buyable_land + park.buyable_rights + settings.num_owned_tiles_to_buyable
    unowned_needed = best.total_land_bought - already_for_sale
    if unowned_needed > 0:
        outcome.unowned_tiles_to_purchasable = math.ceil(unowned_needed)

    if options.shrink_space:
        excess = park.ownable_tiles - best.total_land_usage
        if excess > 0:
            outcome.ownable_tiles_to_make_unbuyable = math.floor(excess)

    if settings.objective_type == ObjectiveType.GUESTS_AND_RATING:
        outcome.objective_quantity = OBJECTIVE_GUEST_ROUNDING * (best.guests_in_park // OBJECTIVE_GUEST_ROUNDING)

    return outcome
