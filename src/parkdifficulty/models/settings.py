"""Scenario settings and financial pressures.

ScenarioSettings is the one mutable configuration value of a calibration run.
It is passed explicitly to every simulator and search, and the calibrator
adjusts its financial pressures in place. Callers comparing alternatives
snapshot the vector with pressure_vector() and restore it with
load_pressure_vector().

Pressure step convention:
    Applying a positive number of steps makes the scenario harder. Pressures
    where a larger value is easier (guest cash, initial cash) therefore have a
    negative step.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.parameters import (
    INITIAL_CASH_HEADROOM,
    INITIAL_CASH_MINIMUM,
    LOAN_INCREMENT,
    scenario_months,
)


class FinancialPressure(str, Enum):
    """Difficulty knobs the calibrator may turn.

    Inherits from str for proper JSON serialization.
    """

    GUEST_CASH = "guestcash"
    LOAN_INTEREST = "loaninterest"
    LAND_COST = "landcost"
    FORCE_BUY_LAND = "forcebuyland"
    INITIAL_CASH = "initialcash"
    INITIAL_DEBT = "initialdebt"


class ObjectiveType(str, Enum):
    """Scenario objectives the simulation knows how to score."""

    GUESTS_AND_RATING = "guestsAndRating"
    REPAY_LOAN_AND_PARK_VALUE = "repayLoanAndParkValue"


class ParkFlag(str, Enum):
    """Scenario restriction flags."""

    DIFFICULT_GUEST_GENERATION = "difficultGuestGeneration"
    DIFFICULT_PARK_RATING = "difficultParkRating"
    FORBID_HIGH_CONSTRUCTION = "forbidHighConstruction"
    FORBID_MARKETING_CAMPAIGNS = "forbidMarketingCampaigns"
    FORBID_TREE_REMOVAL = "forbidTreeRemoval"
    FORBID_LANDSCAPE_CHANGES = "forbidLandscapeChanges"
    PREFER_LESS_INTENSE_RIDES = "preferLessIntenseRides"
    PREFER_MORE_INTENSE_RIDES = "preferMoreIntenseRides"


class PressureBounds(BaseModel):
    """Allowed range and step for one financial pressure.

    Attributes:
        minimum: Lowest allowed value (None = unbounded)
        maximum: Highest allowed value (None = unbounded)
        step: Value change per step; positive steps make the scenario harder
        weight: Relative chance of being picked for adjustment
    """

    minimum: float | None = None
    maximum: float | None = None
    step: float
    weight: float = Field(default=1.0, gt=0)

    @field_validator("step")
    @classmethod
    def step_nonzero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("Pressure step cannot be zero")
        return v

    def clamp(self, value: float) -> float:
        """Clamp a value into [minimum, maximum]."""
        if self.maximum is not None:
            value = min(self.maximum, value)
        if self.minimum is not None:
            value = max(self.minimum, value)
        return value

    def contains(self, value: float) -> bool:
        return self.clamp(value) == value


def build_pressure_bounds(
    options: SimOptions, park: ParkSnapshot
) -> dict[FinancialPressure, PressureBounds]:
    """Build the bounds for every pressure from options and map analysis.

    The forced land purchase maximum is only known once the map has been
    analysed, and the initial cash maximum depends on the configured
    starting cash.

    Args:
        options: Tuning options
        park: Map analysis results

    Returns:
        Mapping of every FinancialPressure to its bounds
    """
    return {
        FinancialPressure.GUEST_CASH: PressureBounds(minimum=150, maximum=1500, step=-1),
        FinancialPressure.LOAN_INTEREST: PressureBounds(
            minimum=options.financial_difficulty_min_interest_rate, maximum=150, step=0.1
        ),
        # Very high land prices force building only on starting land
        FinancialPressure.LAND_COST: PressureBounds(minimum=100, maximum=1500, step=1),
        FinancialPressure.FORCE_BUY_LAND: PressureBounds(
            minimum=0,
            maximum=park.max_owned_to_purchasable_tiles,
            step=max(1, park.park_size // 1000),
        ),
        FinancialPressure.INITIAL_CASH: PressureBounds(
            minimum=INITIAL_CASH_MINIMUM,
            maximum=options.starting_cash + INITIAL_CASH_HEADROOM,
            step=-5000,
        ),
        FinancialPressure.INITIAL_DEBT: PressureBounds(minimum=0, maximum=None, step=LOAN_INCREMENT),
    }


class ScenarioSettings(BaseModel):
    """Settings of the scenario being generated.

    Attributes:
        scenario_length: Length in years
        pay_per_ride: True for pay-per-ride, False for pay-for-entry
        objective_type: What the player must achieve
        flags: Active restriction flags
        financial_pressures: Pressures the calibrator may adjust
        cash_machine_month: Month the cash machine becomes available (None = never)
        land_price: Price per tile of land or construction rights
        guest_initial_cash: Cash new guests arrive with
        loan_interest: Loan interest rate
        initial_loan: Loan at scenario start, before initial debt
        initial_debt: Extra debt that cannot be repaid early
        max_loan: Maximum loan, before initial debt
        initial_cash: Cash at scenario start
        num_owned_tiles_to_buyable: Owned tiles turned into purchasable land
        num_unowned_tiles_to_purchasable: Unowned tiles made purchasable
        num_ownable_tiles_to_make_unbuyable: Tiles removed from the playable area
        objective_quantity: Guest target for the guest objective
        pressure_bounds: Per-pressure bounds
    """

    scenario_length: int = Field(default=3, ge=1)
    pay_per_ride: bool = True
    objective_type: ObjectiveType = ObjectiveType.GUESTS_AND_RATING
    flags: set[ParkFlag] = Field(default_factory=set)
    financial_pressures: list[FinancialPressure] = Field(default_factory=list)
    cash_machine_month: int | None = Field(default=None, ge=0)
    land_price: float = Field(default=800, ge=0)
    guest_initial_cash: float = Field(default=150, ge=0)
    loan_interest: float = Field(default=5, ge=0)
    initial_loan: float = Field(default=200000, ge=0)
    initial_debt: float = Field(default=0, ge=0)
    max_loan: float = Field(default=200000, ge=0)
    initial_cash: float = Field(default=200000)
    num_owned_tiles_to_buyable: int = Field(default=0, ge=0)
    num_unowned_tiles_to_purchasable: int = Field(default=0, ge=0)
    num_ownable_tiles_to_make_unbuyable: int = Field(default=0, ge=0)
    objective_quantity: int = Field(default=0, ge=0)
    pressure_bounds: dict[FinancialPressure, PressureBounds] = Field(default_factory=dict)

    @classmethod
    def for_park(cls, options: SimOptions, park: ParkSnapshot, **values) -> "ScenarioSettings":
        """Create settings whose loan, cash and bounds follow the options.

        Any field can be overridden through keyword arguments. Pressure-backed
        fields are then clamped into the bounds, so the starting loan interest
        is raised to the configured minimum.
        """
        defaults = {
            "initial_cash": options.starting_cash,
            "initial_loan": options.starting_cash,
            "max_loan": options.starting_cash,
            "loan_interest": options.scenario_interest_rate,
            "guest_initial_cash": max(150, park.guest_initial_cash),
            "pressure_bounds": build_pressure_bounds(options, park),
        }
        defaults.update(values)
        settings = cls(**defaults)
        settings.clamp_pressures()
        return settings

    @property
    def total_months(self) -> int:
        return scenario_months(self.scenario_length)

    @property
    def guest_minimum_initial_cash(self) -> float:
        """Cash the poorest arriving guest carries."""
        return self.guest_initial_cash - 100

    def has_flag(self, flag: ParkFlag) -> bool:
        return flag in self.flags

    def bounds_for(self, pressure: FinancialPressure) -> PressureBounds:
        """Bounds for a pressure.

        Raises:
            KeyError: If no bounds were configured for the pressure
        """
        if pressure not in self.pressure_bounds:
            raise KeyError(f"No bounds configured for pressure {pressure.value}")
        return self.pressure_bounds[pressure]

    def pressure_vector(self) -> dict[FinancialPressure, float]:
        """Snapshot of every pressure's current value."""
        return {
            FinancialPressure.LAND_COST: self.land_price,
            FinancialPressure.FORCE_BUY_LAND: self.num_owned_tiles_to_buyable,
            FinancialPressure.GUEST_CASH: self.guest_initial_cash,
            FinancialPressure.LOAN_INTEREST: self.loan_interest,
            FinancialPressure.INITIAL_CASH: self.initial_cash,
            FinancialPressure.INITIAL_DEBT: self.initial_debt,
        }

    def get_pressure(self, pressure: FinancialPressure) -> float:
        return self.pressure_vector()[pressure]

    def set_pressure(self, pressure: FinancialPressure, value: float) -> None:
        """Set the setting behind a pressure, clamped to its bounds."""
        if pressure in self.pressure_bounds:
            value = self.pressure_bounds[pressure].clamp(value)
        if pressure == FinancialPressure.LAND_COST:
            self.land_price = value
        elif pressure == FinancialPressure.GUEST_CASH:
            self.guest_initial_cash = value
        elif pressure == FinancialPressure.LOAN_INTEREST:
            # Repeated 0.1 steps otherwise accumulate float noise
            self.loan_interest = round(value, 6)
        elif pressure == FinancialPressure.INITIAL_CASH:
            self.initial_cash = value
        elif pressure == FinancialPressure.FORCE_BUY_LAND:
            self.num_owned_tiles_to_buyable = int(value)
        elif pressure == FinancialPressure.INITIAL_DEBT:
            self.initial_debt = LOAN_INCREMENT * round(value / LOAN_INCREMENT)

    def adjust_pressure(self, pressure: FinancialPressure, amount: float) -> None:
        """Add an amount to a pressure's current value."""
        self.set_pressure(pressure, self.get_pressure(pressure) + amount)

    def clamp_pressures(self) -> None:
        """Bring every pressure-backed field inside its bounds."""
        for pressure in FinancialPressure:
            self.set_pressure(pressure, self.get_pressure(pressure))

    def load_pressure_vector(self, vector: dict[FinancialPressure, float]) -> None:
        """Restore a snapshot taken with pressure_vector()."""
        for pressure, value in vector.items():
            self.set_pressure(FinancialPressure(pressure), value)
