"""Tuning options for the economic simulation.

SimOptions is the config-option provider: a flat set of named numeric
constants the simulator treats as opaque lookups. Defaults match the values a
fresh profile starts with.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SimOptions(BaseModel):
    """Named numeric tuning constants.

    Attributes:
        guest_difficulty: Percentage scaling every guest generation source
        cash_tightness: Target average end-of-month cash for calibration
        starting_cash: Configured starting cash (also the starting and maximum loan)
        scenario_interest_rate: Base loan interest rate
        tiles_per_100_sgc: Land tiles needed per 100 soft guest cap
        tiles_per_100_sgc_hard_guest_gen: Same, above the difficult generation threshold
        financial_difficulty_min_interest_rate: Lower bound on loan interest when it is a pressure
        guest_umbrella_chance: Percentage of guests arriving with an umbrella
        sim_months_per_tick: Month budget handed to the calibrator per scheduling tick
        sim_guest_ride_income: Ride income per guest per month
        sim_guest_stall_income: Stall income per guest per month
        sim_cost_per_100_sgc: Ride cost per 100 soft guest cap
        sim_cost_per_100_sgc_hard_guest_gen: Ride cost per 100 cap above the threshold
        sim_park_entry_per_100_sgc: Sustainable entry fee per 100 soft guest cap
        sim_ride_upkeep_per_100_sgc: Monthly ride upkeep per 100 soft guest cap
        sim_staff_wages_per_100_sgc: Monthly staff wages per 100 soft guest cap
        sim_forbid_high_construction_land_usage: Land multiplier when building high is forbidden
        sim_guest_turnover_minimum: Monthly turnover percentage when retaining guests
        sim_guest_turnover_maximum: Monthly turnover percentage when churning guests
        sim_guest_broke_leave_probability: Percentage of broke guests leaving per month
        shrink_space: Remove land the best simulation never needed
    """

    model_config = ConfigDict(frozen=True)

    guest_difficulty: float = Field(default=50, ge=5, le=2000)
    cash_tightness: float = Field(default=350000, ge=0)
    starting_cash: float = Field(default=200000, ge=0)
    scenario_interest_rate: float = Field(default=5, ge=0, le=500)
    tiles_per_100_sgc: float = Field(default=170, ge=1)
    tiles_per_100_sgc_hard_guest_gen: float = Field(default=400, ge=1)
    financial_difficulty_min_interest_rate: float = Field(default=15, ge=0, le=200)
    guest_umbrella_chance: float = Field(default=5, ge=0, le=100)
    sim_months_per_tick: int = Field(default=32, ge=1)
    sim_guest_ride_income: float = Field(default=300, ge=1)
    sim_guest_stall_income: float = Field(default=12, ge=1)
    sim_cost_per_100_sgc: float = Field(default=25000, ge=1)
    sim_cost_per_100_sgc_hard_guest_gen: float = Field(default=140000, ge=1)
    sim_park_entry_per_100_sgc: float = Field(default=100, ge=1)
    sim_ride_upkeep_per_100_sgc: float = Field(default=300, ge=0)
    sim_staff_wages_per_100_sgc: float = Field(default=1200, ge=0)
    sim_forbid_high_construction_land_usage: float = Field(default=1.5, ge=0)
    sim_guest_turnover_minimum: float = Field(default=1.0, ge=0, le=100)
    sim_guest_turnover_maximum: float = Field(default=7, ge=0, le=100)
    sim_guest_broke_leave_probability: float = Field(default=30, ge=0, le=100)
    shrink_space: bool = False

    @property
    def guest_difficulty_factor(self) -> float:
        """Guest difficulty as a multiplier (50 -> 0.5)."""
        return self.guest_difficulty / 100

    def get(self, name: str) -> float | bool:
        """Look up an option by name.

        Raises:
            KeyError: If no option has that name
        """
        if name not in type(self).model_fields:
            raise KeyError(f"Unknown sim option: {name}")
        return getattr(self, name)
