"""Unit tests for parkdifficulty.engine.outcome and parkdifficulty.config."""

import json

import pytest
from pydantic import ValidationError

from parkdifficulty.config import (
    CalibrationInput,
    get_log_level,
    get_months_per_tick,
    get_seed,
    load_calibration_input,
)
from parkdifficulty.engine.calibrator import CalibrationResult
from parkdifficulty.engine.outcome import derive_scenario_outcome, format_activity_log
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import FinancialPressure, ObjectiveType, ScenarioSettings
from parkdifficulty.models.state import SimulationState


@pytest.fixture
def outcome_park():
    return ParkSnapshot(park_size=3000, buyable_land=2000, buyable_rights=500)


def make_result(**state_values):
    state = SimulationState(**state_values)
    return CalibrationResult(
        pressures={FinancialPressure.GUEST_CASH: 350},
        average_end_month_cash=350000,
        switch_point=12,
        state=state,
        evaluations=1,
    )


class TestDeriveScenarioOutcome:
    """Tests for derive_scenario_outcome."""

    def test_unowned_land_needed(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(options, outcome_park, num_owned_tiles_to_buyable=100)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(total_land_bought=5000))
        assert outcome.unowned_tiles_to_purchasable == 2400

    def test_partial_tile_rounds_up(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(options, outcome_park)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(total_land_bought=2500.2))
        assert outcome.unowned_tiles_to_purchasable == 1

    def test_enough_land_for_sale(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(options, outcome_park)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(total_land_bought=2500))
        assert outcome.unowned_tiles_to_purchasable is None

    def test_shrink_space(self, outcome_park):
        options = SimOptions(shrink_space=True)
        settings = ScenarioSettings.for_park(options, outcome_park)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(total_land_usage=4000))
        assert outcome.ownable_tiles_to_make_unbuyable == 1500

    def test_no_shrink_by_default(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(options, outcome_park)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(total_land_usage=4000))
        assert outcome.ownable_tiles_to_make_unbuyable is None

    def test_guest_objective_rounded_down(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(options, outcome_park)
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(guests_in_park=1234))
        assert outcome.objective_quantity == 1200
        outcome.apply_to(settings)
        assert settings.objective_quantity == 1200

    def test_repay_objective_has_no_guest_target(self, outcome_park):
        options = SimOptions()
        settings = ScenarioSettings.for_park(
            options, outcome_park, objective_type=ObjectiveType.REPAY_LOAN_AND_PARK_VALUE
        )
        outcome = derive_scenario_outcome(settings, outcome_park, options, make_result(guests_in_park=1234))
        assert outcome.objective_quantity is None
        outcome.apply_to(settings)
        assert settings.objective_quantity == 0

    def test_activity_log(self):
        lines = format_activity_log([["a", "b"], ["c"]])
        assert lines == ["== March, Year 1 ==", "  a", "  b", "== April, Year 1 ==", "  c"]


class TestConfig:
    """Tests for environment configuration and input loading."""

    def test_months_per_tick_default(self, monkeypatch):
        monkeypatch.delenv("PARKDIFFICULTY_MONTHS_PER_TICK", raising=False)
        assert get_months_per_tick() == 32
        assert get_months_per_tick(SimOptions(sim_months_per_tick=8)) == 8

    def test_months_per_tick_env(self, monkeypatch):
        monkeypatch.setenv("PARKDIFFICULTY_MONTHS_PER_TICK", "64")
        assert get_months_per_tick(SimOptions(sim_months_per_tick=8)) == 64

    def test_months_per_tick_invalid(self, monkeypatch):
        monkeypatch.setenv("PARKDIFFICULTY_MONTHS_PER_TICK", "0")
        with pytest.raises(ValueError):
            get_months_per_tick()

    def test_log_level_and_seed(self, monkeypatch):
        monkeypatch.setenv("PARKDIFFICULTY_LOG_LEVEL", "debug")
        monkeypatch.setenv("PARKDIFFICULTY_SEED", "42")
        assert get_log_level() == "DEBUG"
        assert get_seed() == 42

    def test_load_input(self, tmp_path):
        path = tmp_path / "park.json"
        path.write_text(
            json.dumps(
                {
                    "park": {"park_size": 4000, "max_owned_to_purchasable_tiles": 200},
                    "options": {"cash_tightness": 300000},
                    "settings": {"financial_pressures": ["guestcash", "loaninterest"], "scenario_length": 2},
                }
            )
        )
        calibration_input = load_calibration_input(path)
        settings = calibration_input.build_settings()
        assert calibration_input.options.cash_tightness == 300000
        assert settings.financial_pressures == [FinancialPressure.GUEST_CASH, FinancialPressure.LOAN_INTEREST]
        assert settings.total_months == 16
        assert settings.bounds_for(FinancialPressure.FORCE_BUY_LAND).maximum == 200

    def test_defaults(self):
        settings = CalibrationInput().build_settings()
        assert settings.financial_pressures == []
        assert settings.initial_cash == 200000

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_calibration_input(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"options": {"guest_difficulty": 1}}))
        with pytest.raises(ValidationError):
            load_calibration_input(path)
