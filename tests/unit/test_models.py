"""Unit tests for parkdifficulty.models.

Tests cover:
- WalletHistogram: add/remove, charging, turnover, reconciliation
- ScenarioSettings: pressure accessors, clamping, snapshot and restore
- PressureBounds: defaults built from options and park
- SimOptions: validation and lookup by name
"""

import random

import pytest
from pydantic import ValidationError

from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import (
    FinancialPressure,
    ParkFlag,
    PressureBounds,
    ScenarioSettings,
    build_pressure_bounds,
)
from parkdifficulty.models.state import SimulationState, WalletHistogram


class TestWalletHistogram:
    """Tests for WalletHistogram."""

    def test_add_and_remove(self):
        """Buckets appear on add and disappear when emptied."""
        wallets = WalletHistogram()
        wallets.add(150, 10)
        wallets.add(150.4, 5)
        assert wallets[150] == 15
        assert wallets.remove(150, 20) == 15
        assert wallets.counts == {}

    def test_items_ascending(self):
        wallets = WalletHistogram(counts={300: 1, 0: 4, 150: 2})
        assert [cash for cash, _ in wallets.items()] == [0, 150, 300]

    def test_charge_takes_up_to_wallet(self):
        """Guests never pay more than they carry."""
        wallets = WalletHistogram(counts={150: 10, 500: 2})
        collected = wallets.charge(300)
        assert collected == 150 * 10 + 300 * 2
        assert wallets.counts == {0: 10, 200: 2}

    def test_charge_without_apply_leaves_wallets(self):
        wallets = WalletHistogram(counts={150: 10})
        assert wallets.charge(100, apply=False) == 1000
        assert wallets.counts == {150: 10}

    def test_charge_rounds_to_whole_amount_per_guest(self):
        """Charges are whole amounts, so tiny per-guest charges collect nothing."""
        wallets = WalletHistogram(counts={150: 10})
        assert wallets.charge(0.4) == 0
        assert wallets.counts == {150: 10}
        assert wallets.charge(0.6) == 10
        assert wallets.counts == {149: 10}
        assert wallets.charge(2.7) == 30
        assert wallets.counts == {146: 10}

    def test_reconcile_adds_and_removes(self):
        """Reconciliation moves the total exactly to the target."""
        rng = random.Random(3)
        wallets = WalletHistogram(counts={10: 5, 20: 5})
        assert wallets.reconcile(13, rng) == 3
        assert wallets.total == 13
        assert wallets.reconcile(7, rng) == -6
        assert wallets.total == 7

    def test_reconcile_empty_uses_default_bucket(self):
        wallets = WalletHistogram()
        wallets.reconcile(4, random.Random(0), default_cash=50)
        assert wallets.counts == {50: 4}

    def test_turnover_conserves_mass(self):
        """After turnover the histogram sums to the requested guest count."""
        rng = random.Random(11)
        for _ in range(50):
            counts = {rng.randint(0, 400): rng.randint(1, 60) for _ in range(rng.randint(1, 12))}
            wallets = WalletHistogram(counts=counts)
            total = wallets.total
            rate = rng.random()
            target = total - round(total * rate)
            wallets.apply_turnover(rate, target, rng)
            assert wallets.total == target
            assert all(count > 0 for count in wallets.counts.values())


class TestScenarioSettings:
    """Tests for ScenarioSettings pressure handling."""

    def test_for_park_follows_options(self, options, park):
        settings = ScenarioSettings.for_park(options, park)
        assert settings.initial_cash == options.starting_cash
        assert settings.max_loan == options.starting_cash
        assert settings.total_months == 24
        assert settings.bounds_for(FinancialPressure.FORCE_BUY_LAND).maximum == park.max_owned_to_purchasable_tiles

    def test_for_park_overrides(self, options, park):
        settings = ScenarioSettings.for_park(options, park, pay_per_ride=False, scenario_length=2)
        assert not settings.pay_per_ride
        assert settings.total_months == 16

    def test_set_pressure_clamps(self, settings):
        settings.set_pressure(FinancialPressure.GUEST_CASH, 5000)
        assert settings.guest_initial_cash == 1500
        settings.set_pressure(FinancialPressure.LAND_COST, 10)
        assert settings.land_price == 100

    def test_initial_debt_rounds_to_loan_increment(self, settings):
        settings.set_pressure(FinancialPressure.INITIAL_DEBT, 12345)
        assert settings.initial_debt == 10000

    def test_loan_interest_rounding(self, settings):
        """Repeated 0.1 steps do not accumulate float noise."""
        settings.set_pressure(FinancialPressure.LOAN_INTEREST, 20)
        for _ in range(3):
            settings.adjust_pressure(FinancialPressure.LOAN_INTEREST, 0.1)
        assert settings.loan_interest == 20.3

    def test_force_buy_land_is_whole_tiles(self, settings):
        settings.set_pressure(FinancialPressure.FORCE_BUY_LAND, 12.7)
        assert settings.num_owned_tiles_to_buyable == 12

    def test_snapshot_and_restore(self, settings):
        snapshot = settings.pressure_vector()
        settings.adjust_pressure(FinancialPressure.GUEST_CASH, 100)
        settings.adjust_pressure(FinancialPressure.LAND_COST, 200)
        settings.load_pressure_vector(snapshot)
        assert settings.pressure_vector() == snapshot

    def test_for_park_starts_within_bounds(self, options, park):
        """The configured interest rate is raised to the pressure minimum."""
        settings = ScenarioSettings.for_park(options, park)
        assert options.scenario_interest_rate < options.financial_difficulty_min_interest_rate
        assert settings.loan_interest == options.financial_difficulty_min_interest_rate
        for pressure, value in settings.pressure_vector().items():
            assert settings.bounds_for(pressure).contains(value)

    def test_for_park_clamps_overrides(self, options, park):
        settings = ScenarioSettings.for_park(options, park, guest_initial_cash=5000, land_price=20, initial_debt=12345)
        assert settings.guest_initial_cash == 1500
        assert settings.land_price == 100
        assert settings.initial_debt == 10000

    def test_restore_snapshot_of_fresh_settings(self, options, park):
        settings = ScenarioSettings.for_park(options, park)
        snapshot = settings.pressure_vector()
        settings.adjust_pressure(FinancialPressure.LOAN_INTEREST, 3)
        settings.load_pressure_vector(snapshot)
        assert settings.pressure_vector() == snapshot

    def test_missing_bounds_raise(self):
        with pytest.raises(KeyError):
            ScenarioSettings().bounds_for(FinancialPressure.GUEST_CASH)

    def test_flags_from_strings(self):
        settings = ScenarioSettings(flags=["difficultGuestGeneration"])
        assert settings.has_flag(ParkFlag.DIFFICULT_GUEST_GENERATION)
        assert not settings.has_flag(ParkFlag.FORBID_MARKETING_CAMPAIGNS)


class TestPressureBounds:
    """Tests for PressureBounds and their defaults."""

    def test_zero_step_rejected(self):
        with pytest.raises(ValidationError):
            PressureBounds(minimum=0, maximum=1, step=0)

    def test_clamp_unbounded_side(self):
        bounds = PressureBounds(minimum=0, maximum=None, step=10000)
        assert bounds.clamp(-5) == 0
        assert bounds.clamp(10**9) == 10**9
        assert bounds.contains(50)

    def test_default_bounds(self, options):
        park = ParkSnapshot(park_size=4500, max_owned_to_purchasable_tiles=300)
        bounds = build_pressure_bounds(options, park)
        assert set(bounds) == set(FinancialPressure)
        assert bounds[FinancialPressure.FORCE_BUY_LAND].step == 4
        assert bounds[FinancialPressure.LOAN_INTEREST].minimum == options.financial_difficulty_min_interest_rate
        assert bounds[FinancialPressure.INITIAL_CASH].maximum == options.starting_cash + 250000
        # Larger guest cash and initial cash are easier
        assert bounds[FinancialPressure.GUEST_CASH].step < 0
        assert bounds[FinancialPressure.INITIAL_CASH].step < 0


class TestSimOptions:
    """Tests for SimOptions."""

    def test_lookup_by_name(self, options):
        assert options.get("sim_cost_per_100_sgc") == 25000
        assert options.guest_difficulty_factor == 0.5

    def test_unknown_option(self, options):
        with pytest.raises(KeyError):
            options.get("no_such_option")

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            SimOptions(guest_difficulty=1)


class TestParkSnapshot:
    def test_adjusted_size_defaults_to_park_size(self):
        assert ParkSnapshot(park_size=1200).adjusted_park_size == 1200
        assert ParkSnapshot(park_size=1200, adjusted_park_size=900).adjusted_park_size == 900


class TestSimulationState:
    def test_terminal_when_no_months_left(self):
        assert SimulationState(months_left=0).is_finished
        assert not SimulationState(months_left=3).is_finished
        assert SimulationState(month_exceeded_density_limit=0).density_limit_exceeded
