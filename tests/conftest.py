"""Shared pytest fixtures and markers for all tests."""

import random

import pytest

from parkdifficulty.engine.results import FailureReason, StepOutcome
from parkdifficulty.engine.simulator import EconomicSimulator
from parkdifficulty.engine.switch_search import SwitchPointResult
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import ScenarioSettings
from parkdifficulty.models.state import SimulationState


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def options():
    """Provide default tuning options."""
    return SimOptions()


@pytest.fixture
def park():
    """Provide a mid-sized park with plenty of land and some guests."""
    return ParkSnapshot(
        park_size=5000,
        buyable_land=5000,
        buyable_rights=0,
        max_owned_to_purchasable_tiles=1000,
        max_unowned_to_purchasable_tiles=5000,
        suggested_guest_maximum=600,
        guests=500,
    )


@pytest.fixture
def settings(options, park):
    """Provide pay-per-ride scenario settings for the park."""
    return ScenarioSettings.for_park(options, park)


@pytest.fixture
def make_sim(options, park):
    """Factory for simulators with a fixed seed."""

    def _make(settings=None, park_snapshot=None, sim_options=None, seed=1):
        sim_options = sim_options or options
        park_snapshot = park_snapshot or park
        if settings is None:
            settings = ScenarioSettings.for_park(sim_options, park_snapshot)
        return EconomicSimulator(settings, park_snapshot, sim_options, rng=random.Random(seed))

    return _make


class FakeSwitchSearch:
    """Stands in for StrategySwitchSearch with a closed-form economy.

    Average cash is 1000 per point of guest cash, so a target of 350000 is
    met exactly at a guest cash of 350.
    """

    average_cash = staticmethod(lambda settings: settings.guest_initial_cash * 1000)
    feasible = staticmethod(lambda settings: True)
    instances = 0

    def __init__(self, settings, park, options, seed=0):
        self.settings = settings
        type(self).instances += 1

    def step(self, budget):
        if not self.feasible(self.settings):
            return StepOutcome.failed(FailureReason.INFEASIBLE)
        state = SimulationState(
            months_completed=self.settings.total_months,
            average_end_month_cash=self.average_cash(self.settings),
            guests_in_park=1234,
            activity_log=[["Begin month: March, Year 1"]],
        )
        return StepOutcome.done(SwitchPointResult(switch_point=12, state=state))


@pytest.fixture
def fake_switch_search(monkeypatch):
    """Replace the calibrator's switch search with FakeSwitchSearch.

    Returns a fresh subclass so tests can override average_cash and feasible.
    """

    class Fake(FakeSwitchSearch):
        instances = 0

    monkeypatch.setattr("parkdifficulty.engine.calibrator.StrategySwitchSearch", Fake)
    return Fake
