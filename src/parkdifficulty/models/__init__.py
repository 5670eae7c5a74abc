"""Park difficulty data models.

This module exports the configuration inputs and simulation state.
"""

from .options import SimOptions
from .park import ParkSnapshot
from .settings import (
    FinancialPressure,
    ObjectiveType,
    ParkFlag,
    PressureBounds,
    ScenarioSettings,
    build_pressure_bounds,
)
from .state import SimulationState, WalletHistogram

__all__ = [
    # Enums
    "FinancialPressure",
    "ObjectiveType",
    "ParkFlag",
    # Configuration inputs
    "SimOptions",
    "ParkSnapshot",
    "PressureBounds",
    "ScenarioSettings",
    "build_pressure_bounds",
    # State Models
    "SimulationState",
    "WalletHistogram",
]
