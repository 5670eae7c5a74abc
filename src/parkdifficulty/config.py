"""Runtime configuration for park difficulty calibration.

Environment variables override the defaults for values that depend on where
the engine runs (tick size, log level, trace directory, seed). Calibration
inputs are JSON files validated into a CalibrationInput.
"""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import ScenarioSettings

# Default configuration (can be overridden via environment variables)
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_TRACE_DIR = "traces"
DEFAULT_SEED = 0


def get_months_per_tick(options: SimOptions | None = None) -> int:
    """Get the month budget per scheduling tick.

    Falls back to the options' sim_months_per_tick.

    Raises:
        ValueError: If the environment value is not a positive integer
    """
    default = options.sim_months_per_tick if options is not None else SimOptions().sim_months_per_tick
    raw = os.environ.get("PARKDIFFICULTY_MONTHS_PER_TICK")
    if raw is None:
        return default
    months = int(raw)
    if months < 1:
        raise ValueError(f"PARKDIFFICULTY_MONTHS_PER_TICK must be positive, got {months}")
    return months


def get_log_level() -> str:
    """Get configured log level name from environment."""
    return os.environ.get("PARKDIFFICULTY_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def get_trace_dir() -> str:
    """Get configured trace directory from environment."""
    return os.environ.get("PARKDIFFICULTY_TRACE_DIR", DEFAULT_TRACE_DIR)


def get_seed() -> int:
    """Get configured random seed from environment."""
    return int(os.environ.get("PARKDIFFICULTY_SEED", DEFAULT_SEED))


class CalibrationInput(BaseModel):
    """Everything one calibration run needs.

    Settings without explicit pressure bounds get the defaults for the park
    and options.
    """

    park: ParkSnapshot = Field(default_factory=ParkSnapshot)
    options: SimOptions = Field(default_factory=SimOptions)
    settings: dict = Field(default_factory=dict)

    def build_settings(self) -> ScenarioSettings:
        """Create ScenarioSettings from the stored values."""
        return ScenarioSettings.for_park(self.options, self.park, **self.settings)


def load_calibration_input(path: str | Path) -> CalibrationInput:
    """Load and validate a calibration input file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON
        pydantic.ValidationError: If the contents do not validate
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid calibration input {path}: {e}") from e
    return CalibrationInput.model_validate(data)
