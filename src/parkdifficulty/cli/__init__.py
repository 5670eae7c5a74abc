"""Park difficulty CLI module.

Provides a command-line driver that runs a calibration tick by tick.

Usage:
    park-difficulty input.json

Or directly:
    python -m parkdifficulty.cli.calibrate input.json
"""

from parkdifficulty.cli.calibrate import main, run_calibration

__all__ = ["main", "run_calibration"]
