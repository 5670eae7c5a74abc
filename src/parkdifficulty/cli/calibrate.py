"""Command-line driver for difficulty calibration.

Runs the calibrator one scheduling tick at a time until it finishes, the way
a host with a per-tick time limit would drive it.

Usage:
    # Calibrate with the target from the input's options
    park-difficulty inputs/arid_heights.json

    # Override target and tick size, keep a trace
    park-difficulty inputs/arid_heights.json --target 300000 \\
        --months-per-tick 64 --seed 7 --trace-dir traces

    # Write the best run's activity log
    park-difficulty inputs/arid_heights.json --activity-log best_run.txt
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from parkdifficulty.cli.trace import CalibrationTraceLogger
from parkdifficulty.config import (
    get_log_level,
    get_months_per_tick,
    get_seed,
    get_trace_dir,
    load_calibration_input,
)
from parkdifficulty.engine.calibrator import CalibrationResult, DifficultyCalibrator
from parkdifficulty.engine.outcome import derive_scenario_outcome
from parkdifficulty.models.settings import ScenarioSettings
from parkdifficulty.parameters import format_currency

logger = logging.getLogger(__name__)


def print_calibration_report(settings: ScenarioSettings, result: CalibrationResult, ticks: int) -> None:
    """Print a human-readable calibration summary."""
    print("\n" + "=" * 70)
    print("CALIBRATION COMPLETE")
    print("=" * 70)
    print(f"  Ticks: {ticks}")
    print(f"  Evaluations: {result.evaluations}")
    print(f"  Strategy switch month: {result.switch_point}")
    print(f"  Average end-of-month cash: {format_currency(result.average_end_month_cash)}")
    print(f"  Final guests: {result.state.guests_in_park}")
    print("\n  Financial pressures:")
    for pressure, value in result.pressures.items():
        marker = " (adjusted)" if pressure in settings.financial_pressures else ""
        print(f"    {pressure.value}: {value:g}{marker}")
    print("\n" + "=" * 70)


def run_calibration(
    calibrator: DifficultyCalibrator,
    months_per_tick: int,
    max_ticks: int | None = None,
):
    """Step the calibrator once per tick until it is no longer pending.

    Returns:
        Tuple of (final StepOutcome, ticks used)
    """
    ticks = 0
    while True:
        ticks += 1
        outcome = calibrator.step(months_per_tick)
        if not outcome.is_pending:
            return outcome, ticks
        if max_ticks is not None and ticks >= max_ticks:
            return outcome, ticks


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Calibrate the financial difficulty of a park scenario",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "input_path",
        help="Path to calibration input JSON file",
    )
    parser.add_argument(
        "--target",
        type=float,
        default=None,
        help="Target average end-of-month cash (default: options.cash_tightness)",
    )
    parser.add_argument(
        "--months-per-tick",
        type=int,
        default=None,
        help="Simulated months per scheduling tick",
    )
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Give up after this many ticks",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "--trace-dir",
        type=str,
        default=None,
        help="Directory for the calibration trace (default: no trace)",
    )
    parser.add_argument(
        "--activity-log",
        type=str,
        default=None,
        help="Write the best run's activity log to this file",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output JSON file for the calibrated settings",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="No human-readable report",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    input_path = Path(args.input_path)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        calibration_input = load_calibration_input(input_path)
        settings = calibration_input.build_settings()
        months_per_tick = args.months_per_tick or get_months_per_tick(calibration_input.options)
        seed = args.seed if args.seed is not None else get_seed()
    except (ValueError, ValidationError) as e:
        print(f"Error: Invalid calibration input: {e}", file=sys.stderr)
        return 1

    options = calibration_input.options
    park = calibration_input.park
    target = args.target if args.target is not None else options.cash_tightness

    trace = None
    if args.trace_dir or "PARKDIFFICULTY_TRACE_DIR" in os.environ:
        trace = CalibrationTraceLogger(
            name=input_path.stem,
            target=target,
            seed=seed,
            output_dir=Path(args.trace_dir or get_trace_dir()),
        )

    logger.info(f"Calibrating {input_path} toward {target:.0f} ({months_per_tick} months per tick, seed {seed})")
    calibrator = DifficultyCalibrator(settings, park, options, target=target, seed=seed, trace=trace)
    outcome, ticks = run_calibration(calibrator, months_per_tick, args.max_ticks)

    if outcome.is_pending:
        print(f"Error: Calibration did not finish within {ticks} ticks", file=sys.stderr)
        return 1

    if outcome.is_failed:
        if trace:
            trace.record_outcome("failed", None, {p.value: v for p, v in settings.pressure_vector().items()})
        print(f"Scenario is unplayable: {outcome.reason.value}", file=sys.stderr)
        return 1

    result = outcome.value
    scenario_outcome = derive_scenario_outcome(settings, park, options, result)
    scenario_outcome.apply_to(settings)

    if trace:
        trace.record_outcome(
            "done", result.average_end_month_cash, {p.value: v for p, v in result.pressures.items()}
        )

    if args.activity_log:
        log_path = Path(args.activity_log)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text("\n".join(scenario_outcome.activity_log) + "\n", encoding="utf-8")

    if not args.quiet:
        print_calibration_report(settings, result, ticks)
        if trace:
            print(f"Trace saved to: {trace.output_file}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w") as f:
            json.dump(settings.model_dump(mode="json"), f, indent=2)
        if not args.quiet:
            print(f"\nSettings written to: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
