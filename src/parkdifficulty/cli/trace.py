"""Calibration trace logging for the park difficulty CLI.

Records every evaluated pressure vector for debugging and analysis:
- Pressure values and phase
- Viability and average end-of-month cash
- Whether the vector became the new best
- The final outcome
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from parkdifficulty.engine.calibrator import EvaluationRecord


@dataclass
class CalibrationTrace:
    """Complete trace of a calibration run."""

    run_id: str
    target: float
    seed: int
    start_time: str
    end_time: str | None = None
    evaluations: list[EvaluationRecord] = field(default_factory=list)
    outcome: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "target": self.target,
            "seed": self.seed,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "evaluations": [asdict(e) for e in self.evaluations],
            "outcome": self.outcome,
        }


class CalibrationTraceLogger:
    """Logger for calibration trace events."""

    def __init__(
        self,
        name: str,
        target: float,
        seed: int = 0,
        output_dir: Path | None = None,
        autosave: bool = True,
    ):
        """Initialize trace logger.

        Args:
            name: Name of the input being calibrated
            target: Target average end-of-month cash
            seed: Random seed of the run
            output_dir: Directory for trace files (default: ./traces)
            autosave: Save after every evaluation
        """
        self.output_dir = output_dir or Path("traces")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.autosave = autosave

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_id = f"{name}_{seed}_{timestamp}"

        self.trace = CalibrationTrace(
            run_id=run_id,
            target=target,
            seed=seed,
            start_time=datetime.now().isoformat(),
        )
        self._output_file = self.output_dir / f"{run_id}.json"

    @property
    def output_file(self) -> Path:
        return self._output_file

    def record_evaluation(self, record: EvaluationRecord) -> None:
        """Record one evaluated pressure vector."""
        self.trace.evaluations.append(record)
        if self.autosave:
            self.save()

    def record_outcome(self, status: str, average_end_month_cash: float | None, pressures: dict[str, float]) -> None:
        """Record how the calibration ended.

        Args:
            status: "done" or "failed"
            average_end_month_cash: Average cash of the best run, if any
            pressures: Final pressure values
        """
        self.trace.end_time = datetime.now().isoformat()
        self.trace.outcome = {
            "status": status,
            "average_end_month_cash": average_end_month_cash,
            "pressures": pressures,
        }
        self.save()

    def save(self) -> Path:
        """Save the trace to a JSON file.

        Returns:
            Path to the saved file
        """
        with open(self._output_file, "w") as f:
            json.dump(self.trace.to_dict(), f, indent=2)
        return self._output_file

    def get_summary(self) -> str:
        """Get a human-readable summary of the trace.

        Returns:
            Summary string
        """
        accepted = sum(1 for e in self.trace.evaluations if e.accepted)
        lines = [
            f"Run: {self.trace.run_id}",
            f"Target average cash: {self.trace.target:,.0f}",
            f"Evaluations: {len(self.trace.evaluations)} ({accepted} accepted)",
            "",
            "Evaluation History:",
        ]

        for e in self.trace.evaluations:
            cash = f"{e.average_end_month_cash:,.0f}" if e.average_end_month_cash is not None else "infeasible"
            marker = " *" if e.accepted else ""
            lines.append(f"  #{e.evaluation} [{e.phase}, step {e.step_size}] cash={cash}{marker}")

        if self.trace.outcome:
            lines.append("")
            lines.append(f"Outcome: {self.trace.outcome['status']}")

        lines.append("")
        lines.append(f"Trace saved to: {self._output_file}")

        return "\n".join(lines)
