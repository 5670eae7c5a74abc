"""Tests for parkdifficulty.cli.trace."""

import json

from parkdifficulty.cli.trace import CalibrationTraceLogger
from parkdifficulty.engine.calibrator import EvaluationRecord


def make_record(evaluation, accepted, cash=360000.0):
    return EvaluationRecord(
        evaluation=evaluation,
        phase="coarse",
        pressures={"guestcash": 400.0},
        viable=cash is not None,
        average_end_month_cash=cash,
        switch_point=12 if cash is not None else None,
        accepted=accepted,
        step_size=128,
    )


class TestCalibrationTraceLogger:
    """Tests for CalibrationTraceLogger."""

    def test_autosave(self, tmp_path):
        trace = CalibrationTraceLogger("park", target=350000, seed=3, output_dir=tmp_path)
        trace.record_evaluation(make_record(1, True))
        assert trace.output_file.exists()
        data = json.loads(trace.output_file.read_text())
        assert data["target"] == 350000
        assert data["evaluations"][0]["pressures"] == {"guestcash": 400.0}
        assert data["outcome"] is None

    def test_no_autosave(self, tmp_path):
        trace = CalibrationTraceLogger("park", target=350000, output_dir=tmp_path, autosave=False)
        trace.record_evaluation(make_record(1, True))
        assert not trace.output_file.exists()
        assert trace.save() == trace.output_file
        assert trace.output_file.exists()

    def test_outcome(self, tmp_path):
        trace = CalibrationTraceLogger("park", target=350000, output_dir=tmp_path)
        trace.record_outcome("failed", None, {"guestcash": 1500.0})
        data = json.loads(trace.output_file.read_text())
        assert data["end_time"] is not None
        assert data["outcome"] == {
            "status": "failed",
            "average_end_month_cash": None,
            "pressures": {"guestcash": 1500.0},
        }

    def test_summary(self, tmp_path):
        trace = CalibrationTraceLogger("park", target=350000, output_dir=tmp_path, autosave=False)
        trace.record_evaluation(make_record(1, True))
        trace.record_evaluation(make_record(2, False, cash=None))
        summary = trace.get_summary()
        assert "Evaluations: 2 (1 accepted)" in summary
        assert "cash=360,000 *" in summary
        assert "infeasible" in summary
        assert f"Trace saved to: {trace.output_file}" in summary
