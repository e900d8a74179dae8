"""Tests for the JSONL batch run log."""

from __future__ import annotations

from pathlib import Path

import pytest

from civic_score.run_log import RunLogger, RunRecord, load_recent_runs


class TestRunLogger:
    def test_ok_run(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        with RunLogger("positions", log_path=path, meta={"profile": "dev"}) as log:
            with log.phase_ctx("Aggregate", detail="2 politicians"):
                pass
            log.record(items=2)

        (run,) = load_recent_runs(log_path=path)
        assert run.task == "positions"
        assert run.status == "ok"
        assert run.items_processed == 2
        assert run.phases[0]["name"] == "Aggregate"
        assert run.meta == {"profile": "dev"}

    def test_item_errors_make_run_partial(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        with RunLogger("scores", log_path=path) as log:
            log.record(items=1, errors=[f"m{n}: boom" for n in range(8)])

        (run,) = load_recent_runs(log_path=path)
        assert run.status == "partial"
        assert len(run.errors) == 5

    def test_exception_marks_error_and_propagates(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        with pytest.raises(RuntimeError):
            with RunLogger("classify", log_path=path):
                raise RuntimeError("store unavailable")

        (run,) = load_recent_runs(log_path=path)
        assert run.status == "error"
        assert run.errors == ["RuntimeError: store unavailable"]


class TestLoadRecentRuns:
    def test_newest_first_and_filter(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        for task in ("classify", "positions", "classify"):
            with RunLogger(task, log_path=path):
                pass
        assert [r.task for r in load_recent_runs(log_path=path)] == [
            "classify",
            "positions",
            "classify",
        ]
        assert len(load_recent_runs(task="classify", log_path=path)) == 2
        assert len(load_recent_runs(1, log_path=path)) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_recent_runs(log_path=tmp_path / "none.jsonl") == []

    def test_bad_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        path.write_text("not json\n\n" + RunRecord("abc", "states", "2025-07-01").to_json_line())
        (run,) = load_recent_runs(log_path=path)
        assert run.run_id == "abc"
