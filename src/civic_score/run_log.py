"""Append-only JSONL log of batch scoring runs.

Every batch job (classification, positions, member scores, state scores)
records one line: task, timing per phase, how many items it processed, and a
sample of per-item errors.  A run with item failures finishes as
``partial``; an exception escaping the run finishes it as ``error``.

Usage::

    from civic_score.run_log import RunLogger

    with RunLogger("positions") as log:
        with log.phase_ctx("Aggregate", detail="435 members"):
            summary = recompute_positions(...)
        log.record(items=summary.politicians_processed, errors=summary.errors)
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path(".run_log.jsonl")
_MAX_ERROR_SAMPLE = 5


@dataclass
class RunRecord:
    """One line in the run log."""

    run_id: str
    task: str
    started_at: str  # ISO
    ended_at: str | None = None
    duration_s: float | None = None
    status: str = "running"  # ok | partial | error | running
    items_processed: int = 0
    phases: list[dict] = field(default_factory=list)  # [{name, duration_s, detail}]
    errors: list[str] = field(default_factory=list)
    meta: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps(
            {
                "run_id": self.run_id,
                "task": self.task,
                "started_at": self.started_at,
                "ended_at": self.ended_at,
                "duration_s": self.duration_s,
                "status": self.status,
                "items_processed": self.items_processed,
                "phases": self.phases,
                "errors": self.errors,
                "meta": self.meta,
            }
        )

    @classmethod
    def from_json_line(cls, line: str) -> RunRecord | None:
        line = line.strip()
        if not line:
            return None
        try:
            d = json.loads(line)
            return cls(
                run_id=d.get("run_id", ""),
                task=d.get("task", ""),
                started_at=d.get("started_at", ""),
                ended_at=d.get("ended_at"),
                duration_s=d.get("duration_s"),
                status=d.get("status", "ok"),
                items_processed=int(d.get("items_processed", 0)),
                phases=d.get("phases", []),
                errors=d.get("errors", []),
                meta=d.get("meta", {}),
            )
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            return None


class RunLogger:
    """Context manager recording a single batch run."""

    def __init__(
        self,
        task: str,
        *,
        log_path: Path | None = None,
        meta: dict | None = None,
    ):
        self.task = task
        self.log_path = log_path if log_path is not None else DEFAULT_LOG_PATH
        self.meta = dict(meta or {})
        self.run_id = str(uuid.uuid4())[:8]
        self._started_at: str | None = None
        self._start_time: float | None = None
        self._phases: list[dict] = []
        self._items = 0
        self._errors: list[str] = []
        self._status = "ok"

    def start(self) -> None:
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._start_time = time.perf_counter()
        self._phases = []
        self._items = 0
        self._errors = []
        self._status = "ok"

    @contextmanager
    def phase_ctx(self, name: str, detail: str | None = None):
        """Time a phase of the run."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._phases.append(
                {"name": name, "duration_s": round(time.perf_counter() - t0, 2), "detail": detail}
            )

    def record(self, *, items: int = 0, errors: list[str] | None = None) -> None:
        """Add processed-item count and per-item errors to the run."""
        self._items += items
        if errors:
            self._errors.extend(errors)
            if self._status == "ok":
                self._status = "partial"

    def end(self, status: str | None = None) -> RunRecord | None:
        if status is not None:
            self._status = status
        return self._write()

    def _write(self) -> RunRecord | None:
        if self._start_time is None:
            return None
        ended_at = datetime.now(timezone.utc).isoformat()
        record = RunRecord(
            run_id=self.run_id,
            task=self.task,
            started_at=self._started_at or ended_at,
            ended_at=ended_at,
            duration_s=round(time.perf_counter() - self._start_time, 2),
            status=self._status,
            items_processed=self._items,
            phases=self._phases,
            errors=self._errors[:_MAX_ERROR_SAMPLE],
            meta=self.meta,
        )
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(record.to_json_line() + "\n")
        except OSError as e:
            LOGGER.warning("Run log append failed: %s", e)
        return record

    def __enter__(self) -> RunLogger:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self._status = "error"
            self._errors.insert(
                0, f"{exc_type.__name__}: {exc_val}" if exc_val else exc_type.__name__
            )
        self.end()
        return None  # do not suppress


def load_recent_runs(
    n: int = 20,
    *,
    task: str | None = None,
    log_path: Path | None = None,
) -> list[RunRecord]:
    """Load the last *n* runs, newest first.  Optionally filter by task."""
    path = log_path or DEFAULT_LOG_PATH
    if not path.exists():
        return []
    records: list[RunRecord] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            rec = RunRecord.from_json_line(line)
            if rec is None:
                continue
            if task is None or rec.task == task:
                records.append(rec)
    return records[::-1][:n]
