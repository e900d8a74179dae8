#!/usr/bin/env python3
"""Terminal view of the batch run log (classify, positions, scores, states).

Usage:
    python scripts/log_dashboard.py            # last 20 runs
    python scripts/log_dashboard.py -n 50
    python scripts/log_dashboard.py --task positions
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from civic_score.config import RUN_LOG_PATH  # noqa: E402
from civic_score.run_log import RunRecord, load_recent_runs  # noqa: E402

G = "\033[92m"  # green
Y = "\033[33m"  # amber
R = "\033[91m"  # red
D = "\033[90m"  # dim
B = "\033[1m"  # bold
X = "\033[0m"  # reset


def _when(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso.replace("Z", "+00:00")).strftime("%m/%d %H:%M")
    except ValueError:
        return iso[:16]


def _dur(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    if seconds >= 60:
        return f"{seconds / 60:.1f}m"
    return f"{seconds:.1f}s"


def _status_color(status: str) -> str:
    return {"ok": G, "partial": Y}.get(status, R)


def _print_run(r: RunRecord) -> None:
    print(
        f"  {D}{_when(r.started_at)}{X}  {Y}{r.task:10}{X}  {_dur(r.duration_s):>6}  "
        f"{_status_color(r.status)}{r.status:8}{X}  {r.items_processed:>6} items  {D}#{r.run_id}{X}"
    )
    slowest = max(r.phases, key=lambda p: p.get("duration_s") or 0, default=None)
    if slowest and slowest.get("duration_s"):
        detail = f"  {slowest['detail']}" if slowest.get("detail") else ""
        print(f"       {D}└ {slowest.get('name', '?')}: {_dur(slowest['duration_s'])}{detail}{X}")
    for err in r.errors[:3]:
        print(f"       {R}! {err}{X}")


def main() -> int:
    parser = argparse.ArgumentParser(description="View the batch run log.")
    parser.add_argument("--tail", "-n", type=int, default=20, help="Runs to show (default: 20).")
    parser.add_argument("--task", type=str, default=None, help="Filter by task name.")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color.")
    args = parser.parse_args()

    if args.no_color or not sys.stdout.isatty():
        global G, Y, R, D, B, X
        G = Y = R = D = B = X = ""

    if not RUN_LOG_PATH.exists():
        print(f"{D}Run log empty or missing: {RUN_LOG_PATH}{X}")
        print(f"{D}Run 'python scripts/score.py all' to generate entries.{X}")
        return 0

    runs = load_recent_runs(args.tail, task=args.task, log_path=RUN_LOG_PATH)
    if not runs:
        print(f"{D}No runs found (task={args.task or 'any'}).{X}")
        return 0

    print(f"{B}{G}── RUN LOG  last {len(runs)}{'  task=' + args.task if args.task else ''} ──{X}\n")
    for r in runs:
        _print_run(r)

    failing = sum(1 for r in runs if r.status != "ok")
    print(f"\n{D}{failing} of {len(runs)} runs not ok. Log file: {RUN_LOG_PATH}{X}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
