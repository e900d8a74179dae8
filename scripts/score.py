#!/usr/bin/env python3
"""Run the civic-score batch stages against the data directory.

Stages, in dependency order:

    classify    bills -> issue signals (policy-area mapping, then classifier replies)
    positions   signals + votes + sponsorships -> per-issue positions
                (clears the alignment cache)
    scores      votes + bill counters -> member scores (default + per-user weights)
    states      default member scores -> per-state averages

Usage:
    python scripts/score.py all                 # every stage
    python scripts/score.py classify --force    # re-classify every bill
    python scripts/score.py scores --data-dir data --store-dir store
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from civic_score import config as cfg  # noqa: E402
from civic_score.dataset import load_dataset  # noqa: E402
from civic_score.errors import DatasetError  # noqa: E402
from civic_score.jobs import (  # noqa: E402
    JobSummary,
    run_all,
    run_classification,
    run_member_scores,
    run_positions,
    run_state_scores,
)
from civic_score.store import JsonStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()

_STAGES = ("classify", "positions", "scores", "states", "all")


def _print_summary(summaries: list[JobSummary], elapsed: float) -> None:
    table = Table(title="Scoring Run", show_lines=True, title_style="bold green")
    table.add_column("Stage", style="bold")
    table.add_column("Status")
    table.add_column("Processed", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")

    for s in summaries:
        color = "green" if s.status == "ok" else "yellow"
        table.add_row(
            s.task,
            f"[{color}]{s.status}[/]",
            f"{s.items_processed:,}",
            f"{s.rows_written:,}",
            f"{s.skipped:,}",
            str(len(s.errors)),
        )
    table.add_row("[bold]Total[/]", "", "", "", "", f"[bold]{elapsed:.1f}s[/]")
    console.print(table)

    for s in summaries:
        for err in s.errors[:5]:
            console.print(f"[red]{s.task}[/] {err}")
        for warn in s.warnings[:5]:
            console.print(f"[yellow]{s.task}[/] {warn}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run civic-score batch stages.")
    parser.add_argument("stage", choices=_STAGES, help="Stage to run.")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=cfg.DATA_DIR,
        help=f"Input JSON directory (default: {cfg.DATA_DIR}).",
    )
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=cfg.STORE_DIR,
        help=f"Output JSON directory (default: {cfg.STORE_DIR}).",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-classify bills that already have signals.",
    )
    args = parser.parse_args()

    console.print(
        Panel(
            f"[bold]Civic Score[/]  stage=[cyan]{args.stage}[/]  profile={cfg.PROFILE}\n"
            f"data: {args.data_dir}   store: {args.store_dir}",
            border_style="cyan",
        )
    )

    t0 = time.perf_counter()
    try:
        dataset = load_dataset(args.data_dir)
        store = JsonStore(args.store_dir)
    except DatasetError as e:
        console.print(f"[bold red]Cannot load inputs:[/] {e}")
        return 2

    if args.stage == "all":
        summaries = run_all(dataset, store, force=args.force)
    elif args.stage == "classify":
        summaries = [run_classification(dataset, store, force=args.force)]
    elif args.stage == "positions":
        summaries = [run_positions(dataset, store)]
    elif args.stage == "scores":
        summaries = [run_member_scores(dataset, store)]
    else:
        summaries = [run_state_scores(dataset, store)]

    _print_summary(summaries, time.perf_counter() - t0)
    console.print(f"\n[dim]Outputs in {args.store_dir}/. Run log: {cfg.RUN_LOG_PATH}[/]")
    return 1 if any(s.status != "ok" for s in summaries) else 0


if __name__ == "__main__":
    sys.exit(main())
