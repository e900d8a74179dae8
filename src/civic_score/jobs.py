"""Batch orchestration: classify bills, recompute positions and scores.

Stages run in order ``classify -> positions -> scores -> states``.  Each
stage processes items (bills, legislators, users) one at a time; one item's
failure is logged with its traceback, recorded in the :class:`JobSummary`,
and does not stop the rest.  Every stage appends a line to the run log.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from . import config as cfg
from .dataset import Dataset
from .errors import InvalidScoringConfigError
from .models import BillSignal, ChamberAverages, ScoringConfig
from .positions import recompute_positions
from .run_log import RunLogger
from .scoring import build_member_scores
from .signals import SignalSettings, classify_bill
from .state_scores import compute_state_scores
from .store import InMemoryStore

LOGGER = logging.getLogger(__name__)


@dataclass
class JobSummary:
    task: str
    items_processed: int = 0
    rows_written: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    meta: dict = field(default_factory=dict)

    @property
    def status(self) -> str:
        return "partial" if self.errors else "ok"


def _finish(log: RunLogger, summary: JobSummary) -> JobSummary:
    log.meta.update(summary.meta)
    log.meta["rows_written"] = summary.rows_written
    log.meta["skipped"] = summary.skipped
    log.record(items=summary.items_processed, errors=summary.errors)
    LOGGER.info(
        "%s finished (%s): %d processed, %d rows written, %d skipped, %d errors.",
        summary.task,
        summary.status,
        summary.items_processed,
        summary.rows_written,
        summary.skipped,
        len(summary.errors),
    )
    return summary


# ── Classification ───────────────────────────────────────────────────────────


def run_classification(
    dataset: Dataset,
    store: InMemoryStore,
    *,
    settings: SignalSettings | None = None,
    force: bool = False,
    log_path: Path | None = None,
) -> JobSummary:
    """Turn bills into issue signals and persist them.

    Bills that already have sponsorship signals are skipped unless *force*,
    in which case their old signals are replaced.  Pre-computed signals in
    the dataset (e.g. classified roll-call votes) are stored as given.
    """
    settings = settings or cfg.signal_settings()
    summary = JobSummary(task="classify")
    methods: Counter[str] = Counter()

    with RunLogger("classify", log_path=log_path or cfg.RUN_LOG_PATH) as log, store.batch():
        if dataset.signals:
            store.save_signals(dataset.signals)
            summary.rows_written += len(dataset.signals)

        already = set() if force else store.classified_refs()
        issue_ids_by_slug = dataset.issue_ids_by_slug
        mappings = dataset.mappings_by_area
        new_signals: list[BillSignal] = []

        with log.phase_ctx("Classify", detail=f"{len(dataset.bills)} bills"):
            for bill in dataset.bills:
                if bill.id in already:
                    summary.skipped += 1
                    continue
                try:
                    outcome = classify_bill(
                        bill,
                        mappings=mappings,
                        issue_ids_by_slug=issue_ids_by_slug,
                        response=dataset.classifications.get(bill.id),
                        settings=settings,
                    )
                except Exception as e:
                    LOGGER.exception("Classification failed for %s", bill.id)
                    summary.errors.append(f"{bill.id}: {e}")
                    continue
                methods[outcome.method] += 1
                summary.items_processed += 1
                if force:
                    store.delete_signals_for(bill.id)
                new_signals.extend(outcome.signals)

        if new_signals:
            store.save_signals(new_signals)
        summary.rows_written += len(new_signals)
        summary.meta["methods"] = dict(methods)
        return _finish(log, summary)


# ── Positions ────────────────────────────────────────────────────────────────


def _merged_signals(dataset: Dataset, store: InMemoryStore) -> list[BillSignal]:
    by_key = {s.key: s for s in dataset.signals}
    by_key.update((s.key, s) for s in store.all_signals())
    return list(by_key.values())


def run_positions(
    dataset: Dataset,
    store: InMemoryStore,
    *,
    source_version: int | None = None,
    log_path: Path | None = None,
) -> JobSummary:
    """Recompute every legislator's issue positions from stored signals."""
    summary = JobSummary(task="positions")
    with RunLogger("positions", log_path=log_path or cfg.RUN_LOG_PATH) as log:
        politician_ids = dataset.politician_ids()
        with log.phase_ctx("Aggregate", detail=f"{len(politician_ids)} politicians"):
            result = recompute_positions(
                store,
                politician_ids,
                _merged_signals(dataset, store),
                dataset.vote_positions_by_member(),
                dataset.sponsorships_by_member(),
                active_issue_ids=dataset.active_issue_ids if dataset.issues else None,
                source_version=source_version if source_version is not None else cfg.SOURCE_VERSION,
            )
        summary.items_processed = result.politicians_processed
        summary.rows_written = result.positions_written
        summary.errors.extend(result.errors)
        summary.meta["alignments_invalidated"] = result.alignments_invalidated
        return _finish(log, summary)


# ── Member scores ────────────────────────────────────────────────────────────


def _user_configs(dataset: Dataset, summary: JobSummary) -> dict[str, ScoringConfig | None]:
    """Per-user configs; an invalid one falls back to the defaults (None)."""
    configs: dict[str, ScoringConfig | None] = {}
    for user_id in sorted(dataset.scoring_preferences):
        try:
            configs[user_id] = dataset.scoring_config_for(user_id)
        except (InvalidScoringConfigError, TypeError, ValueError) as e:
            LOGGER.warning("Invalid scoring preferences for %s (%s); using defaults.", user_id, e)
            summary.warnings.append(f"{user_id}: {e}")
            configs[user_id] = None
    return configs


def run_member_scores(
    dataset: Dataset,
    store: InMemoryStore,
    *,
    chamber_averages: ChamberAverages | None = None,
    now: datetime | None = None,
    half_life_days: float | None = None,
    log_path: Path | None = None,
) -> JobSummary:
    """Score every legislator under the default weights and each user's weights."""
    summary = JobSummary(task="scores")
    half_life = half_life_days if half_life_days is not None else cfg.HALF_LIFE_DAYS

    with RunLogger("scores", log_path=log_path or cfg.RUN_LOG_PATH) as log, store.batch():
        user_configs = _user_configs(dataset, summary)
        votes_by_member = dataset.votes_by_member()
        politician_ids = dataset.politician_ids()

        with log.phase_ctx("Score", detail=f"{len(politician_ids)} x {1 + len(user_configs)}"):
            for member_id in politician_ids:
                votes = votes_by_member.get(member_id, [])
                try:
                    activity = dataset.activity_for(member_id)
                    rows = [
                        build_member_scores(
                            member_id,
                            votes,
                            activity,
                            None,
                            chamber_averages=chamber_averages,
                            now=now,
                            half_life_days=half_life,
                        )
                    ]
                    for user_id, user_config in user_configs.items():
                        rows.append(
                            build_member_scores(
                                member_id,
                                votes,
                                activity,
                                user_config,
                                user_id=user_id,
                                chamber_averages=chamber_averages,
                                now=now,
                                half_life_days=half_life,
                            )
                        )
                except Exception as e:
                    LOGGER.exception("Scoring failed for %s", member_id)
                    summary.errors.append(f"{member_id}: {e}")
                    continue
                store.save_member_scores_many(rows)
                summary.items_processed += 1
                summary.rows_written += len(rows)

        summary.meta["users"] = len(user_configs)
        summary.meta["invalid_preferences"] = len(summary.warnings)
        return _finish(log, summary)


# ── State scores ─────────────────────────────────────────────────────────────


def run_state_scores(
    dataset: Dataset,
    store: InMemoryStore,
    *,
    log_path: Path | None = None,
) -> JobSummary:
    """Aggregate default member scores by state and replace the state table."""
    summary = JobSummary(task="states")
    with RunLogger("states", log_path=log_path or cfg.RUN_LOG_PATH) as log:
        with log.phase_ctx("Aggregate"):
            states = compute_state_scores(dataset.members, store.default_member_scores())
        store.replace_state_scores(states)
        summary.items_processed = len(states)
        summary.rows_written = len(states)
        return _finish(log, summary)


def run_all(
    dataset: Dataset,
    store: InMemoryStore,
    *,
    force: bool = False,
    now: datetime | None = None,
    log_path: Path | None = None,
) -> list[JobSummary]:
    """Run every stage in dependency order."""
    return [
        run_classification(dataset, store, force=force, log_path=log_path),
        run_positions(dataset, store, log_path=log_path),
        run_member_scores(dataset, store, now=now, log_path=log_path),
        run_state_scores(dataset, store, log_path=log_path),
    ]
