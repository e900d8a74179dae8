"""Position aggregation: a legislator's signals → one stance per issue.

Each issue gets a weighted average of signal contributions, rescaled from the
natural [-1, 1] range to the [-2, 2] scale used for user answers so positions
and user answers are directly comparable.

Contributions
-------------
- **Vote signal**: ``vote_value * direction * weight`` where yea = +1,
  nay = -1 and present / not voting = 0.  ``weight`` is added to the
  issue's total weight.
- **Sponsorship signal**: ``direction * weight * multiplier`` where the
  multiplier is 1.5 for the primary sponsor and 1.0 for a cosponsor.
  ``weight * multiplier`` is added to the total weight.

Neutral signals (direction 0) carry no directional information and are
skipped entirely.  An issue with no contributing signal gets **no** row:
absence of data is explicit, never defaulted to neutral.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .models import BillSignal, IssuePosition, SignalType, VotePosition
from .store import InMemoryStore

LOGGER = logging.getLogger(__name__)

POSITION_MIN = -2.0
POSITION_MAX = 2.0
SPONSOR_MULTIPLIER = 1.5
COSPONSOR_MULTIPLIER = 1.0

_VOTE_VALUES: dict[VotePosition, int] = {
    VotePosition.YEA: 1,
    VotePosition.NAY: -1,
    VotePosition.PRESENT: 0,
    VotePosition.NOT_VOTING: 0,
}


def vote_value(position: VotePosition | str) -> int:
    """Map a recorded position to +1 / -1 / 0."""
    try:
        return _VOTE_VALUES[VotePosition(position)]
    except ValueError:
        return 0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_position_score(total: float, total_weight: float) -> float:
    """Rescale a weighted sum to the [-2, 2] position scale."""
    if total_weight <= 0:
        return 0.0
    return clamp((total / total_weight) * 2, POSITION_MIN, POSITION_MAX)


@dataclass
class IssueTally:
    """Running sums for one (legislator, issue) pair."""

    total: float = 0.0
    total_weight: float = 0.0
    count: int = 0

    def add(self, contribution: float, weight: float) -> None:
        self.total += contribution
        self.total_weight += weight
        self.count += 1

    def score_value(self) -> float:
        return normalize_position_score(self.total, self.total_weight)


def _tally_signals(
    signals: list[BillSignal],
    member_votes: dict[str, VotePosition],
    sponsorships: dict[str, bool],
) -> dict[str, IssueTally]:
    tallies: dict[str, IssueTally] = {}
    for signal in signals:
        if signal.direction == 0:
            continue

        if signal.signal_type == SignalType.VOTE:
            position = member_votes.get(signal.external_ref)
            if position is None:
                continue
            contribution = vote_value(position) * signal.direction * signal.weight
            tallies.setdefault(signal.issue_id, IssueTally()).add(contribution, signal.weight)

        elif signal.signal_type == SignalType.BILL_SPONSORSHIP:
            is_sponsor = sponsorships.get(signal.external_ref)
            if is_sponsor is None:
                continue
            multiplier = SPONSOR_MULTIPLIER if is_sponsor else COSPONSOR_MULTIPLIER
            weight = signal.weight * multiplier
            contribution = signal.direction * weight
            tallies.setdefault(signal.issue_id, IssueTally()).add(contribution, weight)

    return tallies


def aggregate_positions(
    politician_id: str,
    signals: list[BillSignal],
    member_votes: dict[str, VotePosition],
    sponsorships: dict[str, bool],
    *,
    active_issue_ids: set[str] | None = None,
    source_version: int = 1,
) -> list[IssuePosition]:
    """Compute every issue position for one legislator.

    Parameters
    ----------
    signals:
        All known signals (both types).  Signals the legislator never acted
        on are ignored.
    member_votes:
        ``vote_id -> position`` for this legislator.
    sponsorships:
        ``bill_id -> is_sponsor`` for this legislator (``False`` means
        cosponsor).
    active_issue_ids:
        When given, signals on other issues are ignored.

    Returns
    -------
    Positions sorted by issue id; issues without data are absent.
    """
    if active_issue_ids is not None:
        signals = [s for s in signals if s.issue_id in active_issue_ids]

    tallies = _tally_signals(signals, member_votes, sponsorships)
    return [
        IssuePosition(
            politician_id=politician_id,
            issue_id=issue_id,
            score_value=tally.score_value(),
            data_points_count=tally.count,
            source_version=source_version,
        )
        for issue_id, tally in sorted(tallies.items())
        if tally.count > 0
    ]


# ── Batch recompute ──────────────────────────────────────────────────────────


@dataclass
class PositionRunSummary:
    politicians_processed: int = 0
    positions_written: int = 0
    alignments_invalidated: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "partial" if self.errors else "ok"


def recompute_positions(
    store: InMemoryStore,
    politician_ids: list[str],
    signals: list[BillSignal],
    votes_by_member: dict[str, dict[str, VotePosition]],
    sponsorships_by_member: dict[str, dict[str, bool]],
    *,
    active_issue_ids: set[str] | None = None,
    source_version: int = 1,
) -> PositionRunSummary:
    """Recompute and overwrite positions for each legislator.

    One legislator's failure is logged and recorded without aborting the
    rest.  When anything was recomputed the whole alignment cache is
    invalidated, since every cached alignment may now be stale.
    """
    summary = PositionRunSummary()
    with store.batch():
        for politician_id in politician_ids:
            try:
                positions = aggregate_positions(
                    politician_id,
                    signals,
                    votes_by_member.get(politician_id, {}),
                    sponsorships_by_member.get(politician_id, {}),
                    active_issue_ids=active_issue_ids,
                    source_version=source_version,
                )
                store.replace_positions(politician_id, positions)
            except Exception as e:
                LOGGER.exception("Position computation failed for %s", politician_id)
                summary.errors.append(f"{politician_id}: {e}")
                continue
            summary.politicians_processed += 1
            summary.positions_written += len(positions)

        if summary.politicians_processed:
            summary.alignments_invalidated = store.invalidate_alignment_cache()

    if summary.politicians_processed:
        LOGGER.info(
            "Recomputed %d positions for %d politicians; cleared %d cached alignments.",
            summary.positions_written,
            summary.politicians_processed,
            summary.alignments_invalidated,
        )
    return summary
