"""User ↔ legislator issue alignment.

A user answers questions per issue on a -2 .. +2 scale; a legislator has a
computed position per issue on the same scale.  Per issue the alignment is
``100 * (1 - |user - politician| / 4)``: identical stances score 100,
opposite extremes 0.  The overall alignment is the priority-weighted mean of
the per-issue values.

Only issues where the legislator *has* a position (at least one data point)
count.  A legislator with no overlapping issue gets no result at all, which
is different from a neutral 50.
"""

from __future__ import annotations

import hashlib
import json
import logging

from .models import (
    AlignmentResult,
    IssuePosition,
    IssueQuestion,
    UserAnswer,
    UserIssuePriority,
)
from .scoring import round_score
from .store import InMemoryStore

LOGGER = logging.getLogger(__name__)

_MAX_DISTANCE = 4.0  # |(+2) - (-2)|


def compute_user_issue_scores(
    answers: list[UserAnswer],
    questions: list[IssueQuestion],
) -> dict[str, float]:
    """Collapse a user's answers into one -2 .. +2 stance per issue.

    A question's weight sign encodes its polarity: answering "strongly
    support" to a negatively weighted question counts as -2 on the issue.
    Issues without an answered question are absent.
    """
    question_by_id = {q.id: q for q in questions}
    weighted: dict[str, float] = {}
    totals: dict[str, float] = {}
    for answer in answers:
        question = question_by_id.get(answer.question_id)
        if question is None:
            continue
        weight = abs(question.weight)
        polarity = 1 if question.weight > 0 else -1
        weighted[question.issue_id] = (
            weighted.get(question.issue_id, 0.0) + answer.answer_value * polarity * weight
        )
        totals[question.issue_id] = totals.get(question.issue_id, 0.0) + weight

    return {
        issue_id: weighted[issue_id] / total
        for issue_id, total in totals.items()
        if total > 0
    }


def issue_alignment_pct(user_score: float, politician_score: float) -> int:
    """Closeness of two stances on the -2 .. +2 scale, as 0-100."""
    distance = min(abs(user_score - politician_score), _MAX_DISTANCE)
    return round_score(100 * (1 - distance / _MAX_DISTANCE))


def compute_alignment(
    user_id: str,
    politician_id: str,
    user_issue_scores: dict[str, float],
    positions: list[IssuePosition],
    *,
    priorities: list[UserIssuePriority] | None = None,
    issue_slugs: dict[str, str] | None = None,
) -> AlignmentResult | None:
    """Alignment between one user and one legislator.

    Parameters
    ----------
    user_issue_scores:
        Output of :func:`compute_user_issue_scores`.
    positions:
        The legislator's :class:`IssuePosition` rows.
    priorities:
        Per-issue priority levels; unlisted issues weigh 1.
    issue_slugs:
        ``issue_id -> slug`` used to key the breakdown.  Falls back to the
        issue id.

    Returns
    -------
    ``None`` when no issue overlaps (not enough data).
    """
    position_by_issue = {
        p.issue_id: p
        for p in positions
        if p.politician_id == politician_id and p.data_points_count > 0
    }
    priority_by_issue = {p.issue_id: p.priority_level for p in (priorities or [])}
    slugs = issue_slugs or {}

    breakdown: dict[str, int] = {}
    total_weight = 0.0
    weighted = 0.0
    for issue_id, user_score in sorted(user_issue_scores.items()):
        position = position_by_issue.get(issue_id)
        if position is None:
            continue
        pct = issue_alignment_pct(user_score, position.score_value)
        breakdown[slugs.get(issue_id, issue_id)] = pct
        priority = max(priority_by_issue.get(issue_id, 1), 0)
        total_weight += priority
        weighted += pct * priority

    if not breakdown or total_weight <= 0:
        return None

    return AlignmentResult(
        user_id=user_id,
        politician_id=politician_id,
        overall_alignment=round_score(weighted / total_weight),
        issue_count=len(breakdown),
        breakdown=breakdown,
    )


def profile_fingerprint(
    answers: list[UserAnswer],
    priorities: list[UserIssuePriority] | None = None,
) -> str:
    """Order-independent digest of a user's answers and priorities."""
    payload = {
        "answers": sorted([a.question_id, a.answer_value] for a in answers),
        "priorities": sorted([p.issue_id, p.priority_level] for p in (priorities or [])),
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()[:16]


def get_or_compute_alignment(
    store: InMemoryStore,
    user_id: str,
    politician_id: str,
    answers: list[UserAnswer],
    questions: list[IssueQuestion],
    *,
    priorities: list[UserIssuePriority] | None = None,
    issue_slugs: dict[str, str] | None = None,
) -> AlignmentResult | None:
    """Serve a cached alignment, computing and caching it on a miss.

    A cached row built from different answers or priorities counts as a
    miss, and the user's other cached rows are dropped with it.  Misses
    without enough data are not cached, so they are retried once positions
    arrive.
    """
    fingerprint = profile_fingerprint(answers, priorities)
    cached = store.get_alignment(user_id, politician_id)
    if cached is not None:
        if cached.profile_fingerprint == fingerprint:
            return cached
        dropped = store.invalidate_alignments_for(user_id)
        LOGGER.info("Profile of %s changed; dropped %d cached alignments.", user_id, dropped)

    result = compute_alignment(
        user_id,
        politician_id,
        compute_user_issue_scores(answers, questions),
        store.positions_for(politician_id),
        priorities=priorities,
        issue_slugs=issue_slugs,
    )
    if result is None:
        LOGGER.debug("No overlapping issues for user %s / %s.", user_id, politician_id)
        return None
    result.profile_fingerprint = fingerprint
    store.save_alignment(result)
    return result
