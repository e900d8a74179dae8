"""Member performance scoring and score composition.

Four 0-100 components describe a legislator's record:

- **Productivity**: bills sponsored, cosponsored and enacted, each compared
  with a chamber baseline.
- **Attendance**: share of roll-call votes actually cast.
- **Bipartisanship**: share of sponsored bills with cross-party support,
  floored at 30.
- **Issue alignment**: recency-weighted share of yea votes on the priority
  issues of the active :class:`ScoringConfig`.

The composite ``overall_score`` is their weighted sum, clamped to 0-100.

Missing data is never an error.  Each component has a documented default:
attendance and productivity fall to 0, bipartisanship and issue alignment sit
at a neutral 50.

All rounding is half-up (``2.5 -> 3``), not Python's banker's rounding.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone

from .errors import InvalidScoringConfigError
from .models import (
    DEFAULT_SCORING_CONFIG,
    ChamberAverages,
    LegislativeActivity,
    MemberScores,
    Score,
    ScoreBreakdown,
    ScoringConfig,
    VotePosition,
    VoteRecord,
)

LOGGER = logging.getLogger(__name__)

HALF_LIFE_DAYS = 180.0
NEUTRAL_SCORE = 50
BIPARTISAN_FLOOR = 30
WEIGHT_TOLERANCE = 1e-6

# Placeholder components of the raw vote-only path; it has no bill data.
PLACEHOLDER_PRODUCTIVITY = 50
PLACEHOLDER_BIPARTISANSHIP = 50

_SECONDS_PER_DAY = 60 * 60 * 24


def round_score(value: float) -> int:
    """Round half-up to the nearest integer."""
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ── Configuration validation ─────────────────────────────────────────────────


def validate_scoring_config(config: ScoringConfig) -> None:
    """Raise :class:`InvalidScoringConfigError` unless the weights sum to 1.0.

    Negative weights are rejected too.  Nothing is renormalized: the caller
    must re-prompt or fall back to :data:`DEFAULT_SCORING_CONFIG`.
    """
    weights = {
        "productivity_weight": config.productivity_weight,
        "attendance_weight": config.attendance_weight,
        "bipartisanship_weight": config.bipartisanship_weight,
        "issue_alignment_weight": config.issue_alignment_weight,
    }
    for name, value in weights.items():
        if not math.isfinite(value) or value < 0:
            raise InvalidScoringConfigError(f"{name} must be a non-negative number, got {value!r}")
    total = config.total
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise InvalidScoringConfigError(
            f"Scoring weights must sum to 1.0 (100%), got {total:.4f}",
            total=total,
        )


def validate_percentages(
    productivity: float,
    attendance: float,
    bipartisanship: float,
    issue_alignment: float,
) -> None:
    """Percentage form of :func:`validate_scoring_config` (each 0-100, sum 100)."""
    for value in (productivity, attendance, bipartisanship, issue_alignment):
        if not math.isfinite(value) or value < 0 or value > 100:
            raise InvalidScoringConfigError(f"Weight percentages must be 0-100, got {value!r}")
    total = productivity + attendance + bipartisanship + issue_alignment
    if abs(total - 100) > WEIGHT_TOLERANCE * 100:
        raise InvalidScoringConfigError(
            f"Weight percentages must sum to 100, got {total:g}",
            total=total / 100,
        )


# ── Components ───────────────────────────────────────────────────────────────


def compute_attendance_score(votes_cast: int, votes_missed: int) -> int:
    """Share of votes cast, 0-100.  No votes at all scores 0."""
    total = votes_cast + votes_missed
    if total <= 0:
        return 0
    return round_score(votes_cast / total * 100)


def _ratio(count: float, baseline: float, cap: float) -> float:
    if baseline <= 0:
        return 0.0
    return min(cap, count / baseline)


def compute_productivity_score(
    bills_sponsored: int,
    bills_cosponsored: int,
    bills_enacted: int,
    chamber_averages: ChamberAverages | None = None,
) -> int:
    """Legislative output against chamber baselines, 0-100.

    Each count is divided by its baseline and capped (sponsored and
    cosponsored at 2x, enacted at 3x), then weighted 30 / 20 / 50.  Enacted
    bills weigh most because they are the outcome that matters.
    """
    averages = chamber_averages or ChamberAverages()
    sponsor_ratio = _ratio(bills_sponsored, averages.sponsored, 2)
    cosponsor_ratio = _ratio(bills_cosponsored, averages.cosponsored, 2)
    enacted_ratio = _ratio(bills_enacted, averages.enacted, 3) if bills_enacted > 0 else 0.0

    raw = sponsor_ratio * 30 + cosponsor_ratio * 20 + enacted_ratio * 50
    return round_score(min(100.0, raw))


def compute_bipartisanship_score(bipartisan_bills: int, total_bills_sponsored: int) -> int:
    """Cross-party share of sponsored bills plus a floor of 30, capped at 100.

    With no sponsored bills there is nothing to judge: neutral 50.
    """
    if total_bills_sponsored <= 0:
        return NEUTRAL_SCORE
    ratio = bipartisan_bills / total_bills_sponsored
    return round_score(min(100.0, ratio * 100 + BIPARTISAN_FLOOR))


def _parse_vote_date(value: str | date | datetime) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except (AttributeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_recency_weight(
    vote_date: str | date | datetime,
    half_life_days: float = HALF_LIFE_DAYS,
    *,
    now: datetime | None = None,
) -> float:
    """Exponential decay weight ``0.5 ** (days_since_vote / half_life_days)``.

    A vote today weighs 1.0, one half-life ago 0.5.  An unparseable date
    weighs 0.0 so it cannot poison the aggregate.
    """
    parsed = _parse_vote_date(vote_date)
    if parsed is None:
        LOGGER.warning("Unparseable vote date %r, giving it no weight.", vote_date)
        return 0.0
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    diff_days = (now - parsed).total_seconds() / _SECONDS_PER_DAY
    return math.pow(0.5, diff_days / half_life_days)


def compute_issue_alignment_score(
    votes: list[VoteRecord],
    priority_issues: tuple[str, ...] | list[str],
    *,
    now: datetime | None = None,
    half_life_days: float = HALF_LIFE_DAYS,
) -> int:
    """Recency-weighted yea share on priority issues, 0-100.

    The numerator sums recency weights of yea votes on priority issues, the
    denominator counts every priority-issue vote.  No such votes: neutral 50.
    """
    priority = set(priority_issues)
    priority_votes = 0
    priority_yea = 0.0
    for vote in votes:
        if not vote.issue_area or vote.issue_area not in priority:
            continue
        priority_votes += 1
        if vote.position == VotePosition.YEA:
            priority_yea += compute_recency_weight(vote.date, half_life_days, now=now)
    if priority_votes == 0:
        return NEUTRAL_SCORE
    return round_score(_clamp(priority_yea / priority_votes * 100, 0, 100))


# ── Vote tallies & bipartisan detection ──────────────────────────────────────


@dataclass
class VoteTally:
    yea: int = 0
    nay: int = 0
    present: int = 0
    not_voting: int = 0

    @property
    def votes_cast(self) -> int:
        return self.yea + self.nay + self.present

    @property
    def votes_missed(self) -> int:
        return self.not_voting

    @property
    def total(self) -> int:
        return self.votes_cast + self.votes_missed


def tally_votes(votes: list[VoteRecord]) -> VoteTally:
    """Count positions.  Present counts as cast; only not-voting is missed."""
    tally = VoteTally()
    for vote in votes:
        if vote.position == VotePosition.YEA:
            tally.yea += 1
        elif vote.position == VotePosition.NAY:
            tally.nay += 1
        elif vote.position == VotePosition.PRESENT:
            tally.present += 1
        else:
            tally.not_voting += 1
    return tally


def _party_letter(party: str) -> str:
    return party.strip()[:1].upper() if party else ""


def is_bipartisan(member_party: str, other_party: str) -> bool:
    """True for a Democrat/Republican pairing in either order."""
    pair = {_party_letter(member_party), _party_letter(other_party)}
    return pair == {"D", "R"}


def count_bipartisan_bills(member_party: str, counterpart_parties: list[str]) -> int:
    """Count bills whose counterpart (sponsor or cosponsor) sits across the aisle."""
    return sum(1 for party in counterpart_parties if is_bipartisan(member_party, party))


# ── Composition ──────────────────────────────────────────────────────────────


def compose_overall_score(
    productivity: float,
    attendance: float,
    bipartisanship: float,
    issue_alignment: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> int:
    """Weighted sum of the four components, clamped to 0-100.

    Does not validate *config*; callers validate before composing.
    """
    weighted = (
        productivity * config.productivity_weight
        + attendance * config.attendance_weight
        + bipartisanship * config.bipartisanship_weight
        + issue_alignment * config.issue_alignment_weight
    )
    return round_score(_clamp(weighted, 0, 100))


def compute_overall_score(
    scores: MemberScores,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> int:
    """Re-compose a stored :class:`MemberScores` under *config*."""
    return compose_overall_score(
        scores.productivity_score,
        scores.attendance_score,
        scores.bipartisanship_score,
        scores.issue_alignment_score,
        config,
    )


def compute_score_from_votes(
    votes: list[VoteRecord],
    config: ScoringConfig | None = None,
    *,
    member_id: str = "",
    now: datetime | None = None,
    half_life_days: float = HALF_LIFE_DAYS,
) -> Score:
    """Score a member from raw vote records only.

    Without bill data, productivity and bipartisanship are flat 50
    placeholders.  An empty vote list yields an all-zero breakdown and an
    overall score of 0.
    """
    config = config or DEFAULT_SCORING_CONFIG
    validate_scoring_config(config)

    if not votes:
        return Score(member_id=member_id, score=0, breakdown=ScoreBreakdown())

    tally = tally_votes(votes)
    breakdown = ScoreBreakdown(
        productivity=PLACEHOLDER_PRODUCTIVITY,
        attendance=compute_attendance_score(tally.votes_cast, tally.votes_missed),
        bipartisanship=PLACEHOLDER_BIPARTISANSHIP,
        issue_alignment=compute_issue_alignment_score(
            votes, config.priority_issues, now=now, half_life_days=half_life_days
        ),
    )
    overall = compose_overall_score(
        breakdown.productivity,
        breakdown.attendance,
        breakdown.bipartisanship,
        breakdown.issue_alignment,
        config,
    )
    return Score(member_id=member_id, score=overall, breakdown=breakdown)


def build_member_scores(
    member_id: str,
    votes: list[VoteRecord],
    activity: LegislativeActivity | None = None,
    config: ScoringConfig | None = None,
    *,
    user_id: str | None = None,
    chamber_averages: ChamberAverages | None = None,
    now: datetime | None = None,
    half_life_days: float = HALF_LIFE_DAYS,
) -> MemberScores:
    """Full performance snapshot from votes plus bill counters.

    This is the production scoring path: productivity and bipartisanship use
    their real formulas rather than the placeholders of
    :func:`compute_score_from_votes`.  *user_id* marks a per-user record
    built from that user's weights; ``None`` is the system default.
    """
    config = config or DEFAULT_SCORING_CONFIG
    validate_scoring_config(config)
    activity = activity or LegislativeActivity(member_id=member_id)

    tally = tally_votes(votes)
    productivity = compute_productivity_score(
        activity.bills_sponsored,
        activity.bills_cosponsored,
        activity.bills_enacted,
        chamber_averages,
    )
    attendance = compute_attendance_score(tally.votes_cast, tally.votes_missed)
    bipartisanship = compute_bipartisanship_score(
        activity.bipartisan_bills, activity.bills_sponsored
    )
    issue_alignment = compute_issue_alignment_score(
        votes, config.priority_issues, now=now, half_life_days=half_life_days
    )

    return MemberScores(
        member_id=member_id,
        user_id=user_id,
        overall_score=compose_overall_score(
            productivity, attendance, bipartisanship, issue_alignment, config
        ),
        productivity_score=productivity,
        attendance_score=attendance,
        bipartisanship_score=bipartisanship,
        issue_alignment_score=issue_alignment,
        votes_cast=tally.votes_cast,
        votes_missed=tally.votes_missed,
        bills_sponsored=activity.bills_sponsored,
        bills_cosponsored=activity.bills_cosponsored,
        bills_enacted=activity.bills_enacted,
        bipartisan_bills=activity.bipartisan_bills,
    )


# ── Presentation helpers ─────────────────────────────────────────────────────


def get_score_level(score: float) -> str:
    """Bucket a 0-100 score: excellent / good / average / poor / bad."""
    if score >= 80:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 60:
        return "average"
    if score >= 50:
        return "poor"
    return "bad"


_LEVEL_DESCRIPTIONS: dict[str, str] = {
    "excellent": "Excellent performer with high activity and bipartisan engagement",
    "good": "Strong performer with good legislative engagement",
    "average": "Moderate performer with average legislative activity",
    "poor": "Below average with room for improvement",
    "bad": "Low engagement with legislative activities",
}


def get_score_description(score: float) -> str:
    return _LEVEL_DESCRIPTIONS[get_score_level(score)]
