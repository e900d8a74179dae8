from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class VotePosition(str, Enum):
    """A legislator's recorded position on one roll-call vote."""

    YEA = "yea"
    NAY = "nay"
    PRESENT = "present"
    NOT_VOTING = "not_voting"


class SignalType(str, Enum):
    VOTE = "vote"
    BILL_SPONSORSHIP = "bill_sponsorship"


@dataclass
class VoteRecord:
    position: VotePosition
    date: str  # ISO date, e.g. "2025-03-11"
    bill_id: str | None = None
    issue_area: str | None = None  # issue slug the vote is tagged with
    member_id: str = ""
    vote_id: str = ""


@dataclass
class Issue:
    id: str
    slug: str  # e.g. "healthcare"
    label: str = ""
    description: str = ""
    is_active: bool = True


@dataclass
class PolicyAreaMapping:
    policy_area: str  # Congress.gov policy area, e.g. "Health"
    issue_id: str
    relevance_weight: float = 1.0


@dataclass
class BillRecord:
    id: str
    title: str
    policy_area: str | None = None
    short_title: str | None = None
    summary: str | None = None
    subjects: list[str] = field(default_factory=list)


@dataclass
class IssueClassification:
    issue_slug: str
    direction: int  # -1 conservative, 0 neutral, +1 progressive
    confidence: float
    reasoning: str = ""


@dataclass
class BillSignal:
    """Directional, weighted evidence linking a bill or vote to an issue.

    Natural key: ``(issue_id, signal_type, external_ref)``.
    """

    issue_id: str
    external_ref: str  # bill id for sponsorships, vote id for votes
    direction: int  # -1, 0 or +1
    weight: float  # confidence, 0.0 - 1.0
    signal_type: SignalType = SignalType.BILL_SPONSORSHIP
    description: str = ""

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.issue_id, self.signal_type.value, self.external_ref)


@dataclass
class BillSponsorship:
    member_id: str
    bill_id: str
    is_sponsor: bool  # True = primary sponsor, False = cosponsor


@dataclass
class IssuePosition:
    politician_id: str
    issue_id: str
    score_value: float  # -2.0 .. +2.0, same scale as user answers
    data_points_count: int
    source_version: int = 1


@dataclass
class ScoreBreakdown:
    productivity: int = 0
    attendance: int = 0
    bipartisanship: int = 0
    issue_alignment: int = 0


@dataclass
class Score:
    member_id: str
    score: int
    breakdown: ScoreBreakdown


@dataclass
class MemberScores:
    """One legislator's performance snapshot (all scores 0-100)."""

    member_id: str
    overall_score: int
    productivity_score: int
    attendance_score: int
    bipartisanship_score: int
    issue_alignment_score: int
    # ── Raw counters feeding the scores ──
    votes_cast: int = 0
    votes_missed: int = 0
    bills_sponsored: int = 0
    bills_cosponsored: int = 0
    bills_enacted: int = 0
    bipartisan_bills: int = 0
    user_id: str | None = None  # None = system default record


@dataclass
class LegislativeActivity:
    """Bill counters for one member, as delivered by the ingestion layer."""

    member_id: str
    bills_sponsored: int = 0
    bills_cosponsored: int = 0
    bills_enacted: int = 0
    bipartisan_bills: int = 0


@dataclass(frozen=True)
class ChamberAverages:
    """Per-congress baselines a legislator's bill counts are compared with."""

    sponsored: float = 5.0
    cosponsored: float = 50.0
    enacted: float = 0.5


@dataclass(frozen=True)
class ScoringConfig:
    """Weighting contract for the composite score.

    Weights are fractions that must sum to 1.0.  The UI presents them as
    percentages; use :meth:`from_percentages` to convert.
    """

    productivity_weight: float = 0.25
    attendance_weight: float = 0.25
    bipartisanship_weight: float = 0.25
    issue_alignment_weight: float = 0.25
    priority_issues: tuple[str, ...] = ()

    @property
    def total(self) -> float:
        return (
            self.productivity_weight
            + self.attendance_weight
            + self.bipartisanship_weight
            + self.issue_alignment_weight
        )

    @classmethod
    def from_percentages(
        cls,
        productivity: float = 25,
        attendance: float = 25,
        bipartisanship: float = 25,
        issue_alignment: float = 25,
        priority_issues: list[str] | tuple[str, ...] = (),
    ) -> ScoringConfig:
        return cls(
            productivity_weight=productivity / 100,
            attendance_weight=attendance / 100,
            bipartisanship_weight=bipartisanship / 100,
            issue_alignment_weight=issue_alignment / 100,
            priority_issues=tuple(priority_issues),
        )


DEFAULT_SCORING_CONFIG = ScoringConfig()


@dataclass
class IssueQuestion:
    id: str
    issue_id: str
    weight: float = 1.0  # sign encodes polarity of the question


@dataclass
class UserAnswer:
    question_id: str
    answer_value: int  # -2 strongly oppose .. +2 strongly support


@dataclass
class UserIssuePriority:
    issue_id: str
    priority_level: int = 1


@dataclass
class AlignmentResult:
    user_id: str
    politician_id: str
    overall_alignment: int  # 0-100
    issue_count: int
    breakdown: dict[str, int] = field(default_factory=dict)  # issue slug -> 0-100
    profile_fingerprint: str = ""  # digest of the answers and priorities used


@dataclass
class MemberProfile:
    id: str
    state: str = ""
    party: str = ""  # "D", "R", "I"
    chamber: str = ""  # "house" or "senate"
    full_name: str = ""
    in_office: bool = True


@dataclass
class StateScore:
    state: str
    avg_member_score: int
    member_count: int
    avg_productivity: int = 0
    avg_attendance: int = 0
    avg_bipartisanship: int = 0
    avg_issue_alignment: int = 0
    house_count: int = 0
    senate_count: int = 0
    democrat_count: int = 0
    republican_count: int = 0
    independent_count: int = 0
