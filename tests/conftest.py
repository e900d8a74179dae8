from __future__ import annotations

from datetime import datetime, timezone

import pytest

from civic_score.dataset import Dataset
from civic_score.models import (
    BillRecord,
    BillSignal,
    BillSponsorship,
    Issue,
    IssueQuestion,
    LegislativeActivity,
    MemberProfile,
    PolicyAreaMapping,
    SignalType,
    UserAnswer,
    VotePosition,
    VoteRecord,
)
from civic_score.store import InMemoryStore

NOW = datetime(2025, 7, 1, tzinfo=timezone.utc)

# ── Issue fixtures ────────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def issues() -> list[Issue]:
    return [
        Issue(id="i-health", slug="healthcare", label="Healthcare"),
        Issue(id="i-climate", slug="climate", label="Climate"),
        Issue(id="i-guns", slug="gun-policy", label="Gun Policy"),
        Issue(id="i-old", slug="retired", label="Retired issue", is_active=False),
    ]


@pytest.fixture
def issue_ids_by_slug(issues: list[Issue]) -> dict[str, str]:
    return {i.slug: i.id for i in issues}


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


# ── Dataset fixture ───────────────────────────────────────────────────────────


@pytest.fixture
def small_dataset(issues: list[Issue]) -> Dataset:
    """Two legislators, three bills, one classified roll-call vote, one user."""
    return Dataset(
        issues=issues,
        mappings=[PolicyAreaMapping(policy_area="Health", issue_id="i-health", relevance_weight=0.8)],
        bills=[
            BillRecord(id="hr1", title="Affordable Care Expansion Act", policy_area="Health"),
            BillRecord(id="hr2", title="Clean Air Act Amendments"),
            BillRecord(id="hr3", title="Post Office Naming Act"),
        ],
        classifications={
            "hr1": '[{"issue_slug": "healthcare", "direction": 1, "confidence": 0.9, '
            '"reasoning": "Expands coverage"}]',
            "hr2": 'Sure! ```json\n[{"issue_slug": "climate", "direction": 1, '
            '"confidence": 0.85, "reasoning": "Cuts emissions"}]\n```',
        },
        signals=[
            BillSignal(
                issue_id="i-guns",
                external_ref="roll-42",
                direction=-1,
                weight=0.7,
                signal_type=SignalType.VOTE,
                description="AI: Expands concealed carry",
            )
        ],
        votes=[
            VoteRecord(
                position=VotePosition.NAY,
                date="2025-06-01",
                member_id="m1",
                vote_id="roll-42",
                issue_area="gun-policy",
            ),
            VoteRecord(
                position=VotePosition.YEA,
                date="2025-06-01",
                member_id="m2",
                vote_id="roll-42",
                issue_area="gun-policy",
            ),
            VoteRecord(
                position=VotePosition.NOT_VOTING,
                date="2025-05-01",
                member_id="m2",
                vote_id="roll-41",
            ),
        ],
        sponsorships=[
            BillSponsorship(member_id="m1", bill_id="hr1", is_sponsor=True),
            BillSponsorship(member_id="m1", bill_id="hr2", is_sponsor=False),
            BillSponsorship(member_id="m2", bill_id="hr3", is_sponsor=True),
        ],
        members=[
            MemberProfile(id="m1", state="CA", party="D", chamber="house", full_name="Ana Reyes"),
            MemberProfile(id="m2", state="TX", party="R", chamber="senate", full_name="Bo Grant"),
        ],
        activity={
            "m1": LegislativeActivity(
                member_id="m1", bills_sponsored=5, bills_cosponsored=50, bipartisan_bills=2
            ),
        },
        questions=[
            IssueQuestion(id="q1", issue_id="i-health", weight=1.0),
            IssueQuestion(id="q2", issue_id="i-guns", weight=-1.0),
        ],
        answers={"u1": [UserAnswer(question_id="q1", answer_value=2)]},
        scoring_preferences={
            "u1": {"productivity": 10, "attendance": 70, "bipartisanship": 10, "issue_alignment": 10},
        },
    )
