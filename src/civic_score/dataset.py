"""Load engine inputs from a directory of JSON files.

Layout of the data directory (every file optional)::

    issues.json                  [{id, slug, label, description, is_active}]
    policy_area_mappings.json    [{policy_area, issue_id, relevance_weight}]
    bills.json                   [{id, title, policy_area, short_title, summary, subjects}]
    classifications.json         {bill_id: "<raw classifier reply text>"}
    signals.json                 [{issue_id, external_ref, direction, weight, signal_type, ...}]
    votes.json                   [{member_id, vote_id, position, date, bill_id, issue_area}]
    sponsorships.json            [{member_id, bill_id, is_sponsor}]
    members.json                 [{id, state, party, chamber, full_name, in_office}]
    activity.json                [{member_id, bills_sponsored, bills_cosponsored, ...}]
    questions.json               [{id, issue_id, weight}]
    answers.json                 {user_id: [{question_id, answer_value}]}
    priorities.json              {user_id: [{issue_id, priority_level}]}
    scoring_preferences.json     {user_id: {productivity, attendance, bipartisanship,
                                            issue_alignment, priority_issues}}

A missing file loads as empty.  A file that exists but cannot be decoded, or
whose rows do not match the expected shape, raises :class:`DatasetError`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import DatasetError
from .models import (
    BillRecord,
    BillSignal,
    BillSponsorship,
    Issue,
    IssueQuestion,
    LegislativeActivity,
    MemberProfile,
    PolicyAreaMapping,
    ScoringConfig,
    SignalType,
    UserAnswer,
    UserIssuePriority,
    VotePosition,
    VoteRecord,
)
from .scoring import count_bipartisan_bills, validate_percentages

LOGGER = logging.getLogger(__name__)

# Congress.gov / clerk spellings → canonical positions.
_POSITION_ALIASES: dict[str, VotePosition] = {
    "yea": VotePosition.YEA,
    "yes": VotePosition.YEA,
    "aye": VotePosition.YEA,
    "nay": VotePosition.NAY,
    "no": VotePosition.NAY,
    "present": VotePosition.PRESENT,
    "not_voting": VotePosition.NOT_VOTING,
    "not voting": VotePosition.NOT_VOTING,
    "absent": VotePosition.NOT_VOTING,
}


def parse_vote_position(raw: str) -> VotePosition:
    """Normalize a recorded position string (``"Yea"``, ``"Not Voting"`` ...)."""
    key = str(raw).strip().lower()
    try:
        return _POSITION_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown vote position {raw!r}") from None


@dataclass
class Dataset:
    """Every input record the batch jobs and the API read."""

    issues: list[Issue] = field(default_factory=list)
    mappings: list[PolicyAreaMapping] = field(default_factory=list)
    bills: list[BillRecord] = field(default_factory=list)
    classifications: dict[str, str] = field(default_factory=dict)  # bill_id -> reply text
    signals: list[BillSignal] = field(default_factory=list)
    votes: list[VoteRecord] = field(default_factory=list)
    sponsorships: list[BillSponsorship] = field(default_factory=list)
    members: list[MemberProfile] = field(default_factory=list)
    activity: dict[str, LegislativeActivity] = field(default_factory=dict)
    questions: list[IssueQuestion] = field(default_factory=list)
    answers: dict[str, list[UserAnswer]] = field(default_factory=dict)
    priorities: dict[str, list[UserIssuePriority]] = field(default_factory=dict)
    scoring_preferences: dict[str, dict] = field(default_factory=dict)

    # ── Lookups ──

    @property
    def issue_ids_by_slug(self) -> dict[str, str]:
        return {i.slug: i.id for i in self.issues}

    @property
    def issue_slugs(self) -> dict[str, str]:
        """``issue_id -> slug``."""
        return {i.id: i.slug for i in self.issues}

    @property
    def active_issue_ids(self) -> set[str]:
        return {i.id for i in self.issues if i.is_active}

    @property
    def mappings_by_area(self) -> dict[str, PolicyAreaMapping]:
        return {m.policy_area: m for m in self.mappings}

    def politician_ids(self) -> list[str]:
        """Legislators to compute positions and scores for.

        With a member roster, only members in office.  Without one, anyone
        who appears in votes or sponsorships.
        """
        if self.members:
            return sorted(m.id for m in self.members if m.in_office)
        ids = {v.member_id for v in self.votes if v.member_id}
        ids.update(s.member_id for s in self.sponsorships)
        return sorted(ids)

    def activity_for(self, member_id: str) -> LegislativeActivity | None:
        """Bill counters for *member_id*.

        An ``activity.json`` row wins.  Otherwise the counters are derived
        from sponsorships: a cosponsored bill is bipartisan when its sponsor
        sits across the aisle.  None when the member has neither.
        """
        if member_id in self.activity:
            return self.activity[member_id]
        bills = self.sponsorships_by_member().get(member_id)
        if not bills:
            return None

        party_by_member = {m.id: m.party for m in self.members}
        sponsors_by_bill: dict[str, list[str]] = {}
        for s in self.sponsorships:
            if s.is_sponsor:
                sponsors_by_bill.setdefault(s.bill_id, []).append(s.member_id)

        cosponsored = [bill_id for bill_id, is_sponsor in bills.items() if not is_sponsor]
        sponsor_parties = [
            party_by_member.get(sponsor_id, "")
            for bill_id in cosponsored
            for sponsor_id in sponsors_by_bill.get(bill_id, [])[:1]
        ]
        return LegislativeActivity(
            member_id=member_id,
            bills_sponsored=len(bills) - len(cosponsored),
            bills_cosponsored=len(cosponsored),
            bipartisan_bills=count_bipartisan_bills(
                party_by_member.get(member_id, ""), sponsor_parties
            ),
        )

    def votes_by_member(self) -> dict[str, list[VoteRecord]]:
        grouped: dict[str, list[VoteRecord]] = {}
        for v in self.votes:
            grouped.setdefault(v.member_id, []).append(v)
        return grouped

    def vote_positions_by_member(self) -> dict[str, dict[str, VotePosition]]:
        """``member_id -> {vote_id: position}`` for position aggregation."""
        grouped: dict[str, dict[str, VotePosition]] = {}
        for v in self.votes:
            if v.vote_id:
                grouped.setdefault(v.member_id, {})[v.vote_id] = v.position
        return grouped

    def sponsorships_by_member(self) -> dict[str, dict[str, bool]]:
        """``member_id -> {bill_id: is_sponsor}``.

        A member listed as both sponsor and cosponsor of one bill counts as
        the sponsor.
        """
        grouped: dict[str, dict[str, bool]] = {}
        for s in self.sponsorships:
            bills = grouped.setdefault(s.member_id, {})
            bills[s.bill_id] = bills.get(s.bill_id, False) or s.is_sponsor
        return grouped

    def scoring_config_for(self, user_id: str) -> ScoringConfig | None:
        """The user's weighting as a :class:`ScoringConfig`, or None if unset.

        Raises :class:`InvalidScoringConfigError` when the stored percentages
        are out of range or do not sum to 100.
        """
        prefs = self.scoring_preferences.get(user_id)
        if prefs is None:
            return None
        return config_from_percentages(prefs)


def config_from_percentages(prefs: dict[str, Any]) -> ScoringConfig:
    """Validate a percentage mapping and convert it to a :class:`ScoringConfig`."""
    productivity = float(prefs.get("productivity", 25))
    attendance = float(prefs.get("attendance", 25))
    bipartisanship = float(prefs.get("bipartisanship", 25))
    issue_alignment = float(prefs.get("issue_alignment", 25))
    validate_percentages(productivity, attendance, bipartisanship, issue_alignment)
    return ScoringConfig.from_percentages(
        productivity=productivity,
        attendance=attendance,
        bipartisanship=bipartisanship,
        issue_alignment=issue_alignment,
        priority_issues=tuple(prefs.get("priority_issues") or ()),
    )


# ── Row coercion ─────────────────────────────────────────────────────────────


def _issue(d: dict) -> Issue:
    return Issue(
        id=str(d["id"]),
        slug=d["slug"],
        label=d.get("label", ""),
        description=d.get("description", ""),
        is_active=bool(d.get("is_active", True)),
    )


def _mapping(d: dict) -> PolicyAreaMapping:
    return PolicyAreaMapping(
        policy_area=d["policy_area"],
        issue_id=str(d["issue_id"]),
        relevance_weight=float(d.get("relevance_weight", 1.0)),
    )


def _bill(d: dict) -> BillRecord:
    return BillRecord(
        id=str(d["id"]),
        title=d.get("title", ""),
        policy_area=d.get("policy_area"),
        short_title=d.get("short_title"),
        summary=d.get("summary"),
        subjects=list(d.get("subjects") or []),
    )


def _signal(d: dict) -> BillSignal:
    return BillSignal(
        issue_id=str(d["issue_id"]),
        external_ref=str(d["external_ref"]),
        direction=int(d["direction"]),
        weight=float(d["weight"]),
        signal_type=SignalType(d.get("signal_type", SignalType.BILL_SPONSORSHIP.value)),
        description=d.get("description", ""),
    )


def _vote(d: dict) -> VoteRecord:
    return VoteRecord(
        position=parse_vote_position(d["position"]),
        date=str(d["date"]),
        bill_id=d.get("bill_id"),
        issue_area=d.get("issue_area"),
        member_id=str(d.get("member_id", "")),
        vote_id=str(d.get("vote_id", "")),
    )


def _sponsorship(d: dict) -> BillSponsorship:
    return BillSponsorship(
        member_id=str(d["member_id"]),
        bill_id=str(d["bill_id"]),
        is_sponsor=bool(d.get("is_sponsor", False)),
    )


def _member(d: dict) -> MemberProfile:
    return MemberProfile(
        id=str(d["id"]),
        state=d.get("state", ""),
        party=d.get("party", ""),
        chamber=(d.get("chamber") or "").lower(),
        full_name=d.get("full_name", ""),
        in_office=bool(d.get("in_office", True)),
    )


def _activity(d: dict) -> LegislativeActivity:
    return LegislativeActivity(
        member_id=str(d["member_id"]),
        bills_sponsored=int(d.get("bills_sponsored", 0)),
        bills_cosponsored=int(d.get("bills_cosponsored", 0)),
        bills_enacted=int(d.get("bills_enacted", 0)),
        bipartisan_bills=int(d.get("bipartisan_bills", 0)),
    )


def _question(d: dict) -> IssueQuestion:
    return IssueQuestion(
        id=str(d["id"]),
        issue_id=str(d["issue_id"]),
        weight=float(d.get("weight", 1.0)),
    )


def _answer(d: dict) -> UserAnswer:
    return UserAnswer(question_id=str(d["question_id"]), answer_value=int(d["answer_value"]))


def _priority(d: dict) -> UserIssuePriority:
    return UserIssuePriority(
        issue_id=str(d["issue_id"]),
        priority_level=int(d.get("priority_level", 1)),
    )


# ── File readers ─────────────────────────────────────────────────────────────


def _read_json(path: Path, expected: type) -> Any:
    if not path.exists():
        LOGGER.debug("%s not found, treating as empty.", path)
        return expected()
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetError(f"Cannot read {path}: {e}") from e
    if not isinstance(raw, expected):
        raise DatasetError(f"{path} must hold a JSON {expected.__name__}")
    return raw


def _load_rows(path: Path, build: Callable[[dict], Any]) -> list:
    rows = _read_json(path, list)
    try:
        return [build(d) for d in rows]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DatasetError(f"Bad row in {path}: {e}") from e


def _load_per_user(path: Path, build: Callable[[dict], Any]) -> dict[str, list]:
    raw = _read_json(path, dict)
    try:
        return {str(uid): [build(d) for d in rows] for uid, rows in raw.items()}
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DatasetError(f"Bad row in {path}: {e}") from e


def load_dataset(data_dir: Path) -> Dataset:
    """Read every input file under *data_dir*."""
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        LOGGER.warning("Data directory %s does not exist; starting empty.", data_dir)

    classifications = _read_json(data_dir / "classifications.json", dict)
    preferences = _read_json(data_dir / "scoring_preferences.json", dict)
    for uid, prefs in preferences.items():
        if not isinstance(prefs, dict):
            raise DatasetError(f"Scoring preferences for {uid!r} must be an object")

    dataset = Dataset(
        issues=_load_rows(data_dir / "issues.json", _issue),
        mappings=_load_rows(data_dir / "policy_area_mappings.json", _mapping),
        bills=_load_rows(data_dir / "bills.json", _bill),
        classifications={str(k): str(v) for k, v in classifications.items()},
        signals=_load_rows(data_dir / "signals.json", _signal),
        votes=_load_rows(data_dir / "votes.json", _vote),
        sponsorships=_load_rows(data_dir / "sponsorships.json", _sponsorship),
        members=_load_rows(data_dir / "members.json", _member),
        activity={a.member_id: a for a in _load_rows(data_dir / "activity.json", _activity)},
        questions=_load_rows(data_dir / "questions.json", _question),
        answers=_load_per_user(data_dir / "answers.json", _answer),
        priorities=_load_per_user(data_dir / "priorities.json", _priority),
        scoring_preferences={str(k): v for k, v in preferences.items()},
    )
    LOGGER.info(
        "Loaded dataset from %s: %d issues, %d bills, %d votes, %d sponsorships, %d members.",
        data_dir,
        len(dataset.issues),
        len(dataset.bills),
        len(dataset.votes),
        len(dataset.sponsorships),
        len(dataset.members),
    )
    return dataset
