"""Tests for user / legislator issue alignment."""

from __future__ import annotations

from pathlib import Path

from civic_score.alignment import (
    compute_alignment,
    compute_user_issue_scores,
    get_or_compute_alignment,
    issue_alignment_pct,
    profile_fingerprint,
)
from civic_score.models import (
    IssuePosition,
    IssueQuestion,
    UserAnswer,
    UserIssuePriority,
)
from civic_score.store import InMemoryStore, JsonStore

SLUGS = {"i1": "healthcare", "i2": "climate"}


class TestUserIssueScores:
    QUESTIONS = [
        IssueQuestion("q1", "i1", 1.0),
        IssueQuestion("q2", "i1", -1.0),
        IssueQuestion("q3", "i2", 2.0),
        IssueQuestion("q4", "i3", 1.0),
    ]

    def test_polarity_and_weighting(self) -> None:
        answers = [UserAnswer("q1", 2), UserAnswer("q2", -2), UserAnswer("q3", 1)]
        scores = compute_user_issue_scores(answers, self.QUESTIONS)
        assert scores == {"i1": 2.0, "i2": 1.0}

    def test_mixed_answers_average(self) -> None:
        answers = [UserAnswer("q1", 2), UserAnswer("q2", 2)]
        assert compute_user_issue_scores(answers, self.QUESTIONS) == {"i1": 0.0}

    def test_unknown_question_ignored(self) -> None:
        assert compute_user_issue_scores([UserAnswer("q99", 2)], self.QUESTIONS) == {}


class TestIssueAlignmentPct:
    def test_values(self) -> None:
        assert issue_alignment_pct(2, 2) == 100
        assert issue_alignment_pct(2, -2) == 0
        assert issue_alignment_pct(-2, 2) == 0
        assert issue_alignment_pct(1, 0) == 75
        assert issue_alignment_pct(0.5, 0) == 88


class TestComputeAlignment:
    def test_no_overlap_is_none(self) -> None:
        positions = [IssuePosition("m1", "i2", 1.0, 3)]
        assert compute_alignment("u1", "m1", {"i1": 2.0}, positions) is None

    def test_positions_without_data_ignored(self) -> None:
        positions = [IssuePosition("m1", "i1", 0.0, 0)]
        assert compute_alignment("u1", "m1", {"i1": 0.0}, positions) is None

    def test_identical_stances(self) -> None:
        positions = [IssuePosition("m1", "i1", 1.5, 2), IssuePosition("m1", "i2", -2.0, 1)]
        result = compute_alignment(
            "u1", "m1", {"i1": 1.5, "i2": -2.0}, positions, issue_slugs=SLUGS
        )
        assert result is not None
        assert result.overall_alignment == 100
        assert result.issue_count == 2
        assert result.breakdown == {"healthcare": 100, "climate": 100}

    def test_opposite_extremes(self) -> None:
        positions = [IssuePosition("m1", "i1", -2.0, 5)]
        result = compute_alignment("u1", "m1", {"i1": 2.0}, positions)
        assert result is not None
        assert result.overall_alignment == 0
        assert result.breakdown == {"i1": 0}

    def test_without_priorities_issues_weigh_equally(self) -> None:
        positions = [IssuePosition("m1", "i1", 2.0, 1), IssuePosition("m1", "i2", -2.0, 1)]
        result = compute_alignment("u1", "m1", {"i1": 2.0, "i2": 2.0}, positions)
        assert result is not None
        # (100 + 0) / 2
        assert result.overall_alignment == 50

    def test_priority_weighting(self) -> None:
        positions = [IssuePosition("m1", "i1", 2.0, 1), IssuePosition("m1", "i2", 2.0, 1)]
        result = compute_alignment(
            "u1",
            "m1",
            {"i1": 2.0, "i2": -2.0},
            positions,
            priorities=[UserIssuePriority("i1", 3)],
        )
        assert result is not None
        # (100 * 3 + 0 * 1) / 4
        assert result.overall_alignment == 75

    def test_other_politicians_positions_ignored(self) -> None:
        positions = [IssuePosition("m2", "i1", 2.0, 1)]
        assert compute_alignment("u1", "m1", {"i1": 2.0}, positions) is None


class TestGetOrComputeAlignment:
    QUESTIONS = [IssueQuestion("q1", "i1", 1.0)]
    ANSWERS = [UserAnswer("q1", 2)]

    def test_computes_then_caches(self, store: InMemoryStore) -> None:
        store.replace_positions("m1", [IssuePosition("m1", "i1", 2.0, 1)])
        first = get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS)
        assert first is not None
        assert first.overall_alignment == 100
        assert store.get_alignment("u1", "m1") == first

        # A stale cache is served until positions are recomputed.
        store.positions.clear()
        store.replace_positions("m1", [IssuePosition("m1", "i1", -2.0, 1)])
        assert get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS) == first

        store.invalidate_alignment_cache()
        fresh = get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS)
        assert fresh is not None
        assert fresh.overall_alignment == 0

    def test_not_enough_data_is_not_cached(self, store: InMemoryStore) -> None:
        assert get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS) is None
        assert store.alignments == {}

    def test_changed_answers_recompute_after_reopen(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.replace_positions("m1", [IssuePosition("m1", "i1", 2.0, 1)])
        first = get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS)
        assert first is not None
        assert first.overall_alignment == 100

        reopened = JsonStore(tmp_path)
        changed = get_or_compute_alignment(
            reopened, "u1", "m1", [UserAnswer("q1", -2)], self.QUESTIONS
        )
        assert changed is not None
        assert changed.overall_alignment == 0
        assert JsonStore(tmp_path).get_alignment("u1", "m1").overall_alignment == 0

    def test_changed_priorities_drop_the_users_rows(self, store: InMemoryStore) -> None:
        store.replace_positions("m1", [IssuePosition("m1", "i1", 2.0, 1)])
        store.replace_positions("m2", [IssuePosition("m2", "i1", 1.0, 1)])
        get_or_compute_alignment(store, "u1", "m1", self.ANSWERS, self.QUESTIONS)
        get_or_compute_alignment(store, "u1", "m2", self.ANSWERS, self.QUESTIONS)
        get_or_compute_alignment(store, "u2", "m1", self.ANSWERS, self.QUESTIONS)

        get_or_compute_alignment(
            store,
            "u1",
            "m1",
            self.ANSWERS,
            self.QUESTIONS,
            priorities=[UserIssuePriority("i1", 3)],
        )
        assert sorted(store.alignments) == [("u1", "m1"), ("u2", "m1")]

    def test_fingerprint_ignores_order(self) -> None:
        a = [UserAnswer("q1", 2), UserAnswer("q2", -1)]
        assert profile_fingerprint(a) == profile_fingerprint(list(reversed(a)))
        assert profile_fingerprint(a) != profile_fingerprint([UserAnswer("q1", 2)])
        assert profile_fingerprint(a) != profile_fingerprint(a, [UserIssuePriority("i1", 2)])
