"""Tests for the in-memory and JSON-backed stores."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from civic_score.errors import DatasetError
from civic_score.models import (
    AlignmentResult,
    BillSignal,
    IssuePosition,
    MemberScores,
    SignalType,
    StateScore,
)
from civic_score.store import InMemoryStore, JsonStore, _atomic_write_json


def _scores(member_id: str, user_id: str | None = None, overall: int = 60) -> MemberScores:
    return MemberScores(member_id, overall, 50, 90, 50, 50, user_id=user_id)


class TestInMemoryStore:
    def test_member_scores_keyed_by_user(self, store: InMemoryStore) -> None:
        store.save_member_scores(_scores("m1", overall=60))
        store.save_member_scores(_scores("m1", "u1", overall=80))
        assert store.get_member_scores("m1").overall_score == 60
        assert store.get_member_scores("m1", "u1").overall_score == 80
        assert [s.user_id for s in store.default_member_scores()] == [None]

    def test_save_overwrites_by_natural_key(self, store: InMemoryStore) -> None:
        store.save_member_scores(_scores("m1", overall=60))
        store.save_member_scores(_scores("m1", overall=70))
        assert len(store.member_scores) == 1
        assert store.get_member_scores("m1").overall_score == 70

    def test_invalidate_returns_count(self, store: InMemoryStore) -> None:
        store.save_alignment(AlignmentResult("u1", "m1", 80, 1))
        store.save_alignment(AlignmentResult("u2", "m1", 40, 1))
        assert store.invalidate_alignment_cache() == 2
        assert store.get_alignment("u1", "m1") is None

    def test_invalidate_one_user(self, store: InMemoryStore) -> None:
        store.save_alignment(AlignmentResult("u1", "m1", 80, 1))
        store.save_alignment(AlignmentResult("u1", "m2", 70, 1))
        store.save_alignment(AlignmentResult("u2", "m1", 40, 1))
        assert store.invalidate_alignments_for("u1") == 2
        assert list(store.alignments) == [("u2", "m1")]
        assert store.invalidate_alignments_for("nobody") == 0

    def test_save_member_scores_many(self, store: InMemoryStore) -> None:
        store.save_member_scores_many([_scores("m1"), _scores("m1", "u1"), _scores("m2")])
        assert len(store.member_scores) == 3

    def test_signals_and_classified_refs(self, store: InMemoryStore) -> None:
        store.save_signals(
            [
                BillSignal("i1", "hr1", 1, 0.9),
                BillSignal("i2", "hr1", -1, 0.7),
                BillSignal("i1", "roll-1", 1, 0.8, SignalType.VOTE),
            ]
        )
        assert store.classified_refs() == {"hr1"}
        assert store.classified_refs(SignalType.VOTE) == {"roll-1"}
        assert store.delete_signals_for("hr1") == 2
        assert store.classified_refs() == set()
        assert len(store.all_signals()) == 1


class TestJsonStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.replace_positions("m1", [IssuePosition("m1", "i1", 1.25, 3)])
        store.save_member_scores(_scores("m1"))
        store.save_member_scores(_scores("m1", "u1", overall=75))
        store.save_alignment(AlignmentResult("u1", "m1", 90, 1, {"healthcare": 90}))
        store.save_signal(BillSignal("i1", "roll-1", -1, 0.8, SignalType.VOTE, "AI: x"))
        store.replace_state_scores([StateScore("CA", 61, 2, house_count=2)])

        reloaded = JsonStore(tmp_path)
        assert reloaded.positions_for("m1") == [IssuePosition("m1", "i1", 1.25, 3)]
        assert reloaded.get_member_scores("m1", "u1").overall_score == 75
        assert reloaded.get_member_scores("m1").user_id is None
        assert reloaded.get_alignment("u1", "m1").breakdown == {"healthcare": 90}
        sig = reloaded.all_signals()[0]
        assert sig.signal_type == SignalType.VOTE
        assert sig.description == "AI: x"
        assert reloaded.state_scores["CA"].house_count == 2

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.replace_positions("m1", [IssuePosition("m1", "i1", 1.0, 1)])
        store.invalidate_alignment_cache()
        names = sorted(p.name for p in tmp_path.iterdir())
        assert names == ["alignments.json", "positions.json"]

    def test_invalidation_persisted(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.save_alignment(AlignmentResult("u1", "m1", 90, 1))
        store.invalidate_alignment_cache()
        assert JsonStore(tmp_path).alignments == {}

    def test_batch_writes_each_table_once(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        with patch("civic_score.store._atomic_write_json", wraps=_atomic_write_json) as write:
            with store.batch():
                for n in range(20):
                    store.save_member_scores(_scores(f"m{n}"))
                    store.replace_positions(f"m{n}", [IssuePosition(f"m{n}", "i1", 1.0, 1)])
                with store.batch():
                    store.save_member_scores(_scores("m0", "u1"))
                assert write.call_count == 0
        assert sorted(c.args[0].name for c in write.call_args_list) == [
            "member_scores.json",
            "positions.json",
        ]
        assert len(JsonStore(tmp_path).member_scores) == 21

    def test_batch_flushes_when_block_raises(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        with pytest.raises(RuntimeError):
            with store.batch():
                store.save_member_scores(_scores("m1"))
                raise RuntimeError("boom")
        assert JsonStore(tmp_path).get_member_scores("m1") is not None

    def test_unbatched_save_writes_through(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.save_member_scores(_scores("m1"))
        assert JsonStore(tmp_path).get_member_scores("m1") is not None

    def test_empty_directory(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path / "missing")
        assert store.positions == {}

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        (tmp_path / "positions.json").write_text("{not json")
        with pytest.raises(DatasetError):
            JsonStore(tmp_path)

    def test_wrong_shape_raises(self, tmp_path: Path) -> None:
        (tmp_path / "member_scores.json").write_text(json.dumps({"m1": {}}))
        with pytest.raises(DatasetError):
            JsonStore(tmp_path)

    def test_bad_row_raises(self, tmp_path: Path) -> None:
        (tmp_path / "positions.json").write_text(json.dumps([{"politician_id": "m1"}]))
        with pytest.raises(DatasetError):
            JsonStore(tmp_path)
