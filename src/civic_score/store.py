"""Persistence for computed rows: full replace by natural key.

Every output table is keyed by its natural key and written by overwriting
that key, never by patching fields:

- positions      ``(politician_id, issue_id)``
- member scores  ``(member_id, user_id)``  (``user_id`` None = system default)
- alignments     ``(user_id, politician_id)``
- signals        ``(issue_id, signal_type, external_ref)``
- state scores   ``state``

:class:`InMemoryStore` keeps everything in dicts (tests, one-off runs).
:class:`JsonStore` adds write-through persistence to a directory of JSON
files, replaced atomically so a concurrent reader sees either the old or the
new snapshot.  Inside :meth:`InMemoryStore.batch` writes are deferred and
each touched table is written once when the batch closes.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path

from .errors import DatasetError
from .models import (
    AlignmentResult,
    BillSignal,
    IssuePosition,
    MemberScores,
    SignalType,
    StateScore,
)

LOGGER = logging.getLogger(__name__)

POSITIONS = "positions"
MEMBER_SCORES = "member_scores"
ALIGNMENTS = "alignments"
SIGNALS = "signals"
STATE_SCORES = "state_scores"

TABLES = (POSITIONS, MEMBER_SCORES, ALIGNMENTS, SIGNALS, STATE_SCORES)


class InMemoryStore:
    """Dict-backed store; the reference implementation of the contract."""

    def __init__(self) -> None:
        self.positions: dict[tuple[str, str], IssuePosition] = {}
        self.member_scores: dict[tuple[str, str | None], MemberScores] = {}
        self.alignments: dict[tuple[str, str], AlignmentResult] = {}
        self.signals: dict[tuple[str, str, str], BillSignal] = {}
        self.state_scores: dict[str, StateScore] = {}
        self._batch_depth = 0
        self._dirty: set[str] = set()

    # ── Write batching ──

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer table writes until the outermost batch exits.

        Each table touched inside the batch is written once on exit, also
        when the block raises, so the persisted tables match memory.
        """
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                dirty, self._dirty = self._dirty, set()
                for table in TABLES:
                    if table in dirty:
                        self._flush(table)

    def _touch(self, table: str) -> None:
        if self._batch_depth:
            self._dirty.add(table)
        else:
            self._flush(table)

    def _flush(self, table: str) -> None:
        """Write-through hook; a no-op in memory."""

    # ── Positions ──

    def save_position(self, position: IssuePosition) -> None:
        self.positions[(position.politician_id, position.issue_id)] = position
        self._touch(POSITIONS)

    def delete_positions_for(self, politician_id: str) -> int:
        stale = [k for k in self.positions if k[0] == politician_id]
        for k in stale:
            del self.positions[k]
        self._touch(POSITIONS)
        return len(stale)

    def replace_positions(self, politician_id: str, positions: list[IssuePosition]) -> None:
        """Drop every stored position for *politician_id*, then write *positions*."""
        for k in [k for k in self.positions if k[0] == politician_id]:
            del self.positions[k]
        for p in positions:
            self.positions[(politician_id, p.issue_id)] = p
        self._touch(POSITIONS)

    def positions_for(self, politician_id: str) -> list[IssuePosition]:
        return sorted(
            (p for (pid, _), p in self.positions.items() if pid == politician_id),
            key=lambda p: p.issue_id,
        )

    # ── Member scores ──

    def save_member_scores(self, scores: MemberScores) -> None:
        self.member_scores[(scores.member_id, scores.user_id)] = scores
        self._touch(MEMBER_SCORES)

    def save_member_scores_many(self, rows: list[MemberScores]) -> None:
        for scores in rows:
            self.member_scores[(scores.member_id, scores.user_id)] = scores
        self._touch(MEMBER_SCORES)

    def get_member_scores(self, member_id: str, user_id: str | None = None) -> MemberScores | None:
        return self.member_scores.get((member_id, user_id))

    def default_member_scores(self) -> list[MemberScores]:
        return [s for (_, uid), s in self.member_scores.items() if uid is None]

    # ── Alignment cache ──

    def save_alignment(self, result: AlignmentResult) -> None:
        self.alignments[(result.user_id, result.politician_id)] = result
        self._touch(ALIGNMENTS)

    def get_alignment(self, user_id: str, politician_id: str) -> AlignmentResult | None:
        return self.alignments.get((user_id, politician_id))

    def invalidate_alignment_cache(self) -> int:
        """Delete every cached alignment.  Returns how many were dropped."""
        dropped = len(self.alignments)
        self.alignments.clear()
        self._touch(ALIGNMENTS)
        return dropped

    def invalidate_alignments_for(self, user_id: str) -> int:
        """Delete one user's cached alignments (their answers changed)."""
        stale = [k for k in self.alignments if k[0] == user_id]
        for k in stale:
            del self.alignments[k]
        if stale:
            self._touch(ALIGNMENTS)
        return len(stale)

    # ── Signals ──

    def save_signal(self, signal: BillSignal) -> None:
        self.signals[signal.key] = signal
        self._touch(SIGNALS)

    def save_signals(self, signals: list[BillSignal]) -> None:
        for s in signals:
            self.signals[s.key] = s
        self._touch(SIGNALS)

    def delete_signals_for(
        self,
        external_ref: str,
        signal_type: SignalType = SignalType.BILL_SPONSORSHIP,
    ) -> int:
        """Drop every signal of *signal_type* for one bill or vote."""
        stale = [
            k for k in self.signals if k[1] == signal_type.value and k[2] == external_ref
        ]
        for k in stale:
            del self.signals[k]
        if stale:
            self._touch(SIGNALS)
        return len(stale)

    def all_signals(self) -> list[BillSignal]:
        return list(self.signals.values())

    def classified_refs(self, signal_type: SignalType = SignalType.BILL_SPONSORSHIP) -> set[str]:
        return {ref for (_, stype, ref) in self.signals if stype == signal_type.value}

    # ── State scores ──

    def replace_state_scores(self, scores: list[StateScore]) -> None:
        self.state_scores = {s.state: s for s in scores}
        self._touch(STATE_SCORES)


# ── JSON-backed store ────────────────────────────────────────────────────────


def _atomic_write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=0)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json_list(path: Path) -> list[dict]:
    if not path.exists():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetError(f"Cannot read store file {path}: {e}") from e
    if not isinstance(raw, list):
        raise DatasetError(f"Store file {path} must hold a JSON list")
    return raw


def _signal_to_dict(s: BillSignal) -> dict:
    d = asdict(s)
    d["signal_type"] = s.signal_type.value
    return d


def _signal_from_dict(d: dict) -> BillSignal:
    return BillSignal(
        issue_id=d["issue_id"],
        external_ref=d["external_ref"],
        direction=int(d["direction"]),
        weight=float(d["weight"]),
        signal_type=SignalType(d.get("signal_type", SignalType.BILL_SPONSORSHIP.value)),
        description=d.get("description", ""),
    )


class JsonStore(InMemoryStore):
    """Store that mirrors every table to ``<root>/<table>.json``."""

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = Path(root)
        self._load()

    def path_for(self, table: str) -> Path:
        return self.root / f"{table}.json"

    def _load(self) -> None:
        try:
            for d in _read_json_list(self.path_for(POSITIONS)):
                p = IssuePosition(**d)
                self.positions[(p.politician_id, p.issue_id)] = p
            for d in _read_json_list(self.path_for(MEMBER_SCORES)):
                s = MemberScores(**d)
                self.member_scores[(s.member_id, s.user_id)] = s
            for d in _read_json_list(self.path_for(ALIGNMENTS)):
                a = AlignmentResult(**d)
                self.alignments[(a.user_id, a.politician_id)] = a
            for d in _read_json_list(self.path_for(SIGNALS)):
                sig = _signal_from_dict(d)
                self.signals[sig.key] = sig
            for d in _read_json_list(self.path_for(STATE_SCORES)):
                st = StateScore(**d)
                self.state_scores[st.state] = st
        except (TypeError, KeyError, ValueError) as e:
            raise DatasetError(f"Store format error in {self.root}: {e}") from e
        LOGGER.info(
            "Loaded store from %s (%d positions, %d score rows, %d alignments, %d signals).",
            self.root,
            len(self.positions),
            len(self.member_scores),
            len(self.alignments),
            len(self.signals),
        )

    def _rows(self, table: str) -> list[dict]:
        if table == POSITIONS:
            return [asdict(p) for _, p in sorted(self.positions.items())]
        if table == MEMBER_SCORES:
            rows = sorted(
                self.member_scores.values(), key=lambda s: (s.member_id, s.user_id or "")
            )
            return [asdict(s) for s in rows]
        if table == ALIGNMENTS:
            return [asdict(a) for _, a in sorted(self.alignments.items())]
        if table == SIGNALS:
            return [_signal_to_dict(s) for _, s in sorted(self.signals.items())]
        if table == STATE_SCORES:
            return [asdict(s) for _, s in sorted(self.state_scores.items())]
        raise KeyError(table)

    def _flush(self, table: str) -> None:
        _atomic_write_json(self.path_for(table), self._rows(table))
