"""Per-state averages of members' default performance scores.

Only in-office members with a system-default :class:`MemberScores` row
(``user_id`` None) are counted; per-user customized scores never leak into
state figures.  Uses Polars for the group-by.
"""

from __future__ import annotations

import logging

import polars as pl

from .models import MemberProfile, MemberScores, StateScore
from .scoring import round_score

LOGGER = logging.getLogger(__name__)

_SCHEMA: dict[str, pl.DataType] = {
    "state": pl.Utf8,
    "party": pl.Utf8,
    "chamber": pl.Utf8,
    "overall_score": pl.Float64,
    "productivity_score": pl.Float64,
    "attendance_score": pl.Float64,
    "bipartisanship_score": pl.Float64,
    "issue_alignment_score": pl.Float64,
}


def _member_rows(
    members: list[MemberProfile],
    scores: list[MemberScores],
) -> list[dict]:
    default_scores = {s.member_id: s for s in scores if s.user_id is None}
    rows: list[dict] = []
    for m in members:
        if not m.in_office or not m.state:
            continue
        sc = default_scores.get(m.id)
        if sc is None:
            continue
        rows.append(
            {
                "state": m.state.upper(),
                "party": (m.party or "").strip()[:1].upper(),
                "chamber": (m.chamber or "").lower(),
                "overall_score": float(sc.overall_score),
                "productivity_score": float(sc.productivity_score),
                "attendance_score": float(sc.attendance_score),
                "bipartisanship_score": float(sc.bipartisanship_score),
                "issue_alignment_score": float(sc.issue_alignment_score),
            }
        )
    return rows


def compute_state_scores(
    members: list[MemberProfile],
    scores: list[MemberScores],
) -> list[StateScore]:
    """Aggregate default member scores by state, sorted by state code."""
    rows = _member_rows(members, scores)
    if not rows:
        return []

    df = pl.DataFrame(rows, schema=_SCHEMA)
    agg = (
        df.group_by("state")
        .agg(
            pl.len().alias("member_count"),
            pl.col("overall_score").mean().alias("avg_member_score"),
            pl.col("productivity_score").mean().alias("avg_productivity"),
            pl.col("attendance_score").mean().alias("avg_attendance"),
            pl.col("bipartisanship_score").mean().alias("avg_bipartisanship"),
            pl.col("issue_alignment_score").mean().alias("avg_issue_alignment"),
            (pl.col("chamber") == "house").sum().alias("house_count"),
            (pl.col("chamber") == "senate").sum().alias("senate_count"),
            (pl.col("party") == "D").sum().alias("democrat_count"),
            (pl.col("party") == "R").sum().alias("republican_count"),
            (~pl.col("party").is_in(["D", "R"])).sum().alias("independent_count"),
        )
        .sort("state")
    )

    results = [
        StateScore(
            state=r["state"],
            avg_member_score=round_score(r["avg_member_score"]),
            member_count=int(r["member_count"]),
            avg_productivity=round_score(r["avg_productivity"]),
            avg_attendance=round_score(r["avg_attendance"]),
            avg_bipartisanship=round_score(r["avg_bipartisanship"]),
            avg_issue_alignment=round_score(r["avg_issue_alignment"]),
            house_count=int(r["house_count"]),
            senate_count=int(r["senate_count"]),
            democrat_count=int(r["democrat_count"]),
            republican_count=int(r["republican_count"]),
            independent_count=int(r["independent_count"]),
        )
        for r in agg.iter_rows(named=True)
    ]
    LOGGER.info("Aggregated %d members into %d states.", len(rows), len(results))
    return results
