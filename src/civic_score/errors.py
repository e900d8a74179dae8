"""Exception types raised by the scoring engine.

Sparse data is never an error: scoring functions return documented defaults
for it.  Only structurally invalid input raises.
"""

from __future__ import annotations


class CivicScoreError(Exception):
    """Base class for all civic_score errors."""


class InvalidScoringConfigError(CivicScoreError, ValueError):
    """Scoring weights that do not form a valid distribution.

    Raised before composition runs.  The caller re-prompts or falls back to
    the default configuration; weights are never silently renormalized.
    """

    def __init__(self, message: str, *, total: float | None = None) -> None:
        super().__init__(message)
        self.total = total


class DatasetError(CivicScoreError):
    """An input file exists but cannot be read or decoded."""
