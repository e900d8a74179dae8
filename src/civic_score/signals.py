"""Signal extraction: bill classifications → directional issue signals.

A classification says a bill (or a roll-call vote) leans progressive (+1),
conservative (-1), or neutral (0) on an issue, with some confidence.  Only
confident, non-neutral verdicts become :class:`BillSignal` rows; everything
else is noise that would dilute aggregated positions.

Two classification sources feed this module:

- **Policy-area mapping**: a precomputed ``policy_area -> issue`` table.
  Cheap, but it carries no direction of its own, so the direction is a
  setting (neutral by default, which drops the signal).
- **Classifier replies**: free text returned by an AI or manual classifier
  containing a JSON array of ``{issue_slug, direction, confidence,
  reasoning}`` objects.

Nothing here is fatal to a batch: unparseable replies and unknown issue slugs
are logged and skipped.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from .models import (
    BillRecord,
    BillSignal,
    IssueClassification,
    PolicyAreaMapping,
    SignalType,
)

LOGGER = logging.getLogger(__name__)

MIN_SIGNAL_CONFIDENCE = 0.6
POLICY_AREA_WEIGHT_FACTOR = 0.7

_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class SignalSettings:
    min_confidence: float = MIN_SIGNAL_CONFIDENCE
    policy_area_direction: int = 0
    policy_area_weight_factor: float = POLICY_AREA_WEIGHT_FACTOR


@dataclass
class ClassificationOutcome:
    """Result of classifying one bill."""

    bill_id: str
    method: str  # "policy_mapping" | "ai" | "none"
    signals: list[BillSignal] = field(default_factory=list)
    classifications: list[IssueClassification] = field(default_factory=list)


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


# ── Parsing classifier replies ───────────────────────────────────────────────


def _coerce_classification(raw: object) -> IssueClassification | None:
    if not isinstance(raw, dict):
        return None
    slug = raw.get("issue_slug")
    if not isinstance(slug, str) or not slug.strip():
        return None
    try:
        direction = _sign(float(raw.get("direction", 0)))
        confidence = float(raw.get("confidence", 0.0))
    except (TypeError, ValueError):
        return None
    reasoning = raw.get("reasoning") or ""
    return IssueClassification(
        issue_slug=slug.strip(),
        direction=direction,
        confidence=confidence,
        reasoning=str(reasoning),
    )


def parse_classification_response(content: str) -> list[IssueClassification]:
    """Extract classifications from a classifier's free-text reply.

    The reply usually wraps the JSON array in prose or a code fence, so the
    outermost ``[...]`` span is decoded.  Returns ``[]`` (and logs) when no
    array can be decoded; malformed entries inside a valid array are skipped
    individually.
    """
    if not content:
        return []
    match = _JSON_ARRAY_RE.search(content)
    if match is None:
        LOGGER.warning("No JSON array in classification reply: %r", content[:80])
        return []
    try:
        decoded = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        LOGGER.warning("Unparseable classification reply (%s): %r", e, content[:80])
        return []
    if not isinstance(decoded, list):
        return []

    results: list[IssueClassification] = []
    for entry in decoded:
        classification = _coerce_classification(entry)
        if classification is None:
            LOGGER.info("Skipping malformed classification entry: %r", entry)
            continue
        results.append(classification)
    return results


# ── Classification → signals ─────────────────────────────────────────────────


def passes_threshold(
    classification: IssueClassification,
    min_confidence: float = MIN_SIGNAL_CONFIDENCE,
) -> bool:
    """True when a verdict is confident enough and not neutral."""
    return classification.confidence >= min_confidence and classification.direction != 0


def extract_bill_signals(
    bill_id: str,
    classifications: list[IssueClassification],
    issue_ids_by_slug: dict[str, str],
    *,
    min_confidence: float = MIN_SIGNAL_CONFIDENCE,
    signal_type: SignalType = SignalType.BILL_SPONSORSHIP,
) -> list[BillSignal]:
    """Turn classifier verdicts for one bill into signal rows.

    Unknown issue slugs are logged and skipped.  Verdicts below
    *min_confidence* or with direction 0 are dropped.  Only one signal per
    issue is kept (the last verdict wins), mirroring the store's
    ``(issue, type, ref)`` natural key.
    """
    by_issue: dict[str, BillSignal] = {}
    for c in classifications:
        issue_id = issue_ids_by_slug.get(c.issue_slug)
        if issue_id is None:
            LOGGER.info("Unknown issue slug %r for %s, skipping.", c.issue_slug, bill_id)
            continue
        if not passes_threshold(c, min_confidence):
            continue
        by_issue[issue_id] = BillSignal(
            issue_id=issue_id,
            external_ref=bill_id,
            direction=c.direction,
            weight=min(max(c.confidence, 0.0), 1.0),
            signal_type=signal_type,
            description=f"AI: {c.reasoning}" if c.reasoning else "AI",
        )
    return list(by_issue.values())


def vote_signals(
    vote_id: str,
    classifications: list[IssueClassification],
    issue_ids_by_slug: dict[str, str],
    *,
    min_confidence: float = MIN_SIGNAL_CONFIDENCE,
) -> list[BillSignal]:
    """Signals for a classified roll-call vote (``external_ref`` = vote id).

    A +1 direction means a yea vote is the progressive position.
    """
    return extract_bill_signals(
        vote_id,
        classifications,
        issue_ids_by_slug,
        min_confidence=min_confidence,
        signal_type=SignalType.VOTE,
    )


def signal_from_policy_area(
    bill: BillRecord,
    mappings: dict[str, PolicyAreaMapping],
    *,
    direction: int = 0,
    weight_factor: float = POLICY_AREA_WEIGHT_FACTOR,
    min_confidence: float = MIN_SIGNAL_CONFIDENCE,
) -> BillSignal | None:
    """Build a signal from the bill's policy area, if one is mapped.

    The mapping only says *which* issue a bill touches, not which way it
    leans, so *direction* is supplied by the caller.  With the neutral
    default nothing is emitted.  Weight is discounted by *weight_factor*
    and, like a classifier verdict, must reach *min_confidence*.
    """
    if not bill.policy_area:
        return None
    mapping = mappings.get(bill.policy_area)
    if mapping is None:
        return None
    verdict = IssueClassification(
        issue_slug=bill.policy_area,
        direction=_sign(direction),
        confidence=round(mapping.relevance_weight * weight_factor, 4),
    )
    if not passes_threshold(verdict, min_confidence):
        LOGGER.debug(
            "Policy area %r for %s is neutral or below confidence %.2f (%.2f), not emitting.",
            bill.policy_area,
            bill.id,
            min_confidence,
            verdict.confidence,
        )
        return None
    return BillSignal(
        issue_id=mapping.issue_id,
        external_ref=bill.id,
        direction=verdict.direction,
        weight=verdict.confidence,
        signal_type=SignalType.BILL_SPONSORSHIP,
        description=f"Policy area mapping: {bill.policy_area}",
    )


def classify_bill(
    bill: BillRecord,
    *,
    mappings: dict[str, PolicyAreaMapping],
    issue_ids_by_slug: dict[str, str],
    response: str | None = None,
    settings: SignalSettings | None = None,
) -> ClassificationOutcome:
    """Classify one bill: policy-area fast path first, classifier reply second."""
    settings = settings or SignalSettings()

    mapped = signal_from_policy_area(
        bill,
        mappings,
        direction=settings.policy_area_direction,
        weight_factor=settings.policy_area_weight_factor,
        min_confidence=settings.min_confidence,
    )
    if mapped is not None:
        return ClassificationOutcome(
            bill_id=bill.id,
            method="policy_mapping",
            signals=[mapped],
            classifications=[
                IssueClassification(
                    issue_slug=bill.policy_area or "",
                    direction=mapped.direction,
                    confidence=mapped.weight,
                    reasoning="Auto-mapped from policy area",
                )
            ],
        )

    if response is None:
        return ClassificationOutcome(bill_id=bill.id, method="none")

    classifications = parse_classification_response(response)
    signals = extract_bill_signals(
        bill.id,
        classifications,
        issue_ids_by_slug,
        min_confidence=settings.min_confidence,
    )
    return ClassificationOutcome(
        bill_id=bill.id,
        method="ai",
        signals=signals,
        classifications=classifications,
    )
