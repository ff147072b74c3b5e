from __future__ import annotations

"""
Human-review policy.

Every rule is evaluated and reasons accumulate in rule order, so the caller
sees all the reasons a result was flagged, not only the first.
"""

from typing import List, Sequence, Tuple

from . import config
from .constants import REVIEW_WATCHLIST_TERMS
from .pipeline_types import Candidate, CandidateSource, ProductDescriptor


def watchlist_hits(descriptor: ProductDescriptor) -> List[str]:
    text = descriptor.review_text
    return [t for t in REVIEW_WATCHLIST_TERMS if t in text]


def decide(
    candidates: Sequence[Candidate],
    overall: float,
    descriptor: ProductDescriptor,
) -> Tuple[bool, Tuple[str, ...]]:
    """Return ``(needs_review, reasons)``; reasons is empty iff no review is needed."""
    reasons: List[str] = []

    if overall < config.REVIEW_CONFIDENCE_THRESHOLD:
        reasons.append(config.REASON_LOW_CONFIDENCE)

    if len(candidates) > 1:
        gap = candidates[0].confidence - candidates[1].confidence
        if gap < config.REVIEW_SIMILAR_GAP:
            reasons.append(config.REASON_SIMILAR_CANDIDATES)

    if watchlist_hits(descriptor):
        reasons.append(config.REASON_SPECIAL_CONSIDERATION)

    if not candidates:
        reasons.append(config.REASON_NO_CODES)
    elif all(c.source == CandidateSource.FALLBACK for c in candidates):
        reasons.append(config.REASON_FALLBACK_ONLY)

    return bool(reasons), tuple(reasons)
