from __future__ import annotations
"""
Mapping utilities to convert internal pipeline results into API responses.

Centralises the mapping from PredictionResult / Candidate into the Pydantic
schemas (CandidateItem / PredictionResponse) and applies the result-size
policy consistently.
"""

from typing import List

from loguru import logger

from .codes import chapter_of, format_code
from .config import RESULT_MAX_CANDIDATES, CandidateItem, PredictionResponse
from .pipeline_types import Candidate, PredictionResult

DEFAULT_TARIFF_RATE = "Contact Customs"


def _clip_confidence(value: float) -> float:
    """Clip into the API's [0, 100] range."""
    if value < 0:
        return 0.0
    if value > 100:
        return 100.0
    return float(value)


def to_api_item(cand: Candidate) -> CandidateItem:
    chapter = chapter_of(cand.code)
    return CandidateItem(
        code=format_code(cand.code),
        description=cand.description,
        confidence=_clip_confidence(cand.confidence),
        category=cand.category,
        chapter=f"Chapter {chapter}" if chapter else "",
        source=cand.source.value,
        is_officially_validated=cand.is_officially_validated,
        tariff_rate=cand.tariff_rate_hint or DEFAULT_TARIFF_RATE,
        reasoning=cand.reasoning,
    )


def map_result_to_response(result: PredictionResult, processing_time_ms: int = 0) -> PredictionResponse:
    """
    Convert a PredictionResult into a PredictionResponse.

    Candidates keep their ranked order and are clipped to RESULT_MAX_CANDIDATES.
    """
    items: List[CandidateItem] = []
    for cand in result.candidates[:RESULT_MAX_CANDIDATES]:
        try:
            items.append(to_api_item(cand))
        except ValueError as e:
            logger.exception("Failed to build CandidateItem for code {}: {}", cand.code, e)

    logger.info("Mapped {} candidates into API schema", len(items))
    return PredictionResponse(
        candidates=items,
        confidence_score=_clip_confidence(result.overall_confidence),
        needs_human_review=result.needs_human_review,
        review_reasons=list(result.review_reasons),
        review_reason=result.review_reason,
        analysis_factors=list(result.analysis_factors),
        processing_time_ms=max(0, int(processing_time_ms)),
    )
