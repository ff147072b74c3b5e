from __future__ import annotations

"""
Candidate combiner.

Merges the per-source candidate lists into one ranked, code-unique list:

1. semantic candidates seed the set (confidence capped)
2. official registry codes boost matching entries, or enter at a fixed level
3. local keyword (and image-suggested) candidates fill in missing codes
4. image materials confirm candidates whose text mentions them
5. dedup by code, highest confidence first

If every source came back empty the single fallback candidate is returned.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from . import config
from .fallback import fallback_candidate
from .pipeline_types import (
    Candidate,
    CandidateSource,
    ImageAnalysis,
    ProductDescriptor,
)


def _merge_into(acc: Dict[str, Candidate], cand: Candidate) -> None:
    """Insert ``cand``; on a code clash keep the stronger one, OR the validation flags."""
    current = acc.get(cand.code)
    if current is None:
        acc[cand.code] = cand
        return
    validated = current.is_officially_validated or cand.is_officially_validated
    winner = cand if cand.confidence > current.confidence else current
    acc[cand.code] = replace(
        winner,
        is_officially_validated=validated,
        tariff_rate_hint=winner.tariff_rate_hint or current.tariff_rate_hint or cand.tariff_rate_hint,
    )


def _boost_official(base: Candidate, official: Candidate) -> Candidate:
    return replace(
        base,
        confidence=min(base.confidence + config.OFFICIAL_BOOST, config.OFFICIAL_BOOST_CAP),
        is_officially_validated=True,
        tariff_rate_hint=base.tariff_rate_hint or official.tariff_rate_hint,
        reasoning=(base.reasoning + "; " if base.reasoning else "") + "validated by official registry",
    )


def _apply_official(
    acc: Dict[str, Candidate],
    official: Iterable[Candidate],
    local_by_code: Dict[str, Candidate],
) -> None:
    seen = set()
    for off in official:
        if off.code in seen:
            continue
        seen.add(off.code)

        if off.code in acc:
            acc[off.code] = _boost_official(acc[off.code], off)
        elif off.code in local_by_code:
            acc[off.code] = _boost_official(local_by_code[off.code], off)
        else:
            acc[off.code] = replace(
                off,
                confidence=config.OFFICIAL_NEW_CONFIDENCE,
                source=CandidateSource.OFFICIAL_REGISTRY,
                is_officially_validated=True,
                reasoning=off.reasoning or "Found in official registry",
            )


def _apply_image_materials(acc: Dict[str, Candidate], materials: Sequence[str]) -> int:
    terms = [m.strip().lower() for m in materials if m and m.strip()]
    if not terms:
        return 0
    confirmed = 0
    for code, cand in list(acc.items()):
        text = f"{cand.description} {cand.category}".lower()
        # plain containment: "wood" confirms "wooden", "glass" confirms "glassware"
        if any(t in text for t in terms):
            acc[code] = replace(
                cand,
                confidence=min(cand.confidence + config.IMAGE_MATERIAL_BOOST, config.IMAGE_MATERIAL_BOOST_CAP),
                reasoning=cand.reasoning + config.IMAGE_CONFIRMATION_NOTE,
            )
            confirmed += 1
    return confirmed


def combine(
    local: Sequence[Candidate],
    semantic: Sequence[Candidate],
    official: Sequence[Candidate],
    image: Optional[ImageAnalysis] = None,
    descriptor: Optional[ProductDescriptor] = None,
) -> List[Candidate]:
    """
    Merge all sources into a descending, code-unique candidate list.

    ``descriptor`` is only needed to pick the fallback candidate when every
    source is empty; without it the generic fallback is used.
    """
    acc: Dict[str, Candidate] = {}

    # 1) semantic
    for cand in semantic:
        _merge_into(
            acc,
            replace(
                cand,
                confidence=min(float(cand.confidence), config.SEMANTIC_CONFIDENCE_CAP),
                source=CandidateSource.SEMANTIC_AI,
            ),
        )

    # 2) official
    local_by_code: Dict[str, Candidate] = {}
    for cand in local:
        if cand.code not in local_by_code or cand.confidence > local_by_code[cand.code].confidence:
            local_by_code[cand.code] = cand
    _apply_official(acc, official, local_by_code)

    # 3) local + image suggestions
    for cand in local:
        _merge_into(acc, cand)
    if image is not None:
        for cand in image.candidates:
            _merge_into(acc, replace(cand, source=CandidateSource.IMAGE_ANALYSIS))

    # 4) image material confirmation
    confirmed = 0
    if image is not None:
        confirmed = _apply_image_materials(acc, image.materials)

    if not acc:
        fb = fallback_candidate(descriptor or ProductDescriptor())
        logger.info("Combiner: all sources empty; using fallback {}", fb.code)
        return [fb]

    # 5-6) dict keys are already unique; stable sort keeps insertion order on ties
    merged = sorted(acc.values(), key=lambda c: -c.confidence)
    logger.info(
        "Combiner: {} semantic, {} official, {} local -> {} candidates ({} image-confirmed)",
        len(semantic), len(official), len(local), len(merged), confirmed,
    )
    return merged
