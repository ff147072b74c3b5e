from __future__ import annotations

"""
Weighted keyword matcher over the static catalog.

Each catalog entry carries trigger terms tagged with a weight class; the
descriptor field a term is looked up in depends on that class:

    ProductType -> title + description   (+15 per distinct term)
    Material    -> materials             (+12 per distinct term)
    Category    -> category (by stem)    (+8 per distinct term)
    General     -> title                 (+4 per distinct term, capped at 15)

Flat bonuses for descriptive detail are added on top, entries under the score
floor are discarded and the rest are clamped into the matcher's confidence
band. Pure and deterministic: the same descriptor always yields the same list.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from . import config
from .normalize import contains_term, stem, text_stems
from .pipeline_types import (
    Candidate,
    CandidateSource,
    CatalogEntry,
    ProductDescriptor,
    WeightClass,
)


@dataclass
class EntryScore:
    index: int
    entry: CatalogEntry
    score: int
    product_hits: int
    material_hits: int


def detail_bonus(descriptor: ProductDescriptor) -> int:
    """Flat bonus for a detailed listing; identical for every entry."""
    bonus = 0
    desc_len = len(descriptor.description)
    if desc_len > config.LONG_DESCRIPTION_CHARS:
        bonus += config.LONG_DESCRIPTION_BONUS
    if desc_len > config.VERY_LONG_DESCRIPTION_CHARS:
        bonus += config.VERY_LONG_DESCRIPTION_BONUS
    if len(descriptor.materials) > config.MATERIALS_MIN_CHARS:
        bonus += config.MATERIALS_BONUS
    if descriptor.has_image:
        bonus += config.IMAGE_BONUS
    return bonus


def _score_entry(
    index: int,
    entry: CatalogEntry,
    descriptor: ProductDescriptor,
    category_stems: set,
) -> EntryScore:
    title_desc = f"{descriptor.title} {descriptor.description}"

    product_hits = sum(
        1 for t in entry.terms_of(WeightClass.PRODUCT_TYPE) if contains_term(title_desc, t)
    )
    material_hits = sum(
        1 for t in entry.terms_of(WeightClass.MATERIAL) if contains_term(descriptor.materials, t)
    )
    category_hits = sum(
        1 for t in entry.terms_of(WeightClass.CATEGORY) if stem(t) in category_stems
    )
    general_hits = sum(
        1 for t in entry.terms_of(WeightClass.GENERAL) if contains_term(descriptor.title, t)
    )

    score = (
        product_hits * config.PRODUCT_TYPE_WEIGHT
        + material_hits * config.MATERIAL_WEIGHT
        + category_hits * config.CATEGORY_WEIGHT
        + min(general_hits * config.GENERAL_WEIGHT, config.GENERAL_CAP)
    )
    return EntryScore(index, entry, score, product_hits, material_hits)


def _to_confidence(score: int) -> float:
    return float(min(max(score, config.MATCH_CONFIDENCE_MIN), config.MATCH_CONFIDENCE_MAX))


def match(
    descriptor: ProductDescriptor,
    catalog: Optional[Sequence[CatalogEntry]] = None,
) -> List[Candidate]:
    """
    Score ``descriptor`` against every catalog entry.

    Returns at most MATCH_TOP_K candidates, confidence descending, ties in
    catalog declaration order. An empty descriptor yields [].
    """
    if descriptor.is_empty:
        return []

    if catalog is None:
        from ._singletons import get_catalog

        catalog = get_catalog()

    bonus = detail_bonus(descriptor)
    category_stems = text_stems(descriptor.category)

    scored: List[EntryScore] = []
    for idx, entry in enumerate(catalog):
        s = _score_entry(idx, entry, descriptor, category_stems)
        # needs a concrete product or material hit, not just context
        if s.product_hits == 0 and s.material_hits == 0:
            continue
        s.score += bonus
        if s.score < config.MATCH_SCORE_FLOOR:
            continue
        scored.append(s)

    scored.sort(key=lambda s: (-_to_confidence(s.score), s.index))
    top = scored[: config.MATCH_TOP_K]

    logger.info(
        "Keyword matcher: {} of {} entries passed the floor; returning {}",
        len(scored), len(catalog), len(top),
    )

    return [
        Candidate(
            code=s.entry.code,
            description=s.entry.description,
            confidence=_to_confidence(s.score),
            category=s.entry.category,
            source=CandidateSource.LOCAL_KEYWORD,
            tariff_rate_hint=s.entry.tariff_rate_hint,
            reasoning=f"Keyword match score {s.score}",
        )
        for s in top
    ]
