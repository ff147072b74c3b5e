from __future__ import annotations

"""
Fallback candidate policy.

Used when no source produced anything: a fixed, ordered rule table picks one
broad heading from coarse descriptor cues. The first rule whose triggers hit
wins; the last rule always applies, so a candidate is always returned.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

from . import constants as C
from .pipeline_types import Candidate, CandidateSource, ProductDescriptor


@dataclass(frozen=True)
class FallbackRule:
    name: str
    code: str
    description: str
    category: str
    tariff_rate: str
    confidence: float
    # (descriptor field, substrings) pairs; any hit triggers the rule
    triggers: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    def applies_to(self, descriptor: ProductDescriptor) -> bool:
        if not self.triggers:
            return True
        for field_name, terms in self.triggers:
            value = getattr(descriptor, field_name, "").lower()
            if value and any(t in value for t in terms):
                return True
        return False


FALLBACK_RULES: Sequence[FallbackRule] = (
    FallbackRule(
        name="Material-Based Classification",
        code="6912.00.48",
        description="Ceramic tableware, kitchenware, other household articles",
        category="Ceramics & Porcelain",
        tariff_rate="8.5%",
        confidence=80.0,
        triggers=(
            ("materials", tuple(C.CERAMIC_MATERIAL_TERMS)),
            ("title", tuple(C.CERAMIC_TITLE_TERMS)),
            ("description", tuple(C.CERAMIC_DESCRIPTION_TERMS)),
        ),
    ),
    FallbackRule(
        name="Category-Based Classification",
        code="6109.10.00",
        description="T-shirts, singlets and other vests, knitted or crocheted, of cotton",
        category="Textiles & Clothing",
        tariff_rate="16.5%",
        confidence=70.0,
        triggers=(
            ("materials", tuple(C.APPAREL_MATERIAL_TERMS)),
            ("category", tuple(C.APPAREL_CATEGORY_TERMS)),
            ("title", tuple(C.APPAREL_TITLE_TERMS)),
        ),
    ),
    FallbackRule(
        name="Category-Based Classification",
        code="8543.70.96",
        description="Other electrical machines and apparatus, having individual functions",
        category="Electronics & Electrical",
        tariff_rate="2.6%",
        confidence=65.0,
        triggers=(
            ("category", tuple(C.ELECTRONICS_CATEGORY_TERMS)),
            ("title", tuple(C.ELECTRONICS_TITLE_TERMS)),
            ("description", tuple(C.ELECTRONICS_DESCRIPTION_TERMS)),
        ),
    ),
    FallbackRule(
        name="Category-Based Classification",
        code="9403.60.80",
        description="Other wooden furniture",
        category="Furniture & Home",
        tariff_rate="Free",
        confidence=60.0,
        triggers=(
            ("category", tuple(C.FURNITURE_CATEGORY_TERMS)),
            ("title", tuple(C.FURNITURE_TITLE_TERMS)),
            ("description", tuple(C.FURNITURE_DESCRIPTION_TERMS)),
        ),
    ),
    FallbackRule(
        name="Default Classification",
        code="3926.90.99",
        description="Other articles of plastics and articles of other materials",
        category="General Merchandise",
        tariff_rate="3.1%",
        confidence=25.0,
    ),
)


def fallback_candidate(descriptor: ProductDescriptor) -> Candidate:
    """Exactly one FALLBACK candidate for ``descriptor``."""
    rule = next(r for r in FALLBACK_RULES if r.applies_to(descriptor))
    return Candidate(
        code=rule.code,
        description=rule.description,
        confidence=rule.confidence,
        category=rule.category,
        source=CandidateSource.FALLBACK,
        tariff_rate_hint=rule.tariff_rate,
        reasoning=f"Fallback rule: {rule.name}",
    )
