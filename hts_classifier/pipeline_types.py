"""Typed containers shared across pipeline modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .config import MAX_TITLE_CHARS
from .normalize import basic_clean


class InvalidDescriptorError(ValueError):
    """Raised when a product descriptor cannot be classified at all."""


class WeightClass(str, enum.Enum):
    PRODUCT_TYPE = "ProductType"
    MATERIAL = "Material"
    CATEGORY = "Category"
    GENERAL = "General"


class CandidateSource(str, enum.Enum):
    LOCAL_KEYWORD = "LocalKeyword"
    SEMANTIC_AI = "SemanticAI"
    OFFICIAL_REGISTRY = "OfficialRegistry"
    IMAGE_ANALYSIS = "ImageAnalysis"
    FALLBACK = "Fallback"


@dataclass(frozen=True)
class ProductDescriptor:
    """Input to classification. Text fields are already cleaned."""

    title: str = ""
    description: str = ""
    category: str = ""
    materials: str = ""
    has_image: bool = False

    @classmethod
    def from_raw(
        cls,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        materials: Optional[str] = None,
        has_image: bool = False,
    ) -> "ProductDescriptor":
        return cls(
            title=basic_clean(title),
            description=basic_clean(description),
            category=basic_clean(category),
            materials=basic_clean(materials),
            has_image=bool(has_image),
        )

    @property
    def is_empty(self) -> bool:
        return not self.title.strip() and not self.description.strip()

    @property
    def search_text(self) -> str:
        """Free-text query sent to the official registry."""
        return " ".join(p for p in (self.title, self.description, self.materials) if p).strip()

    @property
    def review_text(self) -> str:
        return f"{self.title} {self.description}".lower()

    def validate(self) -> None:
        """
        Reject descriptors that cannot be classified.

        Everything else degrades to a low-confidence, review-flagged result,
        so this is the only caller-visible rejection.
        """
        if self.is_empty:
            raise InvalidDescriptorError("Product title or description is required")
        if len(self.title) > MAX_TITLE_CHARS:
            raise InvalidDescriptorError(
                f"Product title too long (max {MAX_TITLE_CHARS} characters)"
            )


@dataclass(frozen=True)
class TriggerTerm:
    term: str
    weight_class: WeightClass


@dataclass(frozen=True)
class CatalogEntry:
    """Immutable reference row of the classification catalog."""

    code: str
    description: str
    category: str
    trigger_terms: Tuple[TriggerTerm, ...] = ()
    tariff_rate_hint: str = ""

    def terms_of(self, weight_class: WeightClass) -> Tuple[str, ...]:
        return tuple(t.term for t in self.trigger_terms if t.weight_class == weight_class)


@dataclass(frozen=True)
class Candidate:
    """One scored match, produced by the matcher or a collaborator."""

    code: str
    description: str
    confidence: float
    category: str = ""
    source: CandidateSource = CandidateSource.LOCAL_KEYWORD
    is_officially_validated: bool = False
    tariff_rate_hint: str = ""
    reasoning: str = ""


@dataclass(frozen=True)
class ImageAnalysis:
    """Image collaborator output, already normalised to the 0-100 scale."""

    materials: Tuple[str, ...] = ()
    product_type: str = ""
    confidence: float = 0.0
    candidates: Tuple[Candidate, ...] = ()


@dataclass(frozen=True)
class PredictionResult:
    """Final output of one classification request."""

    candidates: Tuple[Candidate, ...]
    overall_confidence: float
    needs_human_review: bool
    review_reasons: Tuple[str, ...] = ()
    analysis_factors: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def top(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def review_reason(self) -> Optional[str]:
        return "; ".join(self.review_reasons) if self.review_reasons else None
