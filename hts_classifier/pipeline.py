from __future__ import annotations

"""
Classification pipeline.

descriptor -> keyword matcher -> (semantic | registry | image, concurrently)
           -> combiner -> confidence aggregator -> review policy -> result

A collaborator that fails, times out or returns garbage contributes nothing;
the caller always gets a PredictionResult for a valid descriptor.
"""

import asyncio
from typing import Any, Awaitable, List, Optional, Sequence, Tuple

from loguru import logger

from . import collaborators
from . import config
from .combiner import combine
from .confidence import aggregate
from .matcher import match
from .pipeline_types import (
    Candidate,
    CandidateSource,
    CatalogEntry,
    ImageAnalysis,
    PredictionResult,
    ProductDescriptor,
)
from .review_policy import decide

FACTOR_TITLE = "Product Title Analysis"
FACTOR_DESCRIPTION = "Product Description Analysis"
FACTOR_MATERIALS = "Material Composition Analysis"
FACTOR_CATEGORY = "Category Context"
FACTOR_OFFICIAL = "Official HTS Lookup"
FACTOR_SEMANTIC = "AI Semantic Analysis"
FACTOR_IMAGE = "Image Recognition Analysis"
FACTOR_FALLBACK = "Fallback Classification Rules"


async def _guarded(name: str, coro: Awaitable[Any], empty: Any) -> Any:
    """Await ``coro`` under the collaborator timeout; failures become ``empty``."""
    try:
        return await asyncio.wait_for(coro, timeout=config.COLLABORATOR_TIMEOUT_S)
    except asyncio.TimeoutError:
        logger.warning("{} timed out after {}s; continuing without it", name, config.COLLABORATOR_TIMEOUT_S)
    except collaborators.CollaboratorError as e:
        logger.warning("{} unavailable: {}", name, e)
    return empty


async def _no_image() -> Optional[ImageAnalysis]:
    return None


def analysis_factors(
    descriptor: ProductDescriptor,
    semantic: Sequence[Candidate],
    official: Sequence[Candidate],
    image: Optional[ImageAnalysis],
    candidates: Sequence[Candidate],
) -> Tuple[str, ...]:
    factors: List[str] = []
    if descriptor.title:
        factors.append(FACTOR_TITLE)
    if descriptor.description:
        factors.append(FACTOR_DESCRIPTION)
    if descriptor.materials:
        factors.append(FACTOR_MATERIALS)
    if descriptor.category:
        factors.append(FACTOR_CATEGORY)
    if official:
        factors.append(FACTOR_OFFICIAL)
    if semantic:
        factors.append(FACTOR_SEMANTIC)
    if image is not None:
        factors.append(FACTOR_IMAGE)
    if candidates and all(c.source == CandidateSource.FALLBACK for c in candidates):
        factors.append(FACTOR_FALLBACK)
    return tuple(factors)


def build_result(
    descriptor: ProductDescriptor,
    local: Sequence[Candidate],
    semantic: Sequence[Candidate],
    official: Sequence[Candidate],
    image: Optional[ImageAnalysis] = None,
) -> PredictionResult:
    """Synchronous tail of the pipeline: combine, aggregate, decide."""
    candidates = combine(local, semantic, official, image, descriptor=descriptor)
    overall = aggregate(candidates)
    needs_review, reasons = decide(candidates, overall, descriptor)
    return PredictionResult(
        candidates=tuple(candidates[: config.RESULT_MAX_CANDIDATES]),
        overall_confidence=overall,
        needs_human_review=needs_review,
        review_reasons=reasons,
        analysis_factors=analysis_factors(descriptor, semantic, official, image, candidates),
    )


async def classify_async(
    descriptor: ProductDescriptor,
    image: Optional[bytes] = None,
    catalog: Optional[Sequence[CatalogEntry]] = None,
) -> PredictionResult:
    """
    Classify ``descriptor``; ``image`` is raw image bytes, if any.

    Raises InvalidDescriptorError for an empty title and description.
    Cancelling the awaiting task cancels every in-flight collaborator call.
    """
    descriptor.validate()

    if catalog is None:
        from ._singletons import get_catalog

        catalog = get_catalog()

    local = match(descriptor, catalog)

    image_call = collaborators.analyze_image(image) if image else _no_image()
    semantic, official, image_analysis = await asyncio.gather(
        _guarded("Semantic matcher", collaborators.semantic_match(descriptor, local, catalog), []),
        _guarded("Registry lookup", collaborators.registry_lookup(descriptor), []),
        _guarded("Image analyzer", image_call, None),
    )

    result = build_result(descriptor, local, semantic, official, image_analysis)
    logger.info(
        "Classified '{}': top={} overall={} review={}",
        descriptor.title[:60],
        result.top.code if result.top else None,
        result.overall_confidence,
        result.needs_human_review,
    )

    await collaborators.store_prediction(descriptor, result)
    return result


def classify(
    descriptor: ProductDescriptor,
    image: Optional[bytes] = None,
    catalog: Optional[Sequence[CatalogEntry]] = None,
) -> PredictionResult:
    """Blocking entry point; do not call from inside a running event loop."""
    return asyncio.run(classify_async(descriptor, image=image, catalog=catalog))
