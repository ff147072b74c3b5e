import asyncio

import httpx
import pytest

from hts_classifier import collaborators, config, pipeline
from hts_classifier.pipeline import build_result, classify, classify_async
from hts_classifier.pipeline_types import (
    Candidate,
    CandidateSource,
    ImageAnalysis,
    InvalidDescriptorError,
    ProductDescriptor,
)


TSHIRT = ProductDescriptor.from_raw(
    title="cotton t-shirt", materials="cotton", description="100% cotton casual wear"
)


def _patch_sources(monkeypatch, semantic=None, official=None, image=None):
    async def fake_semantic(descriptor, local, catalog=(), client=None):
        if isinstance(semantic, BaseException):
            raise semantic
        return list(semantic or [])

    async def fake_registry(descriptor, client=None):
        if isinstance(official, BaseException):
            raise official
        return list(official or [])

    async def fake_image(data, client=None):
        return image

    monkeypatch.setattr(collaborators, "semantic_match", fake_semantic)
    monkeypatch.setattr(collaborators, "registry_lookup", fake_registry)
    monkeypatch.setattr(collaborators, "analyze_image", fake_image)


@pytest.mark.asyncio
async def test_keyword_only_classification(monkeypatch, catalog):
    _patch_sources(monkeypatch)
    result = await classify_async(TSHIRT, catalog=catalog)
    assert result.top.code == "6109.10.00"
    assert result.top.source == CandidateSource.LOCAL_KEYWORD
    assert result.overall_confidence == 47
    assert result.needs_human_review
    assert config.REASON_LOW_CONFIDENCE in result.review_reasons
    assert "Product Title Analysis" in result.analysis_factors
    assert "Material Composition Analysis" in result.analysis_factors
    assert "Official HTS Lookup" not in result.analysis_factors


@pytest.mark.asyncio
async def test_official_confirmation_raises_confidence(monkeypatch, catalog):
    official = [
        Candidate(
            code="6109.10.00",
            description="T-shirts",
            confidence=0,
            category="Textiles",
            source=CandidateSource.OFFICIAL_REGISTRY,
            is_officially_validated=True,
        )
    ]
    _patch_sources(monkeypatch, official=official)
    result = await classify_async(TSHIRT, catalog=catalog)
    assert result.top.code == "6109.10.00"
    assert result.top.confidence == 67
    assert result.top.is_officially_validated
    # 67 + 5 validation bonus, single candidate
    assert result.overall_confidence == 72
    assert "Official HTS Lookup" in result.analysis_factors


@pytest.mark.asyncio
async def test_failing_collaborators_are_ignored(monkeypatch, catalog):
    _patch_sources(
        monkeypatch,
        semantic=collaborators.SourceUnavailableError("down"),
        official=collaborators.MalformedResponseError("garbage"),
    )
    result = await classify_async(TSHIRT, catalog=catalog)
    assert [c.code for c in result.candidates] == ["6109.10.00"]


@pytest.mark.asyncio
async def test_slow_collaborator_times_out(monkeypatch, catalog):
    monkeypatch.setattr(config, "COLLABORATOR_TIMEOUT_S", 0.05)
    _patch_sources(monkeypatch)

    async def slow_semantic(descriptor, local, catalog=(), client=None):
        await asyncio.sleep(5)
        return [Candidate(code="1111.11.11", description="x", confidence=99)]

    monkeypatch.setattr(collaborators, "semantic_match", slow_semantic)
    result = await classify_async(TSHIRT, catalog=catalog)
    assert "1111.11.11" not in {c.code for c in result.candidates}


@pytest.mark.asyncio
async def test_nothing_found_uses_fallback(monkeypatch, catalog):
    _patch_sources(monkeypatch)
    d = ProductDescriptor.from_raw(title="Mystery object", description="Hard to describe")
    result = await classify_async(d, catalog=catalog)
    assert len(result.candidates) == 1
    fb = result.top
    assert fb.source == CandidateSource.FALLBACK
    assert fb.confidence <= 80
    assert result.needs_human_review
    assert config.REASON_NO_CODES not in result.review_reasons
    assert config.REASON_FALLBACK_ONLY in result.review_reasons
    assert "Fallback Classification Rules" in result.analysis_factors


@pytest.mark.asyncio
async def test_high_confidence_fallback_still_reviewed(monkeypatch, catalog):
    _patch_sources(monkeypatch)
    d = ProductDescriptor.from_raw(title="Teacup", description="A small one")
    result = await classify_async(d, catalog=catalog)
    assert result.top.source == CandidateSource.FALLBACK
    assert result.top.confidence == 80
    assert result.needs_human_review


@pytest.mark.asyncio
async def test_battery_always_needs_review(monkeypatch, catalog):
    official = [
        Candidate(code="8507.60.00", description="Lithium-ion batteries", confidence=0, category="Electrical")
    ]
    _patch_sources(monkeypatch, official=official)
    d = ProductDescriptor.from_raw(title="Rechargeable battery pack", description="Portable power")
    result = await classify_async(d, catalog=catalog)
    assert result.top.confidence == 92
    assert result.overall_confidence == 97
    assert result.needs_human_review
    assert result.review_reasons == (config.REASON_SPECIAL_CONSIDERATION,)


@pytest.mark.asyncio
async def test_image_analysis_is_used(monkeypatch, catalog):
    image = ImageAnalysis(materials=("cotton",), product_type="t-shirt", confidence=90)
    _patch_sources(monkeypatch, image=image)
    result = await classify_async(TSHIRT, image=b"img", catalog=catalog)
    assert result.top.confidence == 52
    assert result.top.reasoning.endswith("(confirmed by image analysis)")
    assert "Image Recognition Analysis" in result.analysis_factors


@pytest.mark.asyncio
async def test_invalid_descriptor_rejected(catalog):
    with pytest.raises(InvalidDescriptorError):
        await classify_async(ProductDescriptor(title="  "), catalog=catalog)


@pytest.mark.asyncio
async def test_cancellation_cancels_inflight_calls(monkeypatch, catalog):
    _patch_sources(monkeypatch)
    cancelled = asyncio.Event()

    async def hanging_registry(descriptor, client=None):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return []

    monkeypatch.setattr(collaborators, "registry_lookup", hanging_registry)
    task = asyncio.create_task(classify_async(TSHIRT, catalog=catalog))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert cancelled.is_set()


def test_result_is_truncated_to_five_after_scoring():
    local = [
        Candidate(code=f"61{i:02d}.10.00", description="d", confidence=90 - i)
        for i in range(8)
    ]
    result = build_result(ProductDescriptor(title="x"), local, [], [])
    assert len(result.candidates) == 5
    assert result.review_reasons == (config.REASON_SIMILAR_CANDIDATES,)


def test_sync_entry_point(monkeypatch, catalog):
    _patch_sources(monkeypatch)
    result = classify(TSHIRT, catalog=catalog)
    assert result.top.code == "6109.10.00"
    assert pipeline.FACTOR_TITLE in result.analysis_factors


def _route_collaborators(monkeypatch, bodies):
    """Point the real clients at a MockTransport answering per host."""
    monkeypatch.setattr(config, "SEMANTIC_MATCHER_URL", "https://semantic.test/match")
    monkeypatch.setattr(config, "REGISTRY_LOOKUP_URL", "https://registry.test/lookup")
    monkeypatch.setattr(config, "IMAGE_ANALYZER_URL", "https://image.test/analyze")

    def handler(request):
        body = bodies[request.url.host]
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)

    monkeypatch.setattr(
        collaborators,
        "_new_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_malformed_collaborator_bodies_are_discarded(monkeypatch, catalog):
    _route_collaborators(
        monkeypatch,
        {
            "semantic.test": {"semanticMatches": ["6109.10.00"]},
            "registry.test": {"success": True, "data": {"code": "6109.10.00"}},
            "image.test": {"materials": ["cotton"], "confidence": 0.9, "candidates": 3},
        },
    )
    result = await classify_async(TSHIRT, image=b"img", catalog=catalog)
    assert [c.code for c in result.candidates] == ["6109.10.00"]
    assert result.top.confidence == 47
    assert result.top.source == CandidateSource.LOCAL_KEYWORD
    assert "AI Semantic Analysis" not in result.analysis_factors
    assert "Official HTS Lookup" not in result.analysis_factors
    assert "Image Recognition Analysis" not in result.analysis_factors


@pytest.mark.asyncio
async def test_non_json_collaborator_bodies_are_discarded(monkeypatch, catalog):
    _route_collaborators(
        monkeypatch,
        {"semantic.test": "<html>", "registry.test": "oops", "image.test": "<html>"},
    )
    result = await classify_async(TSHIRT, image=b"img", catalog=catalog)
    assert [c.code for c in result.candidates] == ["6109.10.00"]


@pytest.mark.asyncio
async def test_spaced_collaborator_codes_merge_with_catalog_codes(monkeypatch, catalog):
    _route_collaborators(
        monkeypatch,
        {
            "semantic.test": {
                "semanticMatches": {
                    "matches": [
                        {"code": "6109 10 00", "confidence": 60, "reasoning": "cotton tee"},
                        {"code": "??", "confidence": 99},
                    ]
                }
            },
            "registry.test": {"success": True, "data": [{"code": "6109.10.00"}, "junk"]},
            "image.test": {"materials": [], "confidence": 0.4},
        },
    )
    result = await classify_async(TSHIRT, image=b"img", catalog=catalog)
    (only,) = result.candidates
    assert only.code == "6109.10.00"
    # semantic 60 + official 20; local 47 loses the merge
    assert only.confidence == 80
    assert only.is_officially_validated
    assert result.overall_confidence == 85
