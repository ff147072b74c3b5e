from hts_classifier.mapping import map_result_to_response, to_api_item
from hts_classifier.config import PredictionResponse
from hts_classifier.pipeline_types import Candidate, CandidateSource, PredictionResult


def _cand(code, conf, **kw):
    return Candidate(code=code, description=f"desc {code}", confidence=conf, category="Cat", **kw)


def test_to_api_item_strict_schema():
    item = to_api_item(
        _cand(
            "6912004800",
            80,
            source=CandidateSource.OFFICIAL_REGISTRY,
            is_officially_validated=True,
            tariff_rate_hint="8.5%",
        )
    )
    assert item.code == "6912.00.4800"
    assert item.chapter == "Chapter 69"
    assert item.source == "OfficialRegistry"
    assert item.is_officially_validated is True
    assert item.tariff_rate == "8.5%"


def test_to_api_item_defaults_tariff_rate():
    item = to_api_item(_cand("6109.10.00", 47))
    assert item.tariff_rate == "Contact Customs"
    assert item.source == "LocalKeyword"


def test_map_result_to_response_structure():
    result = PredictionResult(
        candidates=tuple(_cand(f"61{i:02d}.10.00", 90 - i) for i in range(7)),
        overall_confidence=75,
        needs_human_review=True,
        review_reasons=("Low confidence prediction", "Multiple similar candidates"),
        analysis_factors=("Product Title Analysis",),
    )
    resp = map_result_to_response(result, processing_time_ms=12)
    assert isinstance(resp, PredictionResponse)
    assert len(resp.candidates) == 5
    assert resp.candidates[0].confidence == 90
    assert resp.review_reason == "Low confidence prediction; Multiple similar candidates"
    assert resp.processing_time_ms == 12


def test_map_result_without_review():
    result = PredictionResult(
        candidates=(_cand("6109.10.00", 95),),
        overall_confidence=95,
        needs_human_review=False,
    )
    resp = map_result_to_response(result)
    assert resp.review_reasons == []
    assert resp.review_reason is None
