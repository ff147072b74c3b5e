from hts_classifier import config
from hts_classifier.pipeline_types import Candidate, CandidateSource, ProductDescriptor
from hts_classifier.review_policy import decide, watchlist_hits


def _cand(conf, source=CandidateSource.LOCAL_KEYWORD):
    return Candidate(code="6109.10.00", description="d", confidence=conf, source=source)


PLAIN = ProductDescriptor(title="cotton t-shirt")


def test_low_confidence_and_similar_candidates():
    needs, reasons = decide([_cand(70), _cand(65)], 65, PLAIN)
    assert needs is True
    assert config.REASON_LOW_CONFIDENCE in reasons
    assert config.REASON_SIMILAR_CANDIDATES in reasons


def test_confident_result_needs_no_review():
    needs, reasons = decide([_cand(90), _cand(60)], 90, PLAIN)
    assert needs is False
    assert reasons == ()


def test_watchlist_forces_review_regardless_of_confidence():
    d = ProductDescriptor(title="Power bank", description="10000mAh Lithium BATTERY pack")
    needs, reasons = decide([_cand(95)], 99, d)
    assert needs is True
    assert reasons == (config.REASON_SPECIAL_CONSIDERATION,)
    assert watchlist_hits(d) == ["battery", "lithium"]


def test_no_candidates():
    needs, reasons = decide([], 0, PLAIN)
    assert needs is True
    assert reasons == (config.REASON_LOW_CONFIDENCE, config.REASON_NO_CODES)


def test_fallback_only_result_is_reviewed():
    needs, reasons = decide([_cand(80, CandidateSource.FALLBACK)], 80, PLAIN)
    assert needs is True
    assert reasons == (config.REASON_FALLBACK_ONLY,)


def test_reasons_accumulate_in_rule_order():
    d = ProductDescriptor(title="organic food")
    _, reasons = decide([_cand(50), _cand(45)], 35, d)
    assert reasons == (
        config.REASON_LOW_CONFIDENCE,
        config.REASON_SIMILAR_CANDIDATES,
        config.REASON_SPECIAL_CONSIDERATION,
    )
