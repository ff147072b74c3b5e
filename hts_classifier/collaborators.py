from __future__ import annotations

"""
HTTP clients for the external collaborators.

Only the data exchange lives here: request shape, response parsing and scale
normalisation. Transport problems raise ``SourceUnavailableError``, bodies that
cannot be read at all raise ``MalformedResponseError``; individual bad entries
inside a readable body are dropped with a warning so their siblings survive.

Every client accepts an optional ``httpx.AsyncClient`` so callers (and tests)
can supply their own transport.
"""

import base64
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
from loguru import logger

from . import config
from .codes import chapter_of, clean_code, format_code, is_well_formed_code
from .pipeline_types import (
    Candidate,
    CandidateSource,
    CatalogEntry,
    ImageAnalysis,
    PredictionResult,
    ProductDescriptor,
)


class CollaboratorError(Exception):
    """Base class for collaborator failures."""


class SourceUnavailableError(CollaboratorError):
    """Timeout, transport error or HTTP error status."""


class MalformedResponseError(CollaboratorError):
    """Response body could not be interpreted."""


# ---------------------------
# Transport
# ---------------------------

def _headers() -> Dict[str, str]:
    headers = {"User-Agent": config.HTTP_USER_AGENT}
    if config.COLLABORATOR_API_KEY:
        headers["Authorization"] = f"Bearer {config.COLLABORATOR_API_KEY}"
    return headers


def _new_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.HTTP_READ_TIMEOUT, connect=config.HTTP_CONNECT_TIMEOUT),
        headers=_headers(),
    )


async def _post(
    name: str,
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    json: Any = None,
    files: Any = None,
) -> Any:
    """POST and decode a JSON body. Raises CollaboratorError subclasses."""
    owns_client = client is None
    client = client or _new_client()
    try:
        r = await client.post(url, json=json, files=files)
    except httpx.TimeoutException as e:
        raise SourceUnavailableError(f"{name}: timeout calling {url}") from e
    except httpx.HTTPError as e:
        raise SourceUnavailableError(f"{name}: transport error: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if r.status_code >= 400:
        raise SourceUnavailableError(f"{name}: HTTP {r.status_code}")

    try:
        return r.json()
    except ValueError as e:
        raise MalformedResponseError(f"{name}: response is not JSON") from e


def _confidence(value: Any, scale: float) -> Optional[float]:
    """
    Convert a collaborator confidence on [0, scale] to 0-100.

    None for anything non-numeric or outside the declared scale.
    """
    if isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if v != v or v < 0 or v > scale:  # NaN or out of range
        return None
    return v * (100.0 / scale)


def _entry_code(entry: Mapping[str, Any]) -> Optional[str]:
    """Well-formed code in dotted form, so spacing variants dedup together."""
    code = clean_code(entry.get("code"))
    return format_code(code) if is_well_formed_code(code) else None


# ---------------------------
# Semantic matcher
# ---------------------------

def semantic_request_body(
    descriptor: ProductDescriptor,
    local: Sequence[Candidate],
    catalog: Sequence[CatalogEntry] = (),
) -> Dict[str, Any]:
    """Local candidates first, padded from the catalog, at most SEMANTIC_MAX_INPUT_CODES."""
    codes: List[Dict[str, str]] = []
    seen = set()
    for item in list(local) + list(catalog):
        if len(codes) >= config.SEMANTIC_MAX_INPUT_CODES:
            break
        if item.code in seen:
            continue
        seen.add(item.code)
        codes.append({"code": item.code, "description": item.description, "category": item.category})
    return {
        "productTitle": descriptor.title,
        "productDescription": descriptor.description,
        "availableHSCodes": codes,
    }


def parse_semantic_payload(
    payload: Any,
    catalog_index: Optional[Mapping[str, CatalogEntry]] = None,
) -> List[Candidate]:
    """
    Parse ``{"semanticMatches": {"matches": [...]}}`` (or a bare ``{"matches": [...]}``).

    Confidence is already on 0-100.
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError("semantic: body is not an object")
    block = payload.get("semanticMatches", payload)
    if block is not None and not isinstance(block, dict):
        raise MalformedResponseError("semantic: 'semanticMatches' is not an object")
    matches = block.get("matches") if block is not None else None
    if matches is None:
        return []
    if not isinstance(matches, list):
        raise MalformedResponseError("semantic: 'matches' is not a list")

    catalog_index = catalog_index or {}
    out: List[Candidate] = []
    for m in matches:
        if not isinstance(m, dict):
            logger.warning("Semantic matcher: dropping non-object entry {!r}", m)
            continue
        code = _entry_code(m)
        conf = _confidence(m.get("confidence"), 100.0)
        if code is None or conf is None:
            logger.warning("Semantic matcher: dropping malformed entry {!r}", m)
            continue
        reasoning = str(m.get("reasoning") or "").strip()
        entry = catalog_index.get(code)
        out.append(
            Candidate(
                code=code,
                description=entry.description if entry else (reasoning or f"HTS {code}"),
                confidence=min(conf, config.SEMANTIC_CONFIDENCE_CAP),
                category=entry.category if entry else (f"Chapter {chapter_of(code)}"),
                source=CandidateSource.SEMANTIC_AI,
                tariff_rate_hint=entry.tariff_rate_hint if entry else "",
                reasoning=reasoning,
            )
        )
    return out


async def semantic_match(
    descriptor: ProductDescriptor,
    local: Sequence[Candidate],
    catalog: Sequence[CatalogEntry] = (),
    client: Optional[httpx.AsyncClient] = None,
) -> List[Candidate]:
    if not config.SEMANTIC_MATCHER_URL:
        return []
    body = semantic_request_body(descriptor, local, catalog)
    payload = await _post("semantic", config.SEMANTIC_MATCHER_URL, client=client, json=body)
    index = {e.code: e for e in catalog}
    return parse_semantic_payload(payload, index)


# ---------------------------
# Official registry lookup
# ---------------------------

def _tariff_hint(entry: Mapping[str, Any]) -> str:
    hint = entry.get("tariffRateHint")
    if not hint and isinstance(entry.get("tariffInfo"), dict):
        hint = entry["tariffInfo"].get("generalRate")
    return str(hint).strip() if hint else ""


def parse_registry_payload(payload: Any) -> List[Candidate]:
    """Parse ``{"data": [{code, description, category, ...}]}``; confidence is assigned later."""
    if not isinstance(payload, dict):
        raise MalformedResponseError("registry: body is not an object")
    if payload.get("success") is False:
        raise SourceUnavailableError(f"registry: lookup failed: {payload.get('error', 'unknown')}")
    data = payload.get("data") or []
    if not isinstance(data, list):
        raise MalformedResponseError("registry: 'data' is not a list")

    out: List[Candidate] = []
    for d in data:
        if not isinstance(d, dict):
            logger.warning("Registry lookup: dropping non-object entry {!r}", d)
            continue
        code = _entry_code(d)
        if code is None:
            logger.warning("Registry lookup: dropping entry with bad code {!r}", d.get("code"))
            continue
        out.append(
            Candidate(
                code=code,
                description=str(d.get("description") or "").strip(),
                confidence=0.0,
                category=str(d.get("category") or "").strip() or f"Chapter {chapter_of(code)}",
                source=CandidateSource.OFFICIAL_REGISTRY,
                is_officially_validated=True,
                tariff_rate_hint=_tariff_hint(d),
            )
        )
    return out


async def registry_lookup(
    descriptor: ProductDescriptor,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Candidate]:
    if not config.REGISTRY_LOOKUP_URL:
        return []
    body = {"action": "search", "query": descriptor.search_text}
    payload = await _post("registry", config.REGISTRY_LOOKUP_URL, client=client, json=body)
    return parse_registry_payload(payload)


# ---------------------------
# Image analyzer
# ---------------------------

def parse_image_payload(payload: Any) -> ImageAnalysis:
    """Parse the image analyzer body; its confidences are on 0-1."""
    if not isinstance(payload, dict):
        raise MalformedResponseError("image: body is not an object")

    raw_materials = payload.get("materials") or []
    if isinstance(raw_materials, str):
        raw_materials = [raw_materials]
    if not isinstance(raw_materials, list):
        raise MalformedResponseError("image: 'materials' is not a list")
    materials = tuple(str(m).strip() for m in raw_materials if str(m).strip())

    product_type = str(payload.get("product_type") or payload.get("productType") or "").strip()
    confidence = _confidence(payload.get("confidence", 0), 1.0)
    if confidence is None:
        logger.warning("Image analyzer: ignoring out-of-range confidence {!r}", payload.get("confidence"))
        confidence = 0.0

    raw_candidates = payload.get("candidates") or []
    if not isinstance(raw_candidates, list):
        raise MalformedResponseError("image: 'candidates' is not a list")

    candidates: List[Candidate] = []
    for c in raw_candidates:
        if not isinstance(c, dict):
            logger.warning("Image analyzer: dropping non-object candidate {!r}", c)
            continue
        code = _entry_code(c)
        conf = _confidence(c.get("confidence"), 1.0)
        if code is None or conf is None:
            logger.warning("Image analyzer: dropping malformed candidate {!r}", c)
            continue
        candidates.append(
            Candidate(
                code=code,
                description=str(c.get("description") or "").strip(),
                confidence=conf,
                category=str(c.get("category") or "").strip(),
                source=CandidateSource.IMAGE_ANALYSIS,
                reasoning=str(c.get("reasoning") or "").strip(),
            )
        )

    return ImageAnalysis(
        materials=materials,
        product_type=product_type,
        confidence=confidence,
        candidates=tuple(candidates),
    )


async def analyze_image(
    image: bytes,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[ImageAnalysis]:
    if not config.IMAGE_ANALYZER_URL or not image:
        return None
    files = {"image": ("product.jpg", image, "application/octet-stream")}
    payload = await _post("image", config.IMAGE_ANALYZER_URL, client=client, files=files)
    return parse_image_payload(payload)


def decode_image(image_base64: Optional[str]) -> Optional[bytes]:
    """Decode a base64 (optionally data-URL) image; None on bad input."""
    if not image_base64:
        return None
    data = image_base64.split(",", 1)[1] if image_base64.startswith("data:") else image_base64
    try:
        return base64.b64decode(data, validate=True)
    except ValueError:
        logger.warning("Ignoring image: payload is not valid base64")
        return None


# ---------------------------
# Prediction store (hand-off only)
# ---------------------------

async def store_prediction(
    descriptor: ProductDescriptor,
    result: PredictionResult,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Hand the result to the prediction store. Never raises; returns success."""
    if not config.PREDICTION_STORE_URL:
        return False
    body = {"product": asdict(descriptor), "result": asdict(result)}
    try:
        await _post("store", config.PREDICTION_STORE_URL, client=client, json=body)
    except CollaboratorError as e:
        logger.warning("Prediction store hand-off failed: {}", e)
        return False
    return True
