from __future__ import annotations

"""
FastAPI application for the HTS classifier.

- GET  /health    liveness
- POST /classify  descriptor (+ optional base64 image) -> ranked HTS candidates
"""

import time

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .collaborators import decode_image
from .config import ClassifyRequest, HealthResponse, PredictionResponse
from .mapping import map_result_to_response
from .pipeline import classify_async
from .pipeline_types import InvalidDescriptorError, ProductDescriptor
from ._singletons import get_catalog


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_catalog = None  # type: ignore


@app.on_event("startup")
def startup_event() -> None:
    global _catalog
    logger.info("Starting app warmup...")
    try:
        _catalog = get_catalog()
        logger.info("Loaded HTS catalog with {} entries", len(_catalog))
    except (OSError, ValueError) as e:
        _catalog = None
        logger.error("Failed to load HTS catalog: {}", e)
    logger.info("Warmup complete.")


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.post("/classify", response_model=PredictionResponse)
async def classify_product(req: ClassifyRequest) -> PredictionResponse:
    if _catalog is None:
        raise HTTPException(status_code=500, detail="Catalog not loaded")

    started = time.perf_counter()
    image = decode_image(req.image_base64)
    descriptor = ProductDescriptor.from_raw(
        title=req.title,
        description=req.description,
        category=req.category,
        materials=req.materials,
        has_image=image is not None,
    )
    try:
        result = await classify_async(descriptor, image=image, catalog=_catalog)
    except InvalidDescriptorError as e:
        raise HTTPException(status_code=422, detail=str(e))

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    return map_result_to_response(result, processing_time_ms=elapsed_ms)
