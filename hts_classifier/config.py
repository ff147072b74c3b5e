from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------
# Paths
# ---------------------------

PACKAGE_ROOT = Path(__file__).resolve().parent

DATA_DIR = PACKAGE_ROOT / "data"
CATALOG_PATH = DATA_DIR / "hts_catalog.csv"


# ---------------------------
# Keyword matcher weights
# ---------------------------

PRODUCT_TYPE_WEIGHT = 15   # per distinct term in title or description
MATERIAL_WEIGHT = 12       # per distinct term in the materials field
CATEGORY_WEIGHT = 8        # per distinct category term sharing a stem
GENERAL_WEIGHT = 4         # per distinct general term in the title
GENERAL_CAP = PRODUCT_TYPE_WEIGHT  # general terms alone never beat one product type

LONG_DESCRIPTION_CHARS = 100
LONG_DESCRIPTION_BONUS = 3
VERY_LONG_DESCRIPTION_CHARS = 200
VERY_LONG_DESCRIPTION_BONUS = 2
MATERIALS_MIN_CHARS = 5
MATERIALS_BONUS = 5
IMAGE_BONUS = 5

MATCH_SCORE_FLOOR = 20
MATCH_CONFIDENCE_MIN = 30.0
MATCH_CONFIDENCE_MAX = 92.0
MATCH_TOP_K = 5


# ---------------------------
# Combiner
# ---------------------------

SEMANTIC_CONFIDENCE_CAP = 95.0
OFFICIAL_BOOST = 20.0
OFFICIAL_BOOST_CAP = 98.0
OFFICIAL_NEW_CONFIDENCE = 92.0
IMAGE_MATERIAL_BOOST = 5.0
IMAGE_MATERIAL_BOOST_CAP = 99.0
IMAGE_CONFIRMATION_NOTE = " (confirmed by image analysis)"


# ---------------------------
# Aggregator / review policy
# ---------------------------

OFFICIAL_VALIDATION_BONUS = 5.0
OFFICIAL_VALIDATION_CAP = 99.0
NARROW_SPREAD = 10.0
NARROW_SPREAD_PENALTY = 15.0

REVIEW_CONFIDENCE_THRESHOLD = 70.0
REVIEW_SIMILAR_GAP = 15.0

REASON_LOW_CONFIDENCE = "Low confidence prediction"
REASON_SIMILAR_CANDIDATES = "Multiple similar candidates"
REASON_SPECIAL_CONSIDERATION = "Product requires special customs consideration"
REASON_NO_CODES = "No suitable HTS codes found"
REASON_FALLBACK_ONLY = "Classification based on fallback rules only"


# ---------------------------
# Result size policy
# ---------------------------

RESULT_MAX_CANDIDATES = 5
SEMANTIC_MAX_INPUT_CODES = 10


# ---------------------------
# Text processing
# ---------------------------

MAX_INPUT_CHARS = 20_000
MAX_TITLE_CHARS = 500


# ---------------------------
# Collaborators / HTTP hardening
# ---------------------------

# An empty URL disables the collaborator; it then contributes nothing.
SEMANTIC_MATCHER_URL = os.getenv("SEMANTIC_MATCHER_URL", "")
REGISTRY_LOOKUP_URL = os.getenv("REGISTRY_LOOKUP_URL", "")
IMAGE_ANALYZER_URL = os.getenv("IMAGE_ANALYZER_URL", "")
PREDICTION_STORE_URL = os.getenv("PREDICTION_STORE_URL", "")
COLLABORATOR_API_KEY = os.getenv("COLLABORATOR_API_KEY", "")

HTTP_CONNECT_TIMEOUT = 3.0
HTTP_READ_TIMEOUT = 10.0
COLLABORATOR_TIMEOUT_S = float(os.getenv("COLLABORATOR_TIMEOUT_S", "12.0"))

HTTP_USER_AGENT = "hts-classifier/1.0"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class ClassifyRequest(BaseModel):
    """
    Request body for POST /classify.
    """

    title: str = ""
    description: str = ""
    category: str = ""
    materials: str = ""
    image_base64: Optional[str] = None


class CandidateItem(BaseModel):
    """
    One ranked classification candidate as exposed by the API.
    """

    code: str
    description: str
    confidence: float = Field(ge=0, le=100)
    category: str
    chapter: str
    source: str
    is_officially_validated: bool
    tariff_rate: str = "Contact Customs"
    reasoning: str = ""


class PredictionResponse(BaseModel):
    """
    Response body for POST /classify.
    """

    candidates: List[CandidateItem]
    confidence_score: float = Field(ge=0, le=100)
    needs_human_review: bool
    review_reasons: List[str]
    review_reason: Optional[str] = None
    analysis_factors: List[str] = []
    processing_time_ms: int = Field(default=0, ge=0)


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
