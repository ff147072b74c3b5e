from __future__ import annotations

import math
from typing import Sequence

from . import config
from .pipeline_types import Candidate


def round_half_up(x: float) -> float:
    return float(math.floor(x + 0.5))


def aggregate(candidates: Sequence[Candidate]) -> float:
    """
    One overall confidence for a ranked candidate list.

    top confidence, +5 (cap 99) if any candidate is officially validated,
    -15 (floor 0) when the top two are within 10 points, rounded half up.
    A single candidate has spread equal to its own confidence.
    """
    if not candidates:
        return 0.0

    ranked = sorted(candidates, key=lambda c: -c.confidence)
    overall = float(ranked[0].confidence)

    if any(c.is_officially_validated for c in ranked):
        overall = min(overall + config.OFFICIAL_VALIDATION_BONUS, config.OFFICIAL_VALIDATION_CAP)

    spread = ranked[0].confidence - ranked[1].confidence if len(ranked) > 1 else ranked[0].confidence
    if spread < config.NARROW_SPREAD:
        overall = max(overall - config.NARROW_SPREAD_PENALTY, 0.0)

    return min(round_half_up(overall), 100.0)
