"""Baseline mapper — six check-in sliders to an initial state vector.

Energy is the one non-linear input: above the scale midpoint it becomes
arousal, below it becomes fatigue, and the two never contribute at the
same time.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.classifier import classify_vector
from affect_router.engine.vector import StateVector, clamp
from affect_router.models import (
    BaselineDecision,
    BaselineScalars,
    ClarityFlag,
    ConfidenceBand,
    DecisionMode,
)

logger = structlog.get_logger(__name__)

# ── Mapping multipliers ───────────────────────────────────────

_VALENCE_SPAN = 6.0  # unit 0..1 → valence -3..3
_AROUSAL_SCALE = 2.0
_FATIGUE_SCALE = 2.2
_TENSION_SCALE = 2.4
_AGENCY_SCALE = 2.0
_CERTAINTY_SCALE = 2.0
_SOCIAL_SCALE = 2.0

# ── Banding thresholds ────────────────────────────────────────

_LOW_TOP_SIMILARITY = 0.12
_LOW_REL_GAP = 0.06
_HIGH_TOP_SIMILARITY = 0.18
_HIGH_REL_GAP = 0.10
_CLARITY_LOW_CERTAINTY = 0.35
_CLARITY_MEDIUM_CERTAINTY = 0.7


def normalize_scalar(value: Any, scale_max: int = 7) -> int:
    """Round and clamp to ``1..scale_max``; malformed input → midpoint."""
    midpoint = (scale_max + 1) // 2
    try:
        x = float(value)
    except (TypeError, ValueError):
        return midpoint
    if not math.isfinite(x):
        return midpoint
    # round-half-up, not banker's rounding
    return int(min(scale_max, max(1, math.floor(x + 0.5))))


def to_unit(value: Any, scale_max: int = 7) -> float:
    return (normalize_scalar(value, scale_max) - 1) / (scale_max - 1)


def map_baseline(
    scalars: BaselineScalars,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> StateVector:
    """Convert the six ratings into a clamped state vector."""
    n = config.scale_max
    energy = to_unit(scalars.energy, n)
    arousal = 0.0
    fatigue = 0.0
    if energy >= 0.5:
        arousal = (energy - 0.5) * 2 * _AROUSAL_SCALE
    else:
        fatigue = (0.5 - energy) * 2 * _FATIGUE_SCALE

    return clamp(
        {
            "valence": (to_unit(scalars.valence, n) - 0.5) * _VALENCE_SPAN,
            "arousal": arousal,
            "fatigue": fatigue,
            "tension": to_unit(scalars.tension, n) * _TENSION_SCALE,
            "agency": to_unit(scalars.control, n) * _AGENCY_SCALE,
            "certainty": to_unit(scalars.clarity, n) * _CERTAINTY_SCALE,
            "socialness": to_unit(scalars.social, n) * _SOCIAL_SCALE,
        }
    )


def clarity_from_certainty(certainty: float) -> ClarityFlag:
    if certainty < _CLARITY_LOW_CERTAINTY:
        return ClarityFlag.LOW
    if certainty < _CLARITY_MEDIUM_CERTAINTY:
        return ClarityFlag.MEDIUM
    return ClarityFlag.NONE


def band_from_similarity(top: float, relative_gap: float, clarity: ClarityFlag) -> ConfidenceBand:
    """Confidence band from the winning similarity and the top-2 gap.

    ``relative_gap`` is ``(s1 - s2) / s1``.
    """
    if top < _LOW_TOP_SIMILARITY or relative_gap < _LOW_REL_GAP or clarity == ClarityFlag.LOW:
        return ConfidenceBand.LOW
    if top >= _HIGH_TOP_SIMILARITY and relative_gap >= _HIGH_REL_GAP and clarity == ClarityFlag.NONE:
        return ConfidenceBand.HIGH
    return ConfidenceBand.MEDIUM


def classify_baseline(
    scalars: BaselineScalars,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> BaselineDecision:
    """Baseline vector → ranked classification → band and clarity."""
    vector = map_baseline(scalars, config)
    result = classify_vector(vector, config)

    s1 = result.ranked[0].similarity
    s2 = result.ranked[1].similarity if len(result.ranked) > 1 else 0.0
    relative_gap = (s1 - s2) / s1 if s1 > 0 else 0.0

    clarity = clarity_from_certainty(vector.certainty)
    band = band_from_similarity(s1, relative_gap, clarity)
    if result.mode == DecisionMode.PROBE:
        band = ConfidenceBand.LOW
    needs_refine = band == ConfidenceBand.LOW or clarity == ClarityFlag.LOW

    logger.info(
        "baseline.classified",
        macro=result.primary.value,
        band=band.value,
        clarity=clarity.value,
        mode=result.mode.value,
        relative_gap=round(relative_gap, 4),
    )
    return BaselineDecision(
        vector=vector,
        classification=result,
        macro=result.primary,
        confidence_band=band,
        clarity_flag=clarity,
        needs_refine=needs_refine,
        similarity_gap=relative_gap,
    )
