"""Centroid classifier and decision policy.

Scores a state vector against one reference centroid per macro state
with inverse-distance similarity, converts the scores into a
probability distribution with a temperature-scaled softmax, and reads
that distribution as one of three regimes:

=========  ===========================================================
Mode       Condition (evaluated in this order)
=========  ===========================================================
single     p1 >= t_dom
mix        p1 >= t_mix and Δ < delta_mix and a second label exists
probe      Δ < delta_probe and a second label exists
single     otherwise
=========  ===========================================================
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

import structlog

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.rules import DEFAULT_RULE_TABLE, RuleTable
from affect_router.engine.vector import DIMENSIONS, StateVector, empty_vector, squared_distance
from affect_router.models import ClassificationResult, DecisionMode, MacroState, RankedLabel

logger = structlog.get_logger(__name__)

# ── Centroids ─────────────────────────────────────────────────


def _centroid(*values: float) -> dict[str, float]:
    return dict(zip(DIMENSIONS, values))


#                                    val   aro   ten   agy  sb   ob   cer  soc  fat  fear
CENTROIDS: dict[MacroState, dict[str, float]] = {
    MacroState.GROUNDED: _centroid(2.1, 0.6, 0.2, 1.9, 0.0, 0.0, 1.9, 0.9, 0.1, 0.0),
    MacroState.ENGAGED: _centroid(1.4, 1.8, 0.8, 1.4, 0.0, 0.0, 1.4, 1.0, 0.0, 0.0),
    MacroState.CONNECTED: _centroid(1.2, 1.0, 0.5, 1.2, 0.0, 0.0, 1.4, 2.0, 0.0, 0.0),
    MacroState.CAPABLE: _centroid(1.0, 1.3, 0.5, 2.0, 0.0, 0.0, 1.7, 0.9, 0.0, 0.0),
    MacroState.PRESSURED: _centroid(-0.8, 1.6, 2.1, 1.1, 0.0, 0.0, 1.1, 0.6, 0.3, 0.0),
    MacroState.BLOCKED: _centroid(-1.5, 1.8, 2.3, 0.2, 0.0, 0.0, 1.0, 0.5, 0.1, 0.0),
    MacroState.OVERLOADED: _centroid(-2.0, 0.0, 2.3, 0.3, 0.0, 0.0, 0.7, 0.6, 1.8, 0.0),
    MacroState.EXHAUSTED: _centroid(-1.4, 0.2, 0.8, 0.3, 0.0, 0.0, 0.9, 0.4, 2.0, 0.0),
    MacroState.DOWN: _centroid(-2.4, 0.6, 1.1, 0.2, 0.0, 0.0, 0.9, 0.7, 1.4, 0.0),
    MacroState.AVERSE: _centroid(-2.0, 1.4, 1.9, 0.9, 0.0, 0.0, 1.4, 0.6, 0.1, 0.0),
    MacroState.DETACHED: _centroid(-0.9, 0.4, 0.6, 0.4, 0.0, 0.0, 0.8, 0.2, 1.4, 0.0),
}


def similarity(vector: StateVector | Mapping[str, float], centroid: Mapping[str, float]) -> float:
    """``1 / (1 + euclidean distance)``; ``0`` if the distance is not finite."""
    dist = math.sqrt(squared_distance(vector, centroid))
    if not math.isfinite(dist):
        return 0.0
    return 1.0 / (1.0 + dist)


# ── Scoring ───────────────────────────────────────────────────


def rank(
    vector: StateVector,
    centroids: Mapping[MacroState, Mapping[str, float]] = CENTROIDS,
) -> list[RankedLabel]:
    """All labels sorted by similarity, highest first.

    The sort is stable, so exact ties keep centroid declaration order.
    """
    scored = [
        RankedLabel(label=label, similarity=similarity(vector, centroid))
        for label, centroid in centroids.items()
    ]
    return sorted(scored, key=lambda r: r.similarity, reverse=True)


def to_probabilities(
    ranked: list[RankedLabel],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> list[RankedLabel]:
    """Temperature-scaled softmax over the similarity scores.

    Output keeps the input order and sums to 1 within ``softmax_eps``.
    """
    if not ranked:
        return []
    temperature = max(config.softmax_temperature, 0.1)
    weights = []
    for r in ranked:
        w = math.exp(r.similarity / temperature)
        weights.append(w if math.isfinite(w) else 0.0)
    total = sum(weights) + config.softmax_eps
    return [
        r.model_copy(update={"probability": w / total})
        for r, w in zip(ranked, weights)
    ]


def decide(
    probabilities: list[RankedLabel],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> tuple[DecisionMode, float]:
    """Read a sorted distribution as ``(mode, p1 - p2)``."""
    p1 = probabilities[0].probability if probabilities else 0.0
    has_second = len(probabilities) > 1
    p2 = probabilities[1].probability if has_second else 0.0
    delta = p1 - p2

    if p1 >= config.t_dom:
        return DecisionMode.SINGLE, delta
    if p1 >= config.t_mix and delta < config.delta_mix and has_second:
        return DecisionMode.MIX, delta
    if delta < config.delta_probe and has_second:
        return DecisionMode.PROBE, delta
    return DecisionMode.SINGLE, delta


def classify_vector(
    vector: StateVector,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> ClassificationResult:
    """Rank, normalise and decide for an already-built vector."""
    probabilities = to_probabilities(rank(vector), config)
    mode, delta = decide(probabilities, config)
    return ClassificationResult(
        state=vector,
        ranked=probabilities,
        primary=probabilities[0].label,
        secondary=probabilities[1].label if len(probabilities) > 1 else None,
        mode=mode,
        delta=delta,
    )


def classify(
    tags: Iterable[str],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    rule_table: RuleTable = DEFAULT_RULE_TABLE,
) -> ClassificationResult:
    """Pure tag-set classification starting from the empty vector."""
    vector = rule_table.apply_tags(empty_vector(), tags)
    result = classify_vector(vector, config)
    logger.debug(
        "classifier.decided",
        primary=result.primary.value,
        secondary=result.secondary.value if result.secondary else None,
        mode=result.mode.value,
        delta=round(result.delta, 6),
    )
    return result
