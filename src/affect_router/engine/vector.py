"""State vector model — canonical dimensions, ranges, clamping and levels.

Every arithmetic helper iterates :data:`DIMENSIONS` rather than the keys
of whatever mapping it was handed, so partial inputs behave as if the
missing dimensions held their defaults.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, model_validator

# ── Dimensions ────────────────────────────────────────────────

DIMENSIONS: tuple[str, ...] = (
    "valence",
    "arousal",
    "tension",
    "agency",
    "self_blame",
    "other_blame",
    "certainty",
    "socialness",
    "fatigue",
    "fear_bias",
)

DIMENSION_RANGES: dict[str, tuple[float, float]] = {
    "valence": (-3.0, 3.0),
    "arousal": (0.0, 3.0),
    "tension": (0.0, 3.0),
    "agency": (0.0, 2.0),
    "self_blame": (0.0, 2.0),
    "other_blame": (0.0, 2.0),
    "certainty": (0.0, 2.0),
    "socialness": (0.0, 2.0),
    "fatigue": (0.0, 2.0),
    "fear_bias": (0.0, 3.0),
}

DIMENSION_DEFAULTS: dict[str, float] = {dim: 0.0 for dim in DIMENSIONS}
DIMENSION_DEFAULTS["certainty"] = 1.0


def _coerce(dim: str, value: Any) -> float:
    lo, hi = DIMENSION_RANGES[dim]
    try:
        x = float(value)
    except (TypeError, ValueError):
        x = DIMENSION_DEFAULTS[dim]
    if not math.isfinite(x):
        x = DIMENSION_DEFAULTS[dim]
    return min(hi, max(lo, x))


class StateVector(BaseModel):
    """A point in the ten-dimensional state space.

    Construction always clamps: missing or non-finite dimensions take
    their default and every value is forced into its documented range,
    so an out-of-range vector cannot exist.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    valence: float = 0.0
    arousal: float = 0.0
    tension: float = 0.0
    agency: float = 0.0
    self_blame: float = 0.0
    other_blame: float = 0.0
    certainty: float = 1.0
    socialness: float = 0.0
    fatigue: float = 0.0
    fear_bias: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _clamp_all(cls, data: Any) -> Any:
        if isinstance(data, StateVector):
            return data.as_dict()
        if not isinstance(data, Mapping):
            data = {}
        return {dim: _coerce(dim, data.get(dim, DIMENSION_DEFAULTS[dim])) for dim in DIMENSIONS}

    def as_dict(self) -> dict[str, float]:
        return {dim: getattr(self, dim) for dim in DIMENSIONS}


def empty_vector() -> StateVector:
    """Default vector: all zeros except ``certainty = 1``."""
    return StateVector()


def clamp(values: Mapping[str, Any] | StateVector | None) -> StateVector:
    """Return a new vector with every dimension forced into range."""
    if isinstance(values, StateVector):
        return values
    return StateVector.model_validate(dict(values or {}))


def add_delta(vector: StateVector, delta: Mapping[str, float]) -> StateVector:
    """Sum a partial delta into *vector* and clamp the result."""
    current = vector.as_dict()
    return clamp({dim: current[dim] + float(delta.get(dim, 0.0)) for dim in DIMENSIONS})


def squared_distance(
    a: Mapping[str, float] | StateVector,
    b: Mapping[str, float] | StateVector,
) -> float:
    """Squared Euclidean distance over the canonical dimension list.

    Dimensions absent on either side count as ``0``; non-finite
    components contribute nothing.
    """
    left = a.as_dict() if isinstance(a, StateVector) else a
    right = b.as_dict() if isinstance(b, StateVector) else b
    total = 0.0
    for dim in DIMENSIONS:
        d = float(left.get(dim, 0.0)) - float(right.get(dim, 0.0))
        if math.isfinite(d):
            total += d * d
    return total


# ── Quantised levels ──────────────────────────────────────────


class Level(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


# (low_cut, high_cut): LOW below low_cut, HIGH at or above high_cut.
_LEVEL_THRESHOLDS: dict[str, tuple[float, float]] = {
    "arousal": (0.35, 1.7),
    "tension": (0.6, 1.8),
    "agency": (0.5, 1.5),
    "socialness": (0.5, 1.5),
    "fatigue": (0.35, 1.2),
    "certainty": (0.35, 1.5),
}
_VALENCE_NEG = -0.8
_VALENCE_POS = 0.8


def levelize(vector: StateVector) -> dict[str, Level]:
    """Quantise the blocker-relevant dimensions into LOW / MID / HIGH.

    Cut points sit between neighbouring baseline-scale steps so a single
    slider notch never straddles a boundary.
    """
    levels: dict[str, Level] = {}
    if vector.valence <= _VALENCE_NEG:
        levels["valence"] = Level.LOW
    elif vector.valence >= _VALENCE_POS:
        levels["valence"] = Level.HIGH
    else:
        levels["valence"] = Level.MID

    for dim, (low_cut, high_cut) in _LEVEL_THRESHOLDS.items():
        value = getattr(vector, dim)
        if value < low_cut:
            levels[dim] = Level.LOW
        elif value >= high_cut:
            levels[dim] = Level.HIGH
        else:
            levels[dim] = Level.MID
    return levels
