"""Tests for the state vector model."""

from __future__ import annotations

import math

import pytest

from affect_router.engine.vector import (
    DIMENSION_RANGES,
    DIMENSIONS,
    Level,
    StateVector,
    add_delta,
    clamp,
    empty_vector,
    levelize,
    squared_distance,
)


class TestEmptyAndClamp:
    def test_defaults(self):
        v = empty_vector().as_dict()
        assert list(v) == list(DIMENSIONS)
        assert v["certainty"] == 1.0
        assert all(v[d] == 0.0 for d in DIMENSIONS if d != "certainty")

    def test_clamp_fills_missing_dimensions(self):
        v = clamp({"valence": 1.5})
        assert v.valence == 1.5
        assert v.certainty == 1.0
        assert v.fatigue == 0.0

    @pytest.mark.parametrize("dim", DIMENSIONS)
    def test_clamp_forces_range(self, dim: str):
        lo, hi = DIMENSION_RANGES[dim]
        assert getattr(clamp({dim: hi + 10}), dim) == hi
        assert getattr(clamp({dim: lo - 10}), dim) == lo

    def test_non_finite_falls_back_to_default(self):
        v = clamp({"valence": math.nan, "certainty": math.inf, "arousal": "abc"})
        assert v.valence == 0.0
        assert v.certainty == 1.0
        assert v.arousal == 0.0

    def test_constructor_also_clamps(self):
        assert StateVector(fatigue=5).fatigue == 2.0

    def test_unknown_keys_ignored(self):
        assert clamp({"mood": 3}).as_dict() == empty_vector().as_dict()


class TestArithmetic:
    def test_add_delta_clamps(self):
        v = add_delta(empty_vector(), {"arousal": -1.0, "tension": 4.0})
        assert v.arousal == 0.0
        assert v.tension == 3.0

    def test_add_delta_returns_new_vector(self):
        base = empty_vector()
        add_delta(base, {"valence": 1.0})
        assert base.valence == 0.0

    def test_squared_distance_missing_dimensions_are_zero(self):
        assert squared_distance({"valence": 3.0}, {}) == pytest.approx(9.0)

    def test_squared_distance_symmetry(self):
        a = clamp({"valence": -1, "fatigue": 2})
        b = clamp({"arousal": 1.5})
        assert squared_distance(a, b) == pytest.approx(squared_distance(b, a))


class TestLevels:
    def test_fatigue_dominant(self):
        levels = levelize(clamp({"fatigue": 2.0, "valence": -2.0}))
        assert levels["fatigue"] == Level.HIGH
        assert levels["valence"] == Level.LOW

    def test_valence_boundaries_inclusive(self):
        assert levelize(clamp({"valence": -0.8}))["valence"] == Level.LOW
        assert levelize(clamp({"valence": 0.8}))["valence"] == Level.HIGH
        assert levelize(clamp({"valence": 0.0}))["valence"] == Level.MID

    def test_low_is_strictly_below_cut(self):
        assert levelize(clamp({"tension": 0.6}))["tension"] == Level.MID
        assert levelize(clamp({"tension": 0.59}))["tension"] == Level.LOW
