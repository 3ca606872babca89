"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from affect_router.config import EngineConfig
from affect_router.engine.baseline import classify_baseline
from affect_router.models import BaselineDecision, BaselineScalars


@pytest.fixture
def exhausted_scalars() -> BaselineScalars:
    """Low mood, no energy: lands on the fatigue-dominant macro."""
    return BaselineScalars(valence=2, energy=1, tension=3, clarity=4, control=3, social=3)


@pytest.fixture
def midpoint_scalars() -> BaselineScalars:
    return BaselineScalars(valence=4, energy=4, tension=4, clarity=4, control=4, social=4)


@pytest.fixture
def pressured_scalars() -> BaselineScalars:
    return BaselineScalars(valence=3, energy=6, tension=6, clarity=4, control=5, social=3)


@pytest.fixture
def grounded_scalars() -> BaselineScalars:
    return BaselineScalars(valence=7, energy=5, tension=1, clarity=7, control=7, social=5)


@pytest.fixture
def exhausted_baseline(exhausted_scalars: BaselineScalars) -> BaselineDecision:
    return classify_baseline(exhausted_scalars)


@pytest.fixture
def midpoint_baseline(midpoint_scalars: BaselineScalars) -> BaselineDecision:
    return classify_baseline(midpoint_scalars)


@pytest.fixture
def pressured_baseline(pressured_scalars: BaselineScalars) -> BaselineDecision:
    return classify_baseline(pressured_scalars)


@pytest.fixture
def grounded_baseline(grounded_scalars: BaselineScalars) -> BaselineDecision:
    return classify_baseline(grounded_scalars)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()
