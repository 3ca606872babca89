"""One-shot classification routes: tags, baseline, baseline + evidence."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from affect_router.api.schemas import ClassifyRequest, RefineRequest
from affect_router.engine.baseline import classify_baseline
from affect_router.engine.classifier import classify
from affect_router.engine.refine import refine
from affect_router.models import BaselineScalars, StopReason

router = APIRouter(tags=["classify"])


def _config():
    from affect_router.api.server import _engine_config

    if _engine_config is None:
        raise HTTPException(503, "Engine not ready.")
    return _engine_config


@router.post("/classify")
async def classify_tags(req: ClassifyRequest):
    """Classify a bare tag set against every centroid."""
    result = classify(req.tags, _config())
    return result.model_dump(mode="json")


@router.post("/baseline")
async def classify_scalars(req: BaselineScalars):
    """Map the six check-in ratings to a vector and an initial macro."""
    decision = classify_baseline(req, _config())
    return decision.model_dump(mode="json")


@router.post("/refine")
async def refine_decision(req: RefineRequest):
    """Baseline plus collected evidence, straight to a terminal decision."""
    config = _config()
    baseline = classify_baseline(req.scalars, config)
    decision = refine(baseline, req.tags, req.uncertainty, config, stop_reason=StopReason.ONE_SHOT)
    return decision.model_dump(mode="json")
