"""Adaptive questioning routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from affect_router.api.schemas import AdaptiveRunRequest
from affect_router.engine.baseline import classify_baseline
from affect_router.engine.session import answer_stream, route_adaptive, scripted_answers

router = APIRouter(tags=["adaptive"])


def _engine():
    from affect_router.api.server import _engine_config, _questions

    if _engine_config is None or _questions is None:
        raise HTTPException(503, "Engine not ready.")
    return _questions, _engine_config


@router.get("/questions")
async def list_questions():
    """Question metadata the engine will select from."""
    questions, _ = _engine()
    return [q.model_dump(mode="json") for q in questions]


@router.post("/adaptive/run")
async def run_adaptive(req: AdaptiveRunRequest):
    """Run the full adaptive loop headless with scripted answers.

    Answers that do not match the question being asked are rejected
    with 409.
    """
    questions, config = _engine()
    baseline = classify_baseline(req.scalars, config)
    if req.answers is not None:
        source = answer_stream(req.answers)
    else:
        source = scripted_answers(req.choices)
    decision = route_adaptive(baseline, source, questions, config)
    return decision.model_dump(mode="json")
