"""Request / response models shared across API route modules."""

from __future__ import annotations

from pydantic import BaseModel, Field

from affect_router.models import Answer, BaselineScalars, UncertaintyKind


class ClassifyRequest(BaseModel):
    tags: list[str] = Field(default_factory=list)


class RefineRequest(BaseModel):
    """Baseline ratings plus evidence gathered elsewhere."""
    scalars: BaselineScalars = Field(default_factory=BaselineScalars)
    tags: list[str] = Field(default_factory=list)
    uncertainty: list[UncertaintyKind] = Field(default_factory=list)


class AdaptiveRunRequest(BaseModel):
    """Headless adaptive run.

    Either ``choices`` (question id → option id, answered whenever that
    question comes up) or ``answers`` (replayed in order) drives the run.
    """
    scalars: BaselineScalars = Field(default_factory=BaselineScalars)
    choices: dict[str, str | None] = Field(default_factory=dict)
    answers: list[Answer] | None = None
