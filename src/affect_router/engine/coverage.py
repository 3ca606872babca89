"""Coverage gate tracker — which semantic axes answered questions touched."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from affect_router.models import Question

# Priority order doubles as the selector's tie-break.
REQUIRED_AXES: tuple[str, ...] = ("valence", "arousal", "agency", "clarity", "safety")
DESIRABLE_AXES: tuple[str, ...] = ("social",)
TRACKED_AXES: tuple[str, ...] = REQUIRED_AXES + DESIRABLE_AXES + ("tension", "fatigue")

MIN_HITS: dict[str, int] = {axis: 1 for axis in REQUIRED_AXES}
DESIRED_HITS: dict[str, int] = {"social": 1}


class CoverageTracker(BaseModel):
    """Per-axis hit counts for one run.  Counts never decrease."""

    model_config = ConfigDict(frozen=True)

    counts: dict[str, int] = Field(default_factory=dict)

    def hits(self, axis: str) -> int:
        return self.counts.get(axis, 0)


def apply_coverage(tracker: CoverageTracker, question: Question) -> CoverageTracker:
    """Return a tracker with one more hit on every axis *question* covers."""
    counts = dict(tracker.counts)
    for axis in dict.fromkeys(question.covers):
        counts[axis] = counts.get(axis, 0) + 1
    return CoverageTracker(counts=counts)


def missing_required(
    tracker: CoverageTracker,
    required: Iterable[str] = REQUIRED_AXES,
) -> list[str]:
    """Required axes still below their minimum, in priority order."""
    wanted = set(required)
    return [
        axis
        for axis in REQUIRED_AXES
        if axis in wanted and tracker.hits(axis) < MIN_HITS[axis]
    ]


def missing_desirable(tracker: CoverageTracker) -> list[str]:
    return [axis for axis in DESIRABLE_AXES if tracker.hits(axis) < DESIRED_HITS[axis]]


def is_complete(tracker: CoverageTracker, required: Iterable[str] = REQUIRED_AXES) -> bool:
    return not missing_required(tracker, required)


def askable_required_axes(questions: Iterable[Question]) -> tuple[str, ...]:
    """Required axes that at least one question in the bank can cover.

    Coverage is judged against this subset so a bank that never asks
    about an axis cannot hold a run open forever.
    """
    covered = {axis for q in questions for axis in q.covers}
    return tuple(axis for axis in REQUIRED_AXES if axis in covered)
