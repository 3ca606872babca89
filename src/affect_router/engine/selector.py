"""Next-question selector.

Stateless and deterministic: everything it needs is passed in, and the
same inputs always pick the same question.  Priority:

1. coverage incomplete → a core question for the first missing required
   axis, then for a missing desirable axis, then any unasked core one;
2. a discriminator for the current top-2 pair, else any eligible one;
3. an eligible confirm question;
4. anything still unasked.

``None`` means nothing is left to ask.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Sequence

import structlog

from affect_router.engine.coverage import (
    REQUIRED_AXES,
    CoverageTracker,
    missing_desirable,
    missing_required,
)
from affect_router.engine.discriminators import pair_key
from affect_router.models import Question, QuestionGroup

logger = structlog.get_logger(__name__)


class Selection(NamedTuple):
    question: Question
    reason: str


def _eligible(question: Question, asked_count: int) -> bool:
    return asked_count >= question.min_asked_after


def select_next_question(
    questions: Sequence[Question],
    asked_ids: Iterable[str],
    coverage: CoverageTracker,
    top1: object,
    top2: object | None,
    required_axes: Iterable[str] = REQUIRED_AXES,
) -> Selection | None:
    asked = set(asked_ids)
    asked_count = len(asked)
    unasked = [q for q in questions if q.id not in asked]
    core = [q for q in unasked if q.group == QuestionGroup.CORE]

    # 1. Coverage
    missing = missing_required(coverage, required_axes)
    if missing:
        for axis in missing:
            for q in core:
                if axis in q.covers:
                    return Selection(q, f"coverage:{axis}")
        for axis in missing_desirable(coverage):
            for q in core:
                if axis in q.covers:
                    return Selection(q, f"coverage:{axis}")
        if core:
            return Selection(core[0], "coverage:core")

    # 2. Discriminators
    discriminators = [
        q for q in unasked
        if q.group == QuestionGroup.DISCRIMINATOR and _eligible(q, asked_count)
    ]
    if top2 is not None:
        wanted = pair_key(top1, top2)
        for q in discriminators:
            if any(pair_key(a, b) == wanted for a, b in q.discriminates):
                return Selection(q, f"discriminator:{wanted}")
    if discriminators:
        return Selection(discriminators[0], "discriminator:any")

    # 3. Confirmation
    for q in unasked:
        if q.group == QuestionGroup.CONFIRM and _eligible(q, asked_count):
            return Selection(q, "confirm")

    # 4. Whatever is left
    if unasked:
        return Selection(unasked[0], "remaining")

    logger.debug("selector.exhausted", asked=asked_count)
    return None
