"""Early-stop policy — a conjunction of five gates, never a score."""

from __future__ import annotations

from typing import Iterable, Sequence

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.coverage import REQUIRED_AXES, CoverageTracker, missing_required
from affect_router.engine.discriminators import has_asked_for, pair_key


def not_sure_dominates(
    not_sure_flags: Sequence[bool],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> bool:
    """True when the recent window holds ``not_sure_threshold`` or more hedges."""
    window = list(not_sure_flags)[-config.not_sure_window:]
    return sum(1 for flag in window if flag) >= config.not_sure_threshold


def evaluate_stop(
    *,
    asked_count: int,
    coverage: CoverageTracker,
    asked_pairs: Iterable[str],
    top1: object,
    top2: object | None,
    gap: float,
    not_sure_flags: Sequence[bool] = (),
    min_questions: int | None = None,
    required_axes: Iterable[str] = REQUIRED_AXES,
    askable_pairs: Iterable[str] | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> list[str]:
    """Return the names of every gate currently blocking an early stop.

    Parameters
    ----------
    min_questions : int | None
        Effective minimum; defaults to ``config.min_questions``.  Callers
        pass ``min(config.min_questions, bank size)`` so a small bank can
        still terminate.
    askable_pairs : Iterable[str] | None
        When given, a top-2 pair no question can discriminate does not
        block stopping.
    """
    blockers: list[str] = []
    minimum = config.min_questions if min_questions is None else min_questions

    if asked_count < minimum:
        blockers.append("min_questions")
    if missing_required(coverage, required_axes):
        blockers.append("coverage")

    discriminated = has_asked_for(asked_pairs, top1, top2)
    if not discriminated and askable_pairs is not None and top2 is not None:
        discriminated = pair_key(top1, top2) not in set(askable_pairs)
    if not discriminated:
        blockers.append("discriminator")

    if gap < config.stop_min_gap:
        blockers.append("confidence_gap")
    if not_sure_dominates(not_sure_flags, config):
        blockers.append("not_sure")
    return blockers


def can_stop(**kwargs) -> bool:
    """``True`` only if :func:`evaluate_stop` reports no blockers."""
    return not evaluate_stop(**kwargs)
