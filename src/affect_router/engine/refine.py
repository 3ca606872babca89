"""Deep refinement layer — macro flip, micro selection, final banding.

Takes the baseline macro decision plus every evidence tag collected
during adaptive questioning and produces the terminal :class:`Decision`.

Macro flip
----------
Only macros other than the baseline with at least one
``sig.micro.<macro>.*`` tag are candidates.  Candidate strength is
``min(1, 0.5 * micro tags + 0.2 * supporting tags)``.  The strongest
candidate must clear every gate:

- the baseline band is not high;
- strength ≥ ``flip_min_strength``;
- strength exceeds the baseline macro's own strength by ``flip_margin``;
- no semantic blocker fires on the quantised baseline vector;
- the candidate is a declared neighbour of the baseline macro.

All gates are evaluated so diagnostics list every reason a flip failed.

Micro selection
---------------
Within the final macro, micros with at least one must-have tag are
ranked by must-have hits, then supporting hits, then declaration order.
"""

from __future__ import annotations

from typing import Any, Iterable, NamedTuple

import structlog

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.blockers import first_blocker, is_neighbor
from affect_router.engine.rules import RULES_VERSION, canonicalize_tags, dedupe, derive_signal_tags
from affect_router.engine.taxonomy import (
    MicroDefinition,
    micro_signal_prefix,
    micros_for,
    supporting_tags,
)
from affect_router.engine.vector import levelize
from affect_router.models import (
    BaselineDecision,
    ClarityFlag,
    ConfidenceBand,
    Decision,
    DecisionDiagnostics,
    MacroState,
    MicroMargin,
    UncertaintyKind,
)

logger = structlog.get_logger(__name__)

_MICRO_WEIGHT = 0.5
_SUPPORT_WEIGHT = 0.2

_BAND_ORDER = (ConfidenceBand.LOW, ConfidenceBand.MEDIUM, ConfidenceBand.HIGH)


def lower_band(band: ConfidenceBand) -> ConfidenceBand:
    return _BAND_ORDER[max(0, _BAND_ORDER.index(band) - 1)]


def cap_band(band: ConfidenceBand, ceiling: ConfidenceBand) -> ConfidenceBand:
    return _BAND_ORDER[min(_BAND_ORDER.index(band), _BAND_ORDER.index(ceiling))]


# ── Evidence ──────────────────────────────────────────────────


def collect_evidence(tags: Iterable[str]) -> list[str]:
    """Canonical tags followed by the ``sig.*`` tags they derive."""
    raw = canonicalize_tags(tags)
    return dedupe(raw + derive_signal_tags(raw))


def micro_hits(macro: MacroState, evidence: Iterable[str]) -> int:
    prefix = micro_signal_prefix(macro)
    return sum(1 for tag in evidence if tag.startswith(prefix))


def macro_strength(macro: MacroState, evidence: Iterable[str]) -> float:
    tags = set(evidence)
    support = supporting_tags(macro)
    hits = micro_hits(macro, tags)
    support_hits = sum(1 for tag in tags if tag in support)
    return min(1.0, _MICRO_WEIGHT * hits + _SUPPORT_WEIGHT * support_hits)


# ── Macro flip ────────────────────────────────────────────────


class FlipOutcome(NamedTuple):
    applied: bool
    macro: MacroState
    candidate: MacroState | None = None
    strength: float = 0.0
    rejections: tuple[str, ...] = ()
    blocked_by: str | None = None
    reason: str | None = None


def evaluate_flip(
    baseline: BaselineDecision,
    evidence: Iterable[str],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> FlipOutcome:
    tags = list(evidence)
    source = baseline.macro

    candidate: MacroState | None = None
    best = 0.0
    for macro in MacroState:
        if macro == source or micro_hits(macro, tags) < 1:
            continue
        strength = macro_strength(macro, tags)
        if candidate is None or strength > best:
            candidate, best = macro, strength

    if candidate is None:
        return FlipOutcome(applied=False, macro=source)

    rejections: list[str] = []
    if baseline.confidence_band == ConfidenceBand.HIGH:
        rejections.append("baseline_high_confidence")
    if best < config.flip_min_strength:
        rejections.append("strength")
    if best - macro_strength(source, tags) < config.flip_margin:
        rejections.append("margin")
    blocked_by = first_blocker(candidate, levelize(baseline.vector))
    if blocked_by is not None:
        rejections.append(f"blocker:{blocked_by}")
    if not is_neighbor(source, candidate):
        rejections.append("not_neighbor")

    if rejections:
        logger.info(
            "refine.flip_rejected",
            source=source.value,
            candidate=candidate.value,
            strength=round(best, 3),
            rejections=rejections,
        )
        return FlipOutcome(
            applied=False,
            macro=source,
            candidate=candidate,
            strength=best,
            rejections=tuple(rejections),
            blocked_by=blocked_by,
        )

    reason = f"micro_evidence:{source.value}->{candidate.value}:strength={best:.2f}"
    logger.info("refine.flip_applied", source=source.value, target=candidate.value, strength=round(best, 3))
    return FlipOutcome(applied=True, macro=candidate, candidate=candidate, strength=best, reason=reason)


# ── Micro selection ───────────────────────────────────────────


def select_micro(
    macro: MacroState,
    evidence: Iterable[str],
) -> tuple[MicroDefinition | None, MicroMargin | None]:
    """Best-supported micro under *macro*, or ``(None, None)``."""
    tags = set(evidence)
    chosen: MicroDefinition | None = None
    chosen_score = (0, 0)
    for micro in micros_for(macro):
        must = sum(1 for tag in micro.must_have if tag in tags)
        if must < 1:
            continue
        score = (must, sum(1 for tag in micro.supporting if tag in tags))
        if chosen is None or score > chosen_score:
            chosen, chosen_score = micro, score

    if chosen is None:
        return None, None
    must, support = chosen_score
    comfortable = must == len(chosen.must_have) and support >= 1
    return chosen, MicroMargin.COMFORTABLE if comfortable else MicroMargin.MINIMAL


# ── Decision ──────────────────────────────────────────────────


def refine(
    baseline: BaselineDecision,
    tags: Iterable[str] = (),
    uncertainty: Iterable[UncertaintyKind] = (),
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    **diagnostics: Any,
) -> Decision:
    """Produce the terminal :class:`Decision` for one run.

    Parameters
    ----------
    baseline : BaselineDecision
        Output of :func:`~affect_router.engine.baseline.classify_baseline`.
    tags : Iterable[str]
        Every evidence tag gathered during the run, duplicates allowed.
    uncertainty : Iterable[UncertaintyKind]
        Markers carried by hedged answers.
    **diagnostics
        Extra :class:`DecisionDiagnostics` fields supplied by the caller
        (asked question ids, stop reason, rescored probabilities...).
    """
    evidence = collect_evidence(tags)
    kinds = list(dict.fromkeys(UncertaintyKind(k) for k in uncertainty))

    flip = evaluate_flip(baseline, evidence, config)
    micro, margin = select_micro(flip.macro, evidence)

    band = baseline.confidence_band
    clarity = baseline.clarity_flag
    for _ in kinds:
        band = lower_band(band)
    if micro is None:
        band = lower_band(band)
        clarity = ClarityFlag.LOW
    elif margin == MicroMargin.MINIMAL:
        band = cap_band(band, ConfidenceBand.MEDIUM)
    if flip.applied:
        band = cap_band(band, ConfidenceBand.MEDIUM)

    if UncertaintyKind.LOW_CLARITY in kinds:
        clarity = ClarityFlag.LOW
    elif UncertaintyKind.CONFLICT in kinds and clarity == ClarityFlag.NONE:
        clarity = ClarityFlag.MEDIUM

    needs_refine = band == ConfidenceBand.LOW or clarity == ClarityFlag.LOW

    details = DecisionDiagnostics(
        rules_version=RULES_VERSION,
        probabilities=baseline.classification.ranked,
        baseline_macro=baseline.macro,
        baseline_band=baseline.confidence_band,
        baseline_mode=baseline.classification.mode,
        flip_candidate=flip.candidate,
        flip_strength=flip.strength,
        flip_rejections=list(flip.rejections),
        blocked_by=flip.blocked_by,
        micro_margin=margin,
        uncertainty=kinds,
        evidence_tags=evidence,
        **diagnostics,
    )
    decision = Decision(
        macro=flip.macro,
        micro=micro.key if micro else None,
        confidence_band=band,
        clarity_flag=clarity,
        needs_refine=needs_refine,
        mode=baseline.classification.mode,
        macro_flip_applied=flip.applied,
        macro_flip_reason=flip.reason,
        diagnostics=details,
    )
    logger.info(
        "refine.completed",
        macro=decision.macro.value,
        micro=decision.micro,
        band=band.value,
        clarity=clarity.value,
        flipped=flip.applied,
    )
    return decision
