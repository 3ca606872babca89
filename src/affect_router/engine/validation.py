"""Startup validation of the hand-authored tables and the question bank.

Everything here runs once before any classification.  Structural
defects raise :class:`ConfigurationError`; problems a run can survive
(unknown option tags, an axis no core question covers) come back as
warnings.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

import structlog

from affect_router.engine.blockers import CLUSTER_NEIGHBORS, CLUSTERS, SEMANTIC_BLOCKERS
from affect_router.engine.classifier import CENTROIDS
from affect_router.engine.coverage import REQUIRED_AXES, TRACKED_AXES
from affect_router.engine.rules import DEFAULT_RULE_TABLE, RuleTable, canonicalize_tag
from affect_router.engine.taxonomy import MICRO_TAXONOMY
from affect_router.engine.vector import DIMENSION_RANGES, DIMENSIONS
from affect_router.models import MacroState, Question, QuestionGroup

logger = structlog.get_logger(__name__)

_MACRO_NAMES = {m.value for m in MacroState}


class ConfigurationError(ValueError):
    """A table or question bank is structurally invalid."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


# ── Engine tables ─────────────────────────────────────────────


def check_centroids(centroids: Mapping[MacroState, Mapping[str, float]] = CENTROIDS) -> list[str]:
    errors: list[str] = []
    for macro in MacroState:
        if macro not in centroids:
            errors.append(f"no centroid for macro {macro.value!r}")
    for macro, centroid in centroids.items():
        for dim in DIMENSIONS:
            if dim not in centroid:
                errors.append(f"centroid {macro.value!r} is missing dimension {dim!r}")
                continue
            lo, hi = DIMENSION_RANGES[dim]
            value = centroid[dim]
            if not math.isfinite(value) or not lo <= value <= hi:
                errors.append(f"centroid {macro.value!r} has {dim}={value} outside [{lo}, {hi}]")
        for dim in centroid:
            if dim not in DIMENSIONS:
                errors.append(f"centroid {macro.value!r} names unknown dimension {dim!r}")
    return errors


def check_taxonomy() -> list[str]:
    errors: list[str] = []
    for macro, micros in MICRO_TAXONOMY.items():
        seen: set[str] = set()
        for micro in micros:
            if micro.macro != macro.value:
                errors.append(f"micro {micro.key!r} is filed under {macro.value!r}")
            if not micro.must_have:
                errors.append(f"micro {micro.key!r} has no must-have tags")
            if micro.key in seen:
                errors.append(f"duplicate micro {micro.key!r}")
            seen.add(micro.key)
    return errors


def check_flip_gating() -> list[str]:
    errors: list[str] = []
    placed = [m for members in CLUSTERS.values() for m in members]
    for macro in MacroState:
        count = placed.count(macro)
        if count != 1:
            errors.append(f"macro {macro.value!r} appears in {count} clusters")
    for name, neighbours in CLUSTER_NEIGHBORS.items():
        for other in {name, *neighbours}:
            if other not in CLUSTERS:
                errors.append(f"adjacency names unknown cluster {other!r}")
    names: set[str] = set()
    for blocker in SEMANTIC_BLOCKERS:
        if blocker.name in names:
            errors.append(f"duplicate blocker name {blocker.name!r}")
        names.add(blocker.name)
    return errors


def validate_tables(rule_table: RuleTable = DEFAULT_RULE_TABLE) -> None:
    """Raise :class:`ConfigurationError` if any engine table is malformed."""
    errors = check_centroids() + rule_table.validate() + check_taxonomy() + check_flip_gating()
    if errors:
        logger.error("validation.tables_invalid", errors=errors)
        raise ConfigurationError(errors)
    logger.debug("validation.tables_ok", rules=len(rule_table), rules_version=rule_table.version)


# ── Question bank ─────────────────────────────────────────────


def _is_known_tag(tag: str, rule_table: RuleTable) -> bool:
    canonical = canonicalize_tag(tag)
    return canonical is not None and (canonical in rule_table or canonical.startswith("sig."))


def check_question_bank(
    questions: Iterable[Question],
    rule_table: RuleTable = DEFAULT_RULE_TABLE,
) -> tuple[list[str], list[str]]:
    """Return ``(errors, warnings)`` for a question bank."""
    questions = list(questions)
    errors: list[str] = []
    warnings: list[str] = []
    ids: set[str] = set()

    for q in questions:
        if q.id in ids:
            errors.append(f"duplicate question id {q.id!r}")
        ids.add(q.id)

        for axis in q.covers:
            if axis not in TRACKED_AXES:
                errors.append(f"question {q.id!r} covers unknown axis {axis!r}")
        for a, b in q.discriminates:
            for label in (a, b):
                if str(label).lower() not in _MACRO_NAMES:
                    errors.append(f"question {q.id!r} discriminates unknown macro {label!r}")
            if str(a).lower() == str(b).lower():
                errors.append(f"question {q.id!r} discriminates {a!r} against itself")

        if q.group == QuestionGroup.DISCRIMINATOR and not q.discriminates:
            warnings.append(f"discriminator {q.id!r} declares no pairs")
        if q.group != QuestionGroup.DISCRIMINATOR and q.discriminates:
            warnings.append(f"{q.group.value} question {q.id!r} declares discriminator pairs")
        if not q.options:
            warnings.append(f"question {q.id!r} has no options")

        option_ids: set[str] = set()
        for opt in q.options:
            if opt.id in option_ids:
                errors.append(f"question {q.id!r} repeats option id {opt.id!r}")
            option_ids.add(opt.id)
            for tag in opt.tags:
                if not _is_known_tag(tag, rule_table):
                    warnings.append(f"question {q.id!r} option {opt.id!r} emits unscored tag {tag!r}")

    core_axes = {axis for q in questions if q.group == QuestionGroup.CORE for axis in q.covers}
    for axis in REQUIRED_AXES:
        if axis not in core_axes:
            warnings.append(f"no core question covers required axis {axis!r}")
    return errors, warnings


def validate_question_bank(
    questions: Iterable[Question],
    rule_table: RuleTable = DEFAULT_RULE_TABLE,
) -> list[str]:
    """Raise on errors, log and return warnings."""
    errors, warnings = check_question_bank(questions, rule_table)
    if errors:
        logger.error("validation.question_bank_invalid", errors=errors)
        raise ConfigurationError(errors)
    for warning in warnings:
        logger.warning("validation.question_bank_warning", detail=warning)
    return warnings
