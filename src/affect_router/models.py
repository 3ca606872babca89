"""Core domain models used throughout the affect router.

These models represent:
- Macro states, confidence bands, clarity flags and decision modes
- Question / answer metadata supplied by the content layer
- Classifier output (ranked labels, baseline decision)
- The terminal :class:`Decision` record and its diagnostics
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from affect_router.engine.vector import StateVector

DECISION_SCHEMA_VERSION = "decision_v1"


# ── Enums ─────────────────────────────────────────────────────


class MacroState(str, Enum):
    """Coarse state labels, grouped positive / stress / low-energy."""

    GROUNDED = "grounded"
    ENGAGED = "engaged"
    CONNECTED = "connected"
    CAPABLE = "capable"
    PRESSURED = "pressured"
    BLOCKED = "blocked"
    OVERLOADED = "overloaded"
    EXHAUSTED = "exhausted"
    DOWN = "down"
    AVERSE = "averse"
    DETACHED = "detached"


class ConfidenceBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ClarityFlag(str, Enum):
    """How weak or contradictory the underlying signals were."""

    LOW = "low"
    MEDIUM = "medium"
    NONE = "none"


class DecisionMode(str, Enum):
    SINGLE = "single"
    MIX = "mix"
    PROBE = "probe"


class QuestionGroup(str, Enum):
    CORE = "core"
    DISCRIMINATOR = "discriminator"
    CONFIRM = "confirm"


class UncertaintyKind(str, Enum):
    """Marker an answer option carries when the respondent hedged."""

    LOW_CLARITY = "low_clarity"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class SessionPhase(str, Enum):
    COLLECTING = "collecting"
    SCORING = "scoring"
    STOPPED = "stopped"
    DEEP_REFINE = "deep_refine"
    DONE = "done"


class StopReason(str, Enum):
    EARLY_STOP = "early_stop"
    TURN_BUDGET = "turn_budget"
    NO_QUESTIONS_LEFT = "no_questions_left"
    ANSWERS_EXHAUSTED = "answers_exhausted"
    ONE_SHOT = "one_shot"


class MicroMargin(str, Enum):
    COMFORTABLE = "comfortable"
    MINIMAL = "minimal"


# ── Question metadata ─────────────────────────────────────────


class AnswerOption(BaseModel):
    id: str
    tags: list[str] = Field(default_factory=list)
    uncertainty: UncertaintyKind | None = None


class Question(BaseModel):
    """Metadata for one question card.  Wording lives elsewhere."""

    model_config = ConfigDict(frozen=True)

    id: str
    group: QuestionGroup
    covers: list[str] = Field(default_factory=list)
    discriminates: list[tuple[str, str]] = Field(default_factory=list)
    min_asked_after: int = Field(0, ge=0)
    options: list[AnswerOption] = Field(default_factory=list)

    def option(self, option_id: str) -> AnswerOption | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


class Answer(BaseModel):
    """One answered question as reported by the caller.

    ``tags`` and ``uncertainty`` are added to whatever the chosen option
    declares; an unknown ``option_id`` contributes nothing.
    """

    question_id: str
    option_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    uncertainty: UncertaintyKind | None = None


# ── Classifier output ─────────────────────────────────────────


class BaselineScalars(BaseModel):
    """Six independent check-in ratings on a 1..N scale.

    Values are kept as given.  Missing, non-numeric or non-finite
    entries fall back to the scale midpoint during mapping, so nothing
    is rejected here.
    """

    valence: Any = None
    energy: Any = None
    tension: Any = None
    clarity: Any = None
    control: Any = None
    social: Any = None


class RankedLabel(BaseModel):
    label: MacroState
    similarity: float
    probability: float = 0.0


class ClassificationResult(BaseModel):
    state: StateVector
    ranked: list[RankedLabel]
    primary: MacroState
    secondary: MacroState | None = None
    mode: DecisionMode
    delta: float


class BaselineDecision(BaseModel):
    """Initial macro call from the baseline scalars alone."""

    model_config = ConfigDict(frozen=True)

    vector: StateVector
    classification: ClassificationResult
    macro: MacroState
    confidence_band: ConfidenceBand
    clarity_flag: ClarityFlag
    needs_refine: bool
    similarity_gap: float


class AskNext(BaseModel):
    question_id: str
    reason: str


# ── Decision ──────────────────────────────────────────────────


class DecisionDiagnostics(BaseModel):
    model_config = ConfigDict(frozen=True)

    rules_version: str
    probabilities: list[RankedLabel]
    final_probabilities: list[RankedLabel] = Field(default_factory=list)
    baseline_macro: MacroState
    baseline_band: ConfidenceBand
    baseline_mode: DecisionMode
    missing_axes: list[str] = Field(default_factory=list)
    open_discriminator: str | None = None
    flip_candidate: MacroState | None = None
    flip_strength: float = 0.0
    flip_rejections: list[str] = Field(default_factory=list)
    blocked_by: str | None = None
    micro_margin: MicroMargin | None = None
    uncertainty: list[UncertaintyKind] = Field(default_factory=list)
    evidence_tags: list[str] = Field(default_factory=list)
    asked_question_ids: list[str] = Field(default_factory=list)
    stop_reason: StopReason | None = None
    stop_blockers: list[str] = Field(default_factory=list)


class Decision(BaseModel):
    """Terminal output of a classification run.

    Field meanings are a compatibility surface for rendering and history
    storage; change them only together with ``schema_version``.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: str = DECISION_SCHEMA_VERSION
    macro: MacroState
    micro: str | None = None
    confidence_band: ConfidenceBand
    clarity_flag: ClarityFlag = ClarityFlag.NONE
    needs_refine: bool
    mode: DecisionMode
    macro_flip_applied: bool = False
    macro_flip_reason: str | None = None
    diagnostics: DecisionDiagnostics
