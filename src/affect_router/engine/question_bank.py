"""Question bank — per-card metadata the engine consumes.

Only ids, groups, coverage axes, discriminated pairs, eligibility gates
and per-option tags live here; card wording belongs to the content layer.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import TypeAdapter

from affect_router.models import AnswerOption, Question, QuestionGroup, UncertaintyKind

logger = structlog.get_logger(__name__)

_QUESTION_LIST = TypeAdapter(list[Question])


def _opt(option_id: str, *tags: str, uncertainty: UncertaintyKind | None = None) -> AnswerOption:
    return AnswerOption(id=option_id, tags=list(tags), uncertainty=uncertainty)


def _not_sure(kind: UncertaintyKind = UncertaintyKind.UNKNOWN) -> AnswerOption:
    return _opt("not_sure", uncertainty=kind)


DEFAULT_QUESTIONS: tuple[Question, ...] = (
    # ── Core ──────────────────────────────────────────────────
    Question(
        id="q_mood", group=QuestionGroup.CORE, covers=["valence"],
        options=[_opt("low", "L1_MOOD_NEG"), _opt("good", "L1_MOOD_POS"), _not_sure()],
    ),
    Question(
        id="q_energy", group=QuestionGroup.CORE, covers=["arousal", "fatigue"],
        options=[_opt("drained", "L1_ENERGY_LOW"), _opt("charged", "L1_ENERGY_HIGH"), _not_sure()],
    ),
    Question(
        id="q_control", group=QuestionGroup.CORE, covers=["agency"],
        options=[_opt("low", "L1_CONTROL_LOW"), _opt("high", "L1_CONTROL_HIGH"), _not_sure()],
    ),
    Question(
        id="q_clarity", group=QuestionGroup.CORE, covers=["clarity"],
        options=[
            _opt("foggy", "L1_CLARITY_LOW"),
            _opt("clear", "L1_CLARITY_HIGH"),
            _not_sure(UncertaintyKind.LOW_CLARITY),
        ],
    ),
    Question(
        id="q_safety", group=QuestionGroup.CORE, covers=["safety"],
        options=[_opt("unsafe", "L1_SAFETY_LOW"), _opt("safe", "L1_SAFETY_HIGH"), _not_sure()],
    ),
    Question(
        id="q_social", group=QuestionGroup.CORE, covers=["social"],
        options=[_opt("supported", "L1_SOCIAL_SUPPORT"), _opt("threatened", "L1_SOCIAL_THREAT"), _not_sure()],
    ),
    Question(
        id="q_pressure", group=QuestionGroup.CORE, covers=["arousal", "tension"],
        options=[_opt("high", "L1_PRESSURE_HIGH"), _opt("low", "L1_PRESSURE_LOW"), _not_sure()],
    ),
    # ── Discriminators ────────────────────────────────────────
    Question(
        id="d_pressured_overloaded", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("pressured", "overloaded")],
        options=[
            _opt("rushed", "sig.micro.pressured.rushed", "sig.context.work.deadline"),
            _opt("too_many", "sig.micro.overloaded.too_many_tasks", "sig.context.work.overcommit"),
            _opt("racing", "sig.micro.overloaded.cognitive", "sig.cognition.racing"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    Question(
        id="d_low_energy", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("exhausted", "down"), ("exhausted", "detached")],
        options=[
            _opt("drained", "sig.micro.exhausted.drained", "sig.body.heavy_limbs"),
            _opt("heavy_sad", "sig.micro.down.sad_heavy", "L2_SAD_HEAVY"),
            _opt("numb", "sig.micro.detached.numb", "L2_DISCONNECT_NUMB"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    Question(
        id="d_blocked", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("blocked", "pressured"), ("blocked", "averse")],
        options=[
            _opt("stuck", "sig.micro.blocked.stuck", "sig.cognition.rumination"),
            _opt("frozen", "sig.micro.blocked.frozen", "sig.cognition.blank"),
            _opt("irritated", "sig.micro.averse.irritated", "sig.trigger.interruption"),
            _opt("tense_but_working", "sig.micro.pressured.tense_functional"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    Question(
        id="d_positive", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("grounded", "capable"), ("grounded", "engaged"), ("capable", "engaged")],
        options=[
            _opt("steady", "sig.micro.grounded.steady", "L2_PRESENT"),
            _opt("executing", "sig.micro.capable.executing"),
            _opt("focused", "sig.micro.engaged.focused"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    Question(
        id="d_connected", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("connected", "engaged"), ("connected", "grounded"), ("connected", "pressured")],
        options=[
            _opt("warm", "sig.micro.connected.warm", "sig.context.social.support"),
            _opt("inspired", "sig.micro.engaged.inspired", "L2_POS_JOY"),
            _opt("present", "sig.micro.grounded.present", "L2_PRESENT"),
            _opt("rushed", "sig.micro.pressured.rushed", "L2_FOCUS_FUTURE"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    Question(
        id="d_down", group=QuestionGroup.DISCRIMINATOR, min_asked_after=3,
        discriminates=[("down", "detached"), ("down", "averse")],
        options=[
            _opt("lonely", "sig.micro.down.lonely_low", "sig.context.social.isolation"),
            _opt("disconnected", "sig.micro.detached.disconnected", "L2_SHUTDOWN"),
            _opt("angry", "sig.micro.averse.angry", "sig.trigger.conflict"),
            _not_sure(UncertaintyKind.CONFLICT),
        ],
    ),
    # ── Confirmation ──────────────────────────────────────────
    Question(
        id="c_context", group=QuestionGroup.CONFIRM, min_asked_after=4,
        options=[
            _opt("deadline", "sig.context.work.deadline"),
            _opt("health", "sig.context.health.stress"),
            _opt("isolation", "sig.context.social.isolation"),
            _opt("family", "sig.context.family.tension"),
            _opt("nothing_specific"),
        ],
    ),
    Question(
        id="c_body", group=QuestionGroup.CONFIRM, covers=["tension"], min_asked_after=4,
        options=[
            _opt("heavy", "sig.body.heavy_limbs"),
            _opt("headache", "sig.body.headache"),
            _opt("foggy", "sig.cognition.fog"),
            _opt("settled", "sig.tension.low", "L1_BODY_RELAXED"),
            _not_sure(),
        ],
    ),
)


def load_question_bank(path: str | Path) -> list[Question]:
    """Read a question bank from JSON.

    Accepts either a bare list of questions or ``{"questions": [...]}``.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    pydantic.ValidationError
        If an entry does not match the :class:`Question` shape.
    """
    path = Path(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("questions", [])
    questions = _QUESTION_LIST.validate_python(payload)
    logger.info("question_bank.loaded", path=str(path), count=len(questions))
    return questions
