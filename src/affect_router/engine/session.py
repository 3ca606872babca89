"""Adaptive questioning state machine.

::

    COLLECTING ──answer──▶ SCORING ──▶ COLLECTING
        │
        └──early stop / budget / bank empty──▶ STOPPED ──▶ DEEP_REFINE ──▶ DONE

The session never blocks: :meth:`AdaptiveSession.next_step` either names
the next question or returns the terminal :class:`Decision`, and the
caller feeds answers back through :meth:`AdaptiveSession.submit`.  The
same machine runs headless via :func:`route_adaptive` with an injected
answer source.  Every session owns its own vector and trackers.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Sequence

import structlog

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.baseline import classify_baseline
from affect_router.engine.classifier import classify_vector
from affect_router.engine.coverage import (
    CoverageTracker,
    apply_coverage,
    askable_required_axes,
    missing_required,
)
from affect_router.engine.discriminators import bank_pairs, has_asked_for, mark_asked, pair_key
from affect_router.engine.early_stop import evaluate_stop
from affect_router.engine.question_bank import DEFAULT_QUESTIONS
from affect_router.engine.refine import refine
from affect_router.engine.rules import DEFAULT_RULE_TABLE, RuleTable, canonicalize_tags
from affect_router.engine.selector import select_next_question
from affect_router.models import (
    Answer,
    AskNext,
    BaselineDecision,
    BaselineScalars,
    Decision,
    Question,
    SessionPhase,
    StopReason,
    UncertaintyKind,
)

logger = structlog.get_logger(__name__)

AnswerSource = Callable[[Question], "Answer | None"]


class SessionProtocolError(RuntimeError):
    """The caller answered out of turn or after the session finished."""


class AdaptiveSession:
    """One adaptive classification run.

    Parameters
    ----------
    baseline : BaselineDecision
        Initial macro call; its vector seeds the running state.
    questions : Sequence[Question]
        Question bank for this run.  Order is the selector's tie-break.
    """

    def __init__(
        self,
        baseline: BaselineDecision,
        questions: Sequence[Question] = DEFAULT_QUESTIONS,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        rule_table: RuleTable = DEFAULT_RULE_TABLE,
    ) -> None:
        self.baseline = baseline
        self.questions = list(questions)
        self.config = config
        self.rule_table = rule_table

        self._by_id = {q.id: q for q in self.questions}
        self._required_axes = askable_required_axes(self.questions)
        self._askable_pairs = bank_pairs(self.questions)
        self._min_questions = min(config.min_questions, len(self.questions))

        self.phase = SessionPhase.COLLECTING
        self.vector = baseline.vector
        self.classification = baseline.classification
        self.coverage = CoverageTracker()
        self.asked_pairs: frozenset[str] = frozenset()
        self.asked_ids: list[str] = []
        self.tags: list[str] = []
        self.uncertainty: list[UncertaintyKind] = []
        self.not_sure_flags: list[bool] = []
        self.pending: Question | None = None
        self.stop_reason: StopReason | None = None
        self.stop_blockers: list[str] = []
        self.decision: Decision | None = None

    # ── Derived state ─────────────────────────────────────────

    def question(self, question_id: str) -> Question:
        return self._by_id[question_id]

    @property
    def top_pair(self) -> tuple[object, object | None]:
        return self.classification.primary, self.classification.secondary

    def stop_blockers_now(self) -> list[str]:
        top1, top2 = self.top_pair
        return evaluate_stop(
            asked_count=len(self.asked_ids),
            coverage=self.coverage,
            asked_pairs=self.asked_pairs,
            top1=top1,
            top2=top2,
            gap=self.classification.delta,
            not_sure_flags=self.not_sure_flags,
            min_questions=self._min_questions,
            required_axes=self._required_axes,
            askable_pairs=self._askable_pairs,
            config=self.config,
        )

    # ── Transitions ───────────────────────────────────────────

    def next_step(self) -> AskNext | Decision:
        """Either the next question to ask or the terminal decision."""
        if self.decision is not None:
            return self.decision
        if self.pending is not None:
            return AskNext(question_id=self.pending.id, reason="pending")

        blockers = self.stop_blockers_now()
        if not blockers:
            return self.finish(StopReason.EARLY_STOP, blockers)
        if len(self.asked_ids) >= self.config.max_questions:
            return self.finish(StopReason.TURN_BUDGET, blockers)

        top1, top2 = self.top_pair
        selection = select_next_question(
            self.questions, self.asked_ids, self.coverage, top1, top2, self._required_axes
        )
        if selection is None:
            return self.finish(StopReason.NO_QUESTIONS_LEFT, blockers)

        self.pending = selection.question
        logger.debug(
            "session.question_selected",
            question_id=selection.question.id,
            reason=selection.reason,
            blockers=blockers,
        )
        return AskNext(question_id=selection.question.id, reason=selection.reason)

    def submit(self, answer: Answer) -> None:
        """Fold one answer into the run and re-score."""
        if self.decision is not None:
            raise SessionProtocolError("session already finished")
        if self.pending is None or answer.question_id != self.pending.id:
            expected = self.pending.id if self.pending else None
            raise SessionProtocolError(
                f"answer for {answer.question_id!r} but pending question is {expected!r}"
            )

        question = self.pending
        self.phase = SessionPhase.SCORING
        option = question.option(answer.option_id) if answer.option_id else None
        offered = canonicalize_tags((option.tags if option else []) + list(answer.tags))
        marker = answer.uncertainty or (option.uncertainty if option else None)

        fresh = [tag for tag in offered if tag not in self.tags]
        self.tags.extend(fresh)
        if marker is not None:
            self.uncertainty.append(marker)
        self.not_sure_flags.append(marker is not None)

        self.coverage = apply_coverage(self.coverage, question)
        self.asked_pairs = mark_asked(self.asked_pairs, question)
        self.asked_ids.append(question.id)

        self.vector = self.rule_table.apply_tags_smoothed(self.vector, fresh, self.config)
        self.classification = classify_vector(self.vector, self.config)
        self.pending = None
        self.phase = SessionPhase.COLLECTING

        logger.debug(
            "session.answer_scored",
            question_id=question.id,
            option_id=answer.option_id,
            primary=self.classification.primary.value,
            delta=round(self.classification.delta, 6),
        )

    def finish(self, reason: StopReason, blockers: list[str] | None = None) -> Decision:
        """Stop collecting and run the deep refinement pass."""
        if self.decision is not None:
            return self.decision
        self.pending = None
        self.phase = SessionPhase.STOPPED
        self.stop_reason = reason
        self.stop_blockers = list(blockers) if blockers is not None else self.stop_blockers_now()

        self.phase = SessionPhase.DEEP_REFINE
        top1, top2 = self.top_pair
        open_pair = None if has_asked_for(self.asked_pairs, top1, top2) else pair_key(top1, top2)
        self.decision = refine(
            self.baseline,
            self.tags,
            self.uncertainty,
            self.config,
            final_probabilities=self.classification.ranked,
            missing_axes=missing_required(self.coverage, self._required_axes),
            open_discriminator=open_pair,
            asked_question_ids=list(self.asked_ids),
            stop_reason=reason,
            stop_blockers=self.stop_blockers,
        )
        self.phase = SessionPhase.DONE
        logger.info(
            "session.finished",
            reason=reason.value,
            asked=len(self.asked_ids),
            macro=self.decision.macro.value,
            micro=self.decision.micro,
        )
        return self.decision


# ── Headless driver ───────────────────────────────────────────


def route_adaptive(
    baseline: BaselineDecision | BaselineScalars,
    answer_source: AnswerSource,
    questions: Sequence[Question] = DEFAULT_QUESTIONS,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    rule_table: RuleTable = DEFAULT_RULE_TABLE,
) -> Decision:
    """Drive a full adaptive run, pulling answers from *answer_source*.

    The source is called with each question to ask and returns an
    :class:`Answer`, or ``None`` once it has nothing more to give.
    """
    if isinstance(baseline, BaselineScalars):
        baseline = classify_baseline(baseline, config)
    session = AdaptiveSession(baseline, questions, config, rule_table)
    while True:
        step = session.next_step()
        if isinstance(step, Decision):
            return step
        answer = answer_source(session.question(step.question_id))
        if answer is None:
            return session.finish(StopReason.ANSWERS_EXHAUSTED)
        session.submit(answer)


def scripted_answers(choices: Mapping[str, str | None]) -> AnswerSource:
    """Answer source picking ``choices[question_id]``; ``None`` when unscripted."""

    def source(question: Question) -> Answer | None:
        if question.id not in choices:
            return None
        return Answer(question_id=question.id, option_id=choices[question.id])

    return source


def answer_stream(answers: Iterable[Answer]) -> AnswerSource:
    """Answer source replaying *answers* in order, ignoring the question asked."""
    iterator = iter(answers)

    def source(question: Question) -> Answer | None:
        return next(iterator, None)

    return source
