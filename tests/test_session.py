"""Tests for the adaptive questioning state machine and headless driver."""

from __future__ import annotations

import pytest

from affect_router.config import EngineConfig
from affect_router.engine.question_bank import DEFAULT_QUESTIONS
from affect_router.engine.session import (
    AdaptiveSession,
    SessionProtocolError,
    answer_stream,
    route_adaptive,
    scripted_answers,
)
from affect_router.models import (
    Answer,
    AnswerOption,
    AskNext,
    BaselineDecision,
    BaselineScalars,
    ClarityFlag,
    Decision,
    Question,
    QuestionGroup,
    SessionPhase,
    StopReason,
    UncertaintyKind,
)

DEFINITE = {
    "q_mood": "low",
    "q_energy": "drained",
    "q_control": "low",
    "q_clarity": "foggy",
    "q_safety": "unsafe",
    "q_social": "supported",
    "q_pressure": "high",
    "d_pressured_overloaded": "rushed",
    "d_low_energy": "drained",
    "d_blocked": "stuck",
    "d_positive": "steady",
    "d_connected": "warm",
    "d_down": "lonely",
    "c_context": "deadline",
    "c_body": "heavy",
}

HEDGED = {q.id: "not_sure" for q in DEFAULT_QUESTIONS if q.option("not_sure") is not None}

CORE_ORDER = ["q_mood", "q_energy", "q_control", "q_clarity", "q_safety"]


class TestAdaptiveSession:
    def test_first_question_covers_valence(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        step = session.next_step()
        assert isinstance(step, AskNext)
        assert step.question_id == "q_mood"
        assert step.reason == "coverage:valence"

    def test_pending_question_is_repeated(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        first = session.next_step()
        again = session.next_step()
        assert again.question_id == first.question_id
        assert again.reason == "pending"

    def test_submit_updates_state(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        session.next_step()
        session.submit(Answer(question_id="q_mood", option_id="low"))
        assert session.asked_ids == ["q_mood"]
        assert session.coverage.counts == {"valence": 1}
        assert session.tags == ["L1_MOOD_NEG"]
        assert session.not_sure_flags == [False]
        assert session.phase == SessionPhase.COLLECTING
        assert session.pending is None
        assert session.vector.valence < exhausted_baseline.vector.valence

    def test_repeated_tags_fold_once(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        session.next_step()
        session.submit(Answer(question_id="q_mood", option_id="low", tags=["L1_MOOD_NEG"]))
        assert session.tags == ["L1_MOOD_NEG"]
        after_first = session.vector
        session.next_step()
        session.submit(Answer(question_id="q_energy", option_id="not_sure", tags=["L1_MOOD_NEG"]))
        assert session.tags == ["L1_MOOD_NEG"]
        assert session.vector.valence == pytest.approx(after_first.valence)

    def test_hedged_answer_recorded(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        session.next_step()
        session.submit(Answer(question_id="q_mood", option_id="not_sure"))
        assert session.not_sure_flags == [True]
        assert session.uncertainty == [UncertaintyKind.UNKNOWN]

    def test_answer_without_pending_question(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        with pytest.raises(SessionProtocolError):
            session.submit(Answer(question_id="q_mood", option_id="low"))

    def test_answer_for_wrong_question(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        session.next_step()
        with pytest.raises(SessionProtocolError):
            session.submit(Answer(question_id="q_energy", option_id="drained"))

    def test_answer_after_finish(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        session.finish(StopReason.ANSWERS_EXHAUSTED)
        assert session.phase == SessionPhase.DONE
        with pytest.raises(SessionProtocolError):
            session.submit(Answer(question_id="q_mood", option_id="low"))

    def test_finish_is_terminal(self, exhausted_baseline: BaselineDecision):
        session = AdaptiveSession(exhausted_baseline)
        decision = session.finish(StopReason.ANSWERS_EXHAUSTED)
        assert session.next_step() is decision
        assert session.finish(StopReason.TURN_BUDGET) is decision

    def test_sessions_do_not_share_state(self, exhausted_baseline: BaselineDecision):
        one = AdaptiveSession(exhausted_baseline)
        two = AdaptiveSession(exhausted_baseline)
        one.next_step()
        one.submit(Answer(question_id="q_mood", option_id="low"))
        assert two.asked_ids == []
        assert two.tags == []
        assert two.vector == exhausted_baseline.vector


class TestRouteAdaptive:
    def test_core_axes_asked_first(self, exhausted_baseline: BaselineDecision):
        decision = route_adaptive(exhausted_baseline, scripted_answers(DEFINITE))
        assert decision.diagnostics.asked_question_ids[:5] == CORE_ORDER

    def test_early_stop_when_every_gate_clears(self, exhausted_baseline: BaselineDecision):
        config = EngineConfig(stop_min_gap=0.0, max_questions=20)
        decision = route_adaptive(exhausted_baseline, scripted_answers(DEFINITE), config=config)
        assert decision.diagnostics.stop_reason == StopReason.EARLY_STOP
        assert decision.diagnostics.stop_blockers == []
        assert decision.diagnostics.missing_axes == []
        assert decision.diagnostics.open_discriminator is None
        assert len(decision.diagnostics.asked_question_ids) >= config.min_questions

    def test_turn_budget(self, exhausted_baseline: BaselineDecision):
        config = EngineConfig(min_questions=2, max_questions=2)
        decision = route_adaptive(exhausted_baseline, scripted_answers(DEFINITE), config=config)
        assert decision.diagnostics.stop_reason == StopReason.TURN_BUDGET
        assert decision.diagnostics.asked_question_ids == ["q_mood", "q_energy"]
        assert "coverage" in decision.diagnostics.stop_blockers

    def test_never_exceeds_budget(self, midpoint_baseline: BaselineDecision):
        decision = route_adaptive(midpoint_baseline, scripted_answers(DEFINITE))
        assert len(decision.diagnostics.asked_question_ids) <= EngineConfig().max_questions

    def test_early_stop_wins_over_budget_on_the_same_turn(self, exhausted_baseline: BaselineDecision):
        bank = [
            Question(
                id="q_only", group=QuestionGroup.CORE, covers=["valence"],
                options=[AnswerOption(id="low", tags=["L1_MOOD_NEG"])],
            )
        ]
        config = EngineConfig(min_questions=1, max_questions=1, stop_min_gap=0.0)
        decision = route_adaptive(
            exhausted_baseline, scripted_answers({"q_only": "low"}), questions=bank, config=config
        )
        assert decision.diagnostics.asked_question_ids == ["q_only"]
        assert decision.diagnostics.stop_blockers == []
        assert decision.diagnostics.stop_reason == StopReason.EARLY_STOP

    def test_answers_exhausted(self, exhausted_baseline: BaselineDecision):
        decision = route_adaptive(exhausted_baseline, scripted_answers({}))
        assert decision.diagnostics.stop_reason == StopReason.ANSWERS_EXHAUSTED
        assert decision.diagnostics.asked_question_ids == []
        assert decision.macro == exhausted_baseline.macro

    def test_not_sure_streak(self, exhausted_baseline: BaselineDecision):
        config = EngineConfig(max_questions=5)
        decision = route_adaptive(exhausted_baseline, scripted_answers(HEDGED), config=config)
        assert decision.diagnostics.asked_question_ids == CORE_ORDER
        assert decision.diagnostics.stop_reason == StopReason.TURN_BUDGET
        assert "not_sure" in decision.diagnostics.stop_blockers
        assert UncertaintyKind.LOW_CLARITY in decision.diagnostics.uncertainty
        assert decision.clarity_flag == ClarityFlag.LOW
        assert decision.needs_refine is True

    def test_empty_bank(self, midpoint_baseline: BaselineDecision):
        decision = route_adaptive(midpoint_baseline, scripted_answers(DEFINITE), questions=[])
        assert decision.diagnostics.stop_reason == StopReason.NO_QUESTIONS_LEFT
        assert decision.diagnostics.stop_blockers == ["confidence_gap"]

    def test_accepts_raw_scalars(self, exhausted_scalars: BaselineScalars):
        decision = route_adaptive(exhausted_scalars, scripted_answers({}))
        assert isinstance(decision, Decision)
        assert decision.diagnostics.baseline_macro is not None

    def test_answer_stream_replays_in_order(self, exhausted_baseline: BaselineDecision):
        answers = [
            Answer(question_id="q_mood", option_id="low"),
            Answer(question_id="q_energy", option_id="drained"),
        ]
        decision = route_adaptive(exhausted_baseline, answer_stream(answers))
        assert decision.diagnostics.asked_question_ids == ["q_mood", "q_energy"]
        assert decision.diagnostics.stop_reason == StopReason.ANSWERS_EXHAUSTED

    def test_answer_stream_out_of_order(self, exhausted_baseline: BaselineDecision):
        answers = [Answer(question_id="q_energy", option_id="drained")]
        with pytest.raises(SessionProtocolError):
            route_adaptive(exhausted_baseline, answer_stream(answers))

    def test_deterministic(self, pressured_baseline: BaselineDecision):
        first = route_adaptive(pressured_baseline, scripted_answers(DEFINITE))
        second = route_adaptive(pressured_baseline, scripted_answers(DEFINITE))
        assert first == second
