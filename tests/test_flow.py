"""Tests for coverage gates, discriminator tracking, early stop and selection."""

from __future__ import annotations

import pytest

from affect_router.config import EngineConfig
from affect_router.engine.coverage import (
    REQUIRED_AXES,
    CoverageTracker,
    apply_coverage,
    askable_required_axes,
    is_complete,
    missing_required,
)
from affect_router.engine.discriminators import bank_pairs, has_asked_for, mark_asked, pair_key
from affect_router.engine.early_stop import can_stop, evaluate_stop, not_sure_dominates
from affect_router.engine.selector import select_next_question
from affect_router.models import AnswerOption, MacroState, Question, QuestionGroup


def _q(qid: str, group: QuestionGroup, covers=(), pairs=(), gate: int = 0) -> Question:
    return Question(
        id=qid,
        group=group,
        covers=list(covers),
        discriminates=list(pairs),
        min_asked_after=gate,
        options=[AnswerOption(id="a")],
    )


CORE = QuestionGroup.CORE
DISC = QuestionGroup.DISCRIMINATOR
CONF = QuestionGroup.CONFIRM


@pytest.fixture
def bank() -> list[Question]:
    return [
        _q("q_social", CORE, ["social"]),
        _q("q_agency", CORE, ["agency"]),
        _q("q_mood", CORE, ["valence"]),
        _q("q_energy", CORE, ["arousal"]),
        _q("q_clarity", CORE, ["clarity"]),
        _q("q_safety", CORE, ["safety"]),
        _q("d_other", DISC, pairs=[("down", "detached")], gate=2),
        _q("d_press", DISC, pairs=[("overloaded", "pressured")], gate=2),
        _q("c_ctx", CONF, gate=3),
        _q("c_late", CONF, gate=50),
    ]


def _full_coverage() -> CoverageTracker:
    return CoverageTracker(counts={axis: 1 for axis in REQUIRED_AXES})


# ── Coverage ──────────────────────────────────────────────────


class TestCoverage:
    def test_counts_only_increase(self):
        tracker = CoverageTracker()
        history = []
        for q in (_q("a", CORE, ["valence"]), _q("b", CORE, ["valence", "arousal"]), _q("c", CORE)):
            tracker = apply_coverage(tracker, q)
            history.append(dict(tracker.counts))
        assert history[-1] == {"valence": 2, "arousal": 1}
        for before, after in zip(history, history[1:]):
            assert all(after.get(k, 0) >= v for k, v in before.items())

    def test_missing_in_priority_order(self):
        tracker = apply_coverage(CoverageTracker(), _q("a", CORE, ["arousal"]))
        assert missing_required(tracker) == ["valence", "agency", "clarity", "safety"]

    def test_social_not_required(self):
        assert is_complete(_full_coverage())
        assert not is_complete(CoverageTracker(counts={"social": 3}))

    def test_complete_only_after_every_axis(self):
        tracker = CoverageTracker()
        for axis in REQUIRED_AXES:
            assert not is_complete(tracker)
            tracker = apply_coverage(tracker, _q(axis, CORE, [axis]))
        assert is_complete(tracker)

    def test_askable_subset(self):
        assert askable_required_axes([_q("a", CORE, ["safety", "valence"])]) == ("valence", "safety")


# ── Discriminators ────────────────────────────────────────────


class TestDiscriminators:
    def test_pair_key_order_independent(self):
        assert pair_key("b", "a") == pair_key("a", "b") == "a|b"
        assert pair_key(MacroState.DOWN, "Exhausted") == "down|exhausted"

    def test_mark_and_check(self):
        asked = mark_asked(frozenset(), _q("d", DISC, pairs=[("pressured", "overloaded")]))
        assert has_asked_for(asked, MacroState.OVERLOADED, MacroState.PRESSURED)
        assert not has_asked_for(asked, MacroState.OVERLOADED, MacroState.BLOCKED)

    def test_no_second_label(self):
        assert has_asked_for(frozenset(), MacroState.DOWN, None)

    def test_bank_pairs(self, bank):
        assert bank_pairs(bank) == {"detached|down", "overloaded|pressured"}


# ── Early stop ────────────────────────────────────────────────


def _stop_kwargs(**overrides):
    kwargs = dict(
        asked_count=5,
        coverage=_full_coverage(),
        asked_pairs={"overloaded|pressured"},
        top1=MacroState.PRESSURED,
        top2=MacroState.OVERLOADED,
        gap=0.05,
        not_sure_flags=[False] * 5,
    )
    kwargs.update(overrides)
    return kwargs


class TestEarlyStop:
    def test_all_gates_pass(self):
        assert evaluate_stop(**_stop_kwargs()) == []
        assert can_stop(**_stop_kwargs())

    @pytest.mark.parametrize(
        "override, blocker",
        [
            ({"asked_count": 3}, "min_questions"),
            ({"coverage": CoverageTracker()}, "coverage"),
            ({"top2": MacroState.BLOCKED}, "discriminator"),
            ({"gap": 0.001}, "confidence_gap"),
            ({"not_sure_flags": [True, False, True, False, True]}, "not_sure"),
        ],
    )
    def test_each_gate_blocks_alone(self, override, blocker):
        assert evaluate_stop(**_stop_kwargs(**override)) == [blocker]
        assert not can_stop(**_stop_kwargs(**override))

    def test_unaskable_pair_does_not_block(self):
        blockers = evaluate_stop(
            **_stop_kwargs(top2=MacroState.BLOCKED, askable_pairs={"overloaded|pressured"})
        )
        assert blockers == []

    def test_effective_minimum(self):
        assert evaluate_stop(**_stop_kwargs(asked_count=2, min_questions=2)) == []

    def test_not_sure_window_only_counts_recent(self):
        config = EngineConfig()
        assert not not_sure_dominates([True, True, True, False, False, False, False, False], config)
        assert not_sure_dominates([False, True, True, True], config)


# ── Selector ──────────────────────────────────────────────────


class TestSelector:
    def test_first_missing_axis_first(self, bank):
        sel = select_next_question(bank, [], CoverageTracker(), "down", "detached")
        assert sel.question.id == "q_mood"
        assert sel.reason == "coverage:valence"

    def test_follows_axis_priority(self, bank):
        tracker = apply_coverage(CoverageTracker(), bank[2])
        sel = select_next_question(bank, ["q_mood"], tracker, "down", "detached")
        assert sel.question.id == "q_energy"

    def test_exact_discriminator_preferred(self, bank):
        asked = ["q_mood", "q_energy", "q_agency", "q_clarity", "q_safety"]
        sel = select_next_question(bank, asked, _full_coverage(), MacroState.PRESSURED, MacroState.OVERLOADED)
        assert sel.question.id == "d_press"

    def test_any_discriminator_fallback(self, bank):
        asked = ["q_mood", "q_energy", "q_agency", "q_clarity", "q_safety"]
        sel = select_next_question(bank, asked, _full_coverage(), MacroState.GROUNDED, MacroState.CAPABLE)
        assert sel.question.id == "d_other"
        assert sel.reason == "discriminator:any"

    def test_discriminator_gate_respected(self, bank):
        short_bank = [q for q in bank if q.group != CORE]
        sel = select_next_question(short_bank, ["x"], _full_coverage(), "down", "detached")
        # one question asked, discriminators need two: skip to remaining
        assert sel.question.id == "d_other"
        assert sel.reason == "remaining"

    def test_confirm_after_discriminators(self, bank):
        asked = [q.id for q in bank if q.group != CONF]
        sel = select_next_question(bank, asked, _full_coverage(), "down", "detached")
        assert sel.question.id == "c_ctx"
        assert sel.reason == "confirm"

    def test_remaining_ignores_gate(self, bank):
        asked = [q.id for q in bank if q.id != "c_late"]
        sel = select_next_question(bank, asked, _full_coverage(), "down", "detached")
        assert sel.question.id == "c_late"
        assert sel.reason == "remaining"

    def test_none_when_exhausted(self, bank):
        assert select_next_question(bank, [q.id for q in bank], _full_coverage(), "a", "b") is None

    def test_uncoverable_axis_falls_through(self):
        bank = [_q("q_mood", CORE, ["valence"]), _q("c", CONF)]
        tracker = CoverageTracker(counts={"valence": 1})
        sel = select_next_question(bank, ["q_mood"], tracker, "down", "detached")
        assert sel.question.id == "c"

    def test_deterministic(self, bank):
        a = select_next_question(bank, ["q_mood"], CoverageTracker(), "down", "detached")
        b = select_next_question(bank, ["q_mood"], CoverageTracker(), "down", "detached")
        assert a == b
