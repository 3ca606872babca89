"""Micro-state taxonomy: three micros per macro with their evidence sets.

A micro qualifies only when at least one of its ``must_have`` tags was
collected; ``supporting`` tags break ties and widen the margin.
Declaration order within a macro is the final tie-break.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from affect_router.models import MacroState


class MicroDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    must_have: tuple[str, ...]
    supporting: tuple[str, ...] = ()

    @property
    def macro(self) -> str:
        return self.key.split(".", 1)[0]


def _micro(key: str, must_have: tuple[str, ...] = (), supporting: tuple[str, ...] = ()) -> MicroDefinition:
    return MicroDefinition(key=key, must_have=(f"sig.micro.{key}",) + must_have, supporting=supporting)


_HEALTH = "sig.context.health.stress"
_DEADLINE = "sig.context.work.deadline"
_ISOLATION = "sig.context.social.isolation"
_FAMILY = "sig.context.family.tension"

MICRO_TAXONOMY: dict[MacroState, tuple[MicroDefinition, ...]] = {
    MacroState.GROUNDED: (
        _micro("grounded.steady", ("sig.clarity.high",), ("sig.agency.high", "sig.tension.low")),
        _micro("grounded.present", ("sig.clarity.high",), ("sig.agency.high", "sig.tension.low")),
        _micro("grounded.recovered", supporting=(_DEADLINE, "sig.fatigue.low")),
    ),
    MacroState.ENGAGED: (
        _micro("engaged.focused", supporting=("sig.arousal.high", "sig.agency.high")),
        _micro("engaged.curious", supporting=("sig.context.work.performance", "sig.arousal.mid")),
        _micro("engaged.inspired", supporting=("sig.arousal.high", "sig.valence.pos")),
    ),
    MacroState.CONNECTED: (
        _micro("connected.warm", supporting=("sig.context.social.support", "sig.social.high")),
        _micro("connected.social_flow", supporting=("sig.social.high", "sig.valence.pos")),
        _micro("connected.seen", supporting=("sig.context.social.support", "sig.social.mid")),
    ),
    MacroState.CAPABLE: (
        _micro("capable.deciding", supporting=("sig.agency.high", "sig.clarity.high")),
        _micro("capable.executing", supporting=("sig.agency.high", "sig.arousal.mid")),
        _micro("capable.structured", supporting=("sig.clarity.high", "sig.agency.mid")),
    ),
    MacroState.PRESSURED: (
        _micro("pressured.rushed", supporting=(_DEADLINE, "sig.tension.high")),
        _micro("pressured.performance", supporting=("sig.context.work.performance", "sig.tension.mid")),
        _micro("pressured.tense_functional", supporting=("sig.tension.high", "sig.agency.mid")),
    ),
    MacroState.BLOCKED: (
        _micro("blocked.stuck", supporting=("sig.cognition.rumination", "sig.agency.low")),
        _micro("blocked.avoidant", supporting=("sig.trigger.uncertainty", "sig.agency.low")),
        _micro("blocked.frozen", supporting=("sig.cognition.blank", "sig.agency.low")),
    ),
    MacroState.OVERLOADED: (
        _micro("overloaded.cognitive", supporting=("sig.cognition.racing", "sig.tension.high", _HEALTH, _DEADLINE, _ISOLATION)),
        _micro("overloaded.too_many_tasks", supporting=("sig.context.work.overcommit", "sig.tension.mid", _DEADLINE, _HEALTH, _ISOLATION)),
        _micro("overloaded.overstimulated", supporting=("sig.body.headache", "sig.tension.high", _HEALTH, _DEADLINE, _ISOLATION)),
    ),
    MacroState.EXHAUSTED: (
        _micro("exhausted.drained", supporting=("sig.body.heavy_limbs", "sig.fatigue.high", _HEALTH, _DEADLINE, _ISOLATION, _FAMILY)),
        _micro("exhausted.sleepy_fog", supporting=("sig.cognition.fog", "sig.fatigue.high", _HEALTH, _DEADLINE, _ISOLATION)),
        _micro("exhausted.burnout", supporting=("sig.context.work.overcommit", "sig.fatigue.high", _DEADLINE, _HEALTH, _ISOLATION, _FAMILY)),
    ),
    MacroState.DOWN: (
        _micro("down.sad_heavy", supporting=(_ISOLATION, "sig.valence.neg", _HEALTH, _FAMILY)),
        _micro("down.discouraged", supporting=("sig.trigger.rejection", "sig.valence.neg", _HEALTH, _FAMILY, _ISOLATION)),
        _micro("down.lonely_low", supporting=(_ISOLATION, "sig.social.low", _HEALTH, _FAMILY)),
    ),
    MacroState.AVERSE: (
        _micro("averse.irritated", supporting=("sig.trigger.interruption", "sig.tension.mid")),
        _micro("averse.angry", supporting=("sig.trigger.conflict", "sig.tension.high")),
        _micro("averse.disgust_avoid", supporting=("sig.trigger.rejection", "sig.valence.neg")),
    ),
    MacroState.DETACHED: (
        _micro("detached.numb", supporting=("sig.cognition.blank", "sig.arousal.low", _HEALTH, _DEADLINE, _FAMILY)),
        _micro("detached.disconnected", supporting=(_ISOLATION, "sig.social.low", _HEALTH, _DEADLINE, _FAMILY)),
        _micro("detached.autopilot", supporting=("sig.cognition.scattered", "sig.arousal.low", _HEALTH, _DEADLINE, _FAMILY)),
    ),
}


def micros_for(macro: MacroState) -> tuple[MicroDefinition, ...]:
    return MICRO_TAXONOMY.get(macro, ())


def micro_signal_prefix(macro: MacroState) -> str:
    return f"sig.micro.{macro.value}."


def supporting_tags(macro: MacroState) -> frozenset[str]:
    """Union of every micro's supporting tags under *macro*."""
    return frozenset(tag for micro in micros_for(macro) for tag in micro.supporting)
