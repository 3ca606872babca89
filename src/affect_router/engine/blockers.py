"""Macro-flip gating: cluster adjacency and semantic blockers.

Adjacency decides which macro-to-macro flips are considered at all.
Semantic blockers are named predicates over the quantised *baseline*
vector that make a candidate macro implausible whatever the tags say.
They are evaluated in declaration order and the first match wins.
"""

from __future__ import annotations

from typing import Callable, Mapping, NamedTuple

from affect_router.engine.vector import Level
from affect_router.models import MacroState

# ── Clusters & adjacency ──────────────────────────────────────

CLUSTERS: dict[str, tuple[MacroState, ...]] = {
    "positive": (MacroState.GROUNDED, MacroState.ENGAGED, MacroState.CONNECTED, MacroState.CAPABLE),
    "stress": (MacroState.PRESSURED, MacroState.BLOCKED, MacroState.OVERLOADED),
    "low_energy": (MacroState.EXHAUSTED, MacroState.DOWN, MacroState.AVERSE, MacroState.DETACHED),
}

# Same-cluster flips are always neighbours; these are the cross-cluster ones.
CLUSTER_NEIGHBORS: dict[str, frozenset[str]] = {
    "positive": frozenset({"stress"}),
    "stress": frozenset({"positive", "low_energy"}),
    "low_energy": frozenset({"stress"}),
}


def cluster_of(macro: MacroState) -> str | None:
    for name, members in CLUSTERS.items():
        if macro in members:
            return name
    return None


def is_neighbor(source: MacroState, target: MacroState) -> bool:
    src, dst = cluster_of(source), cluster_of(target)
    if src is None or dst is None:
        return False
    return src == dst or dst in CLUSTER_NEIGHBORS.get(src, frozenset())


# ── Semantic blockers ─────────────────────────────────────────

Levels = Mapping[str, Level]


class SemanticBlocker(NamedTuple):
    name: str
    target: MacroState
    fires: Callable[[Levels], bool]


def _is(dim: str, level: Level) -> Callable[[Levels], bool]:
    return lambda levels: levels.get(dim) == level


def _is_not(dim: str, level: Level) -> Callable[[Levels], bool]:
    return lambda levels: levels.get(dim) != level


_FATIGUE_HIGH = _is("fatigue", Level.HIGH)
_TENSION_HIGH = _is("tension", Level.HIGH)
_VALENCE_NEG = _is("valence", Level.LOW)
_VALENCE_POS = _is("valence", Level.HIGH)

SEMANTIC_BLOCKERS: tuple[SemanticBlocker, ...] = (
    # exhaustion overrides any connection evidence
    SemanticBlocker("fatigue_dominant_blocks_connected", MacroState.CONNECTED, _FATIGUE_HIGH),
    SemanticBlocker("tension_high_blocks_connected", MacroState.CONNECTED, _TENSION_HIGH),
    SemanticBlocker("negative_valence_blocks_connected", MacroState.CONNECTED, _VALENCE_NEG),
    SemanticBlocker("engaged_requires_positive_valence", MacroState.ENGAGED, _is_not("valence", Level.HIGH)),
    SemanticBlocker("fatigue_dominant_blocks_engaged", MacroState.ENGAGED, _FATIGUE_HIGH),
    SemanticBlocker("tension_high_blocks_engaged", MacroState.ENGAGED, _TENSION_HIGH),
    SemanticBlocker("tension_high_blocks_grounded", MacroState.GROUNDED, _TENSION_HIGH),
    SemanticBlocker("low_agency_blocks_grounded", MacroState.GROUNDED, _is("agency", Level.LOW)),
    SemanticBlocker("fatigue_dominant_blocks_capable", MacroState.CAPABLE, _FATIGUE_HIGH),
    SemanticBlocker("negative_valence_blocks_capable", MacroState.CAPABLE, _VALENCE_NEG),
    SemanticBlocker(
        "activated_without_fatigue_blocks_exhausted",
        MacroState.EXHAUSTED,
        lambda levels: levels.get("fatigue") == Level.LOW and levels.get("arousal") == Level.HIGH,
    ),
    SemanticBlocker("positive_valence_blocks_down", MacroState.DOWN, _VALENCE_POS),
    SemanticBlocker("positive_valence_blocks_overloaded", MacroState.OVERLOADED, _VALENCE_POS),
    SemanticBlocker("positive_valence_blocks_detached", MacroState.DETACHED, _VALENCE_POS),
    SemanticBlocker("positive_valence_blocks_averse", MacroState.AVERSE, _VALENCE_POS),
    SemanticBlocker("high_arousal_blocks_detached", MacroState.DETACHED, _is("arousal", Level.HIGH)),
)


def first_blocker(
    candidate: MacroState,
    levels: Levels,
    blockers: tuple[SemanticBlocker, ...] = SEMANTIC_BLOCKERS,
) -> str | None:
    """Name of the first blocker that fires for *candidate*, else ``None``."""
    for blocker in blockers:
        if blocker.target == candidate and blocker.fires(levels):
            return blocker.name
    return None
