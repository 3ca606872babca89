"""Evidence rule table — tag → partial state-vector delta.

The weights are content, not engine: they live in one versioned table
and the math that folds them into a vector lives in :class:`RuleTable`.
Tags without a registered delta are skipped silently; answer producers
are allowed to emit informational tags (``sig.*``, context markers) that
scoring does not consume.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping

import structlog

from affect_router.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from affect_router.engine.vector import DIMENSIONS, StateVector, add_delta, clamp

logger = structlog.get_logger(__name__)

RULES_VERSION = "rules_v1"

# ── Tag deltas ────────────────────────────────────────────────

TAG_RULES: dict[str, dict[str, float]] = {
    # L1: core check-in axes
    "L1_MOOD_NEG": {"valence": -1.2, "arousal": 0.2, "tension": 0.3, "fatigue": 0.3, "certainty": -0.2},
    "L1_MOOD_POS": {
        "valence": 1.6, "arousal": 0.3, "tension": -0.7, "fatigue": -0.5, "certainty": 0.4, "agency": 0.4,
    },
    "L1_BODY_TENSION": {"tension": 1.6},
    "L1_BODY_RELAXED": {"tension": -1.1},
    "L1_ENERGY_LOW": {"arousal": -0.7, "fatigue": 1.8},
    "L1_ENERGY_HIGH": {"arousal": 2.3},
    "L1_CONTROL_HIGH": {"agency": 2.0, "tension": -0.2},
    "L1_CONTROL_LOW": {"agency": -0.7, "tension": 0.7},
    "L1_SOCIAL_SUPPORT": {"socialness": 1.2, "valence": 0.8, "agency": 0.5, "certainty": 0.4},
    "L1_SOCIAL_THREAT": {
        "socialness": 0.3, "valence": -0.4, "other_blame": 0.3, "certainty": -0.2, "tension": 0.3,
    },
    "L1_SAFETY_LOW": {"valence": -0.8, "arousal": 1.0, "tension": 1.0, "certainty": -0.5, "fear_bias": 0.55},
    "L1_SAFETY_HIGH": {"valence": 1.0, "arousal": -0.6, "tension": -1.0, "certainty": 0.6},
    "L1_WORTH_LOW": {"valence": -0.8, "self_blame": 0.6, "tension": 0.3, "certainty": -0.2},
    "L1_WORTH_HIGH": {"valence": 1.0, "agency": 0.5, "certainty": 0.4},
    "L1_EXPECT_LOW": {
        "valence": -0.8, "arousal": 0.5, "tension": 1.0, "self_blame": 0.3, "other_blame": 0.6, "fatigue": 0.2,
    },
    "L1_EXPECT_OK": {"valence": 0.4, "tension": -0.3, "fatigue": -0.3},
    "L1_PRESSURE_HIGH": {"arousal": 1.0, "tension": 1.0, "fatigue": 0.5, "valence": -0.5},
    "L1_PRESSURE_LOW": {
        "arousal": -0.6, "tension": -0.9, "fatigue": -0.6, "valence": 0.6, "agency": 0.4, "certainty": 0.3,
    },
    "L1_CLARITY_LOW": {"certainty": -0.6, "tension": 0.6, "fatigue": 0.5, "valence": -0.1},
    "L1_CLARITY_HIGH": {"certainty": 1.2, "tension": -0.5, "valence": 0.7, "agency": 0.5},
    # L2: cognitive and social factors
    "L2_FOCUS_FUTURE": {"arousal": 0.7, "tension": 0.7},
    "L2_FOCUS_PAST": {"fatigue": 0.8, "valence": -0.7},
    "L2_SOURCE_PEOPLE": {"other_blame": 0.8, "socialness": 1.0},
    "L2_SOURCE_TASKS": {"other_blame": 0.3, "tension": 0.4},
    "L2_UNCERT_HIGH": {"certainty": -1.1, "arousal": 0.3, "tension": 0.4},
    "L2_UNCERT_LOW": {"certainty": 0.7, "tension": -0.4},
    "L2_SOCIAL_PAIN_YES": {"socialness": 0.3, "valence": -0.8, "tension": 0.8, "fatigue": 0.3},
    "L2_SOCIAL_PAIN_NO": {},
    "L2_SHUTDOWN": {"fatigue": 1.6, "tension": -0.3, "agency": -0.8, "arousal": -0.4},
    "L2_PRESENT": {"certainty": 0.4, "tension": -0.3, "agency": 0.3},
    "L2_FEELS_FINE": {"fatigue": -0.4, "valence": 0.3, "tension": -0.2},
    "L2_SELF_BLAME_YES": {"self_blame": 0.8, "valence": -0.4, "tension": 0.3},
    "L2_SELF_BLAME_NO": {"self_blame": -0.6, "valence": 0.2, "tension": -0.2},
    "L2_FLOODING": {"arousal": 0.8, "tension": 0.8},
    "L2_GUILT": {"self_blame": 0.4, "valence": -0.1, "certainty": 0.1},
    "L2_GUILT_NO": {},
    "L2_SHAME": {"self_blame": 0.55, "valence": -0.2, "certainty": -0.2, "tension": 0.2},
    "L2_SHAME_NO": {},
    "L2_POS_GRATITUDE": {"valence": 0.3, "certainty": 0.3, "socialness": 0.25},
    "L2_POS_JOY": {"valence": 0.9, "arousal": 0.35, "socialness": 0.5},
    "L2_REGULATION_GOOD": {"agency": 1.2, "tension": -1.0},
    "L2_REGULATION_BAD": {"agency": -0.8, "tension": 0.8},
    "L2_CLARITY_HIGH": {"certainty": 0.7, "tension": -0.3},
    "L2_CLARITY_LOW": {"certainty": -0.7, "tension": 0.6, "fatigue": 0.4},
    "L2_NO_POSITIVE": {"valence": -0.7, "fatigue": 0.7, "arousal": -0.2},
    "L2_DISCONNECT_NUMB": {"arousal": -0.9, "certainty": -1.0, "agency": -1.0, "fatigue": 1.8, "tension": -0.3},
    "L2_LET_DOWN": {
        "valence": -0.9, "arousal": 0.8, "tension": 0.8, "self_blame": 0.6, "other_blame": 0.6, "fatigue": 0.2,
    },
    "L2_SAD_HEAVY": {"valence": -1.0, "arousal": -0.6, "fatigue": 1.3, "tension": -0.2},
    "L2_FEAR_SPIKE": {
        "valence": -1.2, "arousal": 1.3, "tension": 1.3, "agency": -0.2, "certainty": -0.7,
        "socialness": 0.4, "fear_bias": 1.0,
    },
    "L2_MEANING_LOW": {"valence": -1.0, "certainty": -0.6, "fatigue": 0.5},
    "L2_MEANING_HIGH": {"valence": 1.1, "certainty": 0.7},
    "L2_CONTENT_WARM": {"valence": 1.4, "arousal": 0.3, "tension": -0.7, "certainty": 0.4},
}

# ── L1 → sig.* derivation ─────────────────────────────────────

SIGNAL_DERIVATIONS: dict[str, tuple[str, ...]] = {
    "L1_MOOD_NEG": ("sig.valence.neg",),
    "L1_MOOD_POS": ("sig.valence.pos",),
    "L1_ENERGY_LOW": ("sig.fatigue.high", "sig.arousal.low"),
    "L1_ENERGY_HIGH": ("sig.fatigue.low", "sig.arousal.high"),
    "L1_CONTROL_LOW": ("sig.agency.low",),
    "L1_CONTROL_HIGH": ("sig.agency.high",),
    "L1_CLARITY_LOW": ("sig.clarity.low",),
    "L1_CLARITY_HIGH": ("sig.clarity.high",),
    "L1_EXPECT_LOW": ("sig.clarity.low",),
    "L1_EXPECT_OK": ("sig.clarity.high",),
    "L1_SOCIAL_THREAT": ("sig.social.threat",),
    "L1_SOCIAL_SUPPORT": ("sig.social.high",),
    "L1_PRESSURE_HIGH": ("sig.context.work.pressure.high",),
    "L1_PRESSURE_LOW": ("sig.context.work.pressure.low",),
    "L1_BODY_TENSION": ("sig.tension.high",),
    "L1_BODY_RELAXED": ("sig.tension.low",),
    "L1_SAFETY_LOW": ("sig.safety.low",),
    "L1_SAFETY_HIGH": ("sig.safety.high",),
    "L1_WORTH_LOW": ("sig.self_worth.low", "sig.agency.low"),
    "L1_WORTH_HIGH": ("sig.self_worth.high", "sig.agency.high"),
}


# ── Canonical tags ────────────────────────────────────────────

ALIASES_VERSION = "aliases_v1"

# Legacy and free-text spellings, keyed by normalised token.
TAG_ALIASES: dict[str, str] = {
    "SELF_BLAME": "sig.attribution.self",
    "OTHER_BLAME": "sig.attribution.other",
}

# Renames applied to ``sig.*`` tags after lower-casing.
SIGNAL_ALIASES: dict[str, str] = {
    "sig.safety.low": "sig.tension.high",
    "sig.safety.high": "sig.tension.low",
}

_SEPARATORS = re.compile(r"[/\s\-]+")
_PUNCTUATION = re.compile(r"[?,!]+")


def canonicalize_tag(tag: object) -> str | None:
    """Canonical spelling of one tag, or ``None`` for an empty tag.

    ``sig.*`` tags are lower-cased and passed through
    :data:`SIGNAL_ALIASES`.  Everything else is upper-cased with spaces,
    slashes and dashes folded to ``_`` and then passed through
    :data:`TAG_ALIASES`, which matches the keys of :data:`TAG_RULES`.
    """
    if tag is None:
        return None
    raw = str(tag).strip()
    if not raw:
        return None
    lower = raw.lower()
    if lower.startswith("sig."):
        return SIGNAL_ALIASES.get(lower, lower)
    token = _PUNCTUATION.sub("", _SEPARATORS.sub("_", raw.upper()))
    if not token:
        return None
    return TAG_ALIASES.get(token, token)


def canonicalize_tags(tags: Iterable[object]) -> list[str]:
    """Canonicalise every tag, dropping empties and repeats in first-seen order."""
    return dedupe(canonicalize_tag(tag) for tag in tags)


def dedupe(tags: Iterable[str | None]) -> list[str]:
    """Drop repeats and empty entries, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for tag in tags:
        if not tag or tag in seen:
            continue
        seen.add(tag)
        out.append(tag)
    return out


def derive_signal_tags(tags: Iterable[str]) -> list[str]:
    """Map coarse L1 tags onto the ``sig.*`` axis tags refinement reads.

    Input tags are canonicalised first, so spelling does not matter.
    Only the derived tags are returned, canonical and deduplicated in
    first-seen order.
    """
    derived: list[str] = []
    for tag in canonicalize_tags(tags):
        derived.extend(SIGNAL_DERIVATIONS.get(tag, ()))
    return canonicalize_tags(derived)


class RuleTable:
    """A versioned tag → delta table and the two ways of folding it in.

    Parameters
    ----------
    rules : Mapping[str, Mapping[str, float]]
        Tag → partial delta.  Dimensions not listed contribute nothing.
    version : str
        Identifier surfaced in decision diagnostics.
    """

    def __init__(
        self,
        rules: Mapping[str, Mapping[str, float]] | None = None,
        version: str = RULES_VERSION,
    ) -> None:
        source = TAG_RULES if rules is None else rules
        self._rules = {tag: dict(delta) for tag, delta in source.items()}
        self.version = version

    def __contains__(self, tag: object) -> bool:
        return tag in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def tags(self) -> list[str]:
        return list(self._rules)

    def delta_for(self, tag: str) -> dict[str, float]:
        """Registered delta for *tag*, or an empty delta."""
        return dict(self._rules.get(tag, {}))

    def validate(self) -> list[str]:
        """Return one message per non-canonical tag or malformed delta."""
        errors: list[str] = []
        for tag in self._rules:
            if canonicalize_tag(tag) != tag:
                errors.append(f"rule {tag!r} is not in canonical form")
        for tag, delta in self._rules.items():
            for dim, value in delta.items():
                if dim not in DIMENSIONS:
                    errors.append(f"rule {tag!r} names unknown dimension {dim!r}")
                elif not isinstance(value, (int, float)):
                    errors.append(f"rule {tag!r} has non-numeric delta for {dim!r}")
        return errors

    # ── Accumulation ──────────────────────────────────────────

    def raw_delta(self, tags: Iterable[str]) -> dict[str, float]:
        """Summed delta of the canonical, deduplicated *tags*, over every dimension."""
        total = {dim: 0.0 for dim in DIMENSIONS}
        skipped: list[str] = []
        for tag in canonicalize_tags(tags):
            rule = self._rules.get(tag)
            if rule is None:
                skipped.append(tag)
                continue
            for dim, value in rule.items():
                total[dim] += value
        if skipped:
            logger.debug("rules.tags_without_delta", tags=skipped)
        return total

    def apply_tags(self, vector: StateVector, tags: Iterable[str]) -> StateVector:
        """One-shot summation of every tag's delta, then clamp."""
        return add_delta(vector, self.raw_delta(tags))

    def apply_tags_smoothed(
        self,
        vector: StateVector,
        tags: Iterable[str],
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    ) -> StateVector:
        """Exponential blend toward ``vector + delta``.

        The raw delta is first clipped to ``±smoothing_cap`` per dimension,
        then ``new = (1 - alpha) * current + alpha * target``.  One strong
        answer therefore moves a dimension by at most
        ``alpha * smoothing_cap``.
        """
        alpha = config.smoothing_alpha
        cap = config.smoothing_cap
        delta = self.raw_delta(tags)
        current = vector.as_dict()
        blended: dict[str, float] = {}
        for dim in DIMENSIONS:
            step = max(-cap, min(cap, delta[dim]))
            target = current[dim] + step
            blended[dim] = (1 - alpha) * current[dim] + alpha * target
        return clamp(blended)


DEFAULT_RULE_TABLE = RuleTable()
