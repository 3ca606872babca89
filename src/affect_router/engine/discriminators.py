"""Discriminator tracker — which competing top-2 pairs were disambiguated."""

from __future__ import annotations

from typing import Iterable

from affect_router.models import Question


def pair_key(a: object, b: object) -> str:
    """Order-independent key: ``pair_key("b", "a") == "a|b"``."""
    left, right = sorted((_label(a), _label(b)))
    return f"{left}|{right}"


def _label(value: object) -> str:
    raw = getattr(value, "value", value)
    return str(raw).strip().lower()


def mark_asked(asked: frozenset[str], question: Question) -> frozenset[str]:
    """Union the pairs *question* discriminates into the asked-set."""
    return asked | {pair_key(a, b) for a, b in question.discriminates}


def has_asked_for(asked: Iterable[str], top1: object, top2: object | None) -> bool:
    """Whether the *current* top-2 pair has been asked about.

    With no second label there is nothing to discriminate.
    """
    if top2 is None:
        return True
    return pair_key(top1, top2) in set(asked)


def bank_pairs(questions: Iterable[Question]) -> frozenset[str]:
    """Every pair some question in the bank can discriminate."""
    return frozenset(pair_key(a, b) for q in questions for a, b in q.discriminates)
