"""Numeric confidence policy for command/context attribution.

Every constant that shapes a final score lives here so that tests can pin the
policy down precisely:

* ``AGREEMENT_BOOST`` is added to the context confidence when the command's own
  language matches the context language.
* ``CONFLICT_PENALTY`` scales the context confidence when both languages are
  known and differ.
* ``PARENT_DECAY`` scales a parent context's confidence when it is used as a
  fallback for a command outside every detected region.
* ``DEFAULT_CONTEXT_CONFIDENCE`` is the confidence of the synthetic ``unknown``
  context.

The combined value is always clamped to ``[0, match_confidence]``: context only
refines attribution certainty, it never raises it above what the pattern match
alone justified.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping

AGREEMENT_BOOST = 0.2
CONFLICT_PENALTY = 0.5
PARENT_DECAY = 0.8
DEFAULT_CONTEXT_CONFIDENCE = 0.3
UNKNOWN_LANGUAGE = "unknown"


class Agreement(str, Enum):
    """Relationship between a command's own language and its context language."""

    AGREE = "agree"
    NEUTRAL = "neutral"
    CONFLICT = "conflict"


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


def agreement_between(command_language: str | None, context_language: str | None) -> Agreement:
    """Classify how a self-inferred language relates to a context language."""
    if not command_language or not context_language:
        return Agreement.NEUTRAL
    if context_language.lower() == UNKNOWN_LANGUAGE:
        return Agreement.NEUTRAL
    if command_language.lower() == context_language.lower():
        return Agreement.AGREE
    return Agreement.CONFLICT


def combine(match_confidence: float, context_confidence: float, agreement: Agreement) -> float:
    """Combine pattern and context confidence into the final attribution score."""
    match_confidence = clamp(match_confidence)
    context_confidence = clamp(context_confidence)

    if agreement is Agreement.AGREE:
        factor = min(1.0, context_confidence + AGREEMENT_BOOST)
    elif agreement is Agreement.CONFLICT:
        factor = context_confidence * CONFLICT_PENALTY
    else:
        factor = context_confidence

    return round(clamp(match_confidence * factor, 0.0, match_confidence), 6)


def decay(confidence: float, factor: float = PARENT_DECAY) -> float:
    return round(clamp(confidence * factor), 6)


def weighted_average(values: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted mean of ``values``; names missing from ``weights`` count 1.0."""
    total_weight = 0.0
    total = 0.0
    for name in sorted(values):
        weight = weights.get(name, 1.0)
        if weight <= 0:
            continue
        total += clamp(values[name]) * weight
        total_weight += weight
    if total_weight == 0:
        return 0.0
    return round(clamp(total / total_weight), 6)


__all__ = [
    "AGREEMENT_BOOST",
    "Agreement",
    "CONFLICT_PENALTY",
    "DEFAULT_CONTEXT_CONFIDENCE",
    "PARENT_DECAY",
    "UNKNOWN_LANGUAGE",
    "agreement_between",
    "clamp",
    "combine",
    "decay",
    "weighted_average",
]
