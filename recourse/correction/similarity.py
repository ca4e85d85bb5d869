"""
Outcome Similarity

Similarity between an expected and an actual outcome, in [0.0, 1.0].
Values are first tagged with a ``ValueKind``; each kind has its own
scoring function and mismatched kinds score 0.0.

- NUMBER: 1 - |a - b| / max(|a|, |b|), clamped at 0
- TEXT: Jaccard overlap of character sets
- SEQUENCE: Jaccard overlap of element signatures (numerically equal
  elements count as the same)
- OPAQUE: equal or not
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from recourse.inspection import signature


class ValueKind(str, Enum):
    """Shape of a value for similarity scoring."""

    NUMBER = "number"
    TEXT = "text"
    SEQUENCE = "sequence"
    OPAQUE = "opaque"


def value_kind(value: Any) -> ValueKind:
    # bool is an int subclass but not a magnitude
    if isinstance(value, bool):
        return ValueKind.OPAQUE
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (list, tuple, set, frozenset)):
        return ValueKind.SEQUENCE
    return ValueKind.OPAQUE


def _jaccard(left: set, right: set) -> float:
    union = left | right
    if not union:
        return 1.0
    return len(left & right) / len(union)


def number_similarity(expected: float, actual: float) -> float:
    largest = max(abs(expected), abs(actual))
    if largest == 0:
        return 1.0
    score = 1.0 - abs(expected - actual) / largest
    # NaN compares false both ways; treat it as no similarity
    if not score >= 0.0:
        return 0.0
    return min(score, 1.0)


def text_similarity(expected: str, actual: str) -> float:
    return _jaccard(set(expected), set(actual))


def _element_key(value: Any) -> str:
    # Numerically equal elements (1, 1.0, True) share one key, as they do under ==
    if isinstance(value, bool):
        value = int(value)
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    return signature(value)


def sequence_similarity(expected: Any, actual: Any) -> float:
    return _jaccard({_element_key(v) for v in expected}, {_element_key(v) for v in actual})


def opaque_similarity(expected: Any, actual: Any) -> float:
    return 0.0


_SIMILARITY: dict[ValueKind, Callable[[Any, Any], float]] = {
    ValueKind.NUMBER: number_similarity,
    ValueKind.TEXT: text_similarity,
    ValueKind.SEQUENCE: sequence_similarity,
    ValueKind.OPAQUE: opaque_similarity,
}


def similarity(expected: Any, actual: Any) -> float:
    """
    Similarity score between two outcomes.

    Returns 1.0 for equal values, 0.0 for values of different kinds.
    Symmetric in its arguments.

    Examples:
        similarity(42, 42)          # 1.0
        similarity(100, 90)         # 0.9
        similarity("abc", "abd")    # 0.5
        similarity(1, "1")          # 0.0
    """
    if expected is actual or _equal(expected, actual):
        return 1.0

    kind = value_kind(expected)
    if kind is not value_kind(actual):
        return 0.0

    return _SIMILARITY[kind](expected, actual)


def _equal(expected: Any, actual: Any) -> bool:
    try:
        return bool(expected == actual)
    except (TypeError, ValueError):
        return False
