"""
Self-Correction - Divergence Classification and Strategy Selection

Decides what to do after an attempt:

1. Classify how far the actual outcome diverges from the expected one
   (match / minor / moderate / critical)
2. Score result quality from its confidence and, when an expectation
   exists, its similarity to that expectation
3. Select a correction strategy from divergence, iteration number and
   failure history

Strategy rules:

    match                         -> accept_partial
    minor, iteration <= 2         -> retry_adjusted
    minor, later                  -> accept_partial
    moderate, iteration 1         -> backtrack_alternative
    moderate, repeated failure    -> backtrack_alternative
    moderate, otherwise           -> retry_adjusted
    critical, ambiguous history   -> clarify_requirements
    critical, otherwise           -> backtrack_alternative

Everything here is a pure function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from recourse.correction.similarity import similarity
from recourse.inspection import extract_answer, extract_confidence, signature
from recourse.models import (
    CorrectionStrategy,
    Criticality,
    DivergenceLevel,
    HistoryEntry,
)

DEFAULT_QUALITY_THRESHOLD = 0.7

# History reason for results the validator accepted but quality scoring did not
QUALITY_BELOW_THRESHOLD = "quality_below_threshold"

# Failure reasons containing these suggest the problem statement is at fault
AMBIGUITY_MARKERS = ("unclear", "ambiguous", "missing", "undefined", "underspecified")


@dataclass(frozen=True)
class DivergenceThresholds:
    """Similarity cut-offs between divergence tiers."""

    match: float = 0.95  # strictly greater than
    minor: float = 0.8
    moderate: float = 0.5

    def level_for(self, score: float) -> DivergenceLevel:
        if score > self.match:
            return DivergenceLevel.MATCH
        if score >= self.minor:
            return DivergenceLevel.MINOR
        if score >= self.moderate:
            return DivergenceLevel.MODERATE
        return DivergenceLevel.CRITICAL


DEFAULT_THRESHOLDS = DivergenceThresholds()


def classify_divergence(
    expected: Any,
    actual: Any,
    classifier: Callable[[Any, Any], DivergenceLevel] | None = None,
    thresholds: DivergenceThresholds = DEFAULT_THRESHOLDS,
) -> DivergenceLevel:
    """
    Classify divergence between an expected and an actual outcome.

    Args:
        expected: Expected outcome.
        actual: Actual outcome.
        classifier: Optional override returning a level directly.
        thresholds: Similarity cut-offs for the built-in classification.

    Examples:
        classify_divergence(42, 42)              # MATCH
        classify_divergence(100, 90)             # MINOR
        classify_divergence("hello", "goodbye")  # CRITICAL
    """
    if classifier is not None:
        return DivergenceLevel(classifier(expected, actual))
    return thresholds.level_for(similarity(expected, actual))


# =============================================================================
# History Signals
# =============================================================================


def _failure_reasons(history: Sequence[HistoryEntry]) -> list[Any]:
    """Reasons of validation failures; weak but accepted results are skipped."""
    return [
        entry.reason
        for entry in history
        if entry.reason is not None and entry.reason != QUALITY_BELOW_THRESHOLD
    ]


def repeated_failure(history: Sequence[HistoryEntry]) -> bool:
    """True when two validation failures share the same reason."""
    signatures = [signature(reason) for reason in _failure_reasons(history)]
    return len(set(signatures)) < len(signatures)


def ambiguous_requirements(history: Sequence[HistoryEntry]) -> bool:
    """True when any textual failure reason mentions an ambiguity marker."""
    for reason in _failure_reasons(history):
        if isinstance(reason, str):
            lowered = reason.lower()
            if any(marker in lowered for marker in AMBIGUITY_MARKERS):
                return True
    return False


def select_strategy(
    divergence: DivergenceLevel,
    iteration: int,
    history: Sequence[HistoryEntry] = (),
) -> CorrectionStrategy:
    """
    Select a correction strategy.

    Args:
        divergence: Divergence of the latest attempt.
        iteration: 1-based iteration number of that attempt.
        history: Earlier iterations, oldest first. Not modified.

    Returns:
        Exactly one CorrectionStrategy.
    """
    divergence = DivergenceLevel(divergence)

    if divergence is DivergenceLevel.MATCH:
        return CorrectionStrategy.ACCEPT_PARTIAL

    if divergence is DivergenceLevel.MINOR:
        if iteration <= 2:
            return CorrectionStrategy.RETRY_ADJUSTED
        return CorrectionStrategy.ACCEPT_PARTIAL

    if divergence is DivergenceLevel.MODERATE:
        if iteration <= 1 or repeated_failure(history):
            return CorrectionStrategy.BACKTRACK_ALTERNATIVE
        return CorrectionStrategy.RETRY_ADJUSTED

    if ambiguous_requirements(history):
        return CorrectionStrategy.CLARIFY_REQUIREMENTS
    return CorrectionStrategy.BACKTRACK_ALTERNATIVE


# =============================================================================
# Quality
# =============================================================================


def quality_score(result: Any, expected: Any = None) -> float:
    """
    Quality of a result in [0.0, 1.0].

    The result's confidence (0.7 when absent), averaged with the
    similarity of its answer to ``expected`` when an expectation is given.

    Example:
        quality_score({"answer": 42, "confidence": 0.9}, expected=42)  # 0.95
    """
    confidence = extract_confidence(result)
    if expected is None:
        return confidence
    return (confidence + similarity(expected, extract_answer(result))) / 2.0


def quality_threshold_met(score: float, threshold: float = DEFAULT_QUALITY_THRESHOLD) -> bool:
    return score >= threshold


def adapt_threshold(base: float, criticality: Criticality | str) -> float:
    """
    Adjust a quality threshold for task criticality.

    Low criticality lowers the bar (not below 0.5), high raises it (not
    above 0.95), medium keeps it.
    """
    criticality = Criticality(criticality)
    if criticality is Criticality.LOW:
        return max(0.5, base - 0.2)
    if criticality is Criticality.HIGH:
        return min(0.95, base + 0.2)
    return base
