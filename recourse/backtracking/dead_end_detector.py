"""
Dead-End Detector

Decides whether continued local refinement of the current reasoning path
is unproductive. Heuristics:

- repeated_failures: the same result keeps coming back
- circular_reasoning: the reasoning matches a recent step (bounded window)
- low_confidence: the result's own confidence is too low
- stalled_progress: the tracked progress value stopped changing
- constraint_violation: the result flags a violated constraint

Every function here is pure: same inputs, same verdict, no side effects
other than debug logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

import structlog

from recourse.exceptions import ConfigurationError
from recourse.inspection import (
    constraint_violated,
    extract_confidence,
    extract_field,
    signature,
)
from recourse.models import DeadEndReason, DeadEndVerdict, HistoryEntry

logger = structlog.get_logger(__name__)


DEFAULT_CONFIDENCE_THRESHOLD = 0.3
DEFAULT_REPETITION_THRESHOLD = 3
DEFAULT_STALL_THRESHOLD = 5
DEFAULT_CYCLE_WINDOW = 5

# Circular reasoning needs some history before a match means anything
MIN_CYCLE_HISTORY = 3

_CRITICAL_REASONS = {
    DeadEndReason.CONSTRAINT_VIOLATION,
    DeadEndReason.CIRCULAR_REASONING,
}


@dataclass
class DetectionOptions:
    """Thresholds for dead-end heuristics. ``None`` disables a heuristic."""

    confidence_threshold: float | None = DEFAULT_CONFIDENCE_THRESHOLD
    repetition_threshold: int | None = DEFAULT_REPETITION_THRESHOLD
    stall_threshold: int | None = DEFAULT_STALL_THRESHOLD
    cycle_window: int | None = DEFAULT_CYCLE_WINDOW
    check_constraints: bool = True

    # Replaces every built-in heuristic when set: (result, history) -> bool
    custom_predicate: Callable[[Any, Sequence[Any]], bool] | None = None

    def __post_init__(self):
        for name in ("repetition_threshold", "stall_threshold", "cycle_window"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ConfigurationError(f"{name} must be >= 1 or None, got {value}")
        if self.confidence_threshold is not None and not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigurationError(
                f"confidence_threshold must be within [0, 1], got {self.confidence_threshold}"
            )


def _entry_result(entry: Any) -> Any:
    """History may hold HistoryEntry records or raw results."""
    if isinstance(entry, HistoryEntry):
        return entry.result
    return entry


def _reasoning_signature(result: Any) -> str:
    reasoning = extract_field(result, "reasoning", None)
    return signature(result if reasoning is None else reasoning)


def _progress_value(result: Any) -> str:
    progress = extract_field(result, "progress", None)
    return signature(result if progress is None else progress)


# =============================================================================
# Individual Heuristics
# =============================================================================


def repeated_failures(
    result: Any,
    history: Sequence[Any],
    threshold: int = DEFAULT_REPETITION_THRESHOLD,
) -> bool:
    """True when ``result`` already appears ``threshold`` or more times in history."""
    current = signature(result)
    count = sum(1 for entry in history if signature(_entry_result(entry)) == current)
    return count >= threshold


def circular_reasoning(
    result: Any,
    history: Sequence[Any],
    window: int = DEFAULT_CYCLE_WINDOW,
) -> bool:
    """True when the result's reasoning repeats one of the last ``window`` steps."""
    if len(history) < MIN_CYCLE_HISTORY:
        return False

    current = _reasoning_signature(result)
    recent = history[-window:]
    return any(_reasoning_signature(_entry_result(entry)) == current for entry in recent)


def low_confidence(result: Any, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> bool:
    return extract_confidence(result) < threshold


def stalled_progress(history: Sequence[Any], threshold: int = DEFAULT_STALL_THRESHOLD) -> bool:
    """True when the last ``threshold`` entries share one progress value."""
    if len(history) < threshold:
        return False

    recent = history[-threshold:]
    values = {_progress_value(_entry_result(entry)) for entry in recent}
    return len(values) == 1


def detection_confidence(reasons: Sequence[DeadEndReason]) -> float:
    """More reasons raise confidence; critical reasons add a boost."""
    base = min(len(reasons) * 0.25, 1.0)
    boost = 0.2 if _CRITICAL_REASONS.intersection(reasons) else 0.0
    return min(base + boost, 1.0)


# =============================================================================
# Detector
# =============================================================================


def detect_with_reasons(
    result: Any,
    history: Sequence[Any],
    options: DetectionOptions | None = None,
) -> DeadEndVerdict:
    """
    Evaluate every enabled heuristic against the current result.

    Args:
        result: The latest attempt result.
        history: Earlier results or HistoryEntry records, oldest first.
        options: Thresholds; defaults apply when omitted.

    Returns:
        DeadEndVerdict listing the triggering heuristics in check order.
    """
    options = options or DetectionOptions()

    if options.custom_predicate is not None:
        if options.custom_predicate(result, history):
            return DeadEndVerdict(
                is_dead_end=True,
                reasons=[DeadEndReason.CUSTOM_PREDICATE],
                confidence=1.0,
            )
        return DeadEndVerdict()

    reasons: list[DeadEndReason] = []

    if options.repetition_threshold is not None and repeated_failures(
        result, history, options.repetition_threshold
    ):
        reasons.append(DeadEndReason.REPEATED_FAILURES)

    if options.cycle_window is not None and circular_reasoning(
        result, history, options.cycle_window
    ):
        reasons.append(DeadEndReason.CIRCULAR_REASONING)

    if options.confidence_threshold is not None and low_confidence(
        result, options.confidence_threshold
    ):
        reasons.append(DeadEndReason.LOW_CONFIDENCE)

    if options.stall_threshold is not None and stalled_progress(
        history, options.stall_threshold
    ):
        reasons.append(DeadEndReason.STALLED_PROGRESS)

    if options.check_constraints and constraint_violated(result):
        reasons.append(DeadEndReason.CONSTRAINT_VIOLATION)

    verdict = DeadEndVerdict(
        is_dead_end=bool(reasons),
        reasons=reasons,
        confidence=detection_confidence(reasons),
    )

    if verdict.is_dead_end:
        logger.debug(
            "dead_end_heuristics_triggered",
            reasons=[r.value for r in reasons],
            confidence=verdict.confidence,
        )

    return verdict


def detect(
    result: Any,
    history: Sequence[Any],
    options: DetectionOptions | None = None,
) -> bool:
    """Boolean form of ``detect_with_reasons``."""
    return detect_with_reasons(result, history, options).is_dead_end
