"""Tests for dead-end detection heuristics."""

import pytest

from recourse.backtracking import (
    DetectionOptions,
    circular_reasoning,
    detect,
    detect_with_reasons,
    repeated_failures,
    stalled_progress,
)
from recourse.exceptions import ConfigurationError
from recourse.models import DeadEndReason, HistoryEntry


class TestHeuristics:
    """Tests for individual heuristics."""

    def test_low_confidence_scenario(self):
        verdict = detect_with_reasons({"confidence": 0.1}, [])

        assert verdict.is_dead_end
        assert verdict.reasons == [DeadEndReason.LOW_CONFIDENCE]
        assert detect({"confidence": 0.1}, []) is True

    def test_confident_result_is_not_dead_end(self):
        assert detect({"confidence": 0.9, "answer": 1}, []) is False

    def test_missing_confidence_uses_default(self):
        # Default confidence 0.7 is above the 0.3 threshold
        assert detect({"answer": "x"}, []) is False

    def test_repeated_failures_at_threshold(self):
        failure = {"answer": "wrong", "confidence": 0.5}
        history = [dict(failure) for _ in range(3)]

        assert repeated_failures(failure, history, threshold=3)
        assert not repeated_failures(failure, history[:2], threshold=3)

    def test_repeated_failures_reads_history_entries(self):
        failure = {"answer": "wrong"}
        history = [HistoryEntry(iteration=i, result=failure) for i in range(1, 4)]

        verdict = detect_with_reasons(failure, history)

        assert DeadEndReason.REPEATED_FAILURES in verdict.reasons

    def test_circular_reasoning_needs_history(self):
        step = {"reasoning": "assume x, so x"}

        assert not circular_reasoning(step, [step, step])
        assert circular_reasoning(step, [{"reasoning": "a"}, {"reasoning": "b"}, step])

    def test_circular_reasoning_respects_window(self):
        step = {"reasoning": "loop"}
        history = [step] + [{"reasoning": f"other {i}"} for i in range(5)]

        assert not circular_reasoning(step, history, window=5)
        assert circular_reasoning(step, history, window=6)

    def test_stalled_progress(self):
        history = [{"progress": 0.5, "attempt": i} for i in range(5)]

        assert stalled_progress(history, threshold=5)
        assert not stalled_progress(history[:4], threshold=5)

    def test_changing_progress_is_not_stalled(self):
        history = [{"progress": i / 10} for i in range(5)]
        assert not stalled_progress(history, threshold=5)

    def test_constraint_violation(self):
        verdict = detect_with_reasons({"constraint_violated": True, "confidence": 0.9}, [])

        assert verdict.reasons == [DeadEndReason.CONSTRAINT_VIOLATION]
        assert verdict.confidence == pytest.approx(0.45)


class TestDetector:
    """Tests for the combined detector."""

    def test_reasons_in_check_order(self):
        result = {"confidence": 0.1, "constraint_violated": True}
        history = [dict(result) for _ in range(3)]

        verdict = detect_with_reasons(result, history)

        assert verdict.reasons == [
            DeadEndReason.REPEATED_FAILURES,
            DeadEndReason.CIRCULAR_REASONING,
            DeadEndReason.LOW_CONFIDENCE,
            DeadEndReason.CONSTRAINT_VIOLATION,
        ]
        assert verdict.confidence == 1.0

    def test_disabled_heuristic(self):
        options = DetectionOptions(confidence_threshold=None)
        assert not detect({"confidence": 0.0}, [], options)

    def test_custom_threshold(self):
        options = DetectionOptions(confidence_threshold=0.6)
        assert detect({"confidence": 0.5}, [], options)

    def test_custom_predicate_replaces_builtins(self):
        options = DetectionOptions(custom_predicate=lambda result, history: False)
        assert not detect({"confidence": 0.0, "constraint_violated": True}, [], options)

        options = DetectionOptions(custom_predicate=lambda result, history: len(history) > 1)
        verdict = detect_with_reasons({"confidence": 0.9}, [1, 2], options)
        assert verdict.reasons == [DeadEndReason.CUSTOM_PREDICATE]

    def test_detection_is_pure(self):
        result = {"confidence": 0.2}
        history = [{"confidence": 0.2}, {"confidence": 0.2}]
        snapshot = [dict(h) for h in history]

        first = detect_with_reasons(result, history)
        second = detect_with_reasons(result, history)

        assert first == second
        assert history == snapshot

    @pytest.mark.parametrize(
        "field,value",
        [
            ("repetition_threshold", 0),
            ("stall_threshold", -1),
            ("cycle_window", 0),
            ("confidence_threshold", 1.5),
        ],
    )
    def test_invalid_options(self, field, value):
        with pytest.raises(ConfigurationError):
            DetectionOptions(**{field: value})
