"""Tests for divergence classification, strategy selection and quality."""

import itertools

import pytest

from recourse.correction import (
    QUALITY_BELOW_THRESHOLD,
    DivergenceThresholds,
    adapt_threshold,
    ambiguous_requirements,
    classify_divergence,
    quality_score,
    quality_threshold_met,
    repeated_failure,
    select_strategy,
)
from recourse.models import CorrectionStrategy, Criticality, DivergenceLevel, HistoryEntry


def failures(*reasons):
    return [HistoryEntry(iteration=i, reason=r) for i, r in enumerate(reasons, start=1)]


class TestDivergence:
    """Tests for divergence classification."""

    def test_minor_scenario(self):
        assert classify_divergence(100, 95) is DivergenceLevel.MINOR

    @pytest.mark.parametrize(
        "expected,actual,level",
        [
            (42, 42, DivergenceLevel.MATCH),
            (100, 90, DivergenceLevel.MINOR),
            (100, 60, DivergenceLevel.MODERATE),
            ("hello", "goodbye", DivergenceLevel.CRITICAL),
            (1, "1", DivergenceLevel.CRITICAL),
        ],
    )
    def test_levels(self, expected, actual, level):
        assert classify_divergence(expected, actual) is level

    def test_boundaries(self):
        thresholds = DivergenceThresholds()

        assert thresholds.level_for(0.95) is DivergenceLevel.MINOR
        assert thresholds.level_for(0.951) is DivergenceLevel.MATCH
        assert thresholds.level_for(0.8) is DivergenceLevel.MINOR
        assert thresholds.level_for(0.5) is DivergenceLevel.MODERATE
        assert thresholds.level_for(0.49) is DivergenceLevel.CRITICAL

    def test_monotonic(self):
        scores = [i / 100 for i in range(101)]
        levels = [DivergenceThresholds().level_for(s) for s in scores]

        for worse, better in zip(levels, levels[1:]):
            assert not better.is_worse_than(worse)

    def test_custom_classifier(self):
        level = classify_divergence(1, 2, classifier=lambda e, a: "moderate")
        assert level is DivergenceLevel.MODERATE


class TestHistorySignals:
    """Tests for repeated-failure and ambiguity signals."""

    def test_repeated_failure(self):
        assert repeated_failure(failures("timeout", "timeout"))
        assert not repeated_failure(failures("timeout", "parse_error"))
        assert not repeated_failure([])

    def test_structured_reasons_compare_structurally(self):
        assert repeated_failure(failures({"code": 1, "field": "x"}, {"field": "x", "code": 1}))

    def test_ambiguous_requirements(self):
        assert ambiguous_requirements(failures("Requirement is UNCLEAR"))
        assert ambiguous_requirements(failures("ok", "missing input field"))
        assert not ambiguous_requirements(failures("wrong_answer"))


class TestStrategySelection:
    """Tests for select_strategy."""

    @pytest.mark.parametrize(
        "divergence,iteration,expected",
        [
            (DivergenceLevel.MATCH, 1, CorrectionStrategy.ACCEPT_PARTIAL),
            (DivergenceLevel.MINOR, 1, CorrectionStrategy.RETRY_ADJUSTED),
            (DivergenceLevel.MINOR, 2, CorrectionStrategy.RETRY_ADJUSTED),
            (DivergenceLevel.MINOR, 3, CorrectionStrategy.ACCEPT_PARTIAL),
            (DivergenceLevel.MODERATE, 1, CorrectionStrategy.BACKTRACK_ALTERNATIVE),
            (DivergenceLevel.MODERATE, 2, CorrectionStrategy.RETRY_ADJUSTED),
            (DivergenceLevel.CRITICAL, 1, CorrectionStrategy.BACKTRACK_ALTERNATIVE),
        ],
    )
    def test_rules(self, divergence, iteration, expected):
        assert select_strategy(divergence, iteration, []) is expected

    def test_minor_first_iteration_scenario(self):
        assert select_strategy("minor", 1, []) is CorrectionStrategy.RETRY_ADJUSTED

    def test_moderate_with_repeated_failure_backtracks(self):
        history = failures("same", "same", "same")
        assert select_strategy(DivergenceLevel.MODERATE, 4, history) is (
            CorrectionStrategy.BACKTRACK_ALTERNATIVE
        )

    def test_weak_accepted_results_are_not_repeated_failures(self):
        history = failures(QUALITY_BELOW_THRESHOLD, QUALITY_BELOW_THRESHOLD)

        assert not repeated_failure(history)
        assert select_strategy(DivergenceLevel.MODERATE, 3, history) is (
            CorrectionStrategy.RETRY_ADJUSTED
        )
        assert repeated_failure(history + failures("timeout", "timeout"))

    def test_critical_with_ambiguity_clarifies(self):
        history = failures("the goal is ambiguous")
        assert select_strategy(DivergenceLevel.CRITICAL, 2, history) is (
            CorrectionStrategy.CLARIFY_REQUIREMENTS
        )

    def test_deterministic(self):
        histories = [[], failures("a", "a"), failures("unclear"), failures("x", "y")]
        for divergence, iteration, history in itertools.product(
            DivergenceLevel, range(1, 5), histories
        ):
            assert select_strategy(divergence, iteration, history) is select_strategy(
                divergence, iteration, list(history)
            )


class TestQuality:
    """Tests for quality scoring and thresholds."""

    def test_confidence_only_without_expectation(self):
        assert quality_score({"confidence": 0.9}) == pytest.approx(0.9)
        assert quality_score("plain") == pytest.approx(0.7)

    def test_blend_with_expectation(self):
        score = quality_score({"answer": 42, "confidence": 0.9}, expected=42)
        assert score == pytest.approx(0.95)

    def test_blend_without_answer_field(self):
        assert quality_score(90, expected=100) == pytest.approx((0.7 + 0.9) / 2)

    def test_threshold(self):
        assert quality_threshold_met(0.7)
        assert not quality_threshold_met(0.69)
        assert quality_threshold_met(0.5, threshold=0.5)

    @pytest.mark.parametrize(
        "base,criticality,expected",
        [
            (0.7, Criticality.LOW, 0.5),
            (0.6, "low", 0.5),
            (0.7, Criticality.MEDIUM, 0.7),
            (0.7, Criticality.HIGH, 0.9),
            (0.9, "high", 0.95),
        ],
    )
    def test_adapt_threshold(self, base, criticality, expected):
        assert adapt_threshold(base, criticality) == pytest.approx(expected)
