"""Tests for shared models, result values and result inspection."""

import pytest

from recourse import exceptions
from recourse.inspection import (
    extract_answer,
    extract_confidence,
    is_empty_result,
    signature,
)
from recourse.models import (
    ERROR_EXCEPTIONS,
    Budget,
    DivergenceLevel,
    ErrorKind,
    HistoryEntry,
    Result,
    error_for,
)


class TestResult:
    """Tests for Result values."""

    def test_success(self):
        result = Result.success(5)

        assert result.ok
        assert result.unwrap() == 5

    def test_failure_unwrap_raises_mapped_exception(self):
        result = Result.failure(ErrorKind.NO_ALTERNATIVES)

        assert not result.ok
        with pytest.raises(exceptions.NoAlternativesError):
            result.unwrap()

    def test_every_kind_has_an_exception(self):
        assert set(ERROR_EXCEPTIONS) == set(ErrorKind)
        for kind in ErrorKind:
            assert isinstance(error_for(kind), exceptions.RecourseError)

    def test_exception_hierarchy(self):
        assert issubclass(exceptions.EmptyStackError, exceptions.StateError)
        assert issubclass(exceptions.InsufficientBudgetError, exceptions.BudgetError)
        assert issubclass(exceptions.ValidatorRequiredError, exceptions.ConfigurationError)


class TestModels:
    """Tests for pydantic records."""

    def test_divergence_ordering(self):
        assert DivergenceLevel.CRITICAL.is_worse_than(DivergenceLevel.MODERATE)
        assert not DivergenceLevel.MATCH.is_worse_than(DivergenceLevel.MINOR)

    def test_budget_rejects_negative_values(self):
        with pytest.raises(ValueError):
            Budget(total=10, remaining=-1)

    def test_history_entry_is_frozen(self):
        entry = HistoryEntry(iteration=1, reason="x")
        with pytest.raises(ValueError):
            entry.reason = "y"


class TestInspection:
    """Tests for result field extraction and signatures."""

    def test_confidence_from_mapping_and_object(self):
        class Answer:
            confidence = 0.4

        assert extract_confidence({"confidence": 0.9}) == 0.9
        assert extract_confidence(Answer()) == 0.4

    def test_confidence_default(self):
        assert extract_confidence("text") == 0.7
        assert extract_confidence({"confidence": "high"}) == 0.7
        assert extract_confidence({"confidence": True}) == 0.7

    def test_extract_answer(self):
        assert extract_answer({"answer": 42}) == 42
        assert extract_answer(42) == 42

    @pytest.mark.parametrize("value", [None, "", [], {}, (), set()])
    def test_empty_results(self, value):
        assert is_empty_result(value)

    @pytest.mark.parametrize("value", [0, False, "x", [None], {"a": 1}])
    def test_non_empty_results(self, value):
        assert not is_empty_result(value)

    def test_signature_is_order_independent(self):
        assert signature({"a": 1, "b": {2, 3}}) == signature({"b": {3, 2}, "a": 1})

    def test_signature_distinguishes_values(self):
        assert signature({"a": 1}) != signature({"a": 2})
        assert signature([1, 2]) != signature([2, 1])
        assert len(signature("anything")) == 16
