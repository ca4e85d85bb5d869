"""Tests for outcome similarity."""

import itertools

import pytest

from recourse.correction import ValueKind, similarity, value_kind

SAMPLES = [
    0,
    42,
    -3.5,
    100,
    95,
    "hello",
    "goodbye",
    "",
    [1, 2, 3],
    (2, 3, 4),
    {"a", "b"},
    [],
    {"answer": 42},
    None,
    True,
]


class TestValueKind:
    """Tests for value tagging."""

    @pytest.mark.parametrize(
        "value,kind",
        [
            (1, ValueKind.NUMBER),
            (2.5, ValueKind.NUMBER),
            ("text", ValueKind.TEXT),
            ([1], ValueKind.SEQUENCE),
            ((1,), ValueKind.SEQUENCE),
            (frozenset({1}), ValueKind.SEQUENCE),
            (True, ValueKind.OPAQUE),
            ({"a": 1}, ValueKind.OPAQUE),
            (None, ValueKind.OPAQUE),
        ],
    )
    def test_kinds(self, value, kind):
        assert value_kind(value) is kind


class TestSimilarity:
    """Tests for similarity scores."""

    def test_numbers(self):
        assert similarity(100, 95) == pytest.approx(0.95)
        assert similarity(100, 90) == pytest.approx(0.9)
        assert similarity(0, 0) == 1.0
        assert similarity(10, -10) == 0.0

    def test_text_character_overlap(self):
        assert similarity("abc", "abd") == pytest.approx(0.5)
        assert similarity("abc", "xyz") == 0.0

    def test_sequences(self):
        assert similarity([1, 2, 3], [2, 3, 4]) == pytest.approx(0.5)
        assert similarity([], [1]) == 0.0

    def test_sequence_elements_compare_numerically(self):
        assert similarity([1, 2], [1.0, 3]) == pytest.approx(1 / 3)
        assert similarity([True, 3], [1, 4]) == pytest.approx(1 / 3)
        assert similarity((0.5,), [0.5]) == 1.0
        assert similarity([1], ["1"]) == 0.0

    def test_kind_mismatch(self):
        assert similarity(1, "1") == 0.0
        assert similarity([1], "1") == 0.0

    def test_opaque_values(self):
        assert similarity({"a": 1}, {"a": 1}) == 1.0
        assert similarity({"a": 1}, {"a": 2}) == 0.0

    def test_nan_is_not_similar_to_numbers(self):
        assert similarity(float("nan"), 1.0) == 0.0

    @pytest.mark.parametrize("a,b", list(itertools.product(SAMPLES, repeat=2)))
    def test_symmetric_and_bounded(self, a, b):
        score = similarity(a, b)

        assert 0.0 <= score <= 1.0
        assert score == similarity(b, a)

    @pytest.mark.parametrize("value", SAMPLES + [float("nan")])
    def test_identity(self, value):
        assert similarity(value, value) == 1.0
