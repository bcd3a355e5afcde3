from decimal import Decimal

import pytest
from flash_query import (
    DuplicateKeyError,
    EmptySequenceError,
    MultipleElementsError,
    Queryable,
)
from flash_query.strategies import evaluation


class TestExistenceAndCounts:
    def test_any_with_and_without_predicate(self):
        assert evaluation.any_([]) is False
        assert evaluation.any_([0]) is True
        assert evaluation.any_([1, 3], lambda n: n % 2 == 0) is False

    def test_all_is_true_for_empty_sources(self):
        assert evaluation.all_([], lambda n: n > 100) is True
        assert evaluation.all_([2, 4], lambda n: n % 2 == 0) is True
        assert evaluation.all_([2, 3], lambda n: n % 2 == 0) is False

    def test_count_and_long_count(self):
        qs = Queryable(range(10))

        assert evaluation.count(qs) == 10
        assert evaluation.count(qs, lambda n: n > 6) == 3
        assert evaluation.long_count(qs, lambda n: n < 2) == 2

    def test_count_rejects_values_beyond_the_32_bit_range(self, monkeypatch):
        """Should point callers to long_count when the count overflows."""
        monkeypatch.setattr(evaluation, "INT32_MAX", 2)

        with pytest.raises(OverflowError, match="long_count"):
            evaluation.count([1, 2, 3])
        assert evaluation.long_count([1, 2, 3]) == 3

    def test_contains_uses_equality(self):
        assert evaluation.contains(Queryable([1, 2]), 2.0) is True
        assert evaluation.contains(Queryable([1, 2]), 3) is False


class TestElementSelection:
    def test_first_and_last(self):
        qs = Queryable([4, 5, 6, 7])

        assert evaluation.first(qs) == 4
        assert evaluation.first(qs, lambda n: n % 2) == 5
        assert evaluation.last(qs) == 7
        assert evaluation.last(qs, lambda n: n % 2 == 0) == 6

    def test_first_and_last_fail_on_empty(self):
        with pytest.raises(EmptySequenceError, match="no elements"):
            evaluation.first([])
        with pytest.raises(EmptySequenceError, match="no matching element"):
            evaluation.last([1], lambda n: n > 1)

    def test_or_default_variants_return_the_default(self):
        assert evaluation.first_or_default([]) is None
        assert evaluation.last_or_default([], default=-1) == -1
        assert evaluation.first_or_default([1, 2], lambda n: n > 1) == 2

    def test_single_with_exactly_one_match(self):
        assert evaluation.single([1, 2, 3], lambda n: n == 2) == 2
        assert evaluation.single_or_default([9]) == 9

    def test_single_with_zero_matches(self):
        """Should fail without a default and return the default otherwise."""
        with pytest.raises(EmptySequenceError):
            evaluation.single([1, 2], lambda n: n > 5)
        assert evaluation.single_or_default([1, 2], lambda n: n > 5) is None

    def test_single_with_several_matches_fails_in_both_variants(self):
        """Should raise even for the -or-default variant."""
        with pytest.raises(MultipleElementsError, match="more than one matching"):
            evaluation.single([1, 2, 3], lambda n: n > 1)
        with pytest.raises(MultipleElementsError, match="more than one element"):
            evaluation.single_or_default([1, 2])

    def test_none_elements_are_legitimate_results(self):
        """Should tell a None element apart from "no element"."""
        assert evaluation.single([None]) is None
        assert evaluation.first([None, 1]) is None


class TestAggregation:
    def test_min_and_max_with_selector(self):
        words = ["kiwi", "fig", "banana"]

        assert evaluation.min_(words, len) == 3
        assert evaluation.max_(words, len) == 6
        assert evaluation.max_(words) == "kiwi"

    def test_min_and_max_skip_none_values(self):
        assert evaluation.min_([None, 3, 1, None]) == 1
        assert evaluation.max_([None, 3, 1]) == 3

    def test_min_and_max_on_empty_need_a_default(self):
        with pytest.raises(EmptySequenceError):
            evaluation.min_([])
        with pytest.raises(EmptySequenceError):
            evaluation.max_([None])
        assert evaluation.min_([], default=None) is None
        assert evaluation.max_([], default=0) == 0

    def test_sum_over_every_numeric_kind(self):
        assert evaluation.sum_([1, 2, 3]) == 6
        assert evaluation.sum_([0.5, 0.25]) == pytest.approx(0.75)
        assert evaluation.sum_([Decimal("1.10"), Decimal("2.20")]) == Decimal("3.30")
        assert evaluation.sum_(["ab", "c"], len) == 3

    def test_sum_of_empty_is_zero_and_ignores_none(self):
        assert evaluation.sum_([]) == 0
        assert evaluation.sum_([None, 4, None]) == 4

    def test_average_keeps_decimal_precision(self):
        assert evaluation.average([1, 2]) == pytest.approx(1.5)
        result = evaluation.average([Decimal("1.00"), Decimal("2.00")])
        assert isinstance(result, Decimal)
        assert result == Decimal("1.5")

    def test_average_on_empty(self):
        with pytest.raises(EmptySequenceError):
            evaluation.average([])
        assert evaluation.average([None], default=None) is None


class TestMaterialization:
    def test_to_list_and_to_array_keep_order(self):
        qs = Queryable([3, 1, 2])

        assert evaluation.to_list(qs) == [3, 1, 2]
        assert evaluation.to_array(qs) == (3, 1, 2)

    def test_to_dict_with_element_selector(self):
        result = evaluation.to_dict(["apple", "kiwi"], len, str.upper)
        assert result == {5: "APPLE", 4: "KIWI"}

    def test_to_dict_rejects_duplicate_keys(self):
        with pytest.raises(DuplicateKeyError, match="same key 4"):
            evaluation.to_dict(["kiwi", "pear"], len)

    def test_to_dict_comparer_decides_key_equality(self):
        """Should treat keys as equal when the comparer normalizes them alike."""
        assert evaluation.to_dict(["A", "b"], str) == {"A": "A", "b": "b"}
        with pytest.raises(DuplicateKeyError):
            evaluation.to_dict(["A", "a"], str, comparer=str.casefold)
