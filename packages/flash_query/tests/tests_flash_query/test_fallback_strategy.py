from decimal import Decimal

import pytest
from flash_query import (
    FALLBACK_ENGINE,
    CancellationToken,
    EmptySequenceError,
    MultipleElementsError,
    Queryable,
    SyncFallbackStrategy,
)
from flash_query.strategies import evaluation

pytestmark = pytest.mark.asyncio

NUMBERS = [5, 3, 8, 1, 9, 2]


@pytest.fixture
def strategy():
    return SyncFallbackStrategy()


@pytest.fixture
def source():
    return Queryable(NUMBERS)


def is_even(n):
    return n % 2 == 0


class TestSyncFallbackStrategy:
    """The fallback must agree with synchronous evaluation for every operation."""

    async def test_declares_reserved_engine(self, strategy):
        assert strategy.engine == FALLBACK_ENGINE

    async def test_existence_and_counts_match_sync_evaluation(self, strategy, source):
        assert await strategy.any(source) == evaluation.any_(NUMBERS)
        assert await strategy.any(source, is_even) == evaluation.any_(NUMBERS, is_even)
        assert await strategy.all(source, is_even) == evaluation.all_(NUMBERS, is_even)
        assert await strategy.count(source) == len(NUMBERS)
        assert await strategy.count(source, is_even) == 2
        assert await strategy.long_count(source, is_even) == 2
        assert await strategy.contains(source, 9) is True
        assert await strategy.contains(source, 7) is False

    async def test_selection_matches_sync_evaluation(self, strategy, source):
        assert await strategy.first(source) == 5
        assert await strategy.first(source, is_even) == 8
        assert await strategy.first_or_default(source, lambda n: n > 50) is None
        assert await strategy.last(source) == 2
        assert await strategy.last_or_default(source, lambda n: n > 50, -1) == -1
        assert await strategy.single(source, lambda n: n == 9) == 9
        assert await strategy.single_or_default(source, lambda n: n > 50) is None

    async def test_selection_failures_propagate(self, strategy, source):
        with pytest.raises(EmptySequenceError):
            await strategy.first(Queryable([]))
        with pytest.raises(EmptySequenceError):
            await strategy.single(source, lambda n: n > 50)
        with pytest.raises(MultipleElementsError):
            await strategy.single_or_default(source, is_even)

    async def test_aggregates_match_sync_evaluation(self, strategy, source):
        assert await strategy.min(source) == 1
        assert await strategy.max(source, lambda n: -n) == -1
        assert await strategy.sum(source) == sum(NUMBERS)
        assert await strategy.average(source) == pytest.approx(sum(NUMBERS) / 6)
        assert await strategy.min(Queryable([]), default=None) is None

        prices = Queryable([Decimal("2.50"), Decimal("1.25")])
        assert await strategy.sum(prices) == Decimal("3.75")

    async def test_materialization_matches_sync_evaluation(self, strategy, source):
        assert await strategy.to_list(source) == NUMBERS
        assert await strategy.to_array(source) == tuple(NUMBERS)
        assert await strategy.to_dict(source, lambda n: n, str) == {
            n: str(n) for n in NUMBERS
        }

    async def test_ignores_cancellation(self, strategy, source):
        """Should still produce a result because nothing can be suspended."""
        token = CancellationToken()
        token.cancel()

        assert await strategy.count(source, cancel=token) == len(NUMBERS)
        assert await strategy.to_array(source.take(2), cancel=token) == (5, 3)
