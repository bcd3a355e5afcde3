"""Strategy that runs the synchronous evaluation and wraps its result."""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Hashable,
    TypeVar,
)

from flash_query.expressions import FALLBACK_ENGINE

from . import evaluation
from .base import ExecutionStrategy
from .evaluation import MISSING

if TYPE_CHECKING:
    from flash_query.cancellation import CancellationToken
    from flash_query.expressions import QueryExpression

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


class SyncFallbackStrategy(ExecutionStrategy):
    """
    Default strategy for engines without an asynchronous implementation.

    Each operation iterates the source synchronously and returns from a
    coroutine that never suspends, so awaiting it yields an already-computed
    result. The cancellation token is ignored because there is no suspension
    point at which to cancel. Evaluation blocks the running event loop for
    as long as the source takes to iterate.

    Examples:
        >>> from flash_query.queryable import Queryable
        >>> await SyncFallbackStrategy().count(Queryable([1, 2, 3]))
        3
    """

    @property
    def engine(self) -> Hashable:
        return FALLBACK_ENGINE

    async def any(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> bool:
        return evaluation.any_(source, predicate)

    async def all(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool],
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> bool:
        return evaluation.all_(source, predicate)

    async def count(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> int:
        return evaluation.count(source, predicate)

    async def long_count(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> int:
        return evaluation.long_count(source, predicate)

    async def contains(
        self,
        source: QueryExpression[T],
        item: Any,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> bool:
        return evaluation.contains(source, item)

    async def first(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T:
        return evaluation.first(source, predicate)

    async def first_or_default(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T | Any:
        return evaluation.first_or_default(source, predicate, default)

    async def last(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T:
        return evaluation.last(source, predicate)

    async def last_or_default(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T | Any:
        return evaluation.last_or_default(source, predicate, default)

    async def single(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T:
        return evaluation.single(source, predicate)

    async def single_or_default(
        self,
        source: QueryExpression[T],
        predicate: Callable[[T], bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> T | Any:
        return evaluation.single_or_default(source, predicate, default)

    async def min(
        self,
        source: QueryExpression[T],
        selector: Callable[[T], Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> Any:
        return evaluation.min_(source, selector, default)

    async def max(
        self,
        source: QueryExpression[T],
        selector: Callable[[T], Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> Any:
        return evaluation.max_(source, selector, default)

    async def sum(
        self,
        source: QueryExpression[T],
        selector: Callable[[T], Any] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> Any:
        return evaluation.sum_(source, selector)

    async def average(
        self,
        source: QueryExpression[T],
        selector: Callable[[T], Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> Any:
        return evaluation.average(source, selector, default)

    async def to_list(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> list[T]:
        return evaluation.to_list(source)

    async def to_array(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> tuple[T, ...]:
        return evaluation.to_array(source)

    async def to_dict(
        self,
        source: QueryExpression[T],
        key_selector: Callable[[T], K],
        element_selector: Callable[[T], V] | None = None,
        comparer: Callable[[K], Hashable] | None = None,
        *,
        cancel: CancellationToken | None = None,  # noqa: ARG002
    ) -> dict[K, T | V]:
        return evaluation.to_dict(source, key_selector, element_selector, comparer)
