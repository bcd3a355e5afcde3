"""Abstract base class for asynchronous execution strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Hashable,
    TypeVar,
)

from .evaluation import MISSING

if TYPE_CHECKING:
    from flash_query.cancellation import CancellationToken
    from flash_query.expressions import QueryExpression

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


class ExecutionStrategy(ABC):
    """
    Interface for classes that run terminal operations for one engine.

    A strategy is stateless and bound to exactly one engine tag. The
    dispatcher only hands it expressions whose ``engine`` equals that tag.
    Every operation must return what the synchronous reference evaluation
    (``flash_query.strategies.evaluation``) returns for the same elements,
    and strategies that suspend must honor ``cancel`` by raising
    ``QueryCancelledError``.

    Predicates and selectors are engine-native: plain callables for
    in-memory engines, SQL expressions for the SQLAlchemy engine.

    Examples:
        >>> class RemoteStrategy(ExecutionStrategy):
        ...     engine = "remote"
        ...     async def count(self, source, predicate=None, *, cancel=None):
        ...         return await source.client.count(cancel=cancel)
        ...     # ... every other operation ...
    """

    @property
    @abstractmethod
    def engine(self) -> Hashable:
        """The engine tag this strategy serves."""
        ...

    # --- Existence & counts ---

    @abstractmethod
    async def any(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        """Whether the source (filtered by ``predicate``) has any element."""
        ...

    @abstractmethod
    async def all(
        self,
        source: QueryExpression[T],
        predicate: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        """Whether every element satisfies ``predicate``."""
        ...

    @abstractmethod
    async def count(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Number of matching elements, bounded to the 32-bit range."""
        ...

    @abstractmethod
    async def long_count(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Number of matching elements without the 32-bit bound."""
        ...

    @abstractmethod
    async def contains(
        self,
        source: QueryExpression[T],
        item: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        """Whether ``item`` is an element of the source."""
        ...

    # --- Element selection ---

    @abstractmethod
    async def first(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        ...

    @abstractmethod
    async def first_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        ...

    @abstractmethod
    async def last(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        ...

    @abstractmethod
    async def last_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        ...

    @abstractmethod
    async def single(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        ...

    @abstractmethod
    async def single_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        ...

    # --- Aggregation ---

    @abstractmethod
    async def min(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        ...

    @abstractmethod
    async def max(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        ...

    @abstractmethod
    async def sum(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        ...

    @abstractmethod
    async def average(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        ...

    # --- Materialization ---

    @abstractmethod
    async def to_list(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> list[T]:
        ...

    @abstractmethod
    async def to_array(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> tuple[T, ...]:
        ...

    @abstractmethod
    async def to_dict(
        self,
        source: QueryExpression[T],
        key_selector: Callable[[T], K],
        element_selector: Callable[[T], V] | None = None,
        comparer: Callable[[K], Hashable] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[K, T | V]:
        """
        Materialize into a dictionary; duplicate keys raise
        ``DuplicateKeyError``.
        """
        ...
