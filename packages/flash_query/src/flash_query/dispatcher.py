from __future__ import annotations

import threading
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Hashable,
    TypeVar,
)

from .exceptions import InvalidArgumentError
from .expressions import engine_of
from .logging import get_logger
from .strategies import MISSING, ExecutionStrategy, SyncFallbackStrategy

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .expressions import QueryExpression

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")

logger = get_logger(__name__)


class QueryDispatcher:
    """
    Routes terminal operations to the strategy of the expression's engine.

    The dispatcher owns a table of engine tag -> strategy plus an
    always-present fallback. ``resolve`` reads the engine tag of a query
    expression at call time; when no strategy is registered for it, the
    fallback (synchronous evaluation wrapped in a completed awaitable) is
    used instead. Every terminal operation is ``resolve`` followed by a call
    with identical arguments on the chosen strategy, and strategy failures
    propagate to the caller unchanged.

    Registration and lookup are safe to call concurrently from any thread.
    A second registration for the same engine replaces the first.

    Examples:
        >>> dispatcher = QueryDispatcher()
        >>> dispatcher.register(SQLAlchemyStrategy())
        >>> total = await dispatcher.count(SelectQuery.of(db, Product))

        >>> # Engines without a registered strategy evaluate synchronously
        >>> await dispatcher.to_list(Queryable([3, 1, 2]).order_by())
        [1, 2, 3]
    """

    def __init__(self, fallback: ExecutionStrategy | None = None):
        self._fallback: ExecutionStrategy = (
            fallback if fallback is not None else SyncFallbackStrategy()
        )
        self._strategies: dict[Hashable, ExecutionStrategy] = {}
        self._lock = threading.Lock()

    @property
    def fallback(self) -> ExecutionStrategy:
        return self._fallback

    # --- Registry ---

    def register(self, strategy: ExecutionStrategy) -> None:
        """
        Add or replace the strategy for ``strategy.engine``.

        Raises:
            InvalidArgumentError: If ``strategy`` is None.
        """
        if strategy is None:
            msg = "strategy must not be None"
            raise InvalidArgumentError(msg)

        engine = strategy.engine
        with self._lock:
            previous = self._strategies.get(engine)
            self._strategies[engine] = strategy

        if previous is not None and previous is not strategy:
            logger.debug(
                "Replaced strategy %s with %s for engine %r",
                type(previous).__name__,
                type(strategy).__name__,
                engine,
            )
        else:
            logger.debug(
                "Registered strategy %s for engine %r", type(strategy).__name__, engine
            )

    def lookup(self, engine: Hashable) -> ExecutionStrategy | None:
        """Return the strategy registered for ``engine``, or None."""
        with self._lock:
            return self._strategies.get(engine)

    def is_registered(self, engine: Hashable) -> bool:
        return self.lookup(engine) is not None

    def registered_engines(self) -> frozenset[Hashable]:
        """Snapshot of the engine tags that currently have a strategy."""
        with self._lock:
            return frozenset(self._strategies)

    def resolve(self, source: Any) -> ExecutionStrategy:
        """
        Select the strategy for ``source``; never fails and never returns None.

        Sources without an ``engine`` tag (plain iterables) always get the
        fallback.
        """
        engine = engine_of(source)
        if engine is None:
            return self._fallback

        strategy = self.lookup(engine)
        if strategy is None:
            logger.debug("No strategy for engine %r, using fallback", engine)
            return self._fallback
        return strategy

    # --- Existence & counts ---

    async def any(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        return await self.resolve(source).any(source, predicate, cancel=cancel)

    async def all(
        self,
        source: QueryExpression[T],
        predicate: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        return await self.resolve(source).all(source, predicate, cancel=cancel)

    async def count(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        return await self.resolve(source).count(source, predicate, cancel=cancel)

    async def long_count(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        return await self.resolve(source).long_count(source, predicate, cancel=cancel)

    async def contains(
        self,
        source: QueryExpression[T],
        item: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        return await self.resolve(source).contains(source, item, cancel=cancel)

    # --- Element selection ---

    async def first(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        return await self.resolve(source).first(source, predicate, cancel=cancel)

    async def first_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        return await self.resolve(source).first_or_default(
            source, predicate, default, cancel=cancel
        )

    async def last(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        return await self.resolve(source).last(source, predicate, cancel=cancel)

    async def last_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        return await self.resolve(source).last_or_default(
            source, predicate, default, cancel=cancel
        )

    async def single(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        return await self.resolve(source).single(source, predicate, cancel=cancel)

    async def single_or_default(
        self,
        source: QueryExpression[T],
        predicate: Any = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        return await self.resolve(source).single_or_default(
            source, predicate, default, cancel=cancel
        )

    # --- Aggregation ---

    async def min(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        return await self.resolve(source).min(source, selector, default, cancel=cancel)

    async def max(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        return await self.resolve(source).max(source, selector, default, cancel=cancel)

    async def sum(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        return await self.resolve(source).sum(source, selector, cancel=cancel)

    async def average(
        self,
        source: QueryExpression[T],
        selector: Any = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        return await self.resolve(source).average(
            source, selector, default, cancel=cancel
        )

    # --- Materialization ---

    async def to_list(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> list[T]:
        return await self.resolve(source).to_list(source, cancel=cancel)

    async def to_array(
        self,
        source: QueryExpression[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> tuple[T, ...]:
        return await self.resolve(source).to_array(source, cancel=cancel)

    async def to_dict(
        self,
        source: QueryExpression[T],
        key_selector: Callable[[T], K],
        element_selector: Callable[[T], V] | None = None,
        comparer: Callable[[K], Hashable] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[K, T | V]:
        return await self.resolve(source).to_dict(
            source, key_selector, element_selector, comparer, cancel=cancel
        )


_dispatcher: QueryDispatcher = QueryDispatcher()


def get_dispatcher() -> QueryDispatcher:
    """
    Return the process-wide dispatcher used by ``flash_query.operations``.
    """
    return _dispatcher


def set_dispatcher(dispatcher: QueryDispatcher) -> QueryDispatcher:
    """
    Install ``dispatcher`` as the process-wide default and return the
    previous one, so composition roots and tests can swap it and restore it.

    Raises:
        InvalidArgumentError: If ``dispatcher`` is None.
    """
    global _dispatcher

    if dispatcher is None:
        msg = "dispatcher must not be None"
        raise InvalidArgumentError(msg)

    previous, _dispatcher = _dispatcher, dispatcher
    return previous
