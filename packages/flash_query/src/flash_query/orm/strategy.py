"""Asynchronous execution strategy for SQLAlchemy queries."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Hashable,
    TypeVar,
)

from sqlalchemy import Numeric, and_, func, inspect, literal, not_, select

from flash_query.dispatcher import get_dispatcher
from flash_query.exceptions import InvalidArgumentError, QueryCancelledError
from flash_query.strategies import MISSING, ExecutionStrategy, evaluation

from .query import SQLALCHEMY_ENGINE

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement

    from flash_query.cancellation import CancellationToken
    from flash_query.dispatcher import QueryDispatcher

    from .query import SelectQuery

R = TypeVar("R")
T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


def _is_decimal(type_: Any) -> bool:
    return isinstance(type_, Numeric) and bool(type_.asdecimal)


class SQLAlchemyStrategy(ExecutionStrategy):
    """
    Runs terminal operations as SQL through the query's ``AsyncSession``.

    Counting, existence, containment and aggregates are computed by the
    database; element selection fetches at most the rows it needs
    (``LIMIT 1`` for first, ``LIMIT 2`` for single). ``last`` and
    ``to_dict`` fetch the rows and finish in Python.

    Predicates are SQL boolean clauses and selectors are SQL column
    expressions. A cancelled token aborts the in-flight statement and raises
    ``QueryCancelledError``; the session should be rolled back afterwards.

    Examples:
        >>> dispatcher.register(SQLAlchemyStrategy())
        >>> await dispatcher.sum(SelectQuery.of(db, Product), Product.stock)
        # SELECT sum(anon_1.stock) FROM (SELECT products.stock ...) AS anon_1;
    """

    @property
    def engine(self) -> Hashable:
        return SQLALCHEMY_ENGINE

    async def _execute(
        self,
        call: Callable[[], Awaitable[R]],
        cancel: CancellationToken | None,
    ) -> R:
        """
        Await ``call()``, cancelling it when ``cancel`` fires.

        Cancellation may be requested from any thread, so the task is
        cancelled on its own loop via ``call_soon_threadsafe``.
        """
        if cancel is None:
            return await call()

        cancel.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(call())

        with cancel.register(lambda: loop.call_soon_threadsafe(task.cancel)):
            try:
                return await task
            except asyncio.CancelledError:
                # Only translate cancellations we caused; task cancellation
                # coming from the caller's side propagates as-is.
                if cancel.cancelled:
                    msg = "Query was cancelled."
                    raise QueryCancelledError(msg) from None
                raise

    async def _fetch(
        self, query: SelectQuery[Any], cancel: CancellationToken | None
    ) -> list[Any]:
        """Run the query and return entities, scalars or row tuples."""
        result = await self._execute(lambda: query.db.execute(query.statement), cancel)

        # Entity rows are made unique to collapse duplicates from joined loads.
        if query.model is not None:
            return list(result.scalars().unique().all())
        if len(query.statement.selected_columns) == 1:
            return list(result.scalars().all())
        return [tuple(row) for row in result]

    async def _scalar(
        self, query: SelectQuery[Any], stmt: Any, cancel: CancellationToken | None
    ) -> Any:
        return await self._execute(lambda: query.db.scalar(stmt), cancel)

    def _filtered(
        self, source: SelectQuery[T], predicate: ColumnElement[bool] | None
    ) -> SelectQuery[T]:
        return source if predicate is None else source.filter_rows(predicate)

    def _aggregated_column(
        self, source: SelectQuery[Any], selector: ColumnElement[Any] | None
    ) -> Any:
        """
        Return the column to aggregate: the selected column (or ``selector``)
        of the query wrapped in a subquery, so offset and limit are honored
        before aggregating.
        """
        stmt = source.statement
        if selector is not None:
            stmt = stmt.with_only_columns(selector)
        elif source.model is not None or len(stmt.selected_columns) != 1:
            msg = "A selector is required to aggregate a query over several columns"
            raise InvalidArgumentError(msg)

        return next(iter(stmt.subquery().c))

    async def _aggregate(
        self,
        source: SelectQuery[Any],
        selector: ColumnElement[Any] | None,
        fn: Callable[[Any], Any],
        cancel: CancellationToken | None,
    ) -> Any:
        column = self._aggregated_column(source, selector)
        return await self._scalar(source, select(fn(column)), cancel)

    # --- Existence & counts ---

    async def any(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        query = self._filtered(source, predicate)
        stmt = select(query.statement.exists())
        return bool(await self._scalar(query, stmt, cancel))

    async def all(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool],
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        return not await self.any(source, not_(predicate), cancel=cancel)

    async def count(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        total = await self.long_count(source, predicate, cancel=cancel)
        if total > evaluation.INT32_MAX:
            msg = "Count exceeds the 32-bit range; use long_count() instead"
            raise OverflowError(msg)
        return total

    async def long_count(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> int:
        query = self._filtered(source, predicate)
        # Wrapped in a subquery to respect DISTINCT, GROUP BY and slicing.
        stmt = select(func.count()).select_from(query.statement.subquery())
        return await self._scalar(query, stmt, cancel) or 0

    async def contains(
        self,
        source: SelectQuery[T],
        item: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> bool:
        """
        Test membership with SQL EXISTS.

        Mapped instances are matched by primary key; any other value is
        compared with the first selected column.

        Raises:
            InvalidArgumentError: If a mapped instance is looked up in a
                query projected onto columns.
        """
        subquery = source.statement.subquery()
        state = inspect(item, raiseerr=False)
        mapper = getattr(state, "mapper", None)

        if mapper is not None:
            if source.model is None:
                msg = "Cannot look up an entity in a query projected onto columns"
                raise InvalidArgumentError(msg)
            if not isinstance(item, source.model):
                return False
            identity = mapper.primary_key_from_instance(item)
            condition = and_(
                *(
                    subquery.c[column.name] == value
                    for column, value in zip(mapper.primary_key, identity)
                )
            )
        else:
            condition = next(iter(subquery.c)) == item

        probe = select(literal(1)).select_from(subquery).where(condition)
        return bool(await self._scalar(source, select(probe.exists()), cancel))

    # --- Element selection ---

    async def first(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        result = await self.first_or_default(source, predicate, MISSING, cancel=cancel)
        if result is MISSING:
            raise evaluation.no_elements_error(predicate)
        return result

    async def first_or_default(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        rows = await self._fetch(self._filtered(source, predicate).take(1), cancel)
        return rows[0] if rows else default

    async def last(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        result = await self.last_or_default(source, predicate, MISSING, cancel=cancel)
        if result is MISSING:
            raise evaluation.no_elements_error(predicate)
        return result

    async def last_or_default(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        # ORDER BY cannot be reversed generically, so the rows are read in full.
        rows = await self._fetch(self._filtered(source, predicate), cancel)
        return rows[-1] if rows else default

    async def single(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T:
        result = await self.single_or_default(source, predicate, MISSING, cancel=cancel)
        if result is MISSING:
            raise evaluation.no_elements_error(predicate)
        return result

    async def single_or_default(
        self,
        source: SelectQuery[T],
        predicate: ColumnElement[bool] | None = None,
        default: Any = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> T | Any:
        # Two rows are enough to tell "exactly one" from "more than one".
        rows = await self._fetch(self._filtered(source, predicate).take(2), cancel)
        if len(rows) > 1:
            raise evaluation.too_many_error(predicate)
        return rows[0] if rows else default

    # --- Aggregation ---

    async def min(
        self,
        source: SelectQuery[T],
        selector: ColumnElement[Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        value = await self._aggregate(source, selector, func.min, cancel)
        return self._or_default(value, default)

    async def max(
        self,
        source: SelectQuery[T],
        selector: ColumnElement[Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        value = await self._aggregate(source, selector, func.max, cancel)
        return self._or_default(value, default)

    async def sum(
        self,
        source: SelectQuery[T],
        selector: ColumnElement[Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        # SQL SUM over no rows is NULL; an empty sum is 0.
        value = await self._aggregate(source, selector, func.sum, cancel)
        return 0 if value is None else value

    async def average(
        self,
        source: SelectQuery[T],
        selector: ColumnElement[Any] | None = None,
        default: Any = MISSING,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """
        Mean of the selected column.

        Some drivers (asyncpg) return ``Decimal`` for AVG over integers; the
        result is a float unless the column itself is a decimal ``Numeric``.
        """
        column = self._aggregated_column(source, selector)
        value = await self._scalar(source, select(func.avg(column)), cancel)
        if isinstance(value, Decimal) and not _is_decimal(column.type):
            value = float(value)
        return self._or_default(value, default)

    def _or_default(self, value: Any, default: Any) -> Any:
        if value is not None:
            return value
        if default is MISSING:
            raise evaluation.no_elements_error(None)
        return default

    # --- Materialization ---

    async def to_list(
        self,
        source: SelectQuery[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> list[T]:
        return await self._fetch(source, cancel)

    async def to_array(
        self,
        source: SelectQuery[T],
        *,
        cancel: CancellationToken | None = None,
    ) -> tuple[T, ...]:
        return tuple(await self._fetch(source, cancel))

    async def to_dict(
        self,
        source: SelectQuery[T],
        key_selector: Callable[[T], K],
        element_selector: Callable[[T], V] | None = None,
        comparer: Callable[[K], Hashable] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[K, T | V]:
        """
        Fetch the rows, then key them in Python with plain callables.

        Raises:
            DuplicateKeyError: If two rows produce equal keys.
        """
        rows = await self._fetch(source, cancel)
        return evaluation.to_dict(rows, key_selector, element_selector, comparer)


def register_sqlalchemy(dispatcher: QueryDispatcher | None = None) -> SQLAlchemyStrategy:
    """
    Register ``SQLAlchemyStrategy`` with ``dispatcher`` (default: the
    process-wide dispatcher) and return the registered instance.

    Example:
        >>> register_sqlalchemy()
        >>> await q.count(SelectQuery.of(db, Product))  # runs SELECT count(*)
    """
    strategy = SQLAlchemyStrategy()
    (dispatcher if dispatcher is not None else get_dispatcher()).register(strategy)
    return strategy
