from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Hashable,
    Iterator,
    Type,
    TypeVar,
)

from sqlalchemy import select
from sqlalchemy.orm import aliased
from sqlalchemy.sql.util import ClauseAdapter

from flash_query.exceptions import SyncEvaluationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import ColumnElement, Select

T = TypeVar("T")

SQLALCHEMY_ENGINE = "flash_query.sqlalchemy"

_UNSET: Any = object()


class SelectQuery(Generic[T]):
    """
    Lazy, immutable SQL query bound to an ``AsyncSession``.

    A SelectQuery wraps a SQLAlchemy ``Select`` and tracks slicing (offset
    and limit) separately, so ``skip``/``take`` compose the way sequence
    slicing does: ``take(10).take(3)`` takes 3, ``skip(2).skip(3)`` skips 5,
    and skipping inside a taken window shrinks the window. The final SQL is
    rendered by ``statement``.

    No SQL is emitted by the query itself. Terminal operations are run by
    ``SQLAlchemyStrategy`` through the dispatcher; the session is async, so
    the query cannot be iterated synchronously.

    Examples:
        >>> qs = SelectQuery.of(db, Product).where(Product.price > 10)
        >>> qs = qs.order_by(Product.name).skip(20).take(10)
        >>> products = await q.to_list(qs)
        # SELECT ... FROM products WHERE price > 10
        # ORDER BY name LIMIT 10 OFFSET 20;
    """

    engine: Hashable = SQLALCHEMY_ENGINE

    def __init__(
        self,
        db: AsyncSession,
        stmt: Select,
        model: Type[T] | None = None,
        _offset: int = 0,
        _limit: int | None = None,
    ):
        self.db: AsyncSession = db
        self.model: Type[T] | None = model
        self._stmt: Select = stmt
        self._offset: int = _offset
        self._limit: int | None = _limit

    @classmethod
    def of(cls, db: AsyncSession, model: Type[T]) -> SelectQuery[T]:
        """
        Return a query over every row of ``model``.

        Example:
            >>> SelectQuery.of(db, Product)
            # SELECT * FROM products;
        """
        return cls(db, select(model), model=model)

    def _clone(
        self,
        stmt: Select | None = None,
        *,
        model: Any = _UNSET,
        offset: int | None = None,
        limit: Any = _UNSET,
    ) -> Any:
        """
        Return a new instance of the current class with updated state.

        Using self.__class__ keeps subclasses (and their engine tag) intact.
        """
        return self.__class__(
            self.db,
            stmt if stmt is not None else self._stmt,
            model=self.model if model is _UNSET else model,
            _offset=self._offset if offset is None else offset,
            _limit=self._limit if limit is _UNSET else limit,
        )

    @property
    def is_sliced(self) -> bool:
        return self._offset > 0 or self._limit is not None

    @property
    def statement(self) -> Select:
        """The ``Select`` with offset and limit applied."""
        stmt = self._stmt
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def __iter__(self) -> Iterator[T]:
        msg = (
            "SelectQuery is bound to an AsyncSession and cannot be evaluated "
            "synchronously; register SQLAlchemyStrategy and await a terminal "
            "operation instead"
        )
        raise SyncEvaluationError(msg)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.statement}>"

    # --- Chainable methods ---

    def where(self, *conditions: ColumnElement[bool]) -> SelectQuery[T]:
        """
        Add WHERE criteria to the query.

        Example:
            >>> SelectQuery.of(db, Product).where(Product.stock == 0)
            # SELECT * FROM products WHERE stock = 0;

        Raises:
            ValueError: If the query has already been sliced.
        """
        if not conditions:
            return self
        if self.is_sliced:
            msg = "Cannot filter a query once a slice has been taken; use filter_rows()"
            raise ValueError(msg)
        return self._clone(self._stmt.where(*conditions))

    def order_by(self, *criterion: Any) -> SelectQuery[T]:
        """
        Add ORDER BY criteria to the query.

        Raises:
            ValueError: If the query has already been sliced.
        """
        if self.is_sliced:
            msg = "Cannot reorder a query once a slice has been taken"
            raise ValueError(msg)
        return self._clone(self._stmt.order_by(*criterion))

    def select(self, *columns: Any) -> SelectQuery[Any]:
        """
        Project the query onto ``columns``, keeping filters and slicing.

        Example:
            >>> SelectQuery.of(db, Product).select(Product.name)
            # SELECT name FROM products;
        """
        return self._clone(self._stmt.with_only_columns(*columns), model=None)

    def skip(self, count: int) -> SelectQuery[T]:
        """Bypass ``count`` rows; a negative count skips nothing."""
        count = max(count, 0)
        limit = None if self._limit is None else max(self._limit - count, 0)
        return self._clone(offset=self._offset + count, limit=limit)

    def take(self, count: int) -> SelectQuery[T]:
        """Return at most ``count`` rows; a negative count returns none."""
        count = max(count, 0)
        limit = count if self._limit is None else min(self._limit, count)
        return self._clone(limit=limit)

    def filter_rows(self, *conditions: ColumnElement[bool]) -> SelectQuery[T]:
        """
        Keep the rows of this query that match ``conditions``.

        On an unsliced query this is ``where``. On a sliced one the slice is
        wrapped in a subquery first, so the conditions apply to the rows the
        slice returns, the way filtering a sliced sequence does. Conditions
        written against the mapped columns are rewritten onto the subquery,
        and the original ordering is carried over.

        Example:
            >>> SelectQuery.of(db, Product).order_by(Product.price).take(3)
            ...     .filter_rows(Product.price > 15)
            # SELECT anon_1.* FROM (SELECT ... ORDER BY price LIMIT 3) AS anon_1
            # WHERE anon_1.price > 15 ORDER BY anon_1.price;
        """
        if not conditions:
            return self
        if not self.is_sliced:
            return self.where(*conditions)

        subquery = self.statement.subquery()
        adapter = ClauseAdapter(subquery)
        if self.model is not None:
            stmt = select(aliased(self.model, subquery))
        else:
            stmt = select(*subquery.c)

        stmt = stmt.where(*(adapter.traverse(condition) for condition in conditions))
        # Select exposes no public accessor for its ORDER BY.
        ordering = self._stmt._order_by_clauses
        if ordering:
            stmt = stmt.order_by(*(adapter.traverse(clause) for clause in ordering))

        return self.__class__(self.db, stmt, model=self.model)
