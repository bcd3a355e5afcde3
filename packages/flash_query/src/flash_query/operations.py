"""
Asynchronous terminal operations over any query expression.

Each function resolves the execution strategy for the expression's engine
through a dispatcher (the process-wide one unless ``dispatcher=`` is given)
and awaits it. Names that would shadow builtins carry a trailing underscore.

Example:
    >>> from flash_query import operations as q
    >>> await q.count(Queryable(range(10)).where(lambda n: n % 2))
    5
    >>> await q.single_or_default(Queryable([1, 2, 3]), lambda n: n > 5)
    None
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Hashable,
    TypeVar,
)

from .dispatcher import get_dispatcher
from .strategies import MISSING

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .dispatcher import QueryDispatcher
    from .expressions import QueryExpression

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


def _dispatcher(dispatcher: QueryDispatcher | None) -> QueryDispatcher:
    return dispatcher if dispatcher is not None else get_dispatcher()


async def any_(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> bool:
    """Whether the source contains any element (matching ``predicate``)."""
    return await _dispatcher(dispatcher).any(source, predicate, cancel=cancel)


async def all_(
    source: QueryExpression[T],
    predicate: Any,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> bool:
    """Whether every element satisfies ``predicate``."""
    return await _dispatcher(dispatcher).all(source, predicate, cancel=cancel)


async def count(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> int:
    return await _dispatcher(dispatcher).count(source, predicate, cancel=cancel)


async def long_count(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> int:
    return await _dispatcher(dispatcher).long_count(source, predicate, cancel=cancel)


async def contains(
    source: QueryExpression[T],
    item: Any,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> bool:
    return await _dispatcher(dispatcher).contains(source, item, cancel=cancel)


async def first(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T:
    """
    Return the first matching element.

    Raises:
        EmptySequenceError: If nothing matches.
    """
    return await _dispatcher(dispatcher).first(source, predicate, cancel=cancel)


async def first_or_default(
    source: QueryExpression[T],
    predicate: Any = None,
    default: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T | Any:
    return await _dispatcher(dispatcher).first_or_default(
        source, predicate, default, cancel=cancel
    )


async def last(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T:
    return await _dispatcher(dispatcher).last(source, predicate, cancel=cancel)


async def last_or_default(
    source: QueryExpression[T],
    predicate: Any = None,
    default: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T | Any:
    return await _dispatcher(dispatcher).last_or_default(
        source, predicate, default, cancel=cancel
    )


async def single(
    source: QueryExpression[T],
    predicate: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T:
    """
    Return the only matching element.

    Raises:
        EmptySequenceError: If nothing matches.
        MultipleElementsError: If more than one element matches.
    """
    return await _dispatcher(dispatcher).single(source, predicate, cancel=cancel)


async def single_or_default(
    source: QueryExpression[T],
    predicate: Any = None,
    default: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> T | Any:
    """
    Return the only matching element, or ``default`` when nothing matches.

    Raises:
        MultipleElementsError: If more than one element matches.
    """
    return await _dispatcher(dispatcher).single_or_default(
        source, predicate, default, cancel=cancel
    )


async def min_(
    source: QueryExpression[T],
    selector: Any = None,
    default: Any = MISSING,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> Any:
    return await _dispatcher(dispatcher).min(source, selector, default, cancel=cancel)


async def max_(
    source: QueryExpression[T],
    selector: Any = None,
    default: Any = MISSING,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> Any:
    return await _dispatcher(dispatcher).max(source, selector, default, cancel=cancel)


async def sum_(
    source: QueryExpression[T],
    selector: Any = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> Any:
    return await _dispatcher(dispatcher).sum(source, selector, cancel=cancel)


async def average(
    source: QueryExpression[T],
    selector: Any = None,
    default: Any = MISSING,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> Any:
    return await _dispatcher(dispatcher).average(
        source, selector, default, cancel=cancel
    )


async def to_list(
    source: QueryExpression[T],
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> list[T]:
    return await _dispatcher(dispatcher).to_list(source, cancel=cancel)


async def to_array(
    source: QueryExpression[T],
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> tuple[T, ...]:
    return await _dispatcher(dispatcher).to_array(source, cancel=cancel)


async def to_dict(
    source: QueryExpression[T],
    key_selector: Callable[[T], K],
    element_selector: Callable[[T], V] | None = None,
    comparer: Callable[[K], Hashable] | None = None,
    *,
    cancel: CancellationToken | None = None,
    dispatcher: QueryDispatcher | None = None,
) -> dict[K, T | V]:
    """
    Materialize into a dictionary keyed by ``key_selector``.

    Raises:
        DuplicateKeyError: If two elements produce equal keys.
    """
    return await _dispatcher(dispatcher).to_dict(
        source, key_selector, element_selector, comparer, cancel=cancel
    )
