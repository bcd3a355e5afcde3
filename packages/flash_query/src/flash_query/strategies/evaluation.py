"""
Synchronous reference semantics of every terminal operation.

These functions consume any iterable (a query expression is evaluated by
iterating it) and define what each terminal operation means. The fallback
strategy is a thin asynchronous wrapper over them, and engine-specific
strategies must produce the same results.
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Hashable,
    Iterable,
    Iterator,
    TypeVar,
)

from flash_query.exceptions import (
    DuplicateKeyError,
    EmptySequenceError,
    MultipleElementsError,
)

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")

INT32_MAX = 2**31 - 1


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Marks "no default supplied"; None is a legitimate default value.
MISSING: Any = _Missing()


def _matching(
    items: Iterable[T], predicate: Callable[[T], bool] | None
) -> Iterator[T]:
    return iter(items) if predicate is None else filter(predicate, items)


def _project(items: Iterable[Any], selector: Callable[[Any], Any] | None) -> Iterator[Any]:
    return iter(items) if selector is None else map(selector, items)


def no_elements_error(predicate: Any) -> EmptySequenceError:
    if predicate is None:
        return EmptySequenceError("Sequence contains no elements")
    return EmptySequenceError("Sequence contains no matching element")


def too_many_error(predicate: Any) -> MultipleElementsError:
    if predicate is None:
        return MultipleElementsError("Sequence contains more than one element")
    return MultipleElementsError("Sequence contains more than one matching element")


# --- Existence & counts ---


def any_(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> bool:
    for _ in _matching(items, predicate):
        return True
    return False


def all_(items: Iterable[T], predicate: Callable[[T], bool]) -> bool:
    return all(predicate(item) for item in items)


def long_count(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> int:
    total = 0
    for _ in _matching(items, predicate):
        total += 1
    return total


def count(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> int:
    """
    Count matching elements, bounded to the 32-bit range.

    Raises:
        OverflowError: If the count exceeds 2**31 - 1; use ``long_count``.
    """
    total = long_count(items, predicate)
    if total > INT32_MAX:
        msg = "Count exceeds the 32-bit range; use long_count() instead"
        raise OverflowError(msg)
    return total


def contains(items: Iterable[T], item: Any) -> bool:
    return any(element == item for element in items)


# --- Element selection ---


def first_or_default(
    items: Iterable[T],
    predicate: Callable[[T], bool] | None = None,
    default: Any = None,
) -> T | Any:
    for item in _matching(items, predicate):
        return item
    return default


def first(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> T:
    result = first_or_default(items, predicate, MISSING)
    if result is MISSING:
        raise no_elements_error(predicate)
    return result


def last_or_default(
    items: Iterable[T],
    predicate: Callable[[T], bool] | None = None,
    default: Any = None,
) -> T | Any:
    result = default
    for item in _matching(items, predicate):
        result = item
    return result


def last(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> T:
    result = last_or_default(items, predicate, MISSING)
    if result is MISSING:
        raise no_elements_error(predicate)
    return result


def single_or_default(
    items: Iterable[T],
    predicate: Callable[[T], bool] | None = None,
    default: Any = None,
) -> T | Any:
    """
    Return the only matching element, or ``default`` when nothing matches.

    More than one match is still an error, exactly like ``single``.
    """
    found: Any = MISSING
    for item in _matching(items, predicate):
        if found is not MISSING:
            raise too_many_error(predicate)
        found = item
    return default if found is MISSING else found


def single(items: Iterable[T], predicate: Callable[[T], bool] | None = None) -> T:
    result = single_or_default(items, predicate, MISSING)
    if result is MISSING:
        raise no_elements_error(predicate)
    return result


# --- Aggregation ---
# None values are skipped, the way SQL aggregates ignore NULL.


def _extreme(
    items: Iterable[Any],
    selector: Callable[[Any], Any] | None,
    default: Any,
    better: Callable[[Any, Any], bool],
) -> Any:
    best: Any = MISSING
    for value in _project(items, selector):
        if value is None:
            continue
        if best is MISSING or better(value, best):
            best = value
    if best is MISSING:
        if default is MISSING:
            raise no_elements_error(None)
        return default
    return best


def min_(
    items: Iterable[T],
    selector: Callable[[T], Any] | None = None,
    default: Any = MISSING,
) -> Any:
    return _extreme(items, selector, default, lambda value, best: value < best)


def max_(
    items: Iterable[T],
    selector: Callable[[T], Any] | None = None,
    default: Any = MISSING,
) -> Any:
    return _extreme(items, selector, default, lambda value, best: value > best)


def sum_(items: Iterable[T], selector: Callable[[T], Any] | None = None) -> Any:
    """
    Add up numeric values of any kind (int, float, Decimal).

    An empty sequence sums to 0.
    """
    total: Any = 0
    for value in _project(items, selector):
        if value is not None:
            total += value
    return total


def average(
    items: Iterable[T],
    selector: Callable[[T], Any] | None = None,
    default: Any = MISSING,
) -> Any:
    """
    Arithmetic mean; Decimal inputs stay Decimal, other numbers give float.

    Raises:
        EmptySequenceError: If there is nothing to average and no default.
    """
    total: Any = 0
    n = 0
    for value in _project(items, selector):
        if value is None:
            continue
        total += value
        n += 1
    if n == 0:
        if default is MISSING:
            raise no_elements_error(None)
        return default
    return total / n


# --- Materialization ---


def to_list(items: Iterable[T]) -> list[T]:
    return list(items)


def to_array(items: Iterable[T]) -> tuple[T, ...]:
    return tuple(items)


def to_dict(
    items: Iterable[T],
    key_selector: Callable[[T], K],
    element_selector: Callable[[T], V] | None = None,
    comparer: Callable[[K], Hashable] | None = None,
) -> dict[K, T | V]:
    """
    Build a dictionary keyed by ``key_selector``, rejecting duplicate keys.

    Args:
        items: The elements to index.
        key_selector: Derives the key of each element.
        element_selector: Optional projection stored instead of the element.
        comparer: Optional key normalizer; two keys are equal when their
            normalized forms are equal (e.g. ``str.casefold``).

    Raises:
        DuplicateKeyError: If two elements produce equal keys.
    """
    result: dict[Any, Any] = {}
    seen: set[Hashable] = set()
    for item in items:
        key = key_selector(item)
        marker = comparer(key) if comparer is not None else key
        if marker in seen:
            msg = f"An element with the same key {key!r} has already been added"
            raise DuplicateKeyError(msg)
        seen.add(marker)
        result[key] = element_selector(item) if element_selector is not None else item
    return result
