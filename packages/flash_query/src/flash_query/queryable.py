from __future__ import annotations

import itertools
from typing import (
    Any,
    Callable,
    Generic,
    Hashable,
    Iterable,
    Iterator,
    TypeVar,
)

from .expressions import MEMORY_ENGINE

T = TypeVar("T")
U = TypeVar("U")

Step = Callable[[Iterator[Any]], Iterator[Any]]


class Queryable(Generic[T]):
    """
    Lazy, immutable query over an in-memory collection.

    A Queryable stores its source and an ordered chain of transformation
    steps. Nothing is evaluated until the Queryable is iterated, and every
    iteration re-runs the chain from the source. Each transformation returns
    a new Queryable, so instances are safe to share and reuse.

    No asynchronous strategy is registered for the in-memory engine, so the
    dispatcher evaluates it through the synchronous fallback.

    Examples:
        >>> qs = Queryable([5, 3, 1, 4]).where(lambda n: n > 1).order_by()
        >>> list(qs)
        [3, 4, 5]
        >>> list(qs.skip(1).take(1))
        [4]
    """

    engine: Hashable = MEMORY_ENGINE

    def __init__(self, source: Iterable[T], _steps: tuple[Step, ...] = ()):
        # One-shot iterators are captured so the query can be re-evaluated.
        if isinstance(source, Iterator):
            source = tuple(source)
        self._source: Iterable[Any] = source
        self._steps: tuple[Step, ...] = _steps

    def _chain(self, step: Step) -> Any:
        """
        Return a new instance of the current class with one more step.

        Using self.__class__ keeps subclasses (and their engine tag) intact.
        """
        return self.__class__(self._source, (*self._steps, step))

    def __iter__(self) -> Iterator[T]:
        iterator: Iterator[Any] = iter(self._source)
        for step in self._steps:
            iterator = step(iterator)
        return iterator

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} steps={len(self._steps)}>"

    # --- Chainable methods ---

    def where(self, predicate: Callable[[T], bool]) -> Queryable[T]:
        """Keep the elements for which ``predicate`` returns a truthy value."""
        return self._chain(lambda it: filter(predicate, it))

    def select(self, selector: Callable[[T], U]) -> Queryable[U]:
        """Project every element through ``selector``."""
        return self._chain(lambda it: map(selector, it))

    def order_by(
        self, key: Callable[[T], Any] | None = None, *, descending: bool = False
    ) -> Queryable[T]:
        """
        Sort the elements.

        The sort is stable, so chaining ``order_by`` calls sorts by the last
        key first and keeps earlier orderings as tie-breakers.
        """
        return self._chain(lambda it: iter(sorted(it, key=key, reverse=descending)))

    def distinct(self, key: Callable[[T], Hashable] | None = None) -> Queryable[T]:
        """Drop repeated elements (or repeated keys), keeping first occurrences."""

        def _distinct(it: Iterator[Any]) -> Iterator[Any]:
            seen: set[Hashable] = set()
            for item in it:
                marker = key(item) if key is not None else item
                if marker not in seen:
                    seen.add(marker)
                    yield item

        return self._chain(_distinct)

    def skip(self, count: int) -> Queryable[T]:
        """Bypass ``count`` elements; a negative count skips nothing."""
        count = max(count, 0)
        return self._chain(lambda it: itertools.islice(it, count, None))

    def take(self, count: int) -> Queryable[T]:
        """Return at most ``count`` elements; a negative count returns none."""
        count = max(count, 0)
        return self._chain(lambda it: itertools.islice(it, count))
