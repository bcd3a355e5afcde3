"""
The query expression contract consumed by the dispatcher.

A query expression is a lazy description of a retrieval. It exposes the tag
of the engine that owns it, and it can always be evaluated synchronously by
iterating over it.
"""

from __future__ import annotations

from typing import (
    Any,
    Hashable,
    Iterator,
    Protocol,
    TypeVar,
    runtime_checkable,
)

T_co = TypeVar("T_co", covariant=True)

# Reserved tag of the fallback strategy; no real engine may use it.
FALLBACK_ENGINE = "flash_query.fallback"

# Tag of the bundled in-memory engine (flash_query.queryable.Queryable).
MEMORY_ENGINE = "flash_query.memory"


@runtime_checkable
class QueryExpression(Protocol[T_co]):
    """
    Structural type of every query expression.

    ``skip`` and ``take`` are needed by pagination; ``where`` accepts an
    engine-native predicate and is used by strategies that push filters down
    into the engine.
    """

    @property
    def engine(self) -> Hashable: ...

    def __iter__(self) -> Iterator[T_co]: ...

    def skip(self, count: int) -> QueryExpression[T_co]: ...

    def take(self, count: int) -> QueryExpression[T_co]: ...

    def where(self, predicate: Any) -> QueryExpression[T_co]: ...


def engine_of(source: Any) -> Hashable | None:
    """
    Return the engine tag of ``source`` or None when it declares none.

    Plain iterables carry no tag and therefore always take the fallback path.
    """
    return getattr(source, "engine", None)
