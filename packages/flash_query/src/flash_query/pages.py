"""
Paged results composed from a count and a bounded slice fetch.
"""

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .config import flash_query_settings
from .dispatcher import get_dispatcher
from .exceptions import InvalidArgumentError, OutOfRangeError
from .logging import get_logger, query_trace
from .strategies import evaluation

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .dispatcher import QueryDispatcher
    from .expressions import QueryExpression

T = TypeVar("T")

logger = get_logger(__name__)


class Page(BaseModel, Generic[T]):
    """
    Immutable slice of a larger collection.

    ``items`` holds ``min(take, max(0, total - skip))`` elements when the
    source does not change between the count and the fetch.

    Example:
        >>> page = Page[int](skip=1, take=2, total=5, items=[2, 3])
        >>> page.items
        (2, 3)
        >>> Page(skip=-1, take=2, total=5, items=[])
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    skip: int = Field(..., ge=0, description="Number of records skipped")
    take: int = Field(..., ge=0, description="Requested slice size")
    total: int = Field(..., ge=0, description="Size of the full collection")
    items: tuple[T, ...] = Field(default=(), description="Records of this page")

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(skip=0, take=0, total=0, items=())


class PageFilter(BaseModel):
    """
    Pagination request: how many records to skip and how many to take.

    Values are not validated here; ``paginate_with`` rejects a negative
    skip or a non-positive take.

    Example:
        >>> PageFilter()
        PageFilter(skip=0, take=20)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    skip: int = Field(default=0, description="Records to skip before the page")
    take: int = Field(
        default_factory=lambda: flash_query_settings.DEFAULT_PAGE_SIZE,
        description="Records returned in the page",
    )


def _check_bounds(skip: int, take: int) -> None:
    if skip < 0:
        msg = f"skip must be greater than or equal to 0, got {skip}"
        raise OutOfRangeError(msg)
    if take <= 0:
        msg = f"take must be greater than 0, got {take}"
        raise OutOfRangeError(msg)


def _require_filter(page_filter: PageFilter | None) -> PageFilter:
    if page_filter is None:
        msg = "page_filter must not be None"
        raise InvalidArgumentError(msg)
    return page_filter


async def paginate(
    source: "QueryExpression[T]",
    skip: int,
    take: int,
    *,
    cancel: "CancellationToken | None" = None,
    dispatcher: "QueryDispatcher | None" = None,
) -> Page[T]:
    """
    Count the source, then fetch one bounded slice of it.

    The slice is only fetched when the count is positive, so an empty source
    costs a single round trip. Both calls go through the dispatcher and run
    one after the other. Their log records share one ``query_trace`` id.

    Raises:
        OutOfRangeError: If ``skip < 0`` or ``take <= 0``.

    Example:
        >>> page = await paginate(Queryable([1, 2, 3, 4, 5]), skip=1, take=2)
        >>> page.total, page.items
        (5, (2, 3))
    """
    _check_bounds(skip, take)
    dispatcher = dispatcher if dispatcher is not None else get_dispatcher()

    with query_trace("page"):
        total = await dispatcher.count(source, cancel=cancel)
        logger.debug("Counted %d rows of %r", total, source)

        items: tuple[Any, ...] = ()
        if total > 0:
            items = await dispatcher.to_array(
                source.skip(skip).take(take), cancel=cancel
            )
            logger.debug("Fetched %d rows (skip=%d, take=%d)", len(items), skip, take)

    return Page(skip=skip, take=take, total=total, items=items)


async def paginate_with(
    source: "QueryExpression[T]",
    page_filter: PageFilter,
    *,
    cancel: "CancellationToken | None" = None,
    dispatcher: "QueryDispatcher | None" = None,
) -> Page[T]:
    """
    ``paginate`` driven by a ``PageFilter``.

    Raises:
        InvalidArgumentError: If ``page_filter`` is None.
        OutOfRangeError: If the filter's skip or take is out of range.
    """
    page_filter = _require_filter(page_filter)
    return await paginate(
        source,
        page_filter.skip,
        page_filter.take,
        cancel=cancel,
        dispatcher=dispatcher,
    )


def paginate_sync(source: "QueryExpression[T]", skip: int, take: int) -> Page[T]:
    """
    Synchronous ``paginate`` for sources whose evaluation never suspends.
    """
    _check_bounds(skip, take)

    total = evaluation.count(source)
    items: tuple[Any, ...] = ()
    if total > 0:
        items = evaluation.to_array(source.skip(skip).take(take))

    return Page(skip=skip, take=take, total=total, items=items)


def paginate_sync_with(
    source: "QueryExpression[T]", page_filter: PageFilter
) -> Page[T]:
    page_filter = _require_filter(page_filter)
    return paginate_sync(source, page_filter.skip, page_filter.take)
