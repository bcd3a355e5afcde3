from .cancellation import CancellationToken
from .config import FlashQuerySettings, flash_query_settings
from .dispatcher import QueryDispatcher, get_dispatcher, set_dispatcher
from .exceptions import (
    DuplicateKeyError,
    EmptySequenceError,
    FlashQueryError,
    InvalidArgumentError,
    MultipleElementsError,
    OutOfRangeError,
    QueryCancelledError,
    SyncEvaluationError,
)
from .expressions import FALLBACK_ENGINE, MEMORY_ENGINE, QueryExpression
from .pages import Page, PageFilter, paginate, paginate_sync, paginate_sync_with, paginate_with
from .queryable import Queryable
from .strategies import MISSING, ExecutionStrategy, SyncFallbackStrategy

__all__ = [
    "FALLBACK_ENGINE",
    "MEMORY_ENGINE",
    "MISSING",
    "CancellationToken",
    "DuplicateKeyError",
    "EmptySequenceError",
    "ExecutionStrategy",
    "FlashQueryError",
    "FlashQuerySettings",
    "InvalidArgumentError",
    "MultipleElementsError",
    "OutOfRangeError",
    "Page",
    "PageFilter",
    "QueryCancelledError",
    "QueryDispatcher",
    "QueryExpression",
    "Queryable",
    "SyncEvaluationError",
    "SyncFallbackStrategy",
    "flash_query_settings",
    "get_dispatcher",
    "paginate",
    "paginate_sync",
    "paginate_sync_with",
    "paginate_with",
    "set_dispatcher",
]
