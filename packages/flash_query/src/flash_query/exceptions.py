class FlashQueryError(Exception):
    """Base class for all Flash Query exceptions."""


class InvalidArgumentError(FlashQueryError, ValueError):
    """Raised when an argument is rejected before any engine is called."""


class OutOfRangeError(InvalidArgumentError):
    """Raised when a numeric argument falls outside its permitted range."""


class EmptySequenceError(FlashQueryError, ValueError):
    """Raised when an element was expected but the sequence had none."""


class MultipleElementsError(FlashQueryError, ValueError):
    """Raised when exactly one element was expected but several matched."""


class DuplicateKeyError(FlashQueryError, ValueError):
    """Raised when two elements project to the same dictionary key."""


class QueryCancelledError(FlashQueryError):
    """Raised when an operation is aborted through its cancellation token."""


class SyncEvaluationError(FlashQueryError, TypeError):
    """Raised when a query expression cannot be evaluated synchronously."""
