"""
Logging for Flash Query.

Terminal operations are logged under the ``flash_query`` namespace. A
``query_trace`` block tags every record emitted inside it with a short
trace id, so the count and slice-fetch lines of one ``paginate`` call can
be told apart from those of concurrent calls on the same event loop.
"""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional, TextIO, Union

from .config import flash_query_settings

NAMESPACE = "flash_query"

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(trace)s%(name)s: %(message)s"

_active_trace: ContextVar[Optional[str]] = ContextVar("flash_query_trace", default=None)


def get_logger(name: str) -> logging.Logger:
    """
    Return the logger for a Flash Query module.

    >>> logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def current_trace() -> Optional[str]:
    """The trace id of the innermost active ``query_trace``, if any."""
    return _active_trace.get()


@contextmanager
def query_trace(label: str = "query") -> Iterator[str]:
    """
    Tag log records emitted in the block with a trace id and yield it.

    A nested ``query_trace`` joins the enclosing trace instead of starting a
    new one, so a ``paginate`` call run inside a caller's trace keeps the
    caller's id.

    >>> with query_trace("page") as trace:
    ...     trace
    'page-3f9a1c2e'
    """
    active = _active_trace.get()
    if active is not None:
        yield active
        return

    token = _active_trace.set(f"{label}-{uuid.uuid4().hex[:8]}")
    try:
        yield _active_trace.get()
    finally:
        _active_trace.reset(token)


class QueryLogFormatter(logging.Formatter):
    """
    UTC, millisecond-precision formatter that fills ``%(trace)s``.

    ``trace`` renders as ``"[<id>] "`` inside a ``query_trace`` block and as
    an empty string outside one.
    """

    converter = time.gmtime
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        trace = _active_trace.get()
        record.trace = f"[{trace}] " if trace else ""
        return super().format(record)


def setup_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[Union[str, Path]] = None,
    *,
    stream: Optional[TextIO] = None,
    max_bytes: int = 10_485_760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach handlers to the ``flash_query`` logger and return it.

    Args:
        level: Logging level; defaults to ``LOG_LEVEL`` from settings.
        log_file: Optional path of a rotating log file.
        stream: Console stream (default: stdout).

    Calling it again replaces the handlers from the previous call. Records
    do not propagate to the root logger, so an application that configures
    its own logging is not sent duplicates.
    """
    if level is None:
        level = flash_query_settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(NAMESPACE)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    formatter = QueryLogFormatter(LOG_FORMAT)

    console = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        except OSError as e:
            logger.warning("Logging to console only; cannot open %s: %s", path, e)
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
