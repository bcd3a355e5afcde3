"""Cooperative cancellation signal threaded through terminal operations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Generator

from .exceptions import QueryCancelledError


class CancellationToken:
    """
    Thread-safe, one-way cancellation signal.

    Callers hand a token to an asynchronous terminal operation and may call
    ``cancel()`` from any thread. Strategies that suspend register a callback
    to abort their in-flight work; strategies that never suspend may ignore
    the token entirely.

    Examples:
        >>> token = CancellationToken()
        >>> token.cancelled
        False
        >>> token.cancel()
        >>> token.raise_if_cancelled()
        Traceback (most recent call last):
        ...
        flash_query.exceptions.QueryCancelledError: Operation was cancelled.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """
        Request cancellation and run every registered callback once.

        Calling ``cancel()`` again is a no-op.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []

        # Callbacks run outside the lock so they may touch the token.
        for callback in callbacks:
            callback()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            msg = "Operation was cancelled."
            raise QueryCancelledError(msg)

    @contextmanager
    def register(self, callback: Callable[[], None]) -> Generator[None, None, None]:
        """
        Run ``callback`` on cancellation while the block is active.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            run_now = self._cancelled
            if not run_now:
                self._callbacks.append(callback)

        if run_now:
            callback()

        try:
            yield
        finally:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
