"""
longscribe.transcribe.cancellation - Cooperative cancellation flag.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from longscribe.exceptions import Cancelled


class CancellationToken:
    """Thread-safe, one-way cancellation flag with listeners.

    ``cancel()`` may be called from any thread, including signal handlers
    running on the event loop. Listeners run on the cancelling thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` to run on cancellation.

        Runs immediately if already cancelled. Returns a function that
        unregisters the callback.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled()
