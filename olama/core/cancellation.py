"""Per-exchange cooperative cancel flag."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """A cancel flag that can be set exactly once, from any thread.

    Consumers poll ``is_cancelled`` at their checkpoints.  Callbacks
    registered with ``add_callback`` run once, on the cancelling thread,
    when the flag is first set; the chat exchange uses this to shut down
    its response socket so a read blocked on a stalled server returns.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Set the flag.  Returns True only for the call that actually set it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            self._run(callback)
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._run(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as exc:  # a failing close must not break cancel()
            logger.warning("Cancellation callback %r failed: %s", callback, exc)
