"""
Cancellation token shared by every suspension point of a run.

A token fires at most once. Firing runs the registered callbacks (the
executor registers one that kills the child process group) and wakes
everything waiting on it. Child tokens fire whenever their parent does,
but firing a child leaves the parent untouched.
"""

import logging
import threading
from contextlib import suppress
from typing import Callable, List, Optional

from iacrunner.errors import CancellationError

logger = logging.getLogger("iacrunner.cancel")

# Reasons
REMOTE_CANCELLED = "remote-cancelled"
SIGNAL = "signal"
RUN_FINISHED = "run-finished"


class CancellationToken:
    """Fire-once cancellation signal."""

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        # Re-entrant: signal handlers may fire the token on the main thread
        self._lock = threading.RLock()
        self._callbacks: List[Callable[[], None]] = []
        self._reason: Optional[str] = None
        self._parent = parent

        if parent is not None:
            parent.add_callback(self._on_parent_cancel)

    @property
    def cancelled(self) -> bool:
        """Whether the token has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Reason passed to the firing cancel() call."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Fire the token.

        Returns:
            True if this call fired it, False if it had already fired
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        if self._parent is not None:
            self._parent.remove_callback(self._on_parent_cancel)
        for callback in callbacks:
            self._run_callback(callback)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until fired or timeout; returns whether it fired."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on firing, or right away if already fired."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Unregister a callback that has not run yet."""
        with self._lock, suppress(ValueError):
            self._callbacks.remove(callback)

    def child(self) -> "CancellationToken":
        """Create a token that fires when this one does."""
        return CancellationToken(parent=self)

    def raise_if_cancelled(self, what: str = "run") -> None:
        """Raise CancellationError if the token has fired."""
        if self.cancelled:
            raise CancellationError(f"{what} cancelled ({self._reason})", reason=self._reason)

    def _on_parent_cancel(self) -> None:
        self.cancel(self._parent.reason)

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Cancellation callback failed: {e}")
