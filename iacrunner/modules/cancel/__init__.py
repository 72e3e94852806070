"""
Cancel Module - Black Box Interface

Purpose: Shared fire-once cancellation and remote cancellation detection
Interface: CancellationToken, CancellationWatcher.start()/watch()
Hidden: Polling cadence, status endpoint, callback bookkeeping

A fired token kills any in-flight child process bound to it.
"""

from .token import REMOTE_CANCELLED, RUN_FINISHED, SIGNAL, CancellationToken
from .watcher import POLL_INTERVAL, CancellationWatcher

__all__ = [
    "CancellationToken",
    "CancellationWatcher",
    "POLL_INTERVAL",
    "REMOTE_CANCELLED",
    "RUN_FINISHED",
    "SIGNAL",
]
