"""
Remote cancellation watcher.

Polls the run's status on the control plane and fires the run-scope
token when an operator cancels the run.
"""

import logging
import threading
from typing import Optional, Union

import requests

from iacrunner.modules.api.models import RunStatus
from iacrunner.modules.callback import build_session

from .token import REMOTE_CANCELLED, CancellationToken

logger = logging.getLogger("iacrunner.cancel")

POLL_INTERVAL = 30.0


class CancellationWatcher:
    """Polls the control plane for run cancellation."""

    def __init__(
        self,
        api_url: str,
        run_id: str,
        token: str,
        poll_interval: float = POLL_INTERVAL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        verify: Union[bool, str] = True,
    ):
        self.status_url = f"{api_url.rstrip('/')}/v1/ci/module-runs/{run_id}/status"
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.session = session or build_session(token, verify)

    def start(self, scope: CancellationToken) -> threading.Thread:
        """Watch scope on a background thread."""
        thread = threading.Thread(
            target=self.watch, args=(scope,), name="cancel-watcher", daemon=True
        )
        thread.start()
        return thread

    def watch(self, scope: CancellationToken) -> bool:
        """
        Poll until the run is cancelled remotely or scope fires.

        Returns:
            True if this watcher fired the scope
        """
        while not scope.wait(self.poll_interval):
            if self.is_cancelled():
                logger.info("Run cancelled by user, initiating shutdown")
                return scope.cancel(REMOTE_CANCELLED)
        return False

    def is_cancelled(self) -> bool:
        """
        Query the remote status once.

        Any error counts as not cancelled; the next tick retries.
        """
        try:
            response = self.session.get(self.status_url, timeout=self.timeout)
            if response.status_code >= 400:
                logger.debug(f"Status poll returned {response.status_code}")
                return False
            status = response.json().get("status")
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logger.debug(f"Status poll failed: {e}")
            return False

        return status == RunStatus.CANCELLED.value
