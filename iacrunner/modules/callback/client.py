"""
Callback client for the control plane.

Posts run status, outputs and log batches to the callback paths handed
out in the execution config. Every failure surfaces as TransportError;
callers log it and carry on.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

import requests

from iacrunner.errors import TransportError
from iacrunner.modules.api.models import CallbackURLs, RunStatus

logger = logging.getLogger("iacrunner.callback")


def build_session(token: str, verify: Union[bool, str] = True) -> requests.Session:
    """Create an authenticated session for control plane calls."""
    session = requests.Session()
    session.headers.update({"Authorization": f"Bearer {token}"})
    session.verify = verify

    if verify is False:
        logger.warning("⚠️  TLS verification disabled - only use this for local development!")

    return session


@dataclass
class StatusDetails:
    """Details attached to a status update."""

    exit_code: int = 0
    resources_to_add: int = 0
    resources_to_change: int = 0
    resources_to_destroy: int = 0
    plan_json: Optional[str] = None
    plan_text: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_result(cls, result: Any, reason: Optional[str] = None) -> "StatusDetails":
        """Build details from an ExecutionResult."""
        return cls(
            exit_code=result.exit_code,
            resources_to_add=result.delta.add,
            resources_to_change=result.delta.change,
            resources_to_destroy=result.delta.destroy,
            plan_json=result.plan_json,
            plan_text=result.plan_text,
            reason=reason,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Convert to the status request body fields."""
        payload: Dict[str, Any] = {
            "exit_code": self.exit_code,
            "resources_to_add": self.resources_to_add,
            "resources_to_change": self.resources_to_change,
            "resources_to_destroy": self.resources_to_destroy,
        }
        if self.plan_json:
            payload["plan_json"] = self.plan_json
        if self.plan_text:
            payload["plan_text"] = self.plan_text
        if self.reason:
            payload["reason"] = self.reason
        return payload


class CallbackClient:
    """Posts results back to the control plane via callback paths."""

    def __init__(
        self,
        base_url: str,
        token: str,
        callbacks: CallbackURLs,
        run_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        verify: Union[bool, str] = True,
    ):
        """
        Initialize callback client.

        Args:
            base_url: Control plane base URL
            token: Bearer token for the run
            callbacks: Callback paths from the execution config
            run_id: Run identifier attached to log batches
            session: Optional pre-built session (tests inject mocks here)
            timeout: Per-request timeout in seconds
            verify: TLS verification setting
        """
        self.base_url = base_url.rstrip("/")
        self.callbacks = callbacks
        self.run_id = run_id
        self.timeout = timeout
        self.session = session or build_session(token, verify)

    def report_status(
        self, status: Union[RunStatus, str], details: Optional[StatusDetails] = None
    ) -> None:
        """
        Post a status update.

        Raises:
            TransportError: If the post fails
        """
        status_value = status.value if isinstance(status, RunStatus) else status
        body: Dict[str, Any] = {"status": status_value}
        if details is not None:
            body.update(details.to_payload())

        self._post(self.callbacks.status_url, body)

    def report_outputs(self, outputs: Dict[str, Any]) -> None:
        """
        Post tool outputs.

        Raises:
            TransportError: If the post fails
        """
        self._post(self.callbacks.outputs_url, {"outputs": outputs})

    def send_logs(self, entries: Iterable[Any]) -> None:
        """
        Post one batch of log entries.

        Raises:
            TransportError: If the post fails
        """
        body: Dict[str, Any] = {"logs": [entry.to_dict() for entry in entries]}
        if self.run_id:
            body["run_id"] = self.run_id

        self._post(self.callbacks.logs_url, body)

    def _post(self, path: str, body: Dict[str, Any]) -> None:
        """POST JSON to a callback path."""
        if not path:
            raise TransportError("callback path not configured")

        url = f"{self.base_url}{path}"

        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"posting to {path}: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                f"callback {path} returned {response.status_code}",
                status_code=response.status_code,
            )
