"""
Callback Module - Black Box Interface

Purpose: Deliver run status, outputs and logs to the control plane
Interface: CallbackClient.report_status(), report_outputs(), send_logs()
Hidden: HTTP transport, authentication, request bodies

Every failure is a TransportError: callers log it and never abort a run on it.
"""

from .client import CallbackClient, StatusDetails, build_session

__all__ = ["CallbackClient", "StatusDetails", "build_session"]
