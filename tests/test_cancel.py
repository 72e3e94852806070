"""
Tests for the cancellation token and the remote cancellation watcher.
"""

import threading

import pytest
import requests

from conftest import make_response
from iacrunner.errors import CancellationError
from iacrunner.modules.cancel import (
    REMOTE_CANCELLED,
    RUN_FINISHED,
    SIGNAL,
    CancellationToken,
    CancellationWatcher,
)


# =============================================================================
# CancellationToken
# =============================================================================

class TestCancellationToken:
    """Fire-once semantics, callbacks and child scopes."""

    def test_fires_once(self):
        token = CancellationToken()

        assert token.cancel(SIGNAL) is True
        assert token.cancel(REMOTE_CANCELLED) is False

        assert token.cancelled
        assert token.reason == SIGNAL

    def test_callbacks_run_exactly_once(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("a"))

        token.cancel()
        token.cancel()

        assert calls == ["a"]

    def test_callback_added_after_firing_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []

        token.add_callback(lambda: calls.append("late"))

        assert calls == ["late"]

    def test_removed_callback_not_run(self):
        token = CancellationToken()
        calls = []

        def callback():
            calls.append("x")

        token.add_callback(callback)
        token.remove_callback(callback)
        token.cancel()

        assert calls == []

    def test_failing_callback_does_not_stop_others(self):
        token = CancellationToken()
        calls = []

        def boom():
            raise RuntimeError("boom")

        token.add_callback(boom)
        token.add_callback(lambda: calls.append("after"))

        assert token.cancel() is True
        assert calls == ["after"]

    def test_child_fires_with_parent_reason(self):
        parent = CancellationToken()
        child = parent.child()

        parent.cancel(SIGNAL)

        assert child.cancelled
        assert child.reason == SIGNAL

    def test_child_does_not_fire_parent(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel(RUN_FINISHED)

        assert child.cancelled
        assert not parent.cancelled

    def test_fired_child_detaches_from_parent(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel(RUN_FINISHED)

        assert parent._callbacks == []
        parent.cancel(SIGNAL)
        assert child.reason == RUN_FINISHED

    def test_remove_unknown_callback_is_noop(self):
        token = CancellationToken()
        token.remove_callback(lambda: None)

        token.cancel()
        token.remove_callback(lambda: None)

    def test_wait(self):
        token = CancellationToken()

        assert token.wait(0.01) is False

        threading.Timer(0.05, token.cancel).start()
        assert token.wait(5) is True

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()  # no-op

        token.cancel(REMOTE_CANCELLED)

        with pytest.raises(CancellationError) as exc_info:
            token.raise_if_cancelled("terraform plan")
        assert exc_info.value.reason == REMOTE_CANCELLED
        assert "terraform plan" in str(exc_info.value)


# =============================================================================
# CancellationWatcher
# =============================================================================

def watcher_for(session, poll_interval=0.01):
    return CancellationWatcher(
        "https://api.example.com/", "run-1", "tok", poll_interval=poll_interval, session=session
    )


class TestCancellationWatcher:
    """Remote status polling."""

    def test_status_url(self, mock_session):
        watcher = watcher_for(mock_session)

        assert watcher.status_url == "https://api.example.com/v1/ci/module-runs/run-1/status"

    def test_is_cancelled(self, mock_session):
        mock_session.get.return_value = make_response(200, {"status": "cancelled"})

        assert watcher_for(mock_session).is_cancelled() is True

    @pytest.mark.parametrize(
        "response",
        [
            make_response(200, {"status": "running"}),
            make_response(500, {"status": "cancelled"}),
            make_response(200, None, text="<html>"),
            make_response(200, ["cancelled"]),
        ],
    )
    def test_not_cancelled(self, mock_session, response):
        mock_session.get.return_value = response

        assert watcher_for(mock_session).is_cancelled() is False

    def test_network_error_is_not_cancellation(self, mock_session):
        mock_session.get.side_effect = requests.exceptions.ConnectionError("refused")

        assert watcher_for(mock_session).is_cancelled() is False

    def test_fires_scope_on_remote_cancel(self, mock_session):
        """Errors and non-cancelled answers keep polling; cancelled fires the scope."""
        mock_session.get.side_effect = [
            requests.exceptions.Timeout("slow"),
            make_response(200, {"status": "running"}),
            make_response(200, {"status": "cancelled"}),
        ]
        scope = CancellationToken()

        fired = watcher_for(mock_session).watch(scope)

        assert fired is True
        assert scope.cancelled
        assert scope.reason == REMOTE_CANCELLED
        assert mock_session.get.call_count == 3

    def test_first_poll_cancelled_fires_once(self, mock_session):
        mock_session.get.return_value = make_response(200, {"status": "cancelled"})
        scope = CancellationToken()

        assert watcher_for(mock_session).watch(scope) is True
        assert mock_session.get.call_count == 1

    def test_running_never_fires(self, mock_session):
        scope = CancellationToken()
        thread = watcher_for(mock_session, poll_interval=0.01).start(scope)

        threading.Event().wait(0.2)
        assert not scope.cancelled
        assert mock_session.get.call_count >= 2

        scope.cancel(RUN_FINISHED)
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert scope.reason == RUN_FINISHED

    def test_returns_when_scope_ends(self, mock_session):
        scope = CancellationToken()
        thread = watcher_for(mock_session, poll_interval=30).start(scope)

        scope.cancel(RUN_FINISHED)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert scope.reason == RUN_FINISHED
        mock_session.get.assert_not_called()

    def test_root_cancel_stops_watcher(self, mock_session):
        root = CancellationToken()
        scope = root.child()
        thread = watcher_for(mock_session, poll_interval=30).start(scope)

        root.cancel(SIGNAL)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert scope.reason == SIGNAL
