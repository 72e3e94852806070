"""
Shared pytest fixtures for iacrunner tests.

This module provides common fixtures including:
- FakeTool: an executable shell script that plays a scripted terraform binary
- RecordingTransport: in-memory log transport
- HTTP session mocks for callback/config/watcher tests
"""

import json
import os
import stat
import sys
import threading
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from iacrunner.errors import TransportError
from iacrunner.logging_config import clear_secrets


# =============================================================================
# Fake Tool Infrastructure
# =============================================================================

FAKE_TOOL_SCRIPT = """#!/bin/sh
DIR="{root}"
sub="$1"
echo "$* TF_IN_AUTOMATION=${{TF_IN_AUTOMATION:-}}" >> "$DIR/calls.log"
for arg in "$@"; do
  case "$arg" in
    -out=*) : > "${{arg#-out=}}" ;;
  esac
done
if [ -f "$DIR/$sub.stdout" ]; then cat "$DIR/$sub.stdout"; fi
if [ -f "$DIR/$sub.sleep" ]; then sleep "$(cat "$DIR/$sub.sleep")"; fi
if [ -f "$DIR/$sub.stderr" ]; then cat "$DIR/$sub.stderr" >&2; fi
if [ -f "$DIR/$sub.exit" ]; then exit "$(cat "$DIR/$sub.exit")"; fi
exit 0
"""


class FakeTool:
    """
    Scripted stand-in for the terraform binary.

    Each subcommand (init, plan, show, apply, output, destroy, version)
    prints its configured stdout, optionally sleeps, prints its configured
    stderr and exits with its configured code. Unconfigured subcommands
    print nothing and exit 0. A `-out=<file>` argument creates the file.

    Usage:
        def test_plan(fake_tool, workdir):
            fake_tool.respond("plan", stdout="Plan: 1 to add\\n", exit_code=2)
            executor = TerraformExecutor(fake_tool.path, workdir)
            ...
            assert fake_tool.subcommands() == ["plan", "show"]
    """

    def __init__(self, root: str):
        self.root = root
        os.makedirs(root, exist_ok=True)
        self.path = os.path.join(root, "terraform")
        with open(self.path, "w") as f:
            f.write(FAKE_TOOL_SCRIPT.format(root=root))
        os.chmod(self.path, os.stat(self.path).st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)

    def respond(
        self,
        subcommand: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        sleep: Optional[float] = None,
    ) -> "FakeTool":
        """Script one subcommand. Returns self for chaining."""
        self._write(f"{subcommand}.stdout", stdout)
        self._write(f"{subcommand}.stderr", stderr)
        self._write(f"{subcommand}.exit", str(exit_code))
        if sleep is not None:
            self._write(f"{subcommand}.sleep", str(sleep))
        return self

    def respond_json(self, subcommand: str, payload: Any, exit_code: int = 0) -> "FakeTool":
        """Script a subcommand whose stdout is a JSON document."""
        return self.respond(subcommand, stdout=json.dumps(payload), exit_code=exit_code)

    @property
    def calls(self) -> List[str]:
        """Every recorded invocation, as 'args... TF_IN_AUTOMATION=<v>'."""
        log = os.path.join(self.root, "calls.log")
        if not os.path.exists(log):
            return []
        with open(log) as f:
            return [line.rstrip("\n") for line in f]

    def subcommands(self) -> List[str]:
        """First argument of every recorded invocation."""
        return [call.split(" ", 1)[0] for call in self.calls]

    def calls_for(self, subcommand: str) -> List[str]:
        return [call for call in self.calls if call.split(" ", 1)[0] == subcommand]

    def _write(self, name: str, content: str) -> None:
        with open(os.path.join(self.root, name), "w") as f:
            f.write(content)


@pytest.fixture
def fake_tool(tmp_path):
    """FakeTool living in a temporary directory."""
    return FakeTool(str(tmp_path / "faketool"))


@pytest.fixture
def workdir(tmp_path):
    """Empty working directory for the tool."""
    path = tmp_path / "work"
    path.mkdir()
    return str(path)


# =============================================================================
# Log Transport Infrastructure
# =============================================================================

class RecordingTransport:
    """Thread-safe log transport that keeps every batch it receives."""

    def __init__(self, fail: bool = False, fail_first: int = 0):
        self.fail = fail
        self.fail_first = fail_first
        self.batches: List[list] = []
        self.attempted_sizes: List[int] = []
        self.attempts = 0
        self._lock = threading.Lock()

    def send_logs(self, entries) -> None:
        with self._lock:
            self.attempts += 1
            self.attempted_sizes.append(len(entries))
            if self.fail or self.attempts <= self.fail_first:
                raise TransportError("collector unavailable", status_code=503)
            self.batches.append(list(entries))

    @property
    def entries(self) -> list:
        """All delivered entries in delivery order."""
        with self._lock:
            return [entry for batch in self.batches for entry in batch]

    def contents(self, stream: Optional[str] = None) -> List[str]:
        return [e.content for e in self.entries if stream is None or e.stream == stream]


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def failing_transport():
    return RecordingTransport(fail=True)


@pytest.fixture
def flaky_transport():
    """Transport whose first delivery fails."""
    return RecordingTransport(fail_first=1)


# =============================================================================
# HTTP Mocking Infrastructure
# =============================================================================

def make_response(status_code: int = 200, json_data: Any = None, text: str = "") -> MagicMock:
    """Create a requests.Response-like mock."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text or (json.dumps(json_data) if json_data is not None else "")
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def mock_session():
    """requests.Session mock whose posts succeed and whose gets return 'running'."""
    session = MagicMock()
    session.post.return_value = make_response(200, {"ok": True})
    session.get.return_value = make_response(200, {"status": "running"})
    return session


def posted(session: MagicMock, path_suffix: str) -> List[Dict[str, Any]]:
    """JSON bodies of every post to a URL ending with path_suffix."""
    return [
        call.kwargs["json"]
        for call in session.post.call_args_list
        if call.args[0].endswith(path_suffix)
    ]


# =============================================================================
# Isolation
# =============================================================================

@pytest.fixture(autouse=True)
def reset_secrets():
    """Registered secrets are process-global; forget them between tests."""
    yield
    clear_secrets()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Tests that spawn real child processes"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that wait on flush or poll timers"
    )
