"""
Error taxonomy for iacrunner.

Every error raised by a run falls in one of two buckets:

- FatalError: aborts the run. The orchestrator reports a failed status
  upstream, unwinds cleanup and re-raises.
- ReportedError: logged where it happens and swallowed, so a flaky
  collector never aborts an otherwise successful infrastructure change.
"""

from typing import Any, Optional


class RunnerError(Exception):
    """Base class for all runner errors."""


class FatalError(RunnerError):
    """An error that aborts the current run."""


class ReportedError(RunnerError):
    """An error that is logged and never escalated."""


class ConfigError(FatalError):
    """Execution config could not be fetched or decoded."""


class ToolResolutionError(FatalError):
    """The requested tool version could not be located or downloaded."""


class SourceError(FatalError):
    """Source tree could not be prepared."""


class InputError(FatalError):
    """Input files (tfvars, backend override) could not be written."""


class SubprocessError(FatalError):
    """A tool invocation exited non-zero."""

    def __init__(
        self,
        message: str,
        exit_code: int = 1,
        stderr: str = "",
        result: Optional[Any] = None,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.result = result


class InitializationError(SubprocessError):
    """`init` exited non-zero."""


class CancellationError(FatalError):
    """The run was aborted by a cancellation signal."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class TransportError(ReportedError):
    """A status, outputs or log delivery to the control plane failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
