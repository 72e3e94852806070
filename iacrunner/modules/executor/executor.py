"""
Terraform Executor - runs IaC tool subcommands as child processes.

Each invocation runs in the run's working directory with automation-mode
environment signaling. Output is echoed to this process's stdout/stderr
and, when log writers are attached, teed to them for remote streaming.

Child processes are bound to a CancellationToken: firing the token kills
the child's whole process group.
"""

import json
import logging
import os
import signal
import subprocess
import sys
import threading
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, List, Optional, Union

from iacrunner.errors import CancellationError, InitializationError, SubprocessError
from iacrunner.modules.api.models import Operation
from iacrunner.modules.cancel import CancellationToken

from .parsing import count_plan_changes, decode_plan, parse_summary_counts
from .result import ExecutionResult

logger = logging.getLogger("iacrunner.executor")

PLAN_FILE = "tfplan"
AUTOMATION_ENV = {"TF_IN_AUTOMATION": "1"}

_READ_SIZE = 64 * 1024


@dataclass
class Invocation:
    """Captured outcome of one child process."""

    args: List[str]
    exit_code: int
    stdout: str
    stderr: str


class TerraformExecutor:
    """Runs terraform commands in a working directory."""

    def __init__(
        self,
        tool_path: str,
        working_dir: str,
        host_stdout: Optional[BinaryIO] = None,
        host_stderr: Optional[BinaryIO] = None,
    ):
        """
        Initialize executor.

        Args:
            tool_path: Path to the tool binary
            working_dir: Directory the tool runs in
            host_stdout: Where to echo child stdout (default: this process's stdout)
            host_stderr: Where to echo child stderr (default: this process's stderr)
        """
        self.tool_path = tool_path
        self.working_dir = working_dir
        self.host_stdout = host_stdout
        self.host_stderr = host_stderr
        self.stdout_writer = None
        self.stderr_writer = None

    def set_log_writers(self, stdout, stderr) -> None:
        """Attach writers that receive copies of child stdout/stderr."""
        self.stdout_writer = stdout
        self.stderr_writer = stderr

    def init(self, token: CancellationToken) -> None:
        """
        Run `init`.

        Raises:
            InitializationError: If init exits non-zero
            CancellationError: If the token fires
        """
        invocation = self._invoke(token, ["init", "-input=false", "-no-color"])
        if invocation.exit_code != 0:
            raise InitializationError(
                f"terraform init failed: {invocation.stderr}",
                exit_code=invocation.exit_code,
                stderr=invocation.stderr,
            )

    def run(self, token: CancellationToken, operation: Union[Operation, str]) -> ExecutionResult:
        """
        Execute the given operation (plan, apply, destroy).

        Raises:
            SubprocessError: On a failing exit code; carries the partial result
            CancellationError: If the token fires
            ValueError: For an unsupported operation
        """
        operation = Operation(operation)

        if operation == Operation.PLAN:
            return self._plan(token)
        if operation == Operation.APPLY:
            return self._apply(token)
        return self._destroy(token)

    def _plan(self, token: CancellationToken) -> ExecutionResult:
        plan_file = os.path.join(self.working_dir, PLAN_FILE)

        invocation = self._invoke(
            token,
            ["plan", "-input=false", "-no-color", "-detailed-exitcode", f"-out={plan_file}"],
        )

        result = ExecutionResult(
            operation=Operation.PLAN,
            exit_code=invocation.exit_code,
            plan_text=invocation.stdout,
        )

        if os.path.exists(plan_file):
            plan_json = self._show_plan(token, plan_file)
            if plan_json is not None:
                result.plan_json = plan_json
                result.plan = decode_plan(plan_json)
                if result.plan is not None:
                    result.delta = count_plan_changes(result.plan)

        # Exit code 2 = changes present (not an error for plan)
        if invocation.exit_code not in (0, 2):
            raise self._failure(invocation, result)
        return result

    def _apply(self, token: CancellationToken) -> ExecutionResult:
        invocation = self._invoke(
            token, ["apply", "-input=false", "-no-color", "-auto-approve"]
        )

        result = ExecutionResult(
            operation=Operation.APPLY,
            exit_code=invocation.exit_code,
            delta=parse_summary_counts(invocation.stdout),
        )
        result.outputs = self._read_outputs(token)

        if invocation.exit_code != 0:
            raise self._failure(invocation, result)
        return result

    def _destroy(self, token: CancellationToken) -> ExecutionResult:
        invocation = self._invoke(
            token, ["destroy", "-input=false", "-no-color", "-auto-approve"]
        )

        result = ExecutionResult(
            operation=Operation.DESTROY,
            exit_code=invocation.exit_code,
            delta=parse_summary_counts(invocation.stdout),
        )

        if invocation.exit_code != 0:
            raise self._failure(invocation, result)
        return result

    def _show_plan(self, token: CancellationToken, plan_file: str) -> Optional[str]:
        """Structured plan via `show -json`; None when that step fails."""
        try:
            invocation = self._invoke(token, ["show", "-json", plan_file], tee=False)
        except SubprocessError as e:
            logger.warning(f"Could not render structured plan: {e}")
            return None
        if invocation.exit_code != 0:
            logger.warning(f"Could not render structured plan (exit {invocation.exit_code})")
            return None
        return invocation.stdout

    def _read_outputs(self, token: CancellationToken) -> Dict[str, Any]:
        """Output values via `output -json`; empty when that step fails."""
        try:
            invocation = self._invoke(token, ["output", "-json"], tee=False)
        except SubprocessError as e:
            logger.warning(f"Could not read outputs: {e}")
            return {}
        if invocation.exit_code != 0:
            logger.warning(f"Could not read outputs (exit {invocation.exit_code})")
            return {}

        try:
            outputs = json.loads(invocation.stdout)
        except ValueError as e:
            logger.warning(f"Could not decode outputs: {e}")
            return {}
        return outputs if isinstance(outputs, dict) else {}

    def _failure(self, invocation: Invocation, result: ExecutionResult) -> SubprocessError:
        subcommand = invocation.args[0]
        return SubprocessError(
            f"terraform {subcommand} exited {invocation.exit_code}: {invocation.stderr}",
            exit_code=invocation.exit_code,
            stderr=invocation.stderr,
            result=result,
        )

    def _invoke(self, token: CancellationToken, args: List[str], tee: bool = True) -> Invocation:
        """
        Run the tool with args and wait for it.

        With tee, output is echoed to the host streams and attached writers;
        without, it is only captured.
        """
        token.raise_if_cancelled(f"terraform {args[0]}")

        cmd = [self.tool_path] + args
        env = {**os.environ, **AUTOMATION_ENV}

        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                cwd=self.working_dir,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise SubprocessError(f"starting terraform {args[0]}: {e}", exit_code=-1) from e

        def kill() -> None:
            self._kill(process)

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        pumps = [
            threading.Thread(
                target=self._pump,
                args=(
                    process.stdout,
                    stdout_chunks,
                    self._host("stdout") if tee else None,
                    self.stdout_writer if tee else None,
                ),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(
                    process.stderr,
                    stderr_chunks,
                    self._host("stderr") if tee else None,
                    self.stderr_writer if tee else None,
                ),
                daemon=True,
            ),
        ]

        token.add_callback(kill)
        try:
            for pump in pumps:
                pump.start()
            exit_code = process.wait()
            for pump in pumps:
                pump.join()
        finally:
            token.remove_callback(kill)

        if token.cancelled:
            raise CancellationError(
                f"terraform {args[0]} aborted ({token.reason})", reason=token.reason
            )

        return Invocation(
            args=args,
            exit_code=exit_code,
            stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        )

    def _host(self, name: str) -> BinaryIO:
        """Resolve the host stream at call time (tests swap sys.stdout)."""
        configured = self.host_stdout if name == "stdout" else self.host_stderr
        if configured is not None:
            return configured
        stream = sys.stdout if name == "stdout" else sys.stderr
        return getattr(stream, "buffer", stream)

    @staticmethod
    def _pump(pipe, capture: List[bytes], host, writer) -> None:
        """Copy a child pipe to the capture list, host stream and writer."""
        with pipe:
            for chunk in iter(lambda: pipe.read1(_READ_SIZE), b""):
                capture.append(chunk)
                if host is not None:
                    try:
                        host.write(chunk)
                        host.flush()
                    except TypeError:
                        # Text-only stream
                        host.write(chunk.decode("utf-8", errors="replace"))
                        host.flush()
                if writer is not None:
                    writer.write(chunk)

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        """Kill the child and everything it spawned."""
        logger.info(f"Terminating child process {process.pid}")
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
