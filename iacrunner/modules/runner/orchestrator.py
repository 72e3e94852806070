"""
Run orchestrator.

Sequences one managed run:

    fetching-config -> resolving-tool -> preparing-source -> writing-inputs
    -> starting-watchers -> initializing -> executing -> reporting

and ends in succeeded, failed or cancelled. Every resource acquired along
the way is registered on an ExitStack, so cleanup runs in reverse order of
acquisition on every exit path:

    stderr log close -> stdout log close -> run scope end + watcher join
    -> tfvars secure delete -> env var unset -> source tree removal
"""

import logging
import os
from contextlib import ExitStack
from enum import Enum
from typing import Any, BinaryIO, Callable, Dict, List, Optional

import requests

from iacrunner.config.provider import LocalConfig, ManagedConfig, RunnerSettings
from iacrunner.errors import CancellationError, FatalError, TransportError
from iacrunner.logging_config import register_secret
from iacrunner.modules.api.models import ExecutionConfig, RunStatus, Stream, Variable
from iacrunner.modules.callback import CallbackClient, StatusDetails
from iacrunner.modules.cancel import RUN_FINISHED, CancellationToken, CancellationWatcher
from iacrunner.modules.config import fetch_config
from iacrunner.modules.executor import ExecutionResult, Run, TerraformExecutor
from iacrunner.modules.logstream import LogStreamWriter
from iacrunner.modules.source import prepare, remove_tree
from iacrunner.modules.terraform import (
    resolve_version,
    secure_delete,
    write_backend_override,
    write_tfvars,
)

logger = logging.getLogger("iacrunner.runner")


class RunPhase(str, Enum):
    """Lifecycle phase of a run."""

    FETCHING_CONFIG = "fetching-config"
    RESOLVING_TOOL = "resolving-tool"
    PREPARING_SOURCE = "preparing-source"
    WRITING_INPUTS = "writing-inputs"
    STARTING_WATCHERS = "starting-watchers"
    INITIALIZING = "initializing"
    EXECUTING = "executing"
    REPORTING = "reporting"
    # Terminal
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (RunPhase.SUCCEEDED, RunPhase.FAILED, RunPhase.CANCELLED)


class RunOrchestrator:
    """Executes one control-plane managed run."""

    def __init__(
        self,
        managed: ManagedConfig,
        settings: Optional[RunnerSettings] = None,
        token: Optional[CancellationToken] = None,
        session: Optional[requests.Session] = None,
        config_fetcher: Callable[..., ExecutionConfig] = fetch_config,
        tool_resolver: Callable[..., str] = resolve_version,
        source_preparer: Callable[..., Any] = prepare,
        host_stdout: Optional[BinaryIO] = None,
        host_stderr: Optional[BinaryIO] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            managed: Run identity (API URL, run ID, token)
            settings: Runner tunables
            token: Root cancellation token (fired on SIGINT/SIGTERM)
            session: Optional HTTP session shared by all control plane calls
            config_fetcher: Config Fetch collaborator
            tool_resolver: Tool Resolution collaborator
            source_preparer: Source Preparation collaborator
            host_stdout: Where to echo tool stdout
            host_stderr: Where to echo tool stderr
        """
        self.managed = managed
        self.settings = settings or RunnerSettings()
        self.token = token or CancellationToken()
        self.session = session
        self.config_fetcher = config_fetcher
        self.tool_resolver = tool_resolver
        self.source_preparer = source_preparer
        self.host_stdout = host_stdout
        self.host_stderr = host_stderr

        self.phase: Optional[RunPhase] = None
        self.failed_phase: Optional[RunPhase] = None
        self.config: Optional[ExecutionConfig] = None
        self.client: Optional[CallbackClient] = None
        self.record: Optional[Run] = None
        self.scope: Optional[CancellationToken] = None

    def run(self) -> ExecutionResult:
        """
        Execute the run end to end.

        Returns:
            The operation's ExecutionResult

        Raises:
            FatalError: After reporting failure upstream and cleaning up
        """
        register_secret(self.managed.token)

        try:
            self._transition(RunPhase.FETCHING_CONFIG)
            self.config = self.config_fetcher(
                self.managed.api_url,
                self.managed.run_id,
                self.managed.token,
                session=self.session,
                timeout=self.settings.http_timeout,
                verify=self.settings.verify,
            )
        except FatalError as e:
            # Nowhere to report yet: callbacks come from the config
            cancelled = isinstance(e, CancellationError)
            self._terminate(RunPhase.CANCELLED if cancelled else RunPhase.FAILED)
            logger.error(f"Run aborted before start: {e}")
            raise

        self.client = CallbackClient(
            self.managed.api_url,
            self.managed.token,
            self.config.callbacks,
            run_id=self.managed.run_id,
            session=self.session,
            timeout=self.settings.http_timeout,
            verify=self.settings.verify,
        )
        self._report(RunStatus.RUNNING)

        with ExitStack() as stack:
            try:
                result = self._execute(self.config, stack)
            except CancellationError as e:
                self._terminate(RunPhase.CANCELLED)
                logger.error(f"Run cancelled during {self.failed_phase.value}: {e}")
                self._report_failure(e)
                raise
            except FatalError as e:
                self._terminate(RunPhase.FAILED)
                logger.error(f"Run failed during {self.failed_phase.value}: {e}")
                self._report_failure(e)
                raise
            except Exception as e:
                self._terminate(RunPhase.FAILED)
                logger.exception(f"Unexpected error during {self.failed_phase.value}: {e}")
                self._report(RunStatus.FAILED, StatusDetails(exit_code=1))
                raise

        self._terminate(RunPhase.SUCCEEDED)
        logger.info(
            f"Run completed successfully: operation={result.operation.value} "
            f"exit_code={result.exit_code}"
        )
        return result

    def _execute(self, config: ExecutionConfig, stack: ExitStack) -> ExecutionResult:
        self._transition(RunPhase.RESOLVING_TOOL)
        tool_path = self.tool_resolver(
            config.terraform_version, cache_dir=self.settings.tool_cache_dir
        )

        self._transition(RunPhase.PREPARING_SOURCE)
        source = self.source_preparer(config.source)
        stack.callback(remove_tree, source.root)

        self._transition(RunPhase.WRITING_INPUTS)
        env_keys = self._set_env(config.env_vars)
        stack.callback(self._unset_env, env_keys)
        for variable in config.variables.values():
            if variable.sensitive:
                register_secret(variable.value)
        tfvars_path = write_tfvars(source.working_dir, config.variables, config.upstream_outputs)
        stack.callback(secure_delete, tfvars_path)
        write_backend_override(source.working_dir, config.state_backend)

        self.record = Run(
            operation=config.operation,
            working_dir=source.working_dir,
            tool_path=tool_path,
            run_id=self.managed.run_id,
        )

        self._transition(RunPhase.STARTING_WATCHERS)
        scope = self.scope = self.token.child()
        watcher = CancellationWatcher(
            self.managed.api_url,
            self.managed.run_id,
            self.managed.token,
            poll_interval=self.settings.cancel_poll_interval,
            session=self.session,
            verify=self.settings.verify,
        )
        watcher_thread = watcher.start(scope)
        stack.callback(watcher_thread.join)
        stack.callback(scope.cancel, RUN_FINISHED)

        stdout_log = self._log_writer(Stream.STDOUT)
        stack.callback(stdout_log.close)
        stderr_log = self._log_writer(Stream.STDERR, counter=stdout_log.counter)
        stack.callback(stderr_log.close)

        executor = TerraformExecutor(
            tool_path, source.working_dir, host_stdout=self.host_stdout, host_stderr=self.host_stderr
        )
        executor.set_log_writers(stdout_log, stderr_log)

        self._transition(RunPhase.INITIALIZING)
        logger.info("Running terraform init")
        executor.init(scope)

        self._transition(RunPhase.EXECUTING)
        logger.info(f"Running terraform {config.operation.value}")
        result = executor.run(scope, config.operation)

        self._transition(RunPhase.REPORTING, check_cancelled=False)
        self._report(RunStatus.SUCCEEDED, StatusDetails.from_result(result))
        if result.outputs:
            self._report_outputs(result.outputs)

        return result

    def _log_writer(self, stream: Stream, counter=None) -> LogStreamWriter:
        return LogStreamWriter(
            self.client,
            stream.value,
            flush_interval=self.settings.log_flush_interval,
            counter=counter,
            max_line_length=self.settings.max_log_line_length,
            batch_size=self.settings.log_batch_size,
        )

    def _transition(self, phase: RunPhase, check_cancelled: bool = True) -> None:
        if check_cancelled:
            (self.scope or self.token).raise_if_cancelled(phase.value)
        logger.info(f"Run phase: {phase.value}")
        self.phase = phase

    def _terminate(self, phase: RunPhase) -> None:
        self.failed_phase = self.phase if phase != RunPhase.SUCCEEDED else None
        self.phase = phase

    def _report(self, status: RunStatus, details: Optional[StatusDetails] = None) -> None:
        """Best-effort status report."""
        try:
            self.client.report_status(status, details)
        except TransportError as e:
            logger.warning(f"Failed to report {status.value} status: {e}")

    def _report_outputs(self, outputs: Dict[str, Any]) -> None:
        """Best-effort outputs report."""
        try:
            self.client.report_outputs(outputs)
        except TransportError as e:
            logger.warning(f"Failed to report outputs: {e}")

    def _report_failure(self, error: FatalError) -> None:
        reason = RunStatus.CANCELLED.value if isinstance(error, CancellationError) else None
        exit_code = getattr(error, "exit_code", 1)
        if exit_code <= 0:
            exit_code = 1

        result = getattr(error, "result", None)
        if result is not None:
            details = StatusDetails.from_result(result, reason=reason)
            details.exit_code = exit_code
        else:
            details = StatusDetails(exit_code=exit_code, reason=reason)

        self._report(RunStatus.FAILED, details)

    @staticmethod
    def _set_env(env_vars: Dict[str, Variable]) -> List[str]:
        """Export string-valued env vars for the tool; returns the keys set."""
        keys = []
        for key, variable in env_vars.items():
            if not isinstance(variable.value, str):
                logger.warning(f"Skipping env var {key}: value is not a string")
                continue
            register_secret(variable.value)
            try:
                os.environ[key] = variable.value
            except (ValueError, OSError) as e:
                logger.warning(f"Skipping env var {key}: {e}")
                continue
            keys.append(key)

        if keys:
            logger.info(f"Env vars set for terraform: count={len(keys)} keys={keys}")
        return keys

    @staticmethod
    def _unset_env(keys: List[str]) -> None:
        for key in keys:
            os.environ.pop(key, None)


def run_local(
    local: LocalConfig,
    settings: Optional[RunnerSettings] = None,
    token: Optional[CancellationToken] = None,
    tool_resolver: Callable[..., str] = resolve_version,
    host_stdout: Optional[BinaryIO] = None,
    host_stderr: Optional[BinaryIO] = None,
) -> ExecutionResult:
    """
    Execute a local run without the control plane.

    Raises:
        FatalError: Directly, with the tool's stderr attached for subprocess failures
    """
    settings = settings or RunnerSettings()
    token = token or CancellationToken()

    logger.info(
        f"Running in local mode: working_dir={local.working_dir} operation={local.operation}"
    )

    tool_path = tool_resolver(local.tool_version, cache_dir=settings.tool_cache_dir)
    working_dir = os.path.abspath(local.working_dir)

    executor = TerraformExecutor(
        tool_path, working_dir, host_stdout=host_stdout, host_stderr=host_stderr
    )

    logger.info("Running terraform init")
    executor.init(token)

    result = executor.run(token, local.operation)

    logger.info(
        f"Local run completed: operation={result.operation.value} "
        f"exit_code={result.exit_code} "
        f"resources_to_add={result.delta.add} "
        f"resources_to_change={result.delta.change} "
        f"resources_to_destroy={result.delta.destroy}"
    )
    return result
