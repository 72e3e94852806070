"""
iacrunner - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration (.env, environment, flags)
2. Wires SIGINT/SIGTERM to the root cancellation token
3. Hands the run to the orchestrator (managed) or run_local (local)

All business logic is in the modules, following black box principles.
"""

import logging
import signal
import sys
from contextlib import contextmanager
from typing import Iterator

import click
from dotenv import load_dotenv

from iacrunner import __version__
from iacrunner.config.provider import ConfigProvider, EnvConfigProvider, LocalConfig, ManagedConfig
from iacrunner.errors import RunnerError
from iacrunner.logging_config import configure_logging
from iacrunner.modules.api.models import Operation
from iacrunner.modules.cancel import SIGNAL, CancellationToken
from iacrunner.modules.runner import RunOrchestrator, run_local

logger = logging.getLogger("iacrunner.main")


@contextmanager
def signal_cancellation(token: CancellationToken) -> Iterator[CancellationToken]:
    """Fire token on SIGINT/SIGTERM while the block runs."""

    def handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown")
        token.cancel(SIGNAL)

    previous = {sig: signal.signal(sig, handle) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@click.group()
@click.version_option(__version__, prog_name="iacrunner")
def cli():
    """Runs infrastructure-as-code operations on behalf of a control plane."""


@cli.command("exec")
@click.option("--api-url", envvar="RUNNER_API_URL", default="", help="Control plane base URL")
@click.option("--run-id", envvar="RUNNER_RUN_ID", default="", help="Run identifier")
@click.option("--token", envvar="RUNNER_TOKEN", default="", help="Bearer token for the run")
@click.option("--local", "local", is_flag=True, help="Run without a control plane")
@click.option("--working-dir", default=".", show_default=True, help="Local mode working directory")
@click.option(
    "--operation",
    type=click.Choice([op.value for op in Operation]),
    default=Operation.PLAN.value,
    show_default=True,
    help="Local mode operation",
)
@click.option("--tf-version", default="", help="Local mode terraform version")
@click.option("--log-level", envvar="LOG_LEVEL", default="INFO", show_default=True)
def exec_command(
    api_url: str,
    run_id: str,
    token: str,
    local: bool,
    working_dir: str,
    operation: str,
    tf_version: str,
    log_level: str,
):
    """Execute one run."""
    provider: ConfigProvider = EnvConfigProvider()
    try:
        settings = provider.get_runner_settings()
    except ValueError as e:
        raise click.UsageError(f"invalid runner setting: {e}")
    settings.log_level = log_level

    configure_logging(log_level)

    if not local:
        managed = ManagedConfig(api_url=api_url.rstrip("/"), run_id=run_id, token=token)
        missing = managed.missing()
        if missing:
            flags = ", ".join(f"--{name.replace('_', '-')}" for name in missing)
            raise click.UsageError(f"managed mode requires {flags} (or --local)")

    with signal_cancellation(CancellationToken()) as root:
        try:
            if local:
                run_local(
                    LocalConfig(working_dir=working_dir, operation=operation, tool_version=tf_version),
                    settings=settings,
                    token=root,
                )
            else:
                RunOrchestrator(managed, settings=settings, token=root).run()
        except RunnerError as e:
            logger.error(f"Run failed: {e}")
            sys.exit(1)
        except Exception as e:
            logger.exception(f"Run failed unexpectedly: {e}")
            sys.exit(1)


def main():
    """Console script entry point."""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
