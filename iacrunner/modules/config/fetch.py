"""Remote execution config fetch."""

import logging
from typing import Optional, Union

import requests
from pydantic import ValidationError

from iacrunner.errors import ConfigError
from iacrunner.modules.api.models import ExecutionConfig
from iacrunner.modules.callback import build_session

logger = logging.getLogger("iacrunner.config")


def config_url(api_url: str, run_id: str) -> str:
    """URL of a run's execution config."""
    return f"{api_url.rstrip('/')}/v1/ci/module-runs/{run_id}/config"


def fetch_config(
    api_url: str,
    run_id: str,
    token: str,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
    verify: Union[bool, str] = True,
) -> ExecutionConfig:
    """
    Retrieve the execution config for a run.

    Args:
        api_url: Control plane base URL
        run_id: Run identifier
        token: Bearer token
        session: Optional pre-built session
        timeout: Request timeout in seconds
        verify: TLS verification setting

    Returns:
        Decoded ExecutionConfig

    Raises:
        ConfigError: On network failure, non-200 response or undecodable body
    """
    url = config_url(api_url, run_id)
    session = session or build_session(token, verify)

    logger.info(f"Fetching execution config: url={url} run_id={run_id}")

    try:
        response = session.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise ConfigError(f"fetching config: {e}") from e

    if response.status_code != 200:
        raise ConfigError(f"config endpoint returned {response.status_code}: {response.text}")

    try:
        config = ExecutionConfig.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"decoding config: {e}") from e

    # Metadata only - never log variable values
    logger.info(
        f"Execution config received: run_id={config.run_id} "
        f"operation={config.operation.value} "
        f"terraform_version={config.terraform_version or 'default'} "
        f"source_type={config.source.type} "
        f"variable_count={len(config.variables)}"
    )

    return config
