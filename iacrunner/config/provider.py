"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol, Union


@dataclass
class ManagedConfig:
    """Identity of a control-plane managed run."""
    api_url: str
    run_id: str
    token: str

    def missing(self) -> list:
        """Names of required values that are empty."""
        return [name for name in ("api_url", "run_id", "token") if not getattr(self, name)]


@dataclass
class LocalConfig:
    """Local mode configuration (no control plane)."""
    working_dir: str = "."
    operation: str = "plan"
    tool_version: str = ""


@dataclass
class RunnerSettings:
    """Tunables shared by every run."""
    log_level: str = "INFO"
    log_flush_interval: float = 2.0
    cancel_poll_interval: float = 30.0
    max_log_line_length: int = 4096
    log_batch_size: int = 100
    tool_cache_dir: Optional[str] = None
    http_timeout: float = 30.0
    verify_ssl: bool = True
    ca_cert_path: Optional[str] = None

    @property
    def verify(self) -> Union[bool, str]:
        """TLS verification setting for requests."""
        return self.ca_cert_path if self.ca_cert_path else self.verify_ssl


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_managed_config(self) -> ManagedConfig:
        """Get managed run identity."""
        ...

    def get_runner_settings(self) -> RunnerSettings:
        """Get runner tunables."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_managed_config(self) -> ManagedConfig:
        """Get managed run identity from environment variables."""
        return ManagedConfig(
            api_url=os.getenv("RUNNER_API_URL", "").rstrip("/"),
            run_id=os.getenv("RUNNER_RUN_ID", ""),
            token=os.getenv("RUNNER_TOKEN", ""),
        )

    def get_runner_settings(self) -> RunnerSettings:
        """Get runner tunables from environment variables."""
        return RunnerSettings(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_flush_interval=float(os.getenv("RUNNER_LOG_FLUSH_INTERVAL", "2")),
            cancel_poll_interval=float(os.getenv("RUNNER_CANCEL_POLL_INTERVAL", "30")),
            max_log_line_length=int(os.getenv("RUNNER_MAX_LOG_LINE", "4096")),
            log_batch_size=int(os.getenv("RUNNER_LOG_BATCH_SIZE", "100")),
            tool_cache_dir=os.getenv("RUNNER_TOOL_CACHE_DIR") or None,
            http_timeout=float(os.getenv("RUNNER_HTTP_TIMEOUT", "30")),
            verify_ssl=os.getenv("RUNNER_SSL_VERIFY", "true").lower() == "true",
            ca_cert_path=os.getenv("RUNNER_CA_CERT") or None,
        )
