"""
Logging configuration with secret redaction.
"""

import logging
import logging.config
import threading
from typing import Any, Dict, Set

REDACTED = "***"

_secrets: Set[str] = set()
_secrets_lock = threading.Lock()


def register_secret(value: Any) -> None:
    """Mask every later occurrence of value in log records."""
    if not isinstance(value, str) or not value:
        return
    with _secrets_lock:
        _secrets.add(value)


def clear_secrets() -> None:
    """Forget all registered secrets."""
    with _secrets_lock:
        _secrets.clear()


def redact(message: str) -> str:
    """Replace registered secret values in message."""
    with _secrets_lock:
        secrets = sorted(_secrets, key=len, reverse=True)
    for secret in secrets:
        message = message.replace(secret, REDACTED)
    return message


class SecretRedactionFilter(logging.Filter):
    """Filter that masks registered secrets in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Rewrite the record message with secrets masked."""
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True  # Never drop records


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with secret redaction."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "secret_redaction": {
                "()": SecretRedactionFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                # Tool output owns stdout
                "stream": "ext://sys.stderr",
                "filters": ["secret_redaction"]
            }
        },
        "loggers": {
            "iacrunner": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "urllib3": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
