"""
API Module - Black Box Interface

Purpose: Wire models exchanged with the control plane
Interface: ExecutionConfig and its parts, Operation, RunStatus, Stream
Hidden: JSON field aliases, null handling
"""

from .models import (
    CallbackURLs,
    ExecutionConfig,
    Operation,
    RunStatus,
    SourceConfig,
    StateBackendConfig,
    Stream,
    Variable,
)

__all__ = [
    "CallbackURLs",
    "ExecutionConfig",
    "Operation",
    "RunStatus",
    "SourceConfig",
    "StateBackendConfig",
    "Stream",
    "Variable",
]
