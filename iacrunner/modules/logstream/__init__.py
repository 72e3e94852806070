"""
Logstream Module - Black Box Interface

Purpose: Turn raw subprocess output into ordered, batched log deliveries
Interface: LogStreamWriter.write(), flush(), close(); LogEntry; SequenceCounter
Hidden: Pipe-based line splitting, buffering, periodic flush thread

Writers sharing a SequenceCounter never assign the same sequence number.
"""

from .writer import (
    BATCH_SIZE,
    FLUSH_INTERVAL,
    MAX_LINE_LENGTH,
    TRUNCATION_MARKER,
    LogEntry,
    LogStreamWriter,
    LogTransport,
    SequenceCounter,
)

__all__ = [
    "BATCH_SIZE",
    "FLUSH_INTERVAL",
    "MAX_LINE_LENGTH",
    "TRUNCATION_MARKER",
    "LogEntry",
    "LogStreamWriter",
    "LogTransport",
    "SequenceCounter",
]
