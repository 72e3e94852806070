"""
Log stream writer.

A file-like sink for raw subprocess output. Bytes written to it are split
into lines on a background reader thread, tagged with globally ordered
sequence numbers and buffered; a background flush thread periodically
drains the buffer and ships it to the control plane in bounded batches.

The buffer lock is held only to append or swap, never across a network
call, so producers are never blocked on the collector.
"""

import logging
import os
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol

from iacrunner.errors import TransportError

logger = logging.getLogger("iacrunner.logstream")

MAX_LINE_LENGTH = 4096
TRUNCATION_MARKER = "... (truncated)"
BATCH_SIZE = 100
FLUSH_INTERVAL = 2.0


@dataclass
class LogEntry:
    """One captured line of output."""

    sequence: int
    stream: str
    content: str

    def truncated(self, max_length: int = MAX_LINE_LENGTH) -> "LogEntry":
        """Copy with content capped at max_length plus the marker."""
        if len(self.content) <= max_length:
            return self
        return LogEntry(
            sequence=self.sequence,
            stream=self.stream,
            content=self.content[:max_length] + TRUNCATION_MARKER,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class LogTransport(Protocol):
    """Anything that can deliver a batch of log entries."""

    def send_logs(self, entries: List[LogEntry]) -> None:
        """Deliver entries; raises TransportError on failure."""
        ...


class SequenceCounter:
    """Monotonic counter shareable between writers."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        """Last assigned number."""
        with self._lock:
            return self._value

    def next(self) -> int:
        """Assign the next number."""
        with self._lock:
            self._value += 1
            return self._value


class LogStreamWriter:
    """Buffers output lines and flushes them to a log transport periodically."""

    def __init__(
        self,
        transport: LogTransport,
        stream: str,
        flush_interval: float = FLUSH_INTERVAL,
        start_sequence: int = 0,
        counter: Optional[SequenceCounter] = None,
        max_line_length: int = MAX_LINE_LENGTH,
        batch_size: int = BATCH_SIZE,
    ):
        """
        Initialize writer and start its background threads.

        Args:
            transport: Log delivery target
            stream: Stream tag, "stdout" or "stderr"
            flush_interval: Seconds between periodic flushes
            start_sequence: First line gets start_sequence + 1
            counter: Shared counter; overrides start_sequence when given
            max_line_length: Longer lines are truncated at flush time
            batch_size: Max entries per transport call
        """
        self.transport = transport
        self.stream = stream
        self.flush_interval = flush_interval
        self.max_line_length = max_line_length
        self.batch_size = batch_size

        self._counter = counter if counter is not None else SequenceCounter(start_sequence)
        self._lock = threading.Lock()
        self._buffer: List[LogEntry] = []

        read_fd, write_fd = os.pipe()
        self._pipe_reader = os.fdopen(read_fd, "rb")
        self._pipe_writer = os.fdopen(write_fd, "wb")
        self._write_lock = threading.Lock()
        self._closed = False
        self._stop_flushing = threading.Event()

        self._reader_thread = threading.Thread(
            target=self._read_lines, name=f"logstream-{stream}-reader", daemon=True
        )
        self._flush_thread = threading.Thread(
            target=self._flush_loop, name=f"logstream-{stream}-flush", daemon=True
        )
        self._reader_thread.start()
        self._flush_thread.start()

    @property
    def counter(self) -> SequenceCounter:
        """Sequence counter, for chaining another writer onto this one."""
        return self._counter

    @property
    def sequence(self) -> int:
        """Last assigned sequence number."""
        return self._counter.value

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """Accept raw output bytes."""
        with self._write_lock:
            if self._closed:
                raise ValueError(f"write to closed log stream ({self.stream})")
            self._pipe_writer.write(data)
            self._pipe_writer.flush()
        return len(data)

    def pending(self) -> int:
        """Number of buffered, unflushed entries."""
        with self._lock:
            return len(self._buffer)

    def close(self) -> None:
        """
        Flush remaining logs and stop the background threads.

        Returns only after every line written before the call has been
        handed to the transport at least once.
        """
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            self._pipe_writer.close()

        self._reader_thread.join()  # wait for end of input
        self._stop_flushing.set()
        self._flush_thread.join()
        self.flush()

    def flush(self) -> int:
        """
        Ship all buffered entries.

        Returns:
            Number of entries attempted
        """
        with self._lock:
            if not self._buffer:
                return 0
            batch, self._buffer = self._buffer, []

        batch = [entry.truncated(self.max_line_length) for entry in batch]

        for start in range(0, len(batch), self.batch_size):
            chunk = batch[start:start + self.batch_size]
            try:
                self.transport.send_logs(chunk)
            except TransportError as e:
                logger.warning(
                    f"Failed to send logs: stream={self.stream} count={len(chunk)} error={e}"
                )

        if logger.isEnabledFor(logging.DEBUG):
            preview = " | ".join(entry.content for entry in batch[:3])
            logger.debug(
                f"Flushed logs: stream={self.stream} count={len(batch)} preview={preview}"
            )

        return len(batch)

    def _read_lines(self) -> None:
        """Split piped bytes into sequenced entries until end of input."""
        with self._pipe_reader:
            for raw in self._pipe_reader:
                line = raw.rstrip(b"\n")
                if line.endswith(b"\r"):
                    line = line[:-1]
                content = line.decode("utf-8", errors="replace")

                with self._lock:
                    self._buffer.append(
                        LogEntry(sequence=self._counter.next(), stream=self.stream, content=content)
                    )

    def _flush_loop(self) -> None:
        while not self._stop_flushing.wait(self.flush_interval):
            try:
                self.flush()
            except Exception as e:
                logger.error(f"Error flushing logs for {self.stream}: {e}")
