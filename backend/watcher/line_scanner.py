"""
Restamp Compiler Output Scanner.

Reassembles compiler output into lines and detects build completion.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Callable, Iterator, Sequence
from typing import Any, BinaryIO

from utils.logger import LoggerMixin

READ_CHUNK_SIZE = 64 * 1024


class LineBuffer(LoggerMixin):
    """
    Accumulates raw bytes and yields complete lines.

    Lines are split on ``\\n``; a trailing ``\\r`` is stripped. Bytes after
    the last newline stay buffered until more data arrives and are
    dropped by ``close()``.
    """

    def __init__(self, max_line_bytes: int | None = None) -> None:
        """
        Initialize the buffer.

        Args:
            max_line_bytes: Optional cap on an unterminated line. When
                exceeded, the fragment is discarded and scanning resumes
                after the next newline.
        """
        self._buf = bytearray()
        self._max_line_bytes = max_line_bytes
        self._skipping = False

    def feed(self, chunk: bytes) -> Iterator[str]:
        """
        Add a chunk and yield every line it completes.

        Args:
            chunk: Raw bytes from the stream

        Yields:
            Decoded lines without terminators
        """
        self._buf += chunk
        while True:
            idx = self._buf.find(b"\n")
            if idx == -1:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            if self._skipping:
                # Tail end of an oversized line
                self._skipping = False
                continue
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            yield raw.decode("utf-8", errors="replace")

        if self._max_line_bytes is not None and len(self._buf) > self._max_line_bytes:
            self.log.warning("line_buffer_overflow", dropped_bytes=len(self._buf))
            self._buf.clear()
            self._skipping = True

    def close(self) -> int:
        """
        Discard any unterminated content.

        Returns:
            Number of bytes dropped
        """
        dropped = len(self._buf)
        self._buf.clear()
        self._skipping = False
        return dropped

    @property
    def pending_bytes(self) -> int:
        return len(self._buf)


class CompilerOutputScanner(LoggerMixin):
    """
    Passes compiler output through and reports completion lines.

    One scanner is attached per compiler stream. Every chunk is written
    to ``sink`` unmodified before it is scanned, so the developer sees
    output live.
    """

    def __init__(
        self,
        sink: BinaryIO,
        markers: Sequence[str],
        on_completion: Callable[[], Any],
        max_line_bytes: int | None = None,
        name: str = "stdout",
    ) -> None:
        """
        Initialize the scanner.

        Args:
            sink: Binary stream receiving passed-through output
            markers: Substrings identifying a completion line
            on_completion: Called once per completion line
            max_line_bytes: Optional line length cap
            name: Stream name for log context
        """
        self._sink = sink
        self._markers = tuple(markers)
        self._on_completion = on_completion
        self._buffer = LineBuffer(max_line_bytes=max_line_bytes)
        self._name = name
        self._completions = 0

    def is_completion(self, line: str) -> bool:
        """Check whether a line signals a finished build."""
        return any(marker in line for marker in self._markers)

    def feed(self, chunk: bytes) -> None:
        """Pass a chunk through and classify the lines it completes."""
        self._sink.write(chunk)
        self._sink.flush()

        for line in self._buffer.feed(chunk):
            if self.is_completion(line):
                self._completions += 1
                self.log.debug("build_completion_seen", stream=self._name, line=line)
                self._on_completion()

    def close(self) -> None:
        dropped = self._buffer.close()
        if dropped:
            self.log.debug("partial_line_dropped", stream=self._name, bytes=dropped)

    async def pump(self, reader: asyncio.StreamReader) -> None:
        """
        Read a stream until EOF, feeding every chunk.

        Args:
            reader: Child process output stream
        """
        try:
            while True:
                chunk = await reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self.feed(chunk)
        finally:
            self.close()

    @property
    def completions(self) -> int:
        """Number of completion lines seen."""
        return self._completions
