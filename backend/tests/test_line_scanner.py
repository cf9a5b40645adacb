"""
Tests for Compiler Output Scanning.

Requires Python 3.11+.
"""

import asyncio
import io

import pytest

from watcher.line_scanner import CompilerOutputScanner, LineBuffer

MARKERS = ["Build complete", "Rebuilt in"]


class TestLineBuffer:
    """Test cases for LineBuffer."""

    def test_partial_line_is_held(self):
        """Test that bytes without a newline are not emitted."""
        buf = LineBuffer()

        assert list(buf.feed(b"abc")) == []
        assert buf.pending_bytes == 3

        assert list(buf.feed(b"def\nxy")) == ["abcdef"]
        assert buf.pending_bytes == 2

    def test_multiple_lines_in_one_chunk(self):
        buf = LineBuffer()
        assert list(buf.feed(b"one\ntwo\n\nthree\n")) == ["one", "two", "", "three"]

    def test_carriage_return_stripped(self):
        """Test CRLF terminated lines."""
        buf = LineBuffer()
        assert list(buf.feed(b"windows\r\nline\r")) == ["windows"]
        # A lone \r is only stripped once the \n arrives
        assert list(buf.feed(b"\n")) == ["line"]

    def test_multibyte_character_split(self):
        """Test that a UTF-8 sequence split across chunks decodes intact."""
        data = "Build complete – ✓\n".encode("utf-8")
        split = data.index("✓".encode("utf-8")) + 1

        buf = LineBuffer()
        assert list(buf.feed(data[:split])) == []
        assert list(buf.feed(data[split:])) == ["Build complete – ✓"]

    def test_close_drops_trailing_fragment(self):
        buf = LineBuffer()
        list(buf.feed(b"done\nunterminated"))

        assert buf.close() == len(b"unterminated")
        assert buf.pending_bytes == 0

    def test_oversized_line_is_skipped(self):
        """Test the optional line length cap."""
        buf = LineBuffer(max_line_bytes=1024)

        assert list(buf.feed(b"x" * 2000)) == []
        assert buf.pending_bytes == 0

        assert list(buf.feed(b"x" * 10 + b"\nnext\n")) == ["next"]

    def test_uncapped_buffer_grows(self):
        buf = LineBuffer()
        list(buf.feed(b"y" * 100_000))
        assert buf.pending_bytes == 100_000


class TestCompilerOutputScanner:
    """Test cases for CompilerOutputScanner."""

    @pytest.fixture
    def sink(self) -> io.BytesIO:
        return io.BytesIO()

    def make_scanner(self, sink: io.BytesIO, hits: list[int]) -> CompilerOutputScanner:
        return CompilerOutputScanner(
            sink=sink,
            markers=MARKERS,
            on_completion=lambda: hits.append(1),
        )

    def test_is_completion(self, sink: io.BytesIO):
        scanner = self.make_scanner(sink, [])

        assert scanner.is_completion("[tsdown] Build complete in 812ms")
        assert scanner.is_completion("Rebuilt in 43ms.")
        assert not scanner.is_completion("Build started")
        assert not scanner.is_completion("")

    def test_output_passed_through_unmodified(self, sink: io.BytesIO):
        """Test that every byte reaches the sink, including partial lines."""
        scanner = self.make_scanner(sink, [])
        scanner.feed(b"compiling\r\n")
        scanner.feed(b"half a li")

        assert sink.getvalue() == b"compiling\r\nhalf a li"

    def test_split_completion_line_counted_once(self):
        """Test every possible chunk boundary through a completion line."""
        data = b"noise\n[tsdown] Build complete in 12ms\r\nmore noise\n"

        for i in range(1, len(data)):
            sink = io.BytesIO()
            hits: list[int] = []
            scanner = self.make_scanner(sink, hits)

            scanner.feed(data[:i])
            scanner.feed(data[i:])

            assert len(hits) == 1, f"split at {i}"
            assert sink.getvalue() == data

    def test_partial_line_never_classified(self, sink: io.BytesIO):
        hits: list[int] = []
        scanner = self.make_scanner(sink, hits)

        scanner.feed(b"Build complete")
        assert hits == []

        scanner.close()
        assert hits == []
        assert scanner.completions == 0

    def test_one_notification_per_completion_line(self, sink: io.BytesIO):
        hits: list[int] = []
        scanner = self.make_scanner(sink, hits)

        scanner.feed(b"Build complete (esm)\nBuild complete (cjs)\nwatching...\nRebuilt in 5ms\n")

        assert len(hits) == 3
        assert scanner.completions == 3

    @pytest.mark.asyncio
    async def test_pump_reads_until_eof(self, sink: io.BytesIO):
        """Test draining an asyncio stream."""
        hits: list[int] = []
        scanner = self.make_scanner(sink, hits)

        reader = asyncio.StreamReader()
        reader.feed_data(b"Build comp")
        reader.feed_data(b"lete\ntrailing")
        reader.feed_eof()

        await scanner.pump(reader)

        assert len(hits) == 1
        assert sink.getvalue() == b"Build complete\ntrailing"
