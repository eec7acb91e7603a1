"""Readers that turn process output streams into metrics and log lines.

This module provides the three read loops attached to a supervised
process:
- BatchLineReader: newline-framed stdout parsed one record at a time
- StreamingReader: stdout decoded continuously by a self-framing parser
- StderrRouter: stderr lines routed to log levels by severity prefix

decode_mode() picks between the two stdout readers for a parser.

A read failure is reported once and ends the loop. End of stream, or a
stream closed under the reader, ends the loop without an error. In
batch mode every parser failure is reported and the next record is
read. The streaming decoder continues past a ParseError but stops on
any other error.
"""

from collections.abc import Callable
from typing import final

import orjson
from anyio.abc import ByteReceiveStream

from execd._lines import STREAM_CLOSED_ERRORS, LineSplitter
from execd._models import DecodeMode, Metric
from execd._once import NO_METRICS_CREATED_MSG, NO_METRICS_NOTICE, OnceGuard
from execd._protocol import Accumulator, LogSink, Parser, StreamingParser
from execd.config import DEFAULT_BUFFER_SIZE
from execd.exceptions import ParseError, StreamDecodeError, StreamReadError

# Chunk size for stderr reads. Lines longer than this are reassembled,
# so it does not limit line length.
_STDERR_CHUNK_SIZE = 64 * 1024


def decode_mode(parser: Parser) -> DecodeMode:
    """Determine how stdout should be decoded for a parser.

    Args:
        parser: The configured parser.

    Returns:
        DecodeMode.STREAMING if the parser implements the StreamingParser
        capability, DecodeMode.BATCH otherwise.
    """
    if isinstance(parser, StreamingParser):
        return DecodeMode.STREAMING
    return DecodeMode.BATCH


@final
class BatchLineReader:
    """Reads stdout in chunks and parses each newline-terminated record.

    Records split across reads are reassembled before parsing. An
    unterminated fragment left when the stream ends is dropped.
    """

    __slots__ = ("_accumulator", "_buffer_size", "_log", "_notice", "_parser")

    def __init__(
        self,
        parser: Parser,
        accumulator: Accumulator,
        log: LogSink,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        notice: OnceGuard = NO_METRICS_NOTICE,
    ) -> None:
        """Initialize the reader.

        Args:
            parser: Parser applied to each record.
            accumulator: Destination for metrics and errors.
            log: Log sink for diagnostics.
            buffer_size: Maximum bytes requested per read.
            notice: Guard for the one-time "no metrics" notice.
        """
        self._parser = parser
        self._accumulator = accumulator
        self._log = log
        self._buffer_size = buffer_size
        self._notice = notice

    async def read(self, stream: ByteReceiveStream) -> None:
        """Consume the stream until it ends or fails.

        Args:
            stream: The process stdout stream.
        """
        splitter = LineSplitter()

        while True:
            try:
                chunk = await stream.receive(self._buffer_size)
            except STREAM_CLOSED_ERRORS:
                break
            except Exception as e:  # noqa: BLE001
                self._accumulator.add_error(
                    StreamReadError(
                        f"error reading stdout: {e}", stream="stdout", cause=e
                    )
                )
                return

            for record in splitter.feed(chunk):
                self._handle_record(record)

        if splitter.pending:
            self._log.debug(
                f"Discarded {splitter.pending} bytes of unterminated stdout output"
            )

    def _handle_record(self, record: bytes) -> None:
        """Parse one record and forward its metrics.

        Parser failures of any kind are reported and the record counts
        as having produced no metrics.

        Args:
            record: A newline-terminated record.
        """
        metrics: list[Metric] = []
        try:
            metrics = self._parser.parse(record)
        except ParseError as e:
            self._accumulator.add_error(e)
        except Exception as e:  # noqa: BLE001
            self._accumulator.add_error(
                StreamDecodeError(
                    f"error parsing stdout: {e}", stream="stdout", cause=e
                )
            )

        if not metrics and self._notice.claim():
            self._log.debug(NO_METRICS_CREATED_MSG)

        for metric in metrics:
            self._accumulator.add_metric(metric)


@final
class StreamingReader:
    """Reads stdout through a parser's own continuous decoder."""

    __slots__ = ("_accumulator", "_parser")

    def __init__(self, parser: StreamingParser, accumulator: Accumulator) -> None:
        """Initialize the reader.

        Args:
            parser: A parser with the streaming capability.
            accumulator: Destination for metrics and errors.
        """
        self._parser = parser
        self._accumulator = accumulator

    async def read(self, stream: ByteReceiveStream) -> None:
        """Decode metrics until the decoder reports end of stream.

        Args:
            stream: The process stdout stream.
        """
        decoder = self._parser.stream_decoder(stream)

        while True:
            try:
                metric = await decoder.next()
            except STREAM_CLOSED_ERRORS:
                return
            except ParseError as e:
                self._accumulator.add_error(e)
                continue
            except Exception as e:  # noqa: BLE001
                self._accumulator.add_error(
                    StreamDecodeError(
                        f"error decoding stdout: {e}", stream="stdout", cause=e
                    )
                )
                return

            self._accumulator.add_metric(metric)


def _quote(text: str) -> str:
    """Return text as a double-quoted string with escapes."""
    return orjson.dumps(text).decode()


@final
class StderrRouter:
    """Routes stderr lines to log levels by their severity prefix.

    A line starting with ``E! ``, ``W! ``, ``I! ``, ``D! `` or ``T! `` is
    logged at error, warning, info, debug or trace level without the
    prefix. Any other line is logged at error level as
    ``stderr: "<line>"``.
    """

    __slots__ = ("_accumulator", "_handlers", "_log")

    def __init__(self, accumulator: Accumulator, log: LogSink) -> None:
        """Initialize the router.

        Args:
            accumulator: Destination for read errors.
            log: Log sink receiving the routed lines.
        """
        self._accumulator = accumulator
        self._log = log
        self._handlers: dict[str, Callable[[str], None]] = {
            "E! ": log.error,
            "W! ": log.warning,
            "I! ": log.info,
            "D! ": log.debug,
            "T! ": log.trace,
        }

    def route(self, line: str) -> None:
        """Log a single stderr line.

        Args:
            line: The line without its line terminator.
        """
        handler = self._handlers.get(line[:3])
        if handler is not None:
            handler(line[3:])
        else:
            self._log.error(f"stderr: {_quote(line)}")

    async def read(self, stream: ByteReceiveStream) -> None:
        """Route every line of the stream until it ends or fails.

        A final line without a terminating newline is still routed.

        Args:
            stream: The process stderr stream.
        """
        splitter = LineSplitter()

        while True:
            try:
                chunk = await stream.receive(_STDERR_CHUNK_SIZE)
            except STREAM_CLOSED_ERRORS:
                break
            except Exception as e:  # noqa: BLE001
                self._accumulator.add_error(
                    StreamReadError(
                        f"error reading stderr: {e}", stream="stderr", cause=e
                    )
                )
                return

            for record in splitter.feed(chunk):
                self.route(_decode_line(record))

        rest = splitter.flush()
        if rest:
            self.route(_decode_line(rest))


def _decode_line(record: bytes) -> str:
    """Decode a stderr record, dropping its line terminator."""
    line = record.removesuffix(b"\n").removesuffix(b"\r")
    return line.decode(errors="backslashreplace")
