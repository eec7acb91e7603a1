"""Protocol definitions for the execd core.

This module defines the interfaces that decouple the stream readers
from their collaborators:
- Accumulator: Destination for metrics and errors
- LogSink: Leveled logging destination
- Parser: Whole-record parser used in batch mode
- StreamingParser: Capability of parsers that frame their own records
- MetricDecoder: Continuous decoder over a byte stream
"""

from typing import Protocol, runtime_checkable

from anyio.abc import ByteReceiveStream

from ._models import Metric


@runtime_checkable
class Accumulator(Protocol):
    """Protocol for the metrics destination.

    Both methods may be called concurrently from several read loops and
    several execd instances; implementations must be safe under that.
    """

    def add_metric(self, metric: Metric) -> None:
        """Accept a parsed metric."""
        ...

    def add_error(self, error: BaseException) -> None:
        """Accept a non-fatal error raised while collecting."""
        ...


@runtime_checkable
class LogSink(Protocol):
    """Protocol for leveled logging.

    Each method takes a fully formatted message.
    """

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def debug(self, message: str) -> None: ...

    def trace(self, message: str) -> None: ...


@runtime_checkable
class Parser(Protocol):
    """Protocol for parsers that turn one buffered record into metrics."""

    def parse(self, data: bytes) -> list[Metric]:
        """Parse a record.

        Args:
            data: Raw record bytes, including any trailing newline.

        Returns:
            Zero or more metrics, in source order.

        Raises:
            ParseError: If the record is malformed.
        """
        ...


@runtime_checkable
class MetricDecoder(Protocol):
    """Protocol for continuous decoders over a byte stream."""

    async def next(self) -> Metric:
        """Decode the next metric from the stream.

        Raises:
            anyio.EndOfStream: When the stream is exhausted.
            ParseError: When a single record is malformed. The decoder
                stays usable and the next call moves past the record.
        """
        ...


@runtime_checkable
class StreamingParser(Parser, Protocol):
    """Capability protocol for parsers that frame their own records.

    Parsers implementing it are read with a MetricDecoder instead of
    newline splitting.
    """

    def stream_decoder(self, stream: ByteReceiveStream) -> MetricDecoder:
        """Create a decoder reading from the given stream."""
        ...
