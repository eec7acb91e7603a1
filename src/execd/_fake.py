"""Fakes for testing code that consumes process streams.

This module provides in-memory stand-ins for a process output stream and
a log sink, so readers can be exercised without spawning processes.
"""

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

import anyio
from anyio.abc import ByteReceiveStream
from anyio.lowlevel import checkpoint


class FakeByteStream(ByteReceiveStream):
    """Byte stream that replays predefined chunks.

    Each ``receive`` call returns the next chunk, truncated to
    ``max_bytes`` with the remainder served by the following call. Once
    the chunks run out the stream raises ``error`` if one was given,
    then ``anyio.EndOfStream``.

    Example:
        >>> stream = FakeByteStream([b"cpu v=1\\n", b"cpu v=2\\n"])
        >>> stream.receive_calls
        0
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        error: Exception | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            chunks: Chunks to replay, in order.
            error: Exception raised once, after the last chunk.
        """
        self._chunks: deque[bytes] = deque(chunk for chunk in chunks if chunk)
        self._error = error
        self._closed = False
        self.receive_calls = 0

    async def receive(self, max_bytes: int = 65536) -> bytes:
        self.receive_calls += 1
        await checkpoint()

        if self._closed:
            raise anyio.ClosedResourceError

        if self._chunks:
            chunk = self._chunks.popleft()
            if len(chunk) > max_bytes:
                self._chunks.appendleft(chunk[max_bytes:])
                chunk = chunk[:max_bytes]
            return chunk

        if self._error is not None:
            error, self._error = self._error, None
            raise error

        raise anyio.EndOfStream

    async def aclose(self) -> None:
        self._closed = True


@dataclass(slots=True)
class RecordingLogger:
    """Log sink that records every message with its level.

    Example:
        >>> log = RecordingLogger()
        >>> log.warning("disk full")
        >>> log.records
        [('warning', 'disk full')]
    """

    records: list[tuple[str, str]] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.records.append(("error", message))

    def warning(self, message: str) -> None:
        self.records.append(("warning", message))

    def info(self, message: str) -> None:
        self.records.append(("info", message))

    def debug(self, message: str) -> None:
        self.records.append(("debug", message))

    def trace(self, message: str) -> None:
        self.records.append(("trace", message))

    def messages(self, level: str) -> list[str]:
        """Return the messages recorded at a level."""
        return [message for lvl, message in self.records if lvl == level]
