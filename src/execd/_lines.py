"""Newline framing for chunked byte streams.

Pipes deliver output in arbitrarily sized chunks; a record can be split
across any number of reads. LineSplitter buffers the tail of each chunk
until its terminating newline arrives.
"""

from typing import final

import anyio

# Exceptions a stream raises once it can produce no more data. Reads that
# fail with one of these end a read loop without reporting an error.
STREAM_CLOSED_ERRORS = (
    anyio.EndOfStream,
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
)


@final
class LineSplitter:
    """Reassembles newline-terminated records from byte chunks.

    Records are returned with their trailing ``\\n``. Bytes after the
    last newline are held until more data arrives or ``flush`` is called.

    Example:
        >>> splitter = LineSplitter()
        >>> splitter.feed(b"cpu v=1\\ncpu v")
        [b'cpu v=1\\n']
        >>> splitter.feed(b"=2\\n")
        [b'cpu v=2\\n']
    """

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> int:
        """Return the number of buffered bytes without a terminating newline."""
        return len(self._pending)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add a chunk and return every record it completes.

        Args:
            chunk: Bytes read from the stream.

        Returns:
            Complete records, in stream order, each ending with a newline.
        """
        # Only the new chunk can contain a newline
        search_from = len(self._pending)
        self._pending.extend(chunk)

        records: list[bytes] = []
        start = 0
        end = self._pending.find(b"\n", search_from)
        while end != -1:
            records.append(bytes(self._pending[start : end + 1]))
            start = end + 1
            end = self._pending.find(b"\n", start)

        if start:
            del self._pending[:start]
        return records

    def flush(self) -> bytes:
        """Return and clear any buffered unterminated bytes."""
        rest = bytes(self._pending)
        self._pending.clear()
        return rest
