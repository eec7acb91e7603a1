"""InfluxDB line protocol parser.

Parses records of the form::

    measurement[,tag=value...] field=value[,field=value...] [timestamp]

Spaces, commas and equals signs in names, tag keys and tag values are
escaped with a backslash. Field values are floats, integers with an ``i``
suffix, unsigned integers with a ``u`` suffix, booleans, or double-quoted
strings. The optional timestamp is an integer in nanoseconds.

LineProtocolParser implements the streaming capability: its decoder reads
the stream directly and frames lines itself.
"""

import math
import re
from collections import deque
from typing import final

import anyio
from anyio.abc import ByteReceiveStream

from execd._lines import STREAM_CLOSED_ERRORS, LineSplitter
from execd._models import FieldValue, Metric
from execd.exceptions import ParseError

_TRUE_VALUES = frozenset({"t", "T", "true", "True", "TRUE"})
_FALSE_VALUES = frozenset({"f", "F", "false", "False", "FALSE"})

_DECODER_CHUNK_SIZE = 64 * 1024

_INTEGER = re.compile(r"-?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")
_FLOAT = re.compile(r"-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1


def _split_unescaped(text: str, sep: str, *, quotes: bool = False) -> list[str]:
    """Split text on a separator that is not escaped or quoted.

    Escape sequences are kept in the returned parts.

    Args:
        text: Text to split.
        sep: Single separator character.
        quotes: Treat double-quoted regions as opaque.

    Returns:
        The parts between separators.
    """
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    in_quotes = False

    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif quotes and char == '"':
            current.append(char)
            in_quotes = not in_quotes
        elif char == sep and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    parts.append("".join(current))
    return parts


def _unescape(text: str) -> str:
    """Remove backslash escapes from a name, tag key or tag value."""
    if "\\" not in text:
        return text

    result: list[str] = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            result.append(next(chars, "\\"))
        else:
            result.append(char)
    return "".join(result)


def _escape(text: str, special: str) -> str:
    """Backslash-escape each character of text found in special."""
    for char in special:
        text = text.replace(char, f"\\{char}")
    return text


def _split_pair(text: str) -> tuple[str, str] | None:
    """Split ``key=value`` at the first unescaped equals sign."""
    parts = _split_unescaped(text, "=", quotes=True)
    if len(parts) < 2:  # noqa: PLR2004
        return None
    return parts[0], "=".join(parts[1:])


def _parse_field_value(raw: str) -> FieldValue:
    """Parse a single field value.

    Raises:
        ValueError: If the value is not valid line protocol.
    """
    if raw.startswith('"'):
        if len(raw) < 2 or not raw.endswith('"'):  # noqa: PLR2004
            msg = f"unterminated string field value {raw!r}"
            raise ValueError(msg)
        return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")

    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False

    if raw.endswith("i"):
        if not _INTEGER.fullmatch(raw[:-1]):
            msg = f"invalid integer field value {raw!r}"
            raise ValueError(msg)
        value = int(raw[:-1])
        if not _INT64_MIN <= value <= _INT64_MAX:
            msg = f"integer field value {raw!r} out of range"
            raise ValueError(msg)
        return value

    if raw.endswith("u"):
        if not _UNSIGNED.fullmatch(raw[:-1]):
            msg = f"invalid unsigned field value {raw!r}"
            raise ValueError(msg)
        value = int(raw[:-1])
        if value > _UINT64_MAX:
            msg = f"unsigned field value {raw!r} out of range"
            raise ValueError(msg)
        return value

    if not _FLOAT.fullmatch(raw):
        msg = f"invalid float field value {raw!r}"
        raise ValueError(msg)
    number = float(raw)
    if not math.isfinite(number):
        msg = f"non-finite field value {raw!r}"
        raise ValueError(msg)
    return number


def parse_line(line: str, line_number: int = 1) -> Metric | None:
    """Parse a single line of line protocol.

    Args:
        line: The line, with or without its line terminator.
        line_number: Line number reported in errors.

    Returns:
        The parsed metric, or None for blank and comment lines.

    Raises:
        ParseError: If the line is malformed.
    """
    text = line.rstrip("\r\n")
    if not text.strip() or text.lstrip().startswith("#"):
        return None

    def fail(reason: str) -> ParseError:
        return ParseError(
            f"metric parse error: {reason} at line {line_number}: {text!r}",
            line_number=line_number,
            text=text,
        )

    sections = [s for s in _split_unescaped(text, " ", quotes=True) if s]
    if len(sections) not in (2, 3):
        raise fail("expected measurement, fields and optional timestamp")

    key_parts = _split_unescaped(sections[0], ",")
    name = _unescape(key_parts[0])
    if not name:
        raise fail("missing measurement")

    tags: dict[str, str] = {}
    for raw_tag in key_parts[1:]:
        pair = _split_pair(raw_tag)
        if pair is None or not pair[0] or not pair[1]:
            raise fail(f"invalid tag {raw_tag!r}")
        tags[_unescape(pair[0])] = _unescape(pair[1])

    fields: dict[str, FieldValue] = {}
    for raw_field in _split_unescaped(sections[1], ",", quotes=True):
        pair = _split_pair(raw_field)
        if pair is None or not pair[0] or not pair[1]:
            raise fail(f"invalid field {raw_field!r}")
        try:
            fields[_unescape(pair[0])] = _parse_field_value(pair[1])
        except ValueError as e:
            raise fail(str(e)) from e

    timestamp: int | None = None
    if len(sections) == 3:  # noqa: PLR2004
        if not _INTEGER.fullmatch(sections[2]):
            raise fail(f"invalid timestamp {sections[2]!r}")
        timestamp = int(sections[2])

    return Metric(name=name, tags=tags, fields=fields, timestamp=timestamp)


def _decode(data: bytes, line_number: int) -> str:
    try:
        return data.decode()
    except UnicodeDecodeError as e:
        msg = f"metric parse error: invalid UTF-8 at line {line_number}"
        raise ParseError(msg, line_number=line_number) from e


def format_metric(metric: Metric) -> str:
    """Render a metric as a line of line protocol.

    Args:
        metric: The metric to render.

    Returns:
        The line, without a trailing newline.
    """
    key = _escape(metric.name, ", ")
    for tag_key, tag_value in sorted(metric.tags.items()):
        key += f",{_escape(tag_key, ',= ')}={_escape(tag_value, ',= ')}"

    fields: list[str] = []
    for field_key, value in metric.fields.items():
        if isinstance(value, bool):
            rendered = "true" if value else "false"
        elif isinstance(value, int):
            rendered = f"{value}i"
        elif isinstance(value, float):
            rendered = repr(value)
        else:
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            rendered = f'"{escaped}"'
        fields.append(f"{_escape(field_key, ',= ')}={rendered}")

    line = f"{key} {','.join(fields)}"
    if metric.timestamp is not None:
        line += f" {metric.timestamp}"
    return line


@final
class LineProtocolDecoder:
    """Continuous line protocol decoder over a byte stream.

    Frames lines itself, skips blank and comment lines, and parses a
    final unterminated line once the stream ends.
    """

    __slots__ = ("_exhausted", "_line_number", "_ready", "_splitter", "_stream")

    def __init__(self, stream: ByteReceiveStream) -> None:
        """Initialize the decoder.

        Args:
            stream: The stream to read line protocol from.
        """
        self._stream = stream
        self._splitter = LineSplitter()
        self._ready: deque[bytes] = deque()
        self._line_number = 0
        self._exhausted = False

    async def next(self) -> Metric:
        """Decode the next metric.

        Returns:
            The next metric in the stream.

        Raises:
            anyio.EndOfStream: When the stream has no more metrics.
            ParseError: When the next line is malformed. The line is
                consumed, so the following call continues after it.
        """
        while True:
            while self._ready:
                data = self._ready.popleft()
                self._line_number += 1
                metric = parse_line(
                    _decode(data, self._line_number), self._line_number
                )
                if metric is not None:
                    return metric

            if self._exhausted:
                raise anyio.EndOfStream

            try:
                chunk = await self._stream.receive(_DECODER_CHUNK_SIZE)
            except STREAM_CLOSED_ERRORS:
                self._exhausted = True
                rest = self._splitter.flush()
                if rest:
                    self._ready.append(rest)
                continue

            self._ready.extend(self._splitter.feed(chunk))


@final
class LineProtocolParser:
    """Parser for InfluxDB line protocol.

    Supports both buffered parsing and continuous stream decoding.
    """

    __slots__ = ()

    def parse(self, data: bytes) -> list[Metric]:
        """Parse every line in a buffer.

        Args:
            data: One or more lines of line protocol.

        Returns:
            The parsed metrics, in order. Blank and comment lines yield
            nothing.

        Raises:
            ParseError: If any line is malformed.
        """
        metrics: list[Metric] = []
        for line_number, raw in enumerate(data.splitlines(), start=1):
            metric = parse_line(_decode(raw, line_number), line_number)
            if metric is not None:
                metrics.append(metric)
        return metrics

    def stream_decoder(self, stream: ByteReceiveStream) -> LineProtocolDecoder:
        """Create a decoder reading line protocol from a stream."""
        return LineProtocolDecoder(stream)
