"""Metric parsers for execd.

Key Components:
    - LineProtocolParser: InfluxDB line protocol, with streaming decode
    - JsonParser: Newline-delimited JSON metrics, buffered only
    - create_parser: Parser factory keyed by data format
    - format_metric: Render a metric as line protocol
"""

from execd.config import DataFormat
from execd.exceptions import ConfigValidationError

from ._influx import LineProtocolDecoder, LineProtocolParser, format_metric, parse_line
from ._json import JsonParser


def create_parser(data_format: str) -> LineProtocolParser | JsonParser:
    """Create the parser for a data format.

    Args:
        data_format: One of the DataFormat values.

    Returns:
        A new parser instance.

    Raises:
        ConfigValidationError: If the data format is unknown.
    """
    if data_format == DataFormat.INFLUX:
        return LineProtocolParser()
    if data_format == DataFormat.JSON:
        return JsonParser()

    msg = f"Unknown data format: {data_format!r}"
    raise ConfigValidationError(
        msg,
        key="data_format",
        value=data_format,
        expected=" or ".join(repr(f.value) for f in DataFormat),
    )


__all__ = [
    "JsonParser",
    "LineProtocolDecoder",
    "LineProtocolParser",
    "create_parser",
    "format_metric",
    "parse_line",
]
