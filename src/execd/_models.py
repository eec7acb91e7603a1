"""Data models for the execd core.

This module defines the core data types shared by readers and parsers:
- Metric: Immutable metric record produced by parsers
- ExecdState: Lifecycle states of an execd input
- DecodeMode: How the stdout stream is decoded
"""

from dataclasses import dataclass, field
from enum import StrEnum

FieldValue = float | int | bool | str


class ExecdState(StrEnum):
    """Lifecycle states of an execd input.

    - NOT_STARTED: Configured but no process has been spawned
    - RUNNING: The supervised process has been started
    - STOPPED: Stop was requested
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class DecodeMode(StrEnum):
    """Strategies for decoding the stdout stream.

    - BATCH: Records are split on newlines and parsed one at a time
    - STREAMING: The parser frames its own records from the raw stream
    """

    BATCH = "batch"
    STREAMING = "streaming"


@dataclass(frozen=True, slots=True)
class Metric:
    """A single metric record.

    The execd core never looks inside a metric; it only counts and
    forwards it. Parsers shipped with execd produce this type.

    Attributes:
        name: Measurement name.
        tags: Tag key/value pairs.
        fields: Field key/value pairs.
        timestamp: Unix timestamp in nanoseconds, or None if the source
            did not provide one.
    """

    name: str
    fields: dict[str, FieldValue]
    tags: dict[str, str] = field(default_factory=dict)
    timestamp: int | None = None
