"""Configuration models.

This module provides the Pydantic models for execd settings and the
option types they use.
"""

import re
from datetime import timedelta
from enum import StrEnum
from signal import Signals
from typing import ClassVar

from pydantic import BaseModel, ByteSize, ConfigDict, Field, field_validator

DEFAULT_BUFFER_SIZE = 64 * 1024
DEFAULT_RESTART_DELAY = timedelta(seconds=10)
NO_SIGNAL = "none"

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION = re.compile(r"(?:\d+(?:\.\d+)?(?:ns|us|µs|ms|s|m|h))+")


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (trace) to least verbose (error).
    """

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class DataFormat(StrEnum):
    """Supported stdout data formats."""

    INFLUX = "influx"
    JSON = "json"


def parse_duration(value: str) -> timedelta | None:
    """Parse a duration string such as ``10s``, ``1m30s`` or ``500ms``.

    Args:
        value: The duration string.

    Returns:
        The duration, or None if the string is not in this format.
    """
    text = value.strip()
    if not _DURATION.fullmatch(text):
        return None

    seconds = sum(
        float(amount) * _DURATION_UNITS[unit]
        for amount, unit in _DURATION_PART.findall(text)
    )
    return timedelta(seconds=seconds)


def normalize_signal_name(value: str) -> str:
    """Normalize a signal name to its canonical ``SIGxxx`` form.

    Args:
        value: A signal name with or without the ``SIG`` prefix, in any
            case, or ``none``.

    Returns:
        The canonical name, or ``none``.

    Raises:
        ValueError: If the platform has no signal with that name.
    """
    name = value.strip().upper()
    if name == NO_SIGNAL.upper():
        return NO_SIGNAL
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    if name not in Signals.__members__:
        msg = f"unknown signal {value!r}"
        raise ValueError(msg)
    return name


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    file: str = ""


class ExecdConfig(BaseModel):
    """Settings for one execd input.

    Attributes:
        command: Program and arguments to run. Must be non-empty before
            the input is started.
        environment: ``KEY=VALUE`` overrides for the process environment.
        buffer_size: Read size for batch stdout parsing, in bytes.
        signal: Signal sent to the process on stop, or ``none`` for the
            default termination.
        restart_delay: Delay before restarting an exited process.
        stop_on_error: Do not restart a process that exits with an error.
        data_format: Format of the metrics written to stdout.
        logging: Logging settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    command: tuple[str, ...] = ()
    environment: tuple[str, ...] = ()
    buffer_size: ByteSize = ByteSize(DEFAULT_BUFFER_SIZE)
    signal: str = NO_SIGNAL
    restart_delay: timedelta = DEFAULT_RESTART_DELAY
    stop_on_error: bool = False
    data_format: DataFormat = DataFormat.INFLUX
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("environment")
    @classmethod
    def _check_environment(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for entry in value:
            key, sep, _ = entry.partition("=")
            if not sep or not key:
                msg = f"environment entry {entry!r} must have the form KEY=VALUE"
                raise ValueError(msg)
        return value

    @field_validator("buffer_size")
    @classmethod
    def _check_buffer_size(cls, value: ByteSize) -> ByteSize:
        if value <= 0:
            msg = "buffer_size must be positive"
            raise ValueError(msg)
        return value

    @field_validator("signal")
    @classmethod
    def _check_signal(cls, value: str) -> str:
        return normalize_signal_name(value)

    @field_validator("restart_delay", mode="before")
    @classmethod
    def _parse_restart_delay(cls, value: object) -> object:
        if isinstance(value, str):
            parsed = parse_duration(value)
            if parsed is not None:
                return parsed
        return value

    @field_validator("restart_delay")
    @classmethod
    def _check_restart_delay(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            msg = "restart_delay must not be negative"
            raise ValueError(msg)
        return value

    @property
    def environment_overrides(self) -> dict[str, str]:
        """Return the environment entries as a mapping.

        Later entries override earlier ones with the same key.
        """
        overrides: dict[str, str] = {}
        for entry in self.environment:
            key, _, value = entry.partition("=")
            overrides[key] = value
        return overrides

    @property
    def signal_number(self) -> Signals | None:
        """Return the configured stop signal, or None for the default."""
        if self.signal == NO_SIGNAL:
            return None
        return Signals[self.signal]
