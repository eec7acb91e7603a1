"""execd exceptions."""

from pathlib import Path
from typing import Any


class ExecdError(Exception):
    """Base exception for execd errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(ExecdError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Process Exceptions
# =============================================================================


class ProcessError(ExecdError):
    """Base exception for supervised process errors.

    Attributes:
        command: The command line of the process.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...] = (),
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and process context.

        Args:
            message: Human-readable error message.
            command: The command line of the process.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.command: tuple[str, ...] = command
        self.cause: Exception | None = cause


class ProcessCreateError(ProcessError):
    """Raised when a process handle cannot be created from a command."""


class ProcessStartError(ProcessError):
    """Raised when a process fails to spawn."""


# =============================================================================
# Stream Exceptions
# =============================================================================


class ParseError(ExecdError, ValueError):
    """Raised when a single record cannot be parsed.

    Parse errors are recoverable: the reader reports them and moves on
    to the next record.

    Attributes:
        line_number: 1-based line number within the parsed input, if known.
        text: The offending record text, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        line_number: int | None = None,
        text: str | None = None,
    ) -> None:
        """Initialize with error message and record context.

        Args:
            message: Human-readable error message.
            line_number: 1-based line number within the parsed input.
            text: The offending record text.
        """
        super().__init__(message)
        self.line_number: int | None = line_number
        self.text: str | None = text


class StreamError(ExecdError):
    """Base exception for errors that end a stream read loop.

    Attributes:
        stream: Name of the stream ("stdout" or "stderr").
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        stream: str,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with error message and stream context.

        Args:
            message: Human-readable error message.
            stream: Name of the stream the error occurred on.
            cause: The underlying exception.
        """
        super().__init__(message)
        self.stream: str = stream
        self.cause: BaseException | None = cause


class StreamReadError(StreamError):
    """Raised when reading from a process stream fails."""


class StreamDecodeError(StreamError):
    """Raised when a parser or decoder fails with a non-parse error."""
