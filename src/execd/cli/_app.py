# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing
"""The command-line interface for execd."""

from pathlib import Path
from typing import Annotated, Literal

import anyio
from cyclopts import App, Parameter

from execd.config import load_config
from execd.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
    ProcessStartError,
)

from ._shared import ExitCode, exit_with_error

LogLevelName = Literal["trace", "debug", "info", "warning", "error"]
LogFormatName = Literal["json", "text"]
DataFormatName = Literal["influx", "json"]

app = App(
    name="execd",
    help="Run an external command as a metrics source.",
    help_on_error=True,
)


def _build_overrides(  # noqa: PLR0913
    *,
    command: tuple[str, ...],
    data_format: str | None,
    buffer_size: str | None,
    restart_delay: str | None,
    signal_name: str | None,
    stop_on_error: bool,
    log_level: str | None,
    log_format: str | None,
    log_file: str | None,
) -> dict[str, object]:
    """Collect the options given on the command line as config overrides."""
    overrides: dict[str, object] = {}
    if command:
        overrides["command"] = list(command)
    if data_format is not None:
        overrides["data_format"] = data_format
    if buffer_size is not None:
        overrides["buffer_size"] = buffer_size
    if restart_delay is not None:
        overrides["restart_delay"] = restart_delay
    if signal_name is not None:
        overrides["signal"] = signal_name
    if stop_on_error:
        overrides["stop_on_error"] = True

    logging: dict[str, object] = {}
    if log_level is not None:
        logging["level"] = log_level
    if log_format is not None:
        logging["format"] = log_format
    if log_file is not None:
        logging["file"] = log_file
    if logging:
        overrides["logging"] = logging

    return overrides


@app.command
def run(  # noqa: PLR0913
    *command: Annotated[
        str,
        Parameter(
            allow_leading_hyphen=True,
            help="Program and arguments. Overrides the configured command.",
        ),
    ],
    config: Annotated[
        Path | None, Parameter(name="--config", help="Path to a TOML config file")
    ] = None,
    data_format: Annotated[
        DataFormatName | None, Parameter(help="Format of metrics on stdout")
    ] = None,
    buffer_size: Annotated[
        str | None, Parameter(help="Stdout read size, such as 65536 or 64KiB")
    ] = None,
    restart_delay: Annotated[
        str | None, Parameter(help="Delay before restarts, such as 10s")
    ] = None,
    signal_name: Annotated[
        str | None, Parameter(name="--signal", help="Signal sent on stop")
    ] = None,
    stop_on_error: Annotated[
        bool, Parameter(help="Do not restart a command that exits with an error")
    ] = False,
    log_level: Annotated[LogLevelName | None, Parameter(help="Log level")] = None,
    log_format: Annotated[LogFormatName | None, Parameter(help="Log format")] = None,
    log_file: Annotated[
        str | None, Parameter(help="Log file (logs to stderr if unset)")
    ] = None,
) -> None:
    """Run a command and print the metrics it produces.

    Metrics are printed to stdout as line protocol. The command is
    restarted when it exits, until SIGINT or SIGTERM is received.

    Args:
        command: Program and arguments, given after ``--``.
        config: Path to a TOML config file.
        data_format: Format of metrics on stdout.
        buffer_size: Read size for batch parsing.
        restart_delay: Delay before restarting an exited command.
        signal_name: Signal sent to the command on stop.
        stop_on_error: Do not restart after a non-zero exit.
        log_level: Log level threshold.
        log_format: Log output format.
        log_file: Path to a log file.
    """
    from ._runner import run_execd  # noqa: PLC0415

    overrides = _build_overrides(
        command=command,
        data_format=data_format,
        buffer_size=buffer_size,
        restart_delay=restart_delay,
        signal_name=signal_name,
        stop_on_error=stop_on_error,
        log_level=log_level,
        log_format=log_format,
        log_file=log_file,
    )

    try:
        loaded = load_config(config, overrides=overrides)
    except ConfigLoadError as e:
        exit_with_error(str(e), ExitCode.LOAD_ERROR)
    except ConfigValidationError as e:
        exit_with_error(str(e), ExitCode.VALIDATION_ERROR)

    try:
        anyio.run(run_execd, loaded)
    except ConfigError as e:
        exit_with_error(str(e), ExitCode.VALIDATION_ERROR)
    except ProcessStartError as e:
        exit_with_error(str(e), ExitCode.INTERNAL_ERROR)


def main() -> None:
    """Entry point for the execd CLI."""
    app()
