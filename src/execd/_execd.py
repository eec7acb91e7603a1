"""Lifecycle controller for an execd input.

This module provides the Execd class that runs an external command as a
metrics source: it spawns the command through the supervisor, feeds its
stdout to a parser and routes its stderr to the log.
"""

from typing import final

from anyio.abc import TaskGroup

from execd._logging import create_logger
from execd._models import DecodeMode, ExecdState
from execd._once import NO_METRICS_NOTICE, OnceGuard
from execd._protocol import Accumulator, LogSink, Parser, StreamingParser
from execd._readers import BatchLineReader, StderrRouter, StreamingReader, decode_mode
from execd.config import ExecdConfig
from execd.exceptions import (
    ConfigError,
    ConfigValidationError,
    ProcessError,
    ProcessStartError,
)
from execd.supervisor import Process, StreamReader

_SPACES_IN_COMMAND_HINT = (
    "The execd command contained spaces but no arguments. This setting "
    "expects the program and arguments as an array of strings, not as a "
    'space-delimited string. Use command = ["program", "arg1", "arg2"].'
)


@final
class Execd:
    """Runs an external command and collects the metrics it prints.

    Usage follows a fixed sequence: ``init`` validates the configuration,
    ``set_parser`` attaches the parser and picks how stdout is decoded,
    ``start`` spawns the command and ``stop`` requests its termination.

    Example:
        >>> execd = Execd(ExecdConfig(command=("sensors-exporter",)))
        >>> execd.init()
        >>> execd.set_parser(LineProtocolParser())
        >>> async with anyio.create_task_group() as tg:
        ...     await execd.start(MemoryAccumulator(), tg)
        ...     ...
        ...     await execd.stop()
    """

    __slots__ = (
        "_config",
        "_decode_mode",
        "_log",
        "_notice",
        "_parser",
        "_process",
        "_state",
    )

    def __init__(
        self,
        config: ExecdConfig,
        *,
        log: LogSink | None = None,
        notice: OnceGuard = NO_METRICS_NOTICE,
    ) -> None:
        """Initialize the input.

        Args:
            config: Settings for the command and its supervision.
            log: Log sink for routed stderr and diagnostics. A stderr
                logger is created if None.
            notice: Guard for the one-time "no metrics" notice. Shared by
                all instances unless a private guard is passed.
        """
        self._config = config
        self._log: LogSink = log if log is not None else create_logger()
        self._notice = notice
        self._parser: Parser | None = None
        self._decode_mode = DecodeMode.BATCH
        self._process: Process | None = None
        self._state = ExecdState.NOT_STARTED

    @property
    def config(self) -> ExecdConfig:
        """Return the configuration."""
        return self._config

    @property
    def state(self) -> ExecdState:
        """Return the lifecycle state."""
        return self._state

    @property
    def decode_mode(self) -> DecodeMode:
        """Return how stdout is decoded for the attached parser."""
        return self._decode_mode

    @property
    def process(self) -> Process | None:
        """Return the supervised process handle, if started."""
        return self._process

    def init(self) -> None:
        """Validate the configuration.

        Raises:
            ConfigValidationError: If no command is configured.
        """
        if not self._config.command:
            msg = "no command specified"
            raise ConfigValidationError(
                msg,
                key="command",
                value=list(self._config.command),
                expected="a non-empty list of program and arguments",
            )

    def set_parser(self, parser: Parser) -> None:
        """Attach the parser and choose how stdout is decoded.

        Args:
            parser: Parser for the command's stdout.
        """
        self._parser = parser
        self._decode_mode = decode_mode(parser)

    def _stdout_reader(self, parser: Parser, accumulator: Accumulator) -> StreamReader:
        if self._decode_mode == DecodeMode.STREAMING and isinstance(
            parser, StreamingParser
        ):
            return StreamingReader(parser, accumulator).read

        return BatchLineReader(
            parser,
            accumulator,
            self._log,
            buffer_size=int(self._config.buffer_size),
            notice=self._notice,
        ).read

    async def start(self, accumulator: Accumulator, task_group: TaskGroup) -> None:
        """Spawn the command and start reading its output.

        Args:
            accumulator: Destination for metrics and errors.
            task_group: Task group that owns the process supervision.

        Raises:
            ConfigError: If no parser is attached.
            ProcessStartError: If the process cannot be created or spawned.
        """
        if self._parser is None:
            msg = "no parser set; call set_parser() before start()"
            raise ConfigError(msg)

        command = self._config.command
        try:
            process = Process(
                command, self._config.environment_overrides, log=self._log
            )
            process.read_stdout = self._stdout_reader(self._parser, accumulator)
            process.read_stderr = StderrRouter(accumulator, self._log).read
            process.restart_delay = self._config.restart_delay
            process.stop_on_error = self._config.stop_on_error
            process.stop_signal = self._config.signal_number

            await process.start(task_group)
        except ProcessError as e:
            # A single argument with spaces is likely a whole command line
            if len(command) == 1 and " " in command[0]:
                self._log.warning(_SPACES_IN_COMMAND_HINT)
            msg = f"failed to start process {list(command)}: {e}"
            raise ProcessStartError(msg, command=command, cause=e) from e

        self._process = process
        self._state = ExecdState.RUNNING

    async def stop(self) -> None:
        """Request termination of the supervised process.

        Does not wait for the output readers to drain.
        """
        if self._process is None:
            return

        await self._process.stop()
        self._state = ExecdState.STOPPED

    async def wait(self) -> None:
        """Wait until the supervisor gives up on the process.

        Returns when the process was stopped, or exited with
        ``stop_on_error`` set, or could not be restarted.
        """
        if self._process is not None:
            await self._process.wait_finished()
