"""Async runner for the run command.

This module provides the async entry point that runs one execd input
until it is interrupted or its supervisor gives up.
"""

import signal

import anyio
from anyio.abc import TaskGroup

from execd._execd import Execd
from execd._logging import create_logger
from execd._output import ConsoleAccumulator
from execd._protocol import Accumulator, LogSink
from execd.config import ExecdConfig
from execd.exceptions import ProcessStartError
from execd.parsers import create_parser
from execd.supervisor import DEFAULT_GRACE_TIMEOUT


async def run_execd(
    config: ExecdConfig,
    *,
    accumulator: Accumulator | None = None,
    log: LogSink | None = None,
) -> None:
    """Run a command as a metrics source until shutdown.

    Blocks until SIGINT or SIGTERM is received, or until the supervisor
    stops restarting the command.

    Args:
        config: Validated configuration.
        accumulator: Destination for metrics. Prints to the console if None.
        log: Log sink. Built from the logging configuration if None.

    Raises:
        ConfigError: If the configuration has no command.
        ProcessStartError: If the command cannot be started.
    """
    if log is None:
        log = create_logger(
            level=config.logging.level.value,
            log_format=config.logging.format.value,  # type: ignore[arg-type]
            log_file=config.logging.file,
        )

    execd = Execd(config, log=log)
    execd.init()
    execd.set_parser(create_parser(config.data_format))

    failure: ProcessStartError | None = None
    async with anyio.create_task_group() as tg:
        try:
            await execd.start(accumulator or ConsoleAccumulator(), tg)
        except ProcessStartError as e:
            # Re-raised outside the task group so callers get it unwrapped
            failure = e
        else:
            await _serve(execd, log, tg)

    if failure is not None:
        raise failure


async def _serve(execd: Execd, log: LogSink, tg: TaskGroup) -> None:
    """Wait for a shutdown signal or the end of supervision, then stop."""
    shutdown = anyio.Event()

    async def handle_signals() -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                log.info(f"Received {signal.Signals(signum).name}, shutting down")
                shutdown.set()
                break

    async def watch_process() -> None:
        await execd.wait()
        shutdown.set()

    tg.start_soon(handle_signals)
    tg.start_soon(watch_process)

    await shutdown.wait()

    await execd.stop()

    # Give the readers a moment to drain the closed pipes
    with anyio.move_on_after(DEFAULT_GRACE_TIMEOUT):
        await execd.wait()

    tg.cancel_scope.cancel()
