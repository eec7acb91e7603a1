"""Supervisor for a single external command.

This module provides the Process class that spawns a command, hands its
stdout and stderr to reader hooks, and restarts it after it exits.
"""

import contextlib
import os
import shutil
import signal
import subprocess
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import timedelta
from signal import Signals
from typing import final

import anyio
import anyio.abc
from anyio.abc import ByteReceiveStream, TaskGroup, TaskStatus

from execd._lines import STREAM_CLOSED_ERRORS
from execd._logging import create_logger
from execd._protocol import LogSink
from execd.exceptions import ProcessCreateError, ProcessStartError

from ._models import ProcessState, ProcessStatus

StreamReader = Callable[[ByteReceiveStream], Awaitable[None]]

DEFAULT_RESTART_DELAY = timedelta(seconds=5)
DEFAULT_GRACE_TIMEOUT = 5.0


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


def _format_delay(delay: timedelta) -> str:
    return f"{delay.total_seconds():g}s"


async def discard_stream(stream: ByteReceiveStream) -> None:
    """Read a stream to its end and drop the data."""
    with contextlib.suppress(*STREAM_CLOSED_ERRORS):
        async for _ in stream:
            pass


@final
class Process:
    """Supervises one external command.

    The command is spawned with piped stdin, stdout and stderr. While it
    runs, ``read_stdout`` and ``read_stderr`` consume its output streams
    concurrently. When it exits it is restarted after ``restart_delay``,
    unless a stop was requested or it failed while ``stop_on_error`` is
    set.

    Attributes:
        read_stdout: Coroutine function consuming the stdout stream.
        read_stderr: Coroutine function consuming the stderr stream.
        restart_delay: Delay before restarting an exited process.
        stop_on_error: Do not restart after a non-zero exit.
        stop_signal: Signal sent on stop. None sends SIGTERM.
        log: Log sink for lifecycle messages.
        status: Mutable runtime status.
    """

    __slots__ = (
        "_argv",
        "_command",
        "_env",
        "_finished",
        "_process",
        "_stop_event",
        "log",
        "read_stderr",
        "read_stdout",
        "restart_delay",
        "status",
        "stop_on_error",
        "stop_signal",
    )

    def __init__(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        *,
        log: LogSink | None = None,
    ) -> None:
        """Create a process handle.

        Args:
            command: Program and arguments.
            env: Variables added to the inherited environment.
            log: Log sink for lifecycle messages.

        Raises:
            ProcessCreateError: If the command is empty or its program
                cannot be found.
        """
        self._command = tuple(command)
        if not self._command:
            msg = "no command specified"
            raise ProcessCreateError(msg)

        executable = shutil.which(self._command[0])
        if executable is None:
            msg = f"executable file {self._command[0]!r} not found"
            raise ProcessCreateError(msg, command=self._command)

        self._argv = (executable, *self._command[1:])
        self._env = {**os.environ, **env} if env else None
        self._process: anyio.abc.Process | None = None
        self._stop_event: anyio.Event | None = None
        self._finished: anyio.Event | None = None

        self.read_stdout: StreamReader = discard_stream
        self.read_stderr: StreamReader = discard_stream
        self.restart_delay = DEFAULT_RESTART_DELAY
        self.stop_on_error = False
        self.stop_signal: Signals | None = None
        self.log: LogSink = log if log is not None else create_logger()
        self.status = ProcessStatus()

    @property
    def command(self) -> tuple[str, ...]:
        """Return the command as configured."""
        return self._command

    @property
    def name(self) -> str:
        """Return the program name used in log messages."""
        return self._command[0]

    @property
    def pid(self) -> int | None:
        """Return the process ID if running, None otherwise."""
        return self.status.pid

    def is_running(self) -> bool:
        """Check if the process is currently running."""
        return self.status.state == ProcessState.RUNNING and self._process is not None

    async def start(self, task_group: TaskGroup) -> None:
        """Spawn the process and supervise it in the task group.

        Returns once the first spawn succeeded. Supervision, including
        restarts, continues in the background.

        Args:
            task_group: Task group that owns the supervision task.

        Raises:
            ProcessStartError: If the process cannot be spawned.
        """
        if self._finished is not None and not self._finished.is_set():
            return

        self._stop_event = anyio.Event()
        self._finished = anyio.Event()
        await task_group.start(self._supervise)

    async def wait_finished(self) -> None:
        """Wait until supervision ends without further restarts."""
        if self._finished is not None:
            await self._finished.wait()

    async def _spawn(self) -> anyio.abc.Process:
        """Spawn one incarnation of the command.

        Raises:
            ProcessStartError: If the process cannot be spawned.
        """
        self.status.state = ProcessState.STARTING
        self.status.started_at = _get_timestamp()

        try:
            process = await anyio.open_process(
                self._argv,
                env=self._env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            self.status.state = ProcessState.FAILED
            msg = f"error starting process {self.name}: {e}"
            raise ProcessStartError(msg, command=self._command, cause=e) from e

        self._process = process
        self.status.pid = process.pid
        self.status.state = ProcessState.RUNNING
        return process

    async def _wait(self, process: anyio.abc.Process) -> int:
        """Stream the output of a process until it exits.

        Returns:
            The process exit code.
        """
        exit_code = 0
        async with anyio.create_task_group() as tg:
            if process.stdout is not None:
                tg.start_soon(self.read_stdout, process.stdout)
            if process.stderr is not None:
                tg.start_soon(self.read_stderr, process.stderr)
            exit_code = await process.wait()

        await process.aclose()

        self.status.last_exit_code = exit_code
        self.status.stopped_at = _get_timestamp()
        self.status.state = ProcessState.STOPPED
        self.status.pid = None
        self._process = None
        return exit_code

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _supervise(
        self,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Run the process, restarting it until stopped.

        Args:
            task_status: Signalled once the first spawn succeeded.
        """
        try:
            process = await self._spawn()
            task_status.started()

            while True:
                exit_code = await self._wait(process)

                if self._stopping():
                    self.log.info(f"Process {self.name} shut down")
                    return

                if exit_code != 0 and self.stop_on_error:
                    self.log.error(
                        f"Process {self.name} exited: exit status {exit_code}"
                    )
                    return

                if exit_code != 0:
                    self.log.error(
                        f"Process {self.name} exited: exit status {exit_code}"
                    )
                else:
                    self.log.info(f"Process {self.name} exited: exit status 0")

                self.status.state = ProcessState.BACKOFF
                self.log.info(f"Restarting in {_format_delay(self.restart_delay)}...")

                # Wait before restart (interruptible by stop)
                with anyio.move_on_after(self.restart_delay.total_seconds()):
                    if self._stop_event is not None:
                        await self._stop_event.wait()

                if self._stopping():
                    self.status.state = ProcessState.STOPPED
                    return

                self.status.restart_count += 1
                try:
                    process = await self._spawn()
                except ProcessStartError as e:
                    self.log.error(f"error restarting process: {e}")
                    return

                # stop() may have run while the spawn was in flight
                if self._stopping():
                    await self.stop()

        except anyio.get_cancelled_exc_class():
            # Task was cancelled, make sure the process goes with it
            with anyio.CancelScope(shield=True):
                await self.stop()
            raise

        finally:
            if self._finished is not None:
                self._finished.set()

    async def stop(self, grace_timeout: float = DEFAULT_GRACE_TIMEOUT) -> None:
        """Stop the process and end supervision.

        Closes stdin, sends the stop signal and waits for the process to
        exit. If it doesn't exit within the timeout, it is killed.

        Args:
            grace_timeout: Seconds to wait for the process to exit.
        """
        if self._stop_event is not None:
            self._stop_event.set()

        process = self._process
        if process is None or process.returncode is not None:
            self.status.state = ProcessState.STOPPED
            return

        if process.stdin is not None:
            with contextlib.suppress(*STREAM_CLOSED_ERRORS, OSError):
                await process.stdin.aclose()

        try:
            process.send_signal(self.stop_signal or signal.SIGTERM)

            with anyio.move_on_after(grace_timeout):
                _ = await process.wait()

            if process.returncode is None:
                self.log.warning(
                    f"Process {self.name} did not exit after "
                    f"{grace_timeout:g}s, killing it"
                )
                process.kill()
                _ = await process.wait()

        except ProcessLookupError:
            # Process already exited
            pass

        self.status.state = ProcessState.STOPPED
