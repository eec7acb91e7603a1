"""Data models for the process supervisor.

This module defines the runtime types for a supervised process:
- ProcessState: Lifecycle states of a supervised process
- ProcessStatus: Mutable runtime status
"""

from dataclasses import dataclass
from enum import StrEnum


class ProcessState(StrEnum):
    """Supervised process lifecycle states.

    - STOPPED: No process is running
    - STARTING: The process is being spawned
    - RUNNING: The process is running
    - BACKOFF: The process exited and is waiting to be restarted
    - FAILED: The process could not be spawned
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    BACKOFF = "backoff"
    FAILED = "failed"


@dataclass(slots=True)
class ProcessStatus:
    """Mutable runtime status of a supervised process.

    Attributes:
        state: Current process state.
        pid: Process ID of the running process, if any.
        restart_count: Number of times the process has been restarted.
        last_exit_code: Exit code from the last process termination.
        started_at: ISO 8601 timestamp of last start.
        stopped_at: ISO 8601 timestamp of last exit.
    """

    state: ProcessState = ProcessState.STOPPED
    pid: int | None = None
    restart_count: int = 0
    last_exit_code: int | None = None
    started_at: str | None = None
    stopped_at: str | None = None
