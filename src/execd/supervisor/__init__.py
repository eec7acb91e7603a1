"""Supervisor for the external command behind an execd input.

Key Components:
    - Process: Spawns, streams, restarts and stops one command
    - ProcessState: Lifecycle state enumeration
    - ProcessStatus: Runtime status tracking
"""

from ._models import ProcessState, ProcessStatus
from ._process import (
    DEFAULT_GRACE_TIMEOUT,
    DEFAULT_RESTART_DELAY,
    Process,
    StreamReader,
    discard_stream,
)

__all__ = [
    "DEFAULT_GRACE_TIMEOUT",
    "DEFAULT_RESTART_DELAY",
    "Process",
    "ProcessState",
    "ProcessStatus",
    "StreamReader",
    "discard_stream",
]
