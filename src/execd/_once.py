"""At-most-once guard shared across execd instances."""

import threading
from typing import final

NO_METRICS_CREATED_MSG = (
    "No metrics were created from a message. Verify your parser settings. "
    "This message is only printed once."
)


@final
class OnceGuard:
    """Thread-safe flag that can be claimed exactly once.

    A single module-level instance (``NO_METRICS_NOTICE``) is shared by
    every execd input in the hosting process so that the "no metrics"
    notice is logged once, not once per instance. Pass a private guard
    to an instance to isolate it, or call ``reset`` between tests.

    Example:
        >>> guard = OnceGuard()
        >>> guard.claim()
        True
        >>> guard.claim()
        False
    """

    __slots__ = ("_claimed", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed = False

    @property
    def claimed(self) -> bool:
        """Return whether the guard has been claimed."""
        return self._claimed

    def claim(self) -> bool:
        """Claim the guard.

        Returns:
            True for the first caller only, False afterwards.
        """
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def reset(self) -> None:
        """Return the guard to its unclaimed state."""
        with self._lock:
            self._claimed = False


NO_METRICS_NOTICE = OnceGuard()
