"""Accumulator implementations.

This module provides concrete implementations of the Accumulator
protocol for consuming metrics and errors produced by execd inputs.
"""

import threading
from typing import final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from execd._models import Metric
from execd.parsers import format_metric


@final
class ConsoleAccumulator:
    """Accumulator that prints metrics as line protocol.

    Metrics are written to the output console, one per line. Errors are
    written to the error console as ``E! <message>`` in red.
    """

    __slots__ = (
        "_console",
        "_error_console",
        "_error_style",
        "_lock",
        "error_count",
        "metric_count",
    )

    def __init__(
        self,
        console: Console | None = None,
        error_console: Console | None = None,
    ) -> None:
        """Initialize the accumulator.

        Args:
            console: Rich Console for metrics. If None, writes to stdout.
            error_console: Rich Console for errors. If None, writes to stderr.
        """
        self._console = console or Console(highlight=False)
        self._error_console = error_console or Console(stderr=True, highlight=False)
        self._error_style = Style(color="red", bold=True)
        self._lock = threading.Lock()
        self.metric_count = 0
        self.error_count = 0

    def add_metric(self, metric: Metric) -> None:
        """Print a metric as a line of line protocol."""
        line = Text(format_metric(metric))
        with self._lock:
            self._console.print(line, soft_wrap=True)
            self.metric_count += 1

    def add_error(self, error: BaseException) -> None:
        """Print an error."""
        text = Text()
        _ = text.append("E! ", style=self._error_style)
        _ = text.append(str(error))
        with self._lock:
            self._error_console.print(text, soft_wrap=True)
            self.error_count += 1


@final
class MemoryAccumulator:
    """Accumulator that keeps metrics and errors in memory.

    Example:
        >>> acc = MemoryAccumulator()
        >>> acc.add_metric(Metric(name="cpu", fields={"v": 1.0}))
        >>> len(acc.metrics)
        1
    """

    __slots__ = ("_errors", "_lock", "_metrics")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: list[Metric] = []
        self._errors: list[BaseException] = []

    @property
    def metrics(self) -> list[Metric]:
        """Return a snapshot of the collected metrics."""
        with self._lock:
            return list(self._metrics)

    @property
    def errors(self) -> list[BaseException]:
        """Return a snapshot of the collected errors."""
        with self._lock:
            return list(self._errors)

    def add_metric(self, metric: Metric) -> None:
        with self._lock:
            self._metrics.append(metric)

    def add_error(self, error: BaseException) -> None:
        with self._lock:
            self._errors.append(error)

    def clear(self) -> None:
        """Discard everything collected so far."""
        with self._lock:
            self._metrics.clear()
            self._errors.clear()
