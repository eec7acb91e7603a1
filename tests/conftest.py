"""Shared test fixtures for execd tests."""

import sys
from collections.abc import Callable, Sequence

import pytest

from execd import MemoryAccumulator, OnceGuard
from execd._fake import RecordingLogger
from execd.config import ExecdConfig


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def accumulator() -> MemoryAccumulator:
    """Create an empty in-memory accumulator."""
    return MemoryAccumulator()


@pytest.fixture
def log() -> RecordingLogger:
    """Create a log sink that records every message."""
    return RecordingLogger()


@pytest.fixture
def notice() -> OnceGuard:
    """Create a private "no metrics" guard, isolated from other tests."""
    return OnceGuard()


# ---------------------------------------------------------------------------
# Helpers for running Python snippets as the supervised command
# ---------------------------------------------------------------------------


def _python_command(source: str) -> tuple[str, ...]:
    """Return a command that runs a Python snippet with this interpreter.

    Args:
        source: Python source passed to ``-c``.

    Returns:
        The command as a tuple of program and arguments.
    """
    return (sys.executable, "-u", "-c", source)


MakeConfig = Callable[..., ExecdConfig]


@pytest.fixture
def make_config() -> MakeConfig:
    """Return a factory for configs running a Python snippet."""

    def _make(source: str | Sequence[str] = "", **overrides: object) -> ExecdConfig:
        command = _python_command(source) if isinstance(source, str) else source
        values: dict[str, object] = {"command": command}
        values.update(overrides)
        return ExecdConfig.model_validate(values)

    return _make
