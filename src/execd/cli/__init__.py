"""Command-line interface for execd."""

from ._app import app, main
from ._runner import run_execd
from ._shared import ExitCode, exit_with_error

__all__ = ["ExitCode", "app", "exit_with_error", "main", "run_execd"]
