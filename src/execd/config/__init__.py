"""Configuration for execd.

Key Components:
    - ExecdConfig: Settings for one execd input
    - LoggingConfig: Logging settings
    - load_config: Load and validate settings from TOML and overrides
"""

from ._load import deep_merge, load_config, read_toml_file
from ._models import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_RESTART_DELAY,
    NO_SIGNAL,
    DataFormat,
    ExecdConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    normalize_signal_name,
    parse_duration,
)

__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_RESTART_DELAY",
    "NO_SIGNAL",
    "DataFormat",
    "ExecdConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "deep_merge",
    "load_config",
    "normalize_signal_name",
    "parse_duration",
    "read_toml_file",
]
