# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading and merging."""

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from execd.exceptions import ConfigLoadError, ConfigValidationError

from ._models import ExecdConfig

# Keys may be nested under this table instead of living at the top level
SECTION_NAME = "execd"


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        # lineno and colno exist from Python 3.14
        raise ConfigLoadError(
            msg,
            path=path,
            line=getattr(e, "lineno", None),
            column=getattr(e, "colno", None),
        ) from e
    except OSError as e:
        msg = f"Failed to read config file {path}: {e}"
        raise ConfigLoadError(msg, path=path) from e


def deep_merge(
    base: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    override: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified.

    Merge rules:
        - Dictionaries are recursively merged
        - Arrays are replaced entirely (no element-wise merge)
        - Scalars are replaced with override value
        - Missing keys in override preserve base values

    Args:
        base: Base configuration (lower precedence).
        override: Override configuration (higher precedence).

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = dict(base)  # pyright: ignore[reportExplicitAny]

    for key, override_val in override.items():
        base_val = result.get(key)
        if isinstance(base_val, Mapping) and isinstance(override_val, Mapping):
            result[key] = deep_merge(base_val, override_val)
        else:
            result[key] = override_val

    return result


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
) -> ExecdConfig:
    """Load and validate execd configuration.

    Args:
        path: TOML file to read. Keys may sit at the top level or under an
            ``[execd]`` table. If None, only defaults and overrides apply.
        overrides: Values that take precedence over the file, such as
            command-line options.

    Returns:
        The validated configuration.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
        ConfigValidationError: If the merged values are invalid.
    """
    values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if path is not None:
        document = read_toml_file(path)
        section = document.get(SECTION_NAME)
        values = dict(section) if isinstance(section, dict) else document

    if overrides:
        values = deep_merge(values, overrides)

    try:
        return ExecdConfig.model_validate(values)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        expected = str(first.get("msg", "Validation error"))
        msg = f"Invalid configuration for '{key}': {expected}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=first.get("input"),
            expected=expected,
            source=str(path) if path is not None else None,
        ) from e
