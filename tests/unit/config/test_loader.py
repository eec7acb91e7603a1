# pyright: reportAny=false, reportUnknownArgumentType=false
import copy
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from execd.config import DataFormat, deep_merge, load_config, read_toml_file
from execd.exceptions import ConfigLoadError, ConfigValidationError

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem


class TestReadTomlFile:
    def test_parses_valid_toml(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(path, contents='command = ["sensors"]\nbuffer_size = 1024\n')

        assert read_toml_file(path) == {"command": ["sensors"], "buffer_size": 1024}

    def test_missing_file_raises_config_load_error(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/missing.toml")

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = read_toml_file(path)

        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_invalid_toml_raises_config_load_error(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/invalid.toml")
        fs.create_file(path, contents='[execd\ncommand = ["x"]\n')

        with pytest.raises(ConfigLoadError, match="Failed to parse TOML") as exc_info:
            _ = read_toml_file(path)

        assert exc_info.value.path == path


class TestDeepMerge:
    def test_nested_dicts_are_merged(self) -> None:
        base = {"logging": {"level": "info", "format": "text"}, "command": ["a"]}
        override = {"logging": {"level": "debug"}}

        result = deep_merge(base, override)

        assert result == {
            "logging": {"level": "debug", "format": "text"},
            "command": ["a"],
        }

    def test_lists_are_replaced(self) -> None:
        result = deep_merge({"command": ["a", "b"]}, {"command": ["c"]})

        assert result == {"command": ["c"]}

    def test_inputs_are_not_modified(self) -> None:
        base = {"logging": {"level": "info"}}
        override = {"logging": {"file": "/tmp/x.log"}}
        base_copy = copy.deepcopy(base)
        override_copy = copy.deepcopy(override)

        _ = deep_merge(base, override)

        assert base == base_copy
        assert override == override_copy


class TestLoadConfig:
    def test_defaults_without_file(self) -> None:
        config = load_config()

        assert config.command == ()
        assert config.data_format == DataFormat.INFLUX

    def test_reads_top_level_keys(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(
            path,
            contents="""
command = ["sensors", "--json"]
data_format = "json"
restart_delay = "1m30s"
signal = "SIGUSR1"
""",
        )

        config = load_config(path)

        assert config.command == ("sensors", "--json")
        assert config.data_format == DataFormat.JSON
        assert config.restart_delay == timedelta(seconds=90)
        assert config.signal == "SIGUSR1"

    def test_reads_execd_table(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(
            path,
            contents="""
[execd]
command = ["sensors"]
environment = ["LANG=C"]
buffer_size = "8KiB"

[execd.logging]
level = "debug"
""",
        )

        config = load_config(path)

        assert config.command == ("sensors",)
        assert config.environment_overrides == {"LANG": "C"}
        assert int(config.buffer_size) == 8192
        assert config.logging.level == "debug"

    def test_overrides_take_precedence(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(
            path,
            contents='command = ["from-file"]\n[logging]\nlevel = "warning"\n',
        )

        config = load_config(
            path,
            overrides={"command": ["from-cli", "-v"], "logging": {"format": "json"}},
        )

        assert config.command == ("from-cli", "-v")
        assert config.logging.level == "warning"
        assert config.logging.format == "json"

    def test_validation_error_carries_context(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(path, contents='environment = ["BROKEN"]\n')

        with pytest.raises(ConfigValidationError) as exc_info:
            _ = load_config(path)

        error = exc_info.value
        assert error.key == "environment"
        assert list(error.value) == ["BROKEN"]
        assert "KEY=VALUE" in error.expected
        assert error.source == str(path)

    def test_nested_validation_error_key(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            _ = load_config(overrides={"logging": {"level": "loud"}})

        assert exc_info.value.key == "logging.level"
        assert exc_info.value.source is None

    def test_invalid_toml_is_load_error(self, fs: "FakeFilesystem") -> None:
        path = Path("/etc/execd.toml")
        fs.create_file(path, contents="command = [")

        with pytest.raises(ConfigLoadError):
            _ = load_config(path)
