"""Unit tests for logging utilities."""

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from execd import LogSink
from execd._logging import LeveledLogger, _log_level_from_string, create_logger

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem

LOG_FILE = "/logs/execd.log"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXECD_DEBUG", raising=False)
    monkeypatch.delenv("EXECD_LOG_LEVEL", raising=False)


def read_entries() -> list[dict[str, object]]:
    lines = Path(LOG_FILE).read_text().splitlines()
    return [json.loads(line) for line in lines]


class TestLogLevelFromString:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [("trace", 10), ("debug", 10), ("INFO", 20), ("warning", 30), ("error", 40)],
    )
    def test_maps_names(self, level: str, expected: int) -> None:
        assert _log_level_from_string(level) == expected

    def test_unknown_defaults_to_info(self) -> None:
        assert _log_level_from_string("chatty") == 20


class TestCreateLogger:
    def test_creates_log_directory_if_missing(self, fs: "FakeFilesystem") -> None:
        _ = create_logger(log_file=LOG_FILE)

        assert Path(LOG_FILE).parent.exists()

    def test_json_format(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_format="json", log_file=LOG_FILE)

        logger.warning("disk full")

        [entry] = read_entries()
        assert entry["event"] == "disk full"
        assert entry["level"] == "warning"
        assert "timestamp" in entry

    def test_text_format(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(log_format="text", log_file=LOG_FILE)

        logger.info("process started")

        content = Path(LOG_FILE).read_text()
        assert "process started" in content
        assert "info" in content

    def test_appends_to_existing_file(self, fs: "FakeFilesystem") -> None:
        fs.create_file(LOG_FILE, contents='{"event": "earlier"}\n')
        logger = create_logger(log_format="json", log_file=LOG_FILE)

        logger.error("later")

        assert [e["event"] for e in read_entries()] == ["earlier", "later"]

    def test_level_filters_messages(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(level="warning", log_format="json", log_file=LOG_FILE)

        logger.info("hidden")
        logger.debug("hidden")
        logger.error("shown")

        assert [e["event"] for e in read_entries()] == ["shown"]

    def test_trace_level_emits_trace_messages(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(level="trace", log_format="json", log_file=LOG_FILE)

        logger.trace("raw frame")

        [entry] = read_entries()
        assert entry["event"] == "raw frame"
        assert entry["level"] == "debug"
        assert entry["trace"] is True
        assert logger.trace_enabled

    def test_debug_level_drops_trace_messages(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(level="debug", log_format="json", log_file=LOG_FILE)

        logger.trace("raw frame")
        logger.debug("kept")

        assert [e["event"] for e in read_entries()] == ["kept"]
        assert not logger.trace_enabled

    def test_debug_env_var_overrides_level(
        self, fs: "FakeFilesystem", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EXECD_DEBUG", "1")
        logger = create_logger(level="error", log_format="json", log_file=LOG_FILE)

        logger.debug("visible")

        assert [e["event"] for e in read_entries()] == ["visible"]

    def test_log_level_env_var_used_without_level(
        self, fs: "FakeFilesystem", monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EXECD_LOG_LEVEL", "ERROR")
        logger = create_logger(log_format="json", log_file=LOG_FILE)

        logger.warning("hidden")
        logger.error("shown")

        assert [e["event"] for e in read_entries()] == ["shown"]

    def test_writes_to_stderr_without_file(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = create_logger(log_format="json")

        logger.info("to stderr")

        assert "to stderr" in capsys.readouterr().err


class TestLeveledLogger:
    def test_is_a_log_sink(self) -> None:
        assert isinstance(create_logger(), LogSink)

    def test_bind_adds_context(self, fs: "FakeFilesystem") -> None:
        logger = create_logger(level="trace", log_format="json", log_file=LOG_FILE)

        bound = logger.bind(command="sensors")
        bound.info("started")
        bound.trace("detail")

        assert isinstance(bound, LeveledLogger)
        entries = read_entries()
        assert [e["command"] for e in entries] == ["sensors", "sensors"]
        assert bound.trace_enabled
