"""Unit tests for the stdout readers and the stderr router."""

import anyio
import pytest
from anyio.abc import ByteReceiveStream

from execd import (
    NO_METRICS_CREATED_MSG,
    BatchLineReader,
    DecodeMode,
    MemoryAccumulator,
    Metric,
    OnceGuard,
    StderrRouter,
    StreamingReader,
    decode_mode,
)
from execd._fake import FakeByteStream, RecordingLogger
from execd.exceptions import ParseError, StreamDecodeError, StreamReadError
from execd.parsers import JsonParser, LineProtocolParser

pytestmark = pytest.mark.anyio


def metric(value: float, name: str = "m") -> Metric:
    return Metric(name=name, fields={"v": value})


class SilentParser:
    """Parser that never produces metrics."""

    def parse(self, data: bytes) -> list[Metric]:
        return []


class ExplodingParser:
    """Parser that fails with a non-parse error on a marker record."""

    def __init__(self) -> None:
        self.calls = 0

    def parse(self, data: bytes) -> list[Metric]:
        self.calls += 1
        if data.startswith(b"boom"):
            msg = "parser state corrupted"
            raise RuntimeError(msg)
        return LineProtocolParser().parse(data)


class ScriptedDecoder:
    """Decoder that replays metrics and exceptions."""

    def __init__(self, script: list[Metric | Exception]) -> None:
        self._script = list(script)
        self.calls = 0

    async def next(self) -> Metric:
        self.calls += 1
        if not self._script:
            raise anyio.EndOfStream
        item = self._script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedStreamingParser:
    def __init__(self, decoder: ScriptedDecoder) -> None:
        self.decoder = decoder

    def parse(self, data: bytes) -> list[Metric]:
        return []

    def stream_decoder(self, stream: ByteReceiveStream) -> ScriptedDecoder:
        return self.decoder


class TestDecodeMode:
    def test_line_protocol_streams(self) -> None:
        assert decode_mode(LineProtocolParser()) == DecodeMode.STREAMING

    def test_json_is_batched(self) -> None:
        assert decode_mode(JsonParser()) == DecodeMode.BATCH

    def test_parser_without_capability_is_batched(self) -> None:
        assert decode_mode(SilentParser()) == DecodeMode.BATCH

    def test_parser_with_capability_streams(self) -> None:
        parser = ScriptedStreamingParser(ScriptedDecoder([]))

        assert decode_mode(parser) == DecodeMode.STREAMING


class TestBatchLineReader:
    async def test_forwards_metrics_in_order(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"m v=1\nm v=2\n", b"m v=3\n"]))

        assert accumulator.metrics == [metric(1.0), metric(2.0), metric(3.0)]
        assert accumulator.errors == []

    async def test_reassembles_records_smaller_than_buffer(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(
            LineProtocolParser(), accumulator, log, buffer_size=8, notice=notice
        )
        stream = FakeByteStream([b"m v=1\nm v=2\n"])

        await reader.read(stream)

        assert accumulator.metrics == [metric(1.0), metric(2.0)]
        assert stream.receive_calls > 2

    async def test_parse_error_does_not_stop_later_records(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"m v=1\nnot line protocol\nm v=3\n"]))

        assert accumulator.metrics == [metric(1.0), metric(3.0)]
        assert len(accumulator.errors) == 1
        assert isinstance(accumulator.errors[0], ParseError)

    async def test_discards_unterminated_tail(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"m v=1\nm v=2"]))

        assert accumulator.metrics == [metric(1.0)]
        assert accumulator.errors == []
        assert log.messages("debug") == [
            "Discarded 5 bytes of unterminated stdout output"
        ]

    async def test_read_error_is_reported_and_ends_loop(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)
        stream = FakeByteStream([b"m v=1\n"], error=OSError("pipe broke"))

        await reader.read(stream)

        assert accumulator.metrics == [metric(1.0)]
        [error] = accumulator.errors
        assert isinstance(error, StreamReadError)
        assert error.stream == "stdout"
        assert isinstance(error.cause, OSError)

    async def test_unexpected_parser_error_does_not_stop_later_records(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        parser = ExplodingParser()
        reader = BatchLineReader(parser, accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"m v=1\nboom\nm v=2\nm v=3\n"]))

        assert accumulator.metrics == [metric(1.0), metric(2.0), metric(3.0)]
        [error] = accumulator.errors
        assert isinstance(error, StreamDecodeError)
        assert error.stream == "stdout"
        assert isinstance(error.cause, RuntimeError)
        assert "parser state corrupted" in str(error)
        assert parser.calls == 4

    async def test_failed_record_triggers_no_metrics_notice(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"m v=1\nnot line protocol\n"]))

        assert len(accumulator.errors) == 1
        assert log.messages("debug") == [NO_METRICS_CREATED_MSG]

    async def test_closed_stream_ends_quietly(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        stream = FakeByteStream([b"m v=1\n"])
        await stream.aclose()
        reader = BatchLineReader(LineProtocolParser(), accumulator, log, notice=notice)

        await reader.read(stream)

        assert accumulator.metrics == []
        assert accumulator.errors == []

    async def test_no_metrics_notice_logged_once_across_readers(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        first = BatchLineReader(SilentParser(), accumulator, log, notice=notice)
        second = BatchLineReader(SilentParser(), accumulator, log, notice=notice)

        await first.read(FakeByteStream([b"a\nb\n"]))
        await second.read(FakeByteStream([b"c\n"]))

        assert log.messages("debug") == [NO_METRICS_CREATED_MSG]
        assert notice.claimed

    async def test_no_metrics_notice_skipped_when_already_claimed(
        self, accumulator: MemoryAccumulator, log: RecordingLogger, notice: OnceGuard
    ) -> None:
        _ = notice.claim()
        reader = BatchLineReader(SilentParser(), accumulator, log, notice=notice)

        await reader.read(FakeByteStream([b"a\n"]))

        assert log.records == []


class TestStreamingReader:
    async def test_forwards_decoded_metrics(
        self, accumulator: MemoryAccumulator
    ) -> None:
        reader = StreamingReader(LineProtocolParser(), accumulator)

        await reader.read(FakeByteStream([b"m v=1\nm v", b"=2\nm v=3"]))

        assert accumulator.metrics == [metric(1.0), metric(2.0), metric(3.0)]
        assert accumulator.errors == []

    async def test_end_of_stream_is_not_an_error(
        self, accumulator: MemoryAccumulator
    ) -> None:
        decoder = ScriptedDecoder([metric(1.0)])
        reader = StreamingReader(ScriptedStreamingParser(decoder), accumulator)

        await reader.read(FakeByteStream([]))

        assert accumulator.metrics == [metric(1.0)]
        assert accumulator.errors == []
        assert decoder.calls == 2

    async def test_parse_error_continues(self, accumulator: MemoryAccumulator) -> None:
        decoder = ScriptedDecoder([metric(1.0), ParseError("bad line"), metric(2.0)])
        reader = StreamingReader(ScriptedStreamingParser(decoder), accumulator)

        await reader.read(FakeByteStream([]))

        assert accumulator.metrics == [metric(1.0), metric(2.0)]
        assert [str(e) for e in accumulator.errors] == ["bad line"]

    async def test_other_error_is_reported_once_and_stops(
        self, accumulator: MemoryAccumulator
    ) -> None:
        decoder = ScriptedDecoder(
            [metric(1.0), RuntimeError("decoder desynchronized"), metric(2.0)]
        )
        reader = StreamingReader(ScriptedStreamingParser(decoder), accumulator)

        await reader.read(FakeByteStream([]))

        assert accumulator.metrics == [metric(1.0)]
        [error] = accumulator.errors
        assert isinstance(error, StreamDecodeError)
        assert isinstance(error.cause, RuntimeError)
        assert decoder.calls == 2

    async def test_line_protocol_parse_error_continues(
        self, accumulator: MemoryAccumulator
    ) -> None:
        reader = StreamingReader(LineProtocolParser(), accumulator)

        await reader.read(FakeByteStream([b"m v=1\nm\nm v=3\n"]))

        assert accumulator.metrics == [metric(1.0), metric(3.0)]
        [error] = accumulator.errors
        assert isinstance(error, ParseError)
        assert error.line_number == 2


class TestStderrRouter:
    @pytest.mark.parametrize(
        ("line", "level", "message"),
        [
            ("E! failed to read sensor", "error", "failed to read sensor"),
            ("W! disk full", "warning", "disk full"),
            ("I! started", "info", "started"),
            ("D! polling", "debug", "polling"),
            ("T! raw frame", "trace", "raw frame"),
        ],
    )
    def test_prefixed_lines_are_routed_without_prefix(
        self,
        accumulator: MemoryAccumulator,
        log: RecordingLogger,
        line: str,
        level: str,
        message: str,
    ) -> None:
        StderrRouter(accumulator, log).route(line)

        assert log.records == [(level, message)]

    def test_unprefixed_line_is_quoted_error(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        StderrRouter(accumulator, log).route("custom text")

        assert log.records == [("error", 'stderr: "custom text"')]

    def test_quotes_and_tabs_are_escaped(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        StderrRouter(accumulator, log).route('say "hi"\tnow')

        assert log.records == [("error", 'stderr: "say \\"hi\\"\\tnow"')]

    def test_prefix_requires_trailing_space(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        StderrRouter(accumulator, log).route("W!tight")

        assert log.records == [("error", 'stderr: "W!tight"')]

    async def test_read_routes_every_line(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        router = StderrRouter(accumulator, log)

        await router.read(FakeByteStream([b"W! disk ", b"full\r\nplain\n", b"I! bye"]))

        assert log.records == [
            ("warning", "disk full"),
            ("error", 'stderr: "plain"'),
            ("info", "bye"),
        ]

    async def test_long_line_is_not_truncated(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        payload = "x" * 200_000
        data = f"I! {payload}\n".encode()
        chunks = [data[i : i + 4096] for i in range(0, len(data), 4096)]

        await StderrRouter(accumulator, log).read(FakeByteStream(chunks))

        assert log.records == [("info", payload)]

    async def test_invalid_utf8_is_escaped(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        await StderrRouter(accumulator, log).read(FakeByteStream([b"E! bad \xff\n"]))

        assert log.records == [("error", r"bad \xff")]

    async def test_invalid_utf8_in_unprefixed_line_is_kept(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        await StderrRouter(accumulator, log).read(FakeByteStream([b"raw \xfe\n"]))

        assert log.records == [("error", r'stderr: "raw \\xfe"')]

    async def test_read_error_is_reported(
        self, accumulator: MemoryAccumulator, log: RecordingLogger
    ) -> None:
        stream = FakeByteStream([b"I! one\n"], error=OSError("pipe broke"))

        await StderrRouter(accumulator, log).read(stream)

        assert log.records == [("info", "one")]
        [error] = accumulator.errors
        assert isinstance(error, StreamReadError)
        assert error.stream == "stderr"
