"""Run an external command as a structured metrics source.

execd launches a command, parses the metrics it writes to stdout, routes
its stderr to a leveled log and keeps it running across crashes.

Key Components:
    - Execd: Lifecycle controller for one command
    - ExecdConfig: Settings for the command and its supervision
    - BatchLineReader: Newline-framed stdout parsing
    - StreamingReader: Continuous stdout decoding for self-framing parsers
    - StderrRouter: Severity-prefix routing of stderr lines
    - decode_mode: Choose the stdout reader for a parser
    - OnceGuard: At-most-once guard for the "no metrics" notice
    - Accumulator, LogSink, Parser, StreamingParser: Collaborator protocols
    - ConsoleAccumulator, MemoryAccumulator: Accumulator implementations

Example:
    >>> from execd import Execd, ExecdConfig, MemoryAccumulator
    >>> from execd.parsers import LineProtocolParser
    >>> execd = Execd(ExecdConfig(command=("./sensors.sh",)))
    >>> execd.init()
    >>> execd.set_parser(LineProtocolParser())
    >>> async with anyio.create_task_group() as tg:
    ...     await execd.start(MemoryAccumulator(), tg)
"""

from ._execd import Execd
from ._logging import LeveledLogger, create_logger
from ._models import DecodeMode, ExecdState, FieldValue, Metric
from ._once import NO_METRICS_CREATED_MSG, NO_METRICS_NOTICE, OnceGuard
from ._output import ConsoleAccumulator, MemoryAccumulator
from ._protocol import Accumulator, LogSink, MetricDecoder, Parser, StreamingParser
from ._readers import BatchLineReader, StderrRouter, StreamingReader, decode_mode
from .config import ExecdConfig, LoggingConfig, load_config

__all__ = [
    "NO_METRICS_CREATED_MSG",
    "NO_METRICS_NOTICE",
    "Accumulator",
    "BatchLineReader",
    "ConsoleAccumulator",
    "DecodeMode",
    "Execd",
    "ExecdConfig",
    "ExecdState",
    "FieldValue",
    "LeveledLogger",
    "LogSink",
    "LoggingConfig",
    "MemoryAccumulator",
    "Metric",
    "MetricDecoder",
    "OnceGuard",
    "Parser",
    "StderrRouter",
    "StreamingParser",
    "StreamingReader",
    "create_logger",
    "decode_mode",
    "load_config",
]
