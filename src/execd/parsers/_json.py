"""JSON metrics parser.

Each record is a JSON object, or a JSON array of objects, shaped as::

    {"name": "cpu", "tags": {"host": "a"}, "fields": {"usage": 0.5}, "timestamp": 1}

``tags`` and ``timestamp`` are optional. This parser only supports
buffered parsing, so stdout is split on newlines before it is called.
"""

from typing import ClassVar, final

import orjson
from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from execd._models import Metric
from execd.exceptions import ParseError


class _JsonMetric(BaseModel):
    """Validation model for a single JSON metric object."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    tags: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, StrictBool | int | float | str] = Field(min_length=1)
    timestamp: int | None = None


@final
class JsonParser:
    """Parser for newline-delimited JSON metrics."""

    __slots__ = ()

    def parse(self, data: bytes) -> list[Metric]:
        """Parse a JSON record.

        Args:
            data: A JSON object or array of objects.

        Returns:
            The parsed metrics, in order. Blank input yields nothing.

        Raises:
            ParseError: If the record is not valid JSON or does not
                describe metrics.
        """
        text = data.strip()
        if not text:
            return []

        try:
            payload: object = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            msg = f"invalid JSON: {e}"
            raise ParseError(msg, text=text.decode(errors="replace")) from e

        items = payload if isinstance(payload, list) else [payload]

        metrics: list[Metric] = []
        for item in items:
            try:
                model = _JsonMetric.model_validate(item)
            except ValidationError as e:
                first = e.errors()[0]
                location = ".".join(str(part) for part in first["loc"]) or "record"
                msg = f"invalid metric at {location}: {first['msg']}"
                raise ParseError(msg, text=text.decode(errors="replace")) from e

            metrics.append(
                Metric(
                    name=model.name,
                    tags=dict(model.tags),
                    fields=dict(model.fields),
                    timestamp=model.timestamp,
                )
            )
        return metrics
