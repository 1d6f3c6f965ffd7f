"""
Output sinks for log records.

A sink takes one ordered key-value record and writes it. Three encodings are
available and are interchangeable: the same record produces the same keys in
every format, only the serialization differs.

- ``logfmt``: ``key=value`` pairs on one line (structlog ``LogfmtRenderer``)
- ``json``: one JSON object per line (structlog ``JSONRenderer``)
- ``nop``: discard everything

Usage:
    sink = new_sink("json")
    sink.write([("level", "info"), ("msg", "hello")])
    # {"level": "info", "msg": "hello"}
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Protocol, TextIO

import structlog
from structlog.types import Processor

from logkit.errors import InvalidFormatError
from logkit.values import KeyVal


class LogFormat(str, Enum):
    """Supported record encodings."""

    LOGFMT = "logfmt"
    JSON = "json"
    NOP = "nop"

    @classmethod
    def parse(cls, value: LogFormat | str) -> LogFormat:
        """Resolve ``value`` to a format, raising ``InvalidFormatError`` if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise InvalidFormatError(value) from e


DEFAULT_FORMAT = LogFormat.JSON


class Sink(Protocol):
    """Destination that encodes and writes one record per call."""

    def write(self, record: Sequence[KeyVal]) -> None: ...


def _encode(value: Any) -> Any:
    if isinstance(value, BaseException):
        return str(value)
    return value


def logfmt_key(key: str) -> str:
    """Replace whitespace, control characters, ``=`` and quotes in a key with ``_``."""
    return "".join("_" if c <= " " or c in '="' else c for c in key) or "_"


class RenderingSink:
    """Render records with a structlog renderer and print them one per line."""

    def __init__(
        self,
        renderer: Processor,
        stream: TextIO | None = None,
        key_encoder: Callable[[str], str] | None = None,
    ):
        self._renderer = renderer
        self._key_encoder = key_encoder
        self._out = structlog.PrintLogger(stream)

    def write(self, record: Sequence[KeyVal]) -> None:
        # Later duplicates overwrite earlier ones
        event_dict = {key: _encode(value) for key, value in record}
        if self._key_encoder is not None:
            event_dict = {self._key_encoder(key): value for key, value in event_dict.items()}
        self._out.msg(self._renderer(self._out, "msg", event_dict))


class NopSink:
    """Discard every record."""

    def write(self, record: Sequence[KeyVal]) -> None:
        pass


def new_sink(format: LogFormat | str, stream: TextIO | None = None) -> Sink:
    """Build the sink for ``format`` writing to ``stream`` (stdout by default)."""
    log_format = LogFormat.parse(format)
    if log_format is LogFormat.JSON:
        return RenderingSink(structlog.processors.JSONRenderer(), stream)
    if log_format is LogFormat.LOGFMT:
        return RenderingSink(
            structlog.processors.LogfmtRenderer(bool_as_flag=False), stream, key_encoder=logfmt_key
        )
    return NopSink()


__all__ = [
    "DEFAULT_FORMAT",
    "LogFormat",
    "NopSink",
    "RenderingSink",
    "Sink",
    "logfmt_key",
    "new_sink",
]
