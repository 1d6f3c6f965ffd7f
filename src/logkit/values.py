"""
Key-value records and lazily evaluated values.

A log record is an ordered sequence of ``(key, value)`` pairs. Loggers carry
their accumulated pairs around unevaluated: any value wrapped in a
``Valuer`` is only computed when a record is actually written, which is what
lets ``caller()`` and ``function()`` report the frame that emitted the
record rather than the frame that configured the logger.

Stack depth:
    Resolvers returned by ``caller()`` / ``function()`` count frames from
    themselves. At emission the stack is::

        0  the resolver
        1  bind_values()
        2  Emitter.log()
        3  whoever called log()

    so depth 3 names the direct caller of ``log()``. See
    ``logkit.logger.NOMINAL_STACK_DEPTH``.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from types import FrameType
from typing import Any, Union

# Marker paired with a trailing key that has no value
MISSING_VALUE = "(MISSING)"

# Frame could not be resolved (stack shallower than the requested depth)
UNKNOWN_FRAME = "(unknown)"


class Valuer:
    """A value computed each time a record is emitted."""

    __slots__ = ("resolve",)

    def __init__(self, resolve: Callable[[], Any]):
        self.resolve = resolve

    def __repr__(self) -> str:
        return f"Valuer({getattr(self.resolve, '__qualname__', self.resolve)!r})"


Value = Union[str, int, float, bool, BaseException, None]
KeyVal = tuple[str, Union[Value, Valuer]]


def pairs(keyvals: Sequence[Any], fields: Mapping[str, Any] | None = None) -> tuple[KeyVal, ...]:
    """
    Normalise alternating ``key, value, ...`` arguments into pairs.

    A trailing key without a value is paired with ``MISSING_VALUE``. Keyword
    ``fields`` follow the positional pairs in order.
    """
    items = list(keyvals)
    if len(items) % 2:
        items.append(MISSING_VALUE)
    result: list[KeyVal] = [(str(items[i]), items[i + 1]) for i in range(0, len(items), 2)]
    if fields:
        result.extend(fields.items())
    return tuple(result)


def bind_values(keyvals: Sequence[KeyVal]) -> list[KeyVal]:
    """Evaluate every ``Valuer`` in ``keyvals``, returning concrete pairs."""
    # Valuers must be called directly from this frame (no comprehension, which
    # is its own frame before Python 3.12); see the depth table above.
    bound: list[KeyVal] = []
    for key, value in keyvals:
        if isinstance(value, Valuer):
            value = value.resolve()
        bound.append((key, value))
    return bound


def _walk(frame: FrameType | None, depth: int) -> FrameType | None:
    for _ in range(depth):
        if frame is None:
            return None
        frame = frame.f_back
    return frame


def caller(depth: int) -> Valuer:
    """Valuer producing ``path:line`` of the frame ``depth`` levels up at emission."""

    def resolve_caller() -> str:
        frame = _walk(sys._getframe(), depth)
        if frame is None:
            return UNKNOWN_FRAME
        return f"{frame.f_code.co_filename}:{frame.f_lineno}"

    return Valuer(resolve_caller)


def function(depth: int) -> Valuer:
    """Valuer producing the qualified function name ``depth`` levels up at emission."""

    def resolve_function() -> str:
        frame = _walk(sys._getframe(), depth)
        if frame is None:
            return UNKNOWN_FRAME
        return frame.f_code.co_qualname

    return Valuer(resolve_function)


def _utc_now_iso() -> str:
    """Return current UTC time in ISO-8601 format with Z suffix."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f") + "Z"


def timestamp_utc() -> Valuer:
    return Valuer(_utc_now_iso)


__all__ = [
    "MISSING_VALUE",
    "UNKNOWN_FRAME",
    "KeyVal",
    "Value",
    "Valuer",
    "bind_values",
    "caller",
    "function",
    "pairs",
    "timestamp_utc",
]
