"""
Leveled structured logging with inherited key-values.

A ``Leveler`` carries an immutable set of key-values over a sink. Adding
key-values (``with_keyvals``, ``with_custom_depth``, ``with_context``) returns
a new Leveler and never touches the parent, so one Leveler can be shared and
forked freely across threads and tasks. A level must be chosen before
anything can be written:

    log = logger.with_keyvals("component", "billing")
    log.info().log("msg", "charged", "amount", 12)
    log.warn().log("msg", "retrying")

The module functions act on the process-wide default Leveler, which carries
``timestamp``, ``file`` and ``function`` on every record:

    from logkit import logger

    logger.init("logfmt")
    logger.info().log("msg", "service started")

    if err := validate(req):
        return logger.log_error(err, "user", user_id)

Call sites:
    ``file``/``caller`` and ``function`` are resolved when a record is
    written, ``NOMINAL_STACK_DEPTH`` frames above the resolver, which is the
    frame that called ``Emitter.log()``. A helper that logs on behalf of its
    caller adds one frame per layer of its own:

        def log_slow(op):
            logger.with_custom_depth(
                logger.NOMINAL_STACK_DEPTH + 1, "op", op
            ).warn().log("msg", "slow operation")

Standard library logging:
    ``init()`` and ``add_default_keyvals()`` replace the root ``logging``
    logger's handlers with one that re-emits every record at info level
    through the default Leveler, with ``function`` fixed to
    ``"stdlibLoggerRedirect"``. ``shutdown()`` puts the old handlers back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TextIO, TypeVar

from logkit import fctx
from logkit.errors import InvalidConfigError
from logkit.sinks import DEFAULT_FORMAT, LogFormat, Sink, new_sink
from logkit.values import KeyVal, bind_values, caller, function, pairs, timestamp_utc

E = TypeVar("E", bound=BaseException)

# Frames between a call-site resolver and the caller of Emitter.log():
# resolver -> bind_values -> Emitter.log -> caller
NOMINAL_STACK_DEPTH = 3

ERROR_KEY = "err"
LEVEL_KEY = "level"

# Function name cannot be resolved through the stdlib redirect
STDLIB_FUNCTION_MARKER = "stdlibLoggerRedirect"


class Level(str, Enum):
    """Record severities, written under ``LEVEL_KEY``."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Emitter:
    """A level-bound logger, ready to write records."""

    __slots__ = ("_sink", "_keyvals")

    def __init__(self, sink: Sink, keyvals: tuple[KeyVal, ...]):
        self._sink = sink
        self._keyvals = keyvals

    @property
    def keyvals(self) -> tuple[KeyVal, ...]:
        return self._keyvals

    def log(self, *keyvals: Any, **fields: Any) -> None:
        """Write one record: the bound key-values, then ``keyvals`` and ``fields``."""
        # bind_values must be called from this frame, see NOMINAL_STACK_DEPTH
        record = bind_values(self._keyvals)
        record.extend(pairs(keyvals, fields))
        self._sink.write(record)


class Leveler:
    """
    Accumulated key-values over a sink, with no level chosen yet.

    Instances are immutable; every ``with_*`` method returns a new Leveler
    whose key-values are the parent's followed by the new ones. Duplicate keys
    are left in place and resolved last-write-wins by the sink.
    """

    __slots__ = ("_sink", "_keyvals")

    def __init__(self, sink: Sink, keyvals: tuple[KeyVal, ...] = ()):
        self._sink = sink
        self._keyvals = keyvals

    @property
    def sink(self) -> Sink:
        return self._sink

    @property
    def keyvals(self) -> tuple[KeyVal, ...]:
        return self._keyvals

    def _at(self, level: Level) -> Emitter:
        return Emitter(self._sink, ((LEVEL_KEY, level.value),) + self._keyvals)

    def info(self) -> Emitter:
        return self._at(Level.INFO)

    def debug(self) -> Emitter:
        return self._at(Level.DEBUG)

    def warn(self) -> Emitter:
        return self._at(Level.WARN)

    def error(self) -> Emitter:
        return self._at(Level.ERROR)

    def with_keyvals(self, *keyvals: Any, **fields: Any) -> Leveler:
        """Return a Leveler carrying these key-values after the current ones."""
        return Leveler(self._sink, self._keyvals + pairs(keyvals, fields))

    def with_custom_depth(self, depth: int, *keyvals: Any, **fields: Any) -> Leveler:
        """
        Add ``caller`` and ``function`` resolved ``depth`` frames up at emission.

        Lets helpers that log on behalf of their caller report the caller's
        location instead of their own.
        """
        return self.with_keyvals(
            "caller", caller(depth),
            "function", function(depth),
        ).with_keyvals(*keyvals, **fields)

    def with_context(self, ctx: Mapping[Any, Any] | None = None) -> Leveler:
        """
        Add call-site metadata and the request tags found in ``ctx``.

        With no ``ctx`` the ambient request context (``fctx.use_context``) is used.
        """
        return self.with_custom_depth(NOMINAL_STACK_DEPTH, *fctx.extract_log_tags(ctx))

    def log_error(self, err: E, *keyvals: Any, **fields: Any) -> E:
        """
        Log ``err`` at error level under ``"err"`` and return it unchanged.

        Usage:
            except LookupError as e:
                raise log.log_error(e, "user", user_id)
        """
        # +1 for this method's frame
        self.with_custom_depth(NOMINAL_STACK_DEPTH + 1, *keyvals, **fields).error().log(ERROR_KEY, err)
        return err


class StdlibHandler(logging.Handler):
    """Re-emit standard library log records through a logkit emitter."""

    def __init__(self, emitter: Emitter, level: int = logging.NOTSET):
        super().__init__(level)
        self.emitter = emitter

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.emitter.log(
                "caller", f"{record.pathname}:{record.lineno}",
                "msg", self.format(record),
            )
        except Exception:
            self.handleError(record)


def _baseline(sink: Sink) -> Leveler:
    return Leveler(sink).with_keyvals(
        "timestamp", timestamp_utc(),
        "file", caller(NOMINAL_STACK_DEPTH),
        "function", function(NOMINAL_STACK_DEPTH),
    )


@dataclass
class _Runtime:
    """Process-wide logging state; written only under ``_lock``."""

    leveler: Leveler
    format: LogFormat
    stdlib_level: int = logging.INFO
    stdlib_handler: StdlibHandler | None = None
    # Root handlers taken off while the redirect is installed
    displaced_handlers: list[logging.Handler] = field(default_factory=list)


_lock = threading.RLock()
_runtime = _Runtime(leveler=_baseline(new_sink(DEFAULT_FORMAT)), format=DEFAULT_FORMAT)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    try:
        return logging.getLevelNamesMapping()[level.strip().upper()]
    except KeyError as e:
        raise InvalidConfigError("stdlib_level", level) from e


def _redirect_stdlib() -> None:
    """
    Make a handler built from the current default the root logger's only handler.

    Handlers found on the root are kept aside until ``shutdown()``.
    """
    handler = StdlibHandler(
        _runtime.leveler.with_keyvals("function", STDLIB_FUNCTION_MARKER).info()
    )
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        if existing is not _runtime.stdlib_handler and existing not in _runtime.displaced_handlers:
            _runtime.displaced_handlers.append(existing)
    root.addHandler(handler)
    root.setLevel(_runtime.stdlib_level)
    _runtime.stdlib_handler = handler


def init(
    format: LogFormat | str = DEFAULT_FORMAT,
    *,
    stream: TextIO | None = None,
    stdlib_level: int | str = logging.INFO,
) -> None:
    """
    Rebuild the default logger with the given output format.

    Installs the baseline ``timestamp``, ``file`` and ``function`` key-values
    on a fresh sink; anything added with ``add_default_keyvals()`` before this
    call is discarded. Raises ``InvalidFormatError`` for an unknown format and
    ``InvalidConfigError`` for an unknown ``stdlib_level``.

    Args:
        format: ``"logfmt"``, ``"json"`` or ``"nop"``
        stream: Where records are written (default: stdout)
        stdlib_level: Minimum level of stdlib ``logging`` records to redirect
    """
    log_format = LogFormat.parse(format)
    level = _resolve_level(stdlib_level)
    with _lock:
        _runtime.format = log_format
        _runtime.stdlib_level = level
        _runtime.leveler = _baseline(new_sink(log_format, stream))
        _redirect_stdlib()


def add_default_keyvals(*keyvals: Any, **fields: Any) -> None:
    """Add key-values to every record written through the default logger."""
    with _lock:
        _runtime.leveler = _runtime.leveler.with_keyvals(*keyvals, **fields)
        _redirect_stdlib()


def shutdown() -> None:
    """
    Remove the stdlib redirect and restore the stdout JSON default logger.

    Root handlers displaced by the redirect are put back.
    """
    with _lock:
        root = logging.getLogger()
        if _runtime.stdlib_handler is not None:
            root.removeHandler(_runtime.stdlib_handler)
            _runtime.stdlib_handler = None
        for displaced in _runtime.displaced_handlers:
            root.addHandler(displaced)
        _runtime.displaced_handlers = []
        _runtime.format = DEFAULT_FORMAT
        _runtime.stdlib_level = logging.INFO
        _runtime.leveler = _baseline(new_sink(DEFAULT_FORMAT))


def default_leveler() -> Leveler:
    return _runtime.leveler


def current_format() -> LogFormat:
    return _runtime.format


def info() -> Emitter:
    """Return an info level emitter from the default logger."""
    return _runtime.leveler.info()


def debug() -> Emitter:
    """Return a debug level emitter from the default logger."""
    return _runtime.leveler.debug()


def warn() -> Emitter:
    """Return a warn level emitter from the default logger."""
    return _runtime.leveler.warn()


def error() -> Emitter:
    """Return an error level emitter from the default logger."""
    return _runtime.leveler.error()


def with_keyvals(*keyvals: Any, **fields: Any) -> Leveler:
    return _runtime.leveler.with_keyvals(*keyvals, **fields)


def with_custom_depth(depth: int, *keyvals: Any, **fields: Any) -> Leveler:
    return _runtime.leveler.with_custom_depth(depth, *keyvals, **fields)


def with_context(ctx: Mapping[Any, Any] | None = None) -> Leveler:
    return _runtime.leveler.with_context(ctx)


def log_error(err: E, *keyvals: Any, **fields: Any) -> E:
    """
    Log ``err`` through the default logger under ``"err"`` and return it.

    Other key-values can be given after the error.
    """
    # Only this frame may sit between the caller and Emitter.log
    _runtime.leveler.with_custom_depth(NOMINAL_STACK_DEPTH + 1, *keyvals, **fields).error().log(ERROR_KEY, err)
    return err


__all__ = [
    "ERROR_KEY",
    "LEVEL_KEY",
    "NOMINAL_STACK_DEPTH",
    "STDLIB_FUNCTION_MARKER",
    "Emitter",
    "Level",
    "Leveler",
    "StdlibHandler",
    "add_default_keyvals",
    "current_format",
    "debug",
    "default_leveler",
    "error",
    "info",
    "init",
    "log_error",
    "shutdown",
    "warn",
    "with_context",
    "with_custom_depth",
    "with_keyvals",
]
