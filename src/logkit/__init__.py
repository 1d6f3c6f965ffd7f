"""
logkit - leveled structured logging with request-scoped tags.

This package provides:
- Leveled loggers carrying immutable, inherited key-values
- Call-site metadata (file, function) resolved when records are written
- Service-namespaced request tags for logs and metrics
- logfmt, JSON and discard encodings

Usage:
    from logkit import fctx, logger

    # Configure once at startup
    fctx.register_service("users")
    fctx.init_service("users")
    logger.init("json")

    # Log
    logger.info().log("msg", "started")

    # Request tags
    ctx = fctx.with_tag(None, fctx.TagKind.ENDPOINT, "GetUser")
    logger.with_context(ctx).info().log("msg", "handled")
"""

from logkit import fctx, logger
from logkit.errors import ConfigError, InvalidConfigError, InvalidFormatError, LogkitError
from logkit.logger import (
    NOMINAL_STACK_DEPTH,
    Emitter,
    Level,
    Leveler,
    add_default_keyvals,
    current_format,
    debug,
    default_leveler,
    error,
    info,
    init,
    log_error,
    shutdown,
    warn,
    with_context,
    with_custom_depth,
    with_keyvals,
)
from logkit.sinks import LogFormat, new_sink

__all__ = [
    "fctx",
    "logger",
    # Errors
    "LogkitError",
    "ConfigError",
    "InvalidConfigError",
    "InvalidFormatError",
    # Logging
    "NOMINAL_STACK_DEPTH",
    "Emitter",
    "Level",
    "Leveler",
    "LogFormat",
    "add_default_keyvals",
    "current_format",
    "debug",
    "default_leveler",
    "error",
    "info",
    "init",
    "log_error",
    "new_sink",
    "shutdown",
    "warn",
    "with_context",
    "with_custom_depth",
    "with_keyvals",
]
