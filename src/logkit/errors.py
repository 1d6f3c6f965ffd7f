"""
Structured error types for logkit.

logkit only raises for configuration mistakes made at startup. Everything a
request can get wrong (no service identity, no tag stored in the context)
degrades to sentinel values instead of raising, so logging is never the cause
of a failed request.

Architecture:
    ::

        LogkitError          (category, cause)
             │
        ConfigError          (CONFIG)
             │
        InvalidConfigError   (key, value)
             │
        InvalidFormatError   (key="format")

Examples:
    >>> from logkit.errors import InvalidFormatError
    >>> err = InvalidFormatError("xml")
    >>> err.to_dict()["category"]
    'CONFIG'
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Classification of logkit errors."""

    INTERNAL = "INTERNAL"
    CONFIG = "CONFIG"


class LogkitError(Exception):
    """
    Base exception for all logkit errors.

    Carries a category for routing and an optional underlying cause, which is
    also chained as ``__cause__`` so tracebacks keep the original failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigError(LogkitError):
    """
    Configuration error.

    Raised during startup; the process should not continue with it.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class InvalidFormatError(InvalidConfigError):
    """The requested log output format is not one logkit knows how to encode."""

    def __init__(self, value: Any):
        super().__init__("format", value, f"invalid log format: {value!r}")


__all__ = [
    "ErrorCategory",
    "LogkitError",
    "ConfigError",
    "InvalidConfigError",
    "InvalidFormatError",
]
