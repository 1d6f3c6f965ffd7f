"""Environment-driven startup configuration for logkit.

Services configure logging once at startup, either explicitly through
``logger.init()`` / ``fctx.init_service()`` or from the environment with
``configure()``.

Configuration is read from environment variables (or a ``.env`` file):
- LOGKIT_SERVICE: name of the running service (default: unset)
- LOGKIT_SERVICES: comma-separated service names to recognise
- LOGKIT_LOG_FORMAT: logfmt | json | nop (default: json)
- LOGKIT_STDLIB_LEVEL: minimum level of redirected stdlib records (default: INFO)

Examples:
    >>> from logkit.settings import configure
    >>> settings = configure()  # reads LOGKIT_* from the environment
    >>> settings.log_format
    'json'
"""

from __future__ import annotations

from typing import TextIO

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from logkit import fctx, logger


class LogkitSettings(BaseSettings):
    """
    Logging settings for one service process.

    Fields
    ──────
    service       : Identity passed to ``fctx.init_service``
    services      : Extra names registered before the identity is set
    log_format    : Record encoding for the default logger
    stdlib_level  : Level applied to the root ``logging`` logger
    """

    model_config = SettingsConfigDict(
        env_prefix="LOGKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Identity ─────────────────────────────────────────────────
    service: str = ""
    services: str = Field(
        default="",
        description="Comma-separated service names recognised by init_service",
    )

    # ── Output ───────────────────────────────────────────────────
    log_format: str = "json"
    stdlib_level: str = "INFO"

    def service_names(self) -> list[str]:
        return [name.strip() for name in self.services.split(",") if name.strip()]


def configure(settings: LogkitSettings | None = None, *, stream: TextIO | None = None) -> LogkitSettings:
    """
    Identify the service and initialise the default logger.

    Raises ``InvalidFormatError`` if ``log_format`` is not a known format;
    the process should not start with an undefined encoding.

    Args:
        settings: Explicit settings (default: read from the environment)
        stream: Where records are written (default: stdout)
    """
    settings = settings or LogkitSettings()

    for name in settings.service_names():
        fctx.register_service(name)
    fctx.init_service(settings.service)

    logger.init(settings.log_format, stream=stream, stdlib_level=settings.stdlib_level)
    return settings


__all__ = ["LogkitSettings", "configure"]
