"""
Shared pytest fixtures for logkit tests.

- Every test starts with a fresh service registry and the default logger
  reset (no stdlib redirect, JSON on stdout).
- ``buf`` / ``json_records`` capture records written by the default logger.
"""

import io
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Ensure logkit package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from logkit import fctx, logger


@pytest.fixture(autouse=True)
def _reset_logkit(monkeypatch: pytest.MonkeyPatch):
    """Isolate process-wide service identity and default logger per test."""
    monkeypatch.setattr(fctx, "_registry", fctx.ServiceRegistry())
    logger.shutdown()
    yield
    logger.shutdown()


@pytest.fixture
def buf() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def json_records(buf: io.StringIO) -> Callable[[], list[dict[str, Any]]]:
    """Initialise the default logger as JSON into ``buf`` and return a reader."""
    logger.init("json", stream=buf)

    def read() -> list[dict[str, Any]]:
        return [json.loads(line) for line in buf.getvalue().splitlines()]

    return read
