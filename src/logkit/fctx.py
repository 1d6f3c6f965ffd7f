"""
Request-scoped tags with service-namespaced context keys.

A service identifies itself once at startup with ``init_service()``. Request
handlers then store tags (endpoint, auth principal, ...) into a request
context under keys built by ``new_context_key()``, and logging or metrics
code pulls a fixed set of them back out with ``extract_log_tags()`` /
``extract_metric_tags()``.

Keys are namespaced by service so that two services storing an "endpoint"
into a shared context never read each other's value.

If you see ``svc_unset`` in logs or metrics, ``init_service()`` was not
called (or was called with a name that was never registered).

Usage:
    from logkit import fctx

    fctx.register_service("users")
    fctx.init_service("users")

    ctx = fctx.with_tag(None, fctx.TagKind.ENDPOINT, "GetUser")
    fctx.extract_metric_tags(ctx)  # ["endpoint", "GetUser"]

    # Or through the ambient request context
    with fctx.use_context(ctx):
        fctx.extract_log_tags()

Design choice: contextvars
- The ambient request context follows threads and asyncio tasks
- Explicit contexts can still be passed to every extraction function
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, NewType, cast

ServiceKey = NewType("ServiceKey", int)

SVC_UNSET = ServiceKey(0)

# Sentinel tag values
SVC_UNSET_VALUE = "svc_unset"
TAG_UNSET_VALUE = "unset"


class TagKind(IntEnum):
    """Categories of request-scoped values that may be placed into a context."""

    UNSET = 0
    ENDPOINT = 1
    AUTH = 2


@dataclass(frozen=True)
class ContextKey:
    """
    A context lookup key tied to one service and one tag kind.

    Build these with ``new_context_key()`` so the service half always comes
    from the running service's identity.
    """

    service: ServiceKey
    tag: TagKind


# Tags extracted by extract_metric_tags / extract_log_tags, by output name.
SELECTED_TAGS: dict[str, TagKind] = {
    "endpoint": TagKind.ENDPOINT,
}


class ServiceRegistry:
    """
    Known service names and the set-once identity of the running service.

    ``init()`` is first-call-wins: later calls, with any name, return the
    identity established by the first one.
    """

    def __init__(self, known: Mapping[str, int] | None = None):
        self._known: dict[str, ServiceKey] = {
            name: ServiceKey(key) for name, key in (known or {}).items()
        }
        self._lock = threading.Lock()
        self._service = SVC_UNSET
        self._initialized = False

    def register(self, name: str) -> ServiceKey:
        """Recognise ``name`` as a service, returning its key."""
        with self._lock:
            if name not in self._known:
                used = set(self._known.values()) | {SVC_UNSET}
                self._known[name] = ServiceKey(max(used) + 1)
            return self._known[name]

    def init(self, name: str) -> ServiceKey:
        with self._lock:
            if not self._initialized:
                self._service = self._known.get(name, SVC_UNSET)
                self._initialized = True
            return self._service

    @property
    def service(self) -> ServiceKey:
        return self._service

    @property
    def initialized(self) -> bool:
        return self._initialized

    def known(self) -> dict[str, ServiceKey]:
        with self._lock:
            return dict(self._known)


_registry = ServiceRegistry()

# Ambient request context for the current thread / task
_request_context: ContextVar[Mapping[Any, Any]] = ContextVar("request_context")  # noqa: B039


def register_service(name: str) -> ServiceKey:
    """Add ``name`` to the services ``init_service()`` recognises."""
    return _registry.register(name)


def init_service(name: str) -> ServiceKey:
    """
    Set the identity of the running service.

    Should be called once at startup. Only the first call has any effect, and
    an unrecognised name falls back to ``SVC_UNSET`` rather than raising.
    """
    return _registry.init(name)


def current_service() -> ServiceKey:
    return _registry.service


def new_context_key(tag: TagKind) -> ContextKey:
    """Create a context key for ``tag`` that is unique to the running service."""
    return ContextKey(_registry.service, tag)


def current_context() -> Mapping[Any, Any]:
    """Get the ambient request context (empty if none is in use)."""
    return _request_context.get({})


def with_tag(ctx: Mapping[Any, Any] | None, tag: TagKind, value: str) -> dict[Any, Any]:
    """Return a copy of ``ctx`` with ``value`` stored under this service's key for ``tag``."""
    updated = dict(ctx or {})
    updated[new_context_key(tag)] = value
    return updated


@contextmanager
def use_context(ctx: Mapping[Any, Any]) -> Iterator[Mapping[Any, Any]]:
    """
    Make ``ctx`` the ambient request context for the enclosed block.

    Usage:
        with use_context(fctx.with_tag(None, TagKind.ENDPOINT, "GetUser")):
            logger.with_context().info().log("msg", "handled")
    """
    token = _request_context.set(ctx)
    try:
        yield ctx
    finally:
        _request_context.reset(token)


def extract_metric_tags(ctx: Mapping[Any, Any] | None = None) -> list[str]:
    """
    Extract the selected tags from a context as ``[name, value, ...]``.

    Suitable for passing straight to a metrics client's tag arguments. Tags
    come out sorted by name. A service that was never identified yields
    ``"svc_unset"`` for every tag; a tag missing from the context yields
    ``"unset"``.
    """
    if ctx is None:
        ctx = current_context()

    tags: list[str] = []
    for name, tag in sorted(SELECTED_TAGS.items()):
        tags.append(name)
        if _registry.service == SVC_UNSET:
            tags.append(SVC_UNSET_VALUE)
            continue
        value = ctx.get(new_context_key(tag))
        if value is None:
            tags.append(TAG_UNSET_VALUE)
            continue
        tags.append(cast(str, value))
    return tags


def extract_log_tags(ctx: Mapping[Any, Any] | None = None) -> list[Any]:
    """Extract the selected tags from a context as alternating log key-values."""
    return list(extract_metric_tags(ctx))


__all__ = [
    "SELECTED_TAGS",
    "SVC_UNSET",
    "SVC_UNSET_VALUE",
    "TAG_UNSET_VALUE",
    "ContextKey",
    "ServiceKey",
    "ServiceRegistry",
    "TagKind",
    "current_context",
    "current_service",
    "extract_log_tags",
    "extract_metric_tags",
    "init_service",
    "new_context_key",
    "register_service",
    "use_context",
    "with_tag",
]
