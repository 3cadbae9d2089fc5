"""Context helpers for txisolate structlog instrumentation.

All txisolate metadata is namespaced with the 'isolation_' prefix so it can be
told apart from whatever the host test suite binds to the structlog context.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

import structlog

PREFIX = "isolation_"


def _prefixed(key: str) -> str:
    return key if key.startswith(PREFIX) else f"{PREFIX}{key}"


def get_isolation_context() -> Dict[str, Any]:
    """Return a copy of all active txisolate metadata."""
    ctx = structlog.contextvars.get_contextvars()
    return {k: v for k, v in ctx.items() if k.startswith(PREFIX)}


def clear_isolation_context() -> None:
    """Remove all txisolate metadata from the current context."""
    metadata = get_isolation_context()
    if metadata:
        structlog.contextvars.unbind_contextvars(*metadata.keys())


def set_isolation_context(**metadata: Any) -> None:
    """Bind metadata to the current structlog context.

    Keys are prefixed with 'isolation_' and None values are dropped.
    """
    filtered = {_prefixed(k): v for k, v in metadata.items() if v is not None}
    if filtered:
        structlog.contextvars.bind_contextvars(**filtered)


def unset_isolation_context(*keys: str) -> None:
    """Remove specific metadata keys from the current context."""
    filtered = tuple(_prefixed(k) for k in keys if k)
    if filtered:
        structlog.contextvars.unbind_contextvars(*filtered)


@contextmanager
def bind_isolation_context(**metadata: Any) -> Iterator[None]:
    """Context manager that binds metadata temporarily, restoring shadowed values."""
    filtered = {_prefixed(k): v for k, v in metadata.items() if v is not None}

    if not filtered:
        yield
        return

    current = structlog.contextvars.get_contextvars()
    previous = {k: current[k] for k in filtered if k in current}

    structlog.contextvars.bind_contextvars(**filtered)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*filtered.keys())
        if previous:
            structlog.contextvars.bind_contextvars(**previous)
