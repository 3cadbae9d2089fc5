"""Txisolate logging helpers for structlog context management."""

from __future__ import annotations

from .context import (  # noqa: F401
    bind_isolation_context,
    clear_isolation_context,
    get_isolation_context,
    set_isolation_context,
    unset_isolation_context,
)

__all__ = [
    "bind_isolation_context",
    "clear_isolation_context",
    "get_isolation_context",
    "set_isolation_context",
    "unset_isolation_context",
]
