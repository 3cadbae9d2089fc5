"""Shared structlog configuration for txisolate.

This module provides structlog configuration that enables:

1. Context variable merging (required for the ``@bind_context`` decorator)
2. Stdlib metadata decoration (logger name, level) while leaving rendering to
   the formatters configured through ``logconfig_utils``
3. Isolation of txisolate metadata to ``txisolate.*`` loggers
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from txisolate.core.exceptions import ConfigError
from txisolate.core.logging.context import get_isolation_context

# renderers for handlers that know nothing about structlog, such as pytest's
RENDERERS: Dict[str, Callable[[], Callable]] = {
    "console": lambda: structlog.dev.ConsoleRenderer(colors=False),
    "json": structlog.processors.JSONRenderer,
}


def create_isolation_context_processor(
    logger_prefixes: Sequence[str],
) -> Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]:
    """Create a processor that keeps txisolate metadata on txisolate loggers only.

    Args:
        logger_prefixes: Logger name prefixes that should receive the metadata.

    Returns:
        A structlog processor.
    """
    prefixes = tuple(logger_prefixes)

    def isolate_context_processor(
        logger: Any, method_name: str, event_dict: Dict[str, Any]
    ) -> Dict[str, Any]:
        metadata = get_isolation_context()
        if not metadata:
            return event_dict

        logger_name = event_dict.get("logger")
        if not logger_name and hasattr(logger, "name"):
            logger_name = getattr(logger, "name")

        if isinstance(logger_name, str) and logger_name.startswith(prefixes):
            for key, value in metadata.items():
                event_dict.setdefault(key, value)
        else:
            for key in metadata:
                event_dict.pop(key, None)

        return event_dict

    return isolate_context_processor


def _build_structlog_processor_chain(
    *,
    logger_prefixes: Optional[Sequence[str]],
    extra_processors: Iterable[Callable],
    renderer: Optional[str] = None,
) -> List[Callable]:
    """Compose the processor chain.

    PROCESSOR CHAIN ORDER:

    1. merge_contextvars
    2. filter_by_level (stdlib)
    3. add_logger_name (stdlib)
    4. add_log_level (stdlib)
    5. isolation context processor
    6. extra processors supplied by the caller
    7. ProcessorFormatter.wrap_for_formatter (keeps stdlib handlers working),
       or the named renderer when no ProcessorFormatter handler is installed
    """
    processors: List[Callable] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        create_isolation_context_processor(list(logger_prefixes or ["txisolate."])),
    ]
    processors.extend(list(extra_processors))
    if renderer is None:
        processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)
    else:
        try:
            processors.append(RENDERERS[renderer]())
        except KeyError as exc:
            raise ConfigError(
                f'Unknown log renderer "{renderer}". Expected one of {sorted(RENDERERS)}.'
            ) from exc
    return processors


def configure_structlog(
    *,
    extra_processors: Optional[Iterable[Callable]] = None,
    renderer: Optional[str] = None,
    force: bool = False,
) -> bool:
    """Configure structlog for txisolate.

    When the host test suite has already configured structlog its setup is left
    alone unless ``force`` is set.

    Args:
        extra_processors: processors run before the final step.
        renderer: ``"console"`` or ``"json"`` to render events to a string
            before they reach stdlib handlers. Without it events are handed to
            the formatters set up by ``configure_logging``.
        force: reconfigure even if structlog is already configured.

    Returns:
        True if this call installed the txisolate configuration.
    """
    if is_structlog_configured() and not force:
        return False

    processors = _build_structlog_processor_chain(
        logger_prefixes=["txisolate."],
        extra_processors=list(extra_processors or []),
        renderer=renderer,
    )

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return True


def is_structlog_configured() -> bool:
    """Check if structlog has been configured."""
    return structlog.is_configured()
