"""Build and apply the stdlib logging configuration for txisolate.

The ``logging`` section of TxIsolateConfig drives a ``logging.config.dictConfig``
payload. Per-logger overrides live under ``logging.loggers``.
"""

import copy
import logging.config
from typing import Any, Dict, Optional

from txisolate.core.configuration import TxIsolateConfig
from txisolate.core.exceptions import ConfigError


RENDERER_FORMATTERS = {
    "console": "txisolate.core.config.formatters.TxIsolateStructlogConsoleFormatter",
    "json": "txisolate.core.config.formatters.TxIsolateStructlogJSONFormatter",
}


def _base_logconfig(level: str, formatter_class: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"structlog": {"()": formatter_class}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "structlog",
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            "txisolate": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            }
        },
    }


def build_logconfig(config: Optional[TxIsolateConfig] = None) -> Dict[str, Any]:
    """Return the dictConfig payload for the current configuration.

    Raises:
        ConfigError: the configured renderer is unknown.
    """
    if config is None:
        config = TxIsolateConfig()
    section = config.get_section_coerced("logging")

    level = str(section.get("level") or "WARNING").upper()
    renderer = section.get("renderer") or "console"
    try:
        formatter_class = RENDERER_FORMATTERS[renderer]
    except KeyError as exc:
        raise ConfigError(
            f'Unknown log renderer "{renderer}". Expected one of '
            f"{sorted(RENDERER_FORMATTERS)}."
        ) from exc

    logconfig = _base_logconfig(level, formatter_class)

    overrides = section.get("loggers") or {}
    for name, logger_config in overrides.items():
        merged = copy.deepcopy(logconfig["loggers"].get(name, {"handlers": ["console"]}))
        merged.update(logger_config or {})
        logconfig["loggers"][name] = merged

    return logconfig


def configure_logging(config: Optional[TxIsolateConfig] = None) -> None:
    """Apply the logging configuration and install structlog processors."""
    from txisolate.core.config.structlog_config import configure_structlog

    logging.config.dictConfig(build_logconfig(config))
    configure_structlog()
