"""Txisolate logging configuration package.

- structlog_config: processor chain and structlog setup
- logconfig_utils: stdlib dictConfig built from the ``logging`` config section
- formatters: structlog-backed stdlib formatters
"""

from .logconfig_utils import build_logconfig, configure_logging
from .structlog_config import configure_structlog, is_structlog_configured

__all__ = [
    "build_logconfig",
    "configure_logging",
    "configure_structlog",
    "is_structlog_configured",
]
