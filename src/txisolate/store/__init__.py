"""SQLAlchemy engine construction for the shared test store."""

from .engine import (  # noqa: F401
    create_engine_from_config,
    create_schema,
    drop_schema,
    is_sqlite_dialect,
)

__all__ = [
    "create_engine_from_config",
    "create_schema",
    "drop_schema",
    "is_sqlite_dialect",
]
