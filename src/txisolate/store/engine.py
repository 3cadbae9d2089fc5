"""Database engine creation for the store tests share.

Every test runs inside one outer transaction on one connection, so the engine
must support real nested SAVEPOINTs. pysqlite defers BEGIN and manages
transactions itself, which breaks that; for SQLite the driver's handling is
switched off and SQLAlchemy emits BEGIN explicitly.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from txisolate.core.configuration import TxIsolateConfig, get_txisolate_config

log = structlog.get_logger(__name__)

_POOL_PARAM_MAPPING = {
    "recycle": "pool_recycle",
    "pre_ping": "pool_pre_ping",
    "timeout": "pool_timeout",
    "size": "pool_size",
    "max_overflow": "max_overflow",
}


def is_sqlite_dialect(dialect: str) -> bool:
    """Check if the dialect is SQLite."""
    return dialect == "sqlite"


def _is_memory_sqlite(uri: str) -> bool:
    url = make_url(uri)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _enable_sqlite_savepoints(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # stop pysqlite from emitting its own BEGIN / COMMIT
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_engine_from_config(config: Optional[TxIsolateConfig] = None) -> Engine:
    """Create a SQLAlchemy engine from the ``db`` config section.

    In-memory SQLite is served from a single static connection so the schema
    created at session start is visible to every test.
    """
    cfg = config if config is not None else get_txisolate_config()
    db_config = cfg.get_section_coerced("db")
    uri = cfg.get("db", "sqlalchemy_database_uri")

    connect_args: Dict[str, Any] = dict(db_config.get("sqlalchemy_connect_args") or {})
    engine_kwargs: Dict[str, Any] = {"echo": bool(db_config.get("echo", False))}

    pool_config = db_config.get("pool") or {}
    if not isinstance(pool_config, dict):
        pool_config = {}
    for config_key, sqlalchemy_param in _POOL_PARAM_MAPPING.items():
        if config_key in pool_config:
            engine_kwargs[sqlalchemy_param] = pool_config[config_key]

    if _is_memory_sqlite(uri):
        connect_args.setdefault("check_same_thread", False)
        engine_kwargs["poolclass"] = StaticPool
        # StaticPool accepts no sizing arguments
        for sqlalchemy_param in _POOL_PARAM_MAPPING.values():
            engine_kwargs.pop(sqlalchemy_param, None)

    log.debug("engine_settings", uri=uri, connect_args=connect_args, **engine_kwargs)

    engine = (
        create_engine(uri, connect_args=connect_args, **engine_kwargs)
        if connect_args
        else create_engine(uri, **engine_kwargs)
    )

    dialect_name = engine.dialect.name.lower()
    if is_sqlite_dialect(dialect_name):
        _enable_sqlite_savepoints(engine)

    log.info("engine_created", dialect=dialect_name)
    return engine


def create_schema(engine: Engine, metadata: Optional[MetaData]) -> None:
    """Create every table in ``metadata``; a None metadata is a no-op."""
    if metadata is None:
        return
    metadata.create_all(engine)
    log.info("schema_created", tables=sorted(metadata.tables))


def drop_schema(engine: Engine, metadata: Optional[MetaData]) -> None:
    """Drop every table in ``metadata``; a None metadata is a no-op."""
    if metadata is None:
        return
    metadata.drop_all(engine)
    log.info("schema_dropped", tables=sorted(metadata.tables))
