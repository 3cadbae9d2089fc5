"""Fixtures shared by the txisolate test suite."""

import os
import pathlib
from typing import Callable, Dict, Iterator

import pytest
from sqlalchemy.engine import Engine

from tests.fixtures.models import Base

pytest_plugins = ["pytester"]


def pytest_configure(config):
    # route library logs through stdlib logging rather than structlog's print logger
    from txisolate.core.config.structlog_config import configure_structlog

    configure_structlog(renderer="console")


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the developer's ~/.txisolate.yaml and TXISOLATE__ variables out of tests."""
    import txisolate.core.configuration as configuration_module

    for env_key in list(os.environ):
        if env_key.startswith("TXISOLATE__"):
            monkeypatch.delenv(env_key)
    monkeypatch.setattr(
        configuration_module, "USER_CONFIG_FILE", tmp_path / "no_user_config.yaml"
    )
    monkeypatch.setattr(configuration_module, "_txisolate_config", None)


@pytest.fixture
def make_tree(tmp_path) -> Callable[[Dict[str, str]], pathlib.Path]:
    """Write ``{relative path: source}`` under a fresh directory and return it."""

    def _make_tree(files: Dict[str, str]) -> pathlib.Path:
        root = tmp_path / "project"
        for relative, source in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _make_tree


@pytest.fixture
def db_uri(tmp_path) -> str:
    """A file-backed SQLite store, so separate connections share state."""
    return f"sqlite:///{tmp_path / 'store.sqlite'}"


@pytest.fixture
def engine(db_uri) -> Iterator[Engine]:
    """Engine with the Widget schema created."""
    from txisolate.core.configuration import TxIsolateConfig
    from txisolate.store.engine import create_engine_from_config, create_schema

    config = TxIsolateConfig(dict_config={"db": {"sqlalchemy_database_uri": db_uri}})
    engine = create_engine_from_config(config)
    create_schema(engine, Base.metadata)
    yield engine
    engine.dispose()
