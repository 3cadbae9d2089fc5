"""pytest plugin: every test runs inside a transaction that is rolled back.

Enable it from the rootdir ``conftest.py``::

    pytest_plugins = ["txisolate.plugin"]

and point it at the schema to create::

    @pytest.fixture(scope="session")
    def txisolate_metadata():
        return Base.metadata

Tests then ask for ``db_session``. The transaction is opened by an autouse
fixture whatever the test requests, so nothing a test writes survives it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pytest
import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from txisolate.aspects.builtin import make_transaction_aspect
from txisolate.aspects.registry import SKIP_MARKER, AppliedAspects, AspectRegistry
from txisolate.collection.collector import TestCollector
from txisolate.core.config.structlog_config import configure_structlog
from txisolate.core.configuration import TxIsolateConfig
from txisolate.core.constants import TRANSACTION_ASPECT_NAME
from txisolate.core.exceptions import TransactionStateError
from txisolate.store.engine import create_engine_from_config, create_schema, drop_schema
from txisolate.transaction.ledger import RollbackLedger
from txisolate.transaction.wrapper import TransactionalWrapper

logger = structlog.get_logger(__name__)


@dataclass
class IsolationState:
    """Per-session plugin state kept in ``config.stash``."""

    config: TxIsolateConfig
    registry: AspectRegistry
    ledger: RollbackLedger
    aspects_registered: bool = False
    shadowed_dirs: List[Path] = field(default_factory=list)


STATE_KEY = pytest.StashKey[IsolationState]()


def pytest_addhooks(pluginmanager: pytest.PytestPluginManager) -> None:
    from txisolate import hookspecs

    pluginmanager.add_hookspecs(hookspecs)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("txisolate", "transactional test isolation")
    group.addoption(
        "--txisolate-uri",
        dest="txisolate_uri",
        default=None,
        help="database URI of the shared test store.",
    )
    group.addoption(
        "--no-transaction",
        dest="txisolate_no_transaction",
        action="store_true",
        default=False,
        help="do not wrap tests in a rolled-back transaction.",
    )
    parser.addini(
        "txisolate_database_uri", "database URI of the shared test store.", default=""
    )
    parser.addini(
        "txisolate_transaction",
        "wrap every test in a rolled-back transaction (true/false).",
        default="",
    )
    parser.addini(
        "txisolate_warn_shadowed",
        "report norecursedirs entries that hide test files (true/false).",
        default="",
    )


def _dict_config_from_pytest(config: pytest.Config) -> Dict[str, Dict[str, Any]]:
    """Command line and ini settings, laid over TxIsolateConfig as dict_config."""
    overrides: Dict[str, Dict[str, Any]] = {}

    def put(section: str, key: str, value: Any) -> None:
        if value not in (None, ""):
            overrides.setdefault(section, {})[key] = value

    put(
        "db",
        "sqlalchemy_database_uri",
        config.getoption("txisolate_uri") or config.getini("txisolate_database_uri"),
    )
    if config.getoption("txisolate_no_transaction"):
        put("transaction", "enabled", "false")
    else:
        put("transaction", "enabled", config.getini("txisolate_transaction"))
    put("collection", "warn_shadowed", config.getini("txisolate_warn_shadowed"))
    put("collection", "norecursedirs", " ".join(config.getini("norecursedirs")))
    put("collection", "python_files", " ".join(config.getini("python_files")))
    return overrides


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{SKIP_MARKER}(*names): do not auto-apply the named aspects to this test.",
    )
    txconfig = TxIsolateConfig(dict_config=_dict_config_from_pytest(config))
    # pytest's log handlers have no ProcessorFormatter, so events are rendered here
    configure_structlog(renderer=txconfig.get("logging", "renderer"))
    registry = AspectRegistry()
    ledger = RollbackLedger()
    if txconfig.get_boolean("transaction", "enabled"):
        registry.register(
            TRANSACTION_ASPECT_NAME,
            make_transaction_aspect(
                ledger,
                savepoint_commits=txconfig.get_boolean("transaction", "savepoint_commits"),
            ),
            priority=txconfig.get_int("transaction", "priority"),
        )
    config.stash[STATE_KEY] = IsolationState(txconfig, registry, ledger)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: List[pytest.Item]
) -> None:
    # every conftest is loaded by now, so all of them get to register aspects
    state = config.stash[STATE_KEY]
    if not state.aspects_registered:
        config.hook.pytest_txisolate_register_aspects(
            registry=state.registry, config=config
        )
        state.aspects_registered = True
        logger.debug("aspects_ready", aspects=[a.name for a in state.registry.ordered()])


def _shadow_check_roots(config: pytest.Config) -> List[Path]:
    roots = []
    for arg in config.args:
        path = Path(config.invocation_params.dir, arg.split("::")[0])
        if path.is_dir():
            roots.append(path.resolve())
    return roots


def pytest_collection_finish(session: pytest.Session) -> None:
    state = session.config.stash[STATE_KEY]
    if not state.config.get_boolean("collection", "warn_shadowed"):
        return
    roots = _shadow_check_roots(session.config)
    if not roots:
        return
    collector = TestCollector(
        session.config.rootpath,
        norecursedirs=state.config.get_list("collection", "norecursedirs"),
        python_files=state.config.get_list("collection", "python_files"),
        testpaths=roots,
    )
    state.shadowed_dirs = collector.collect(parse=False).shadowed_dirs


def pytest_terminal_summary(
    terminalreporter: Any, exitstatus: int, config: pytest.Config
) -> None:
    state = config.stash.get(STATE_KEY, None)
    if state is None or not (state.ledger.opened or state.shadowed_dirs):
        return
    terminalreporter.section("txisolate")
    if state.ledger.opened:
        terminalreporter.write_line(state.ledger.summary())
    for test_id in state.ledger.leaks():
        terminalreporter.write_line(f"leaked transaction: {test_id}", red=True)
    for directory in state.shadowed_dirs:
        terminalreporter.write_line(
            f"norecursedirs hides test files in: {directory.as_posix()}", yellow=True
        )


@pytest.fixture(scope="session")
def txisolate_config(pytestconfig: pytest.Config) -> TxIsolateConfig:
    """The resolved txisolate configuration of this session."""
    return pytestconfig.stash[STATE_KEY].config


@pytest.fixture(scope="session")
def txisolate_metadata() -> Optional[Any]:
    """SQLAlchemy ``MetaData`` to create at session start. Override in conftest."""
    return None


@pytest.fixture(scope="session")
def txisolate_engine(
    txisolate_config: TxIsolateConfig, txisolate_metadata: Optional[Any]
) -> Iterator[Engine]:
    """Engine of the shared store, with the schema created for the session."""
    engine = create_engine_from_config(txisolate_config)
    create_schema(engine, txisolate_metadata)
    yield engine
    drop_schema(engine, txisolate_metadata)
    engine.dispose()


@pytest.fixture(autouse=True)
def _txisolate_aspects(request: pytest.FixtureRequest) -> AppliedAspects:
    """Enter every applicable aspect for this test, in priority order.

    Each aspect registers its own teardown as soon as its setup succeeds, so a
    failure in a later aspect still tears down the earlier ones.
    """
    state = request.config.stash[STATE_KEY]
    applied = AppliedAspects()
    for aspect in state.registry.applicable(request.node):
        applied[aspect.name] = aspect.enter(request, applied)
    return applied


@pytest.fixture
def txisolate_aspects(_txisolate_aspects: AppliedAspects) -> AppliedAspects:
    """Values of the aspects applied to the current test."""
    return _txisolate_aspects


@pytest.fixture
def txisolate_transaction(_txisolate_aspects: AppliedAspects) -> TransactionalWrapper:
    """The transaction wrapping the current test."""
    try:
        return _txisolate_aspects[TRANSACTION_ASPECT_NAME]
    except KeyError:
        raise TransactionStateError(
            "The transaction aspect is not applied to this test; it is disabled "
            f"or skipped with @pytest.mark.{SKIP_MARKER}."
        ) from None


@pytest.fixture
def db_session(txisolate_transaction: TransactionalWrapper) -> Session:
    """Session bound to the current test's transaction."""
    return txisolate_transaction.session
