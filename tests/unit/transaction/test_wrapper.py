"""Tests for the transactional test wrapper."""

from contextlib import ExitStack
from typing import Callable, List
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from tests.fixtures.models import Base, Widget, count_widgets
from txisolate.core.configuration import TxIsolateConfig
from txisolate.core.constants import TransactionStatus
from txisolate.core.exceptions import RollbackError, TransactionStateError
from txisolate.transaction.ledger import RollbackLedger
from txisolate.store.engine import create_engine_from_config, create_schema
from txisolate.transaction.wrapper import TransactionalWrapper, transaction_scope


class Finalizers:
    """Stands in for ``request.addfinalizer``."""

    def __init__(self) -> None:
        self.registered: List[Callable[[], None]] = []

    def __call__(self, finalizer: Callable[[], None]) -> None:
        self.registered.append(finalizer)

    def run(self) -> None:
        while self.registered:
            self.registered.pop()()


def widgets_in_store(engine) -> int:
    with Session(engine) as session:
        return count_widgets(session)


class TestBeginAndRollback:
    def test_rollback_hides_mutations(self, engine):
        finalizers = Finalizers()
        wrapper = TransactionalWrapper(engine, test_id="t::create")

        session = wrapper.begin(finalizers)
        session.add(Widget(name="spanner"))
        session.flush()
        assert count_widgets(session) == 1
        assert wrapper.status == TransactionStatus.OPEN
        assert finalizers.registered == [wrapper.rollback]

        finalizers.run()

        assert wrapper.status == TransactionStatus.CLOSED
        assert widgets_in_store(engine) == 0

    def test_commit_inside_the_test_does_not_escape(self, engine):
        finalizers = Finalizers()
        session = TransactionalWrapper(engine).begin(finalizers)

        session.add(Widget(name="committed"))
        session.commit()
        session.add(Widget(name="committed again"))
        session.commit()
        assert count_widgets(session) == 2

        finalizers.run()
        assert widgets_in_store(engine) == 0

    def test_rollback_only_mode_reverts(self, engine):
        finalizers = Finalizers()
        session = TransactionalWrapper(engine, savepoint_commits=False).begin(finalizers)
        session.add(Widget(name="flushed"))
        session.flush()

        finalizers.run()
        assert widgets_in_store(engine) == 0

    def test_session_requires_open_transaction(self, engine):
        wrapper = TransactionalWrapper(engine, test_id="t::idle")
        with pytest.raises(TransactionStateError, match="IDLE"):
            wrapper.session

        finalizers = Finalizers()
        wrapper.begin(finalizers)
        assert wrapper.session is not None
        finalizers.run()

    def test_begin_twice(self, engine):
        finalizers = Finalizers()
        wrapper = TransactionalWrapper(engine)
        wrapper.begin(finalizers)

        with pytest.raises(TransactionStateError, match="cannot begin twice"):
            wrapper.begin(finalizers)
        finalizers.run()

    def test_double_rollback_is_a_fault(self, engine):
        ledger = RollbackLedger()
        wrapper = TransactionalWrapper(engine, test_id="t::twice", ledger=ledger)
        wrapper.begin(Finalizers())
        wrapper.rollback()

        with pytest.raises(TransactionStateError, match="already rolled back"):
            wrapper.rollback()
        assert ledger.double_reverts() == ["t::twice"]

    def test_rollback_before_begin_just_closes(self, engine):
        wrapper = TransactionalWrapper(engine)
        wrapper.rollback()
        assert wrapper.status == TransactionStatus.CLOSED

        with pytest.raises(TransactionStateError):
            wrapper.begin(Finalizers())

    def test_rollback_before_begin_is_not_counted(self, engine):
        ledger = RollbackLedger()
        TransactionalWrapper(engine, test_id="t::never", ledger=ledger).rollback()

        assert ledger.rolled_back == 0
        assert ledger.double_reverts() == []

    def test_ledger_counts_one_rollback_per_begin(self, engine):
        ledger = RollbackLedger()
        for name in ("a", "b", "c"):
            finalizers = Finalizers()
            TransactionalWrapper(engine, test_id=f"t::{name}", ledger=ledger).begin(
                finalizers
            )
            finalizers.run()

        assert ledger.opened == 3
        assert ledger.rolled_back == 3
        assert ledger.leaks() == []


class TestFailures:
    def test_connect_failure_releases_and_closes(self):
        engine = Mock()
        engine.connect.side_effect = RuntimeError("database unavailable")
        finalizers = Finalizers()
        wrapper = TransactionalWrapper(engine)

        with pytest.raises(RuntimeError, match="database unavailable"):
            wrapper.begin(finalizers)

        assert wrapper.status == TransactionStatus.CLOSED
        assert finalizers.registered == []

    def test_begin_failure_closes_the_connection(self):
        connection = Mock()
        connection.begin.side_effect = RuntimeError("cannot begin")
        engine = Mock()
        engine.connect.return_value = connection
        wrapper = TransactionalWrapper(engine)

        with pytest.raises(RuntimeError, match="cannot begin"):
            wrapper.begin(Finalizers())

        connection.close.assert_called_once_with()
        assert wrapper.status == TransactionStatus.CLOSED

    def test_failed_registration_rolls_back(self, engine):
        def refuse(finalizer):
            raise RuntimeError("no finalizers today")

        ledger = RollbackLedger()
        wrapper = TransactionalWrapper(engine, test_id="t::refused", ledger=ledger)

        with pytest.raises(RuntimeError, match="no finalizers today"):
            wrapper.begin(refuse)

        assert wrapper.status == TransactionStatus.CLOSED
        assert ledger.leaks() == []

    def test_rollback_failure_raises_rollback_error(self, engine):
        ledger = RollbackLedger()
        wrapper = TransactionalWrapper(engine, test_id="t::broken", ledger=ledger)
        wrapper.begin(Finalizers())

        broken = Mock()
        broken.is_active = True
        broken.rollback.side_effect = RuntimeError("connection reset")
        wrapper._transaction = broken

        with pytest.raises(RollbackError) as excinfo:
            wrapper.rollback()

        assert not isinstance(excinfo.value, AssertionError)
        assert excinfo.value.test_id == "t::broken"
        assert isinstance(excinfo.value.original, RuntimeError)
        assert excinfo.value.__cause__ is excinfo.value.original
        assert wrapper.status == TransactionStatus.CLOSED
        assert "t::broken" in ledger.failures()
        assert widgets_in_store(engine) == 0

    def test_rollback_failure_keeps_the_in_memory_store(self):
        config = TxIsolateConfig(dict_config={"db": {"sqlalchemy_database_uri": "sqlite://"}})
        memory_engine = create_engine_from_config(config)
        create_schema(memory_engine, Base.metadata)
        try:
            wrapper = TransactionalWrapper(memory_engine, test_id="t::memory")
            session = wrapper.begin(Finalizers())
            session.add(Widget(name="orphan"))
            session.flush()

            broken = Mock()
            broken.is_active = True
            broken.rollback.side_effect = RuntimeError("connection reset")
            wrapper._transaction = broken

            with pytest.raises(RollbackError):
                wrapper.rollback()

            # the schema survives and the half-written row is gone
            assert widgets_in_store(memory_engine) == 0
        finally:
            memory_engine.dispose()


class TestTransactionScope:
    def test_rolls_back_on_normal_exit(self, engine):
        with transaction_scope(engine, test_id="scope::ok") as session:
            session.add(Widget(name="bolt"))
            session.flush()
            assert count_widgets(session) == 1

        assert widgets_in_store(engine) == 0

    def test_rolls_back_on_exception(self, engine):
        with pytest.raises(ValueError):
            with transaction_scope(engine) as session:
                session.add(Widget(name="nut"))
                session.flush()
                raise ValueError("test body failed")

        assert widgets_in_store(engine) == 0

    def test_setup_fault_after_begin_is_still_reverted(self, engine):
        ledger = RollbackLedger()
        with pytest.raises(KeyError):
            with ExitStack() as stack:
                wrapper = TransactionalWrapper(engine, test_id="t::setup", ledger=ledger)
                session = wrapper.begin(stack.callback)
                session.add(Widget(name="half built"))
                session.flush()
                # a later setup step fails before the test body ever runs
                {}["missing fixture"]

        assert wrapper.status == TransactionStatus.CLOSED
        assert ledger.rollbacks_for("t::setup") == 1
        assert widgets_in_store(engine) == 0
