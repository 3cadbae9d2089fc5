"""Wrap one test in a transaction that is always rolled back.

The rollback is registered as a finalizer the moment the transaction begins,
through whatever registration callable the caller owns (pytest's
``request.addfinalizer``, ``ExitStack.callback``, ...). A setup step that fails
later in the same test therefore cannot leak the transaction, which is what
goes wrong with paired setup/teardown methods: teardown is skipped when setup
raises.

Usage::

    with transaction_scope(engine) as session:
        session.add(Widget(name="spanner"))
    # nothing was committed
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Iterator, Optional

import structlog
from sqlalchemy.engine import Connection, Engine, RootTransaction
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from txisolate.core.constants import TransactionStatus
from txisolate.core.exceptions import (
    InvalidStateTransition,
    RollbackError,
    TransactionStateError,
)
from txisolate.core.structlog_utils import bind_context
from txisolate.transaction.fsm import TransactionFSM
from txisolate.transaction.ledger import RollbackLedger

logger = structlog.get_logger(__name__)

FinalizerRegistrar = Callable[[Callable[[], None]], Any]


class TransactionalWrapper:
    """One outer transaction on one connection, bound to a Session.

    Args:
        engine: engine of the shared store.
        test_id: identifies the test in logs and in the ledger.
        savepoint_commits: let ``session.commit()`` inside the test release a
            SAVEPOINT instead of touching the outer transaction.
        ledger: optional ledger recording begins and rollbacks.
    """

    def __init__(
        self,
        engine: Engine,
        test_id: Optional[str] = None,
        savepoint_commits: bool = True,
        ledger: Optional[RollbackLedger] = None,
    ) -> None:
        self.engine = engine
        self.test_id = test_id or "<anonymous>"
        self.savepoint_commits = savepoint_commits
        self.ledger = ledger
        self.status = TransactionStatus.IDLE

        self._connection: Optional[Connection] = None
        self._transaction: Optional[RootTransaction] = None
        self._session: Optional[Session] = None

    def __repr__(self) -> str:
        return (
            f"TransactionalWrapper(test_id={self.test_id!r}, "
            f"status={TransactionFSM.label(self.status)})"
        )

    @property
    def session(self) -> Session:
        """The session of the open transaction."""
        if self.status != TransactionStatus.OPEN or self._session is None:
            raise TransactionStateError(
                f"No open transaction for {self.test_id} "
                f"(status {TransactionFSM.label(self.status)})"
            )
        return self._session

    def _transition(self, new_status: str) -> None:
        if not TransactionFSM.is_valid_transition(self.status, new_status):
            raise InvalidStateTransition(
                "TestTransaction",
                self.test_id,
                TransactionFSM.label(self.status),
                TransactionFSM.label(new_status),
            )
        self.status = new_status

    @bind_context(test_id="self.test_id")
    def begin(self, register_finalizer: FinalizerRegistrar) -> Session:
        """Open the transaction and register its rollback with ``register_finalizer``.

        Raises:
            TransactionStateError: the wrapper has already been used.
        """
        if self.status != TransactionStatus.IDLE:
            raise TransactionStateError(
                f"Transaction for {self.test_id} cannot begin twice "
                f"(status {TransactionFSM.label(self.status)})"
            )

        try:
            self._connection = self.engine.connect()
            self._transaction = self._connection.begin()
        except Exception:
            logger.error("transaction_begin_failed", exc_info=True)
            self._close_connection()
            self._transition(TransactionStatus.CLOSED)
            raise

        self._transition(TransactionStatus.OPEN)
        if self.ledger is not None:
            self.ledger.record_begin(self.test_id)
        try:
            register_finalizer(self.rollback)
        except Exception:
            self.rollback()
            raise

        self._session = Session(
            bind=self._connection,
            join_transaction_mode=(
                "create_savepoint" if self.savepoint_commits else "rollback_only"
            ),
        )
        logger.debug("transaction_opened")
        return self._session

    @bind_context(test_id="self.test_id")
    def rollback(self) -> None:
        """Revert everything done in the transaction and release the connection.

        Raises:
            TransactionStateError: the transaction was already rolled back.
            RollbackError: reverting failed; the connection is discarded.
        """
        if self.status == TransactionStatus.IDLE:
            # nothing was opened, so nothing is counted
            self._transition(TransactionStatus.CLOSED)
            return
        if self.ledger is not None:
            self.ledger.record_rollback(self.test_id)
        if self.status == TransactionStatus.CLOSED:
            raise TransactionStateError(
                f"Transaction for {self.test_id} was already rolled back"
            )

        try:
            if self._session is not None:
                self._session.close()
            if self._transaction is not None and self._transaction.is_active:
                self._transaction.rollback()
            self._close_connection()
        except Exception as exc:
            logger.error("transaction_rollback_failed", error=repr(exc))
            if self.ledger is not None:
                self.ledger.record_failure(self.test_id, exc)
            self._discard_connection()
            raise RollbackError(self.test_id, exc) from exc
        finally:
            self._session = None
            self._transaction = None
            self._connection = None
            self._transition(TransactionStatus.CLOSED)

        logger.debug("transaction_rolled_back")

    def _close_connection(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _discard_connection(self) -> None:
        """Release the connection after a failed rollback.

        A pooled connection is invalidated so it is never reused. A StaticPool
        connection is the whole in-memory store, so it is reverted with a raw
        ROLLBACK and kept; invalidating it would drop the schema for every
        later test.
        """
        # the rollback error is what gets raised; a second failure here is only logged
        if self._connection is None:
            return
        try:
            if isinstance(self.engine.pool, StaticPool):
                self._connection.exec_driver_sql("ROLLBACK")
            else:
                self._connection.invalidate()
        except Exception as exc:
            logger.warning("connection_discard_failed", error=repr(exc))
        try:
            self._connection.close()
        except Exception as exc:
            logger.warning("connection_close_failed", error=repr(exc))


@contextmanager
def transaction_scope(
    engine: Engine,
    test_id: Optional[str] = None,
    savepoint_commits: bool = True,
    ledger: Optional[RollbackLedger] = None,
) -> Iterator[Session]:
    """Yield a session whose work is rolled back on every exit path."""
    wrapper = TransactionalWrapper(
        engine, test_id=test_id, savepoint_commits=savepoint_commits, ledger=ledger
    )
    with ExitStack() as stack:
        yield wrapper.begin(stack.callback)
