"""The transaction aspect every test gets by default."""

from __future__ import annotations

from typing import Any

from txisolate.aspects.registry import AppliedAspects, AspectFunc
from txisolate.transaction.ledger import RollbackLedger
from txisolate.transaction.wrapper import TransactionalWrapper

ENGINE_FIXTURE = "txisolate_engine"


def make_transaction_aspect(
    ledger: RollbackLedger, savepoint_commits: bool = True
) -> AspectFunc:
    """Build the aspect that wraps a test in a rolled-back transaction.

    The rollback is registered with ``request.addfinalizer`` inside
    ``TransactionalWrapper.begin``, right after the transaction opens.
    """

    def transaction(request: Any, applied: AppliedAspects) -> TransactionalWrapper:
        engine = request.getfixturevalue(ENGINE_FIXTURE)
        wrapper = TransactionalWrapper(
            engine,
            test_id=request.node.nodeid,
            savepoint_commits=savepoint_commits,
            ledger=ledger,
        )
        wrapper.begin(request.addfinalizer)
        return wrapper

    return transaction
