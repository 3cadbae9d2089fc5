"""Per-test transactional isolation of a shared store."""

from txisolate.transaction.fsm import TransactionFSM  # noqa: F401
from txisolate.transaction.ledger import RollbackLedger  # noqa: F401
from txisolate.transaction.wrapper import (  # noqa: F401
    TransactionalWrapper,
    transaction_scope,
)

__all__ = [
    "RollbackLedger",
    "TransactionFSM",
    "TransactionalWrapper",
    "transaction_scope",
]
