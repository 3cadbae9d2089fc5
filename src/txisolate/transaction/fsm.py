"""Finite state machine for a test transaction."""

from typing import Dict, Set, Type

from txisolate.core.constants import TransactionStatus


class TransactionFSM:
    """Valid status transitions for one test's transaction.

    ``IDLE -> CLOSED`` covers a test whose transaction never opened, so every
    path through a test ends in ``CLOSED`` exactly once.
    """

    VALID_TRANSITIONS: Dict[str, Set[str]] = {
        TransactionStatus.IDLE: {TransactionStatus.OPEN, TransactionStatus.CLOSED},
        TransactionStatus.OPEN: {TransactionStatus.CLOSED},
        # Terminal state - no transitions out
        TransactionStatus.CLOSED: set(),
    }

    @classmethod
    def is_valid_transition(
        cls: Type["TransactionFSM"], from_status: str, to_status: str
    ) -> bool:
        """Check if a transition is valid per FSM rules."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, set())

    @classmethod
    def is_terminal(cls: Type["TransactionFSM"], status: str) -> bool:
        """Check if a status is terminal (no outgoing transitions)."""
        return len(cls.VALID_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def label(cls: Type["TransactionFSM"], status: str) -> str:
        return TransactionStatus.LABEL_DICT.get(status, status)
