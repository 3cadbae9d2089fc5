"""Constants declared for statuses and defaults throughout txisolate."""


class TransactionStatus:
    """Statuses used for test transactions."""

    IDLE = "I"
    OPEN = "O"
    CLOSED = "C"

    LABEL_DICT = {
        IDLE: "IDLE",
        OPEN: "OPEN",
        CLOSED: "CLOSED",
    }


class AspectPriority:
    """Priorities for auto-applied aspects. Lower runs first."""

    TRANSACTION = 0
    DEFAULT = 100


# pytest's own norecursedirs default
DEFAULT_NORECURSEDIRS = "*.egg .* _darcs build CVS dist node_modules venv {arch}"
DEFAULT_PYTHON_FILES = "test_*.py *_test.py"

TRANSACTION_ASPECT_NAME = "transaction"
