"""Custom Exceptions used throughout txisolate."""


class ConfigError(Exception):
    """A configuration key is missing or holds a value of the wrong type."""

    pass


class CollectionError(Exception):
    """A candidate test file could not be parsed during collection."""

    pass


class InvalidStateTransition(Exception):
    """Invalid State Transition implementation."""

    def __init__(self, model: str, id: str, old_state: str, new_state: str) -> None:
        """Initialize Exception."""
        msg = "Cannot transition {} id: {} from {} to {}".format(
            model, id, old_state, new_state
        )
        super().__init__(msg)
        self.model = model
        self.id = id
        self.old_state = old_state
        self.new_state = new_state


class TransactionStateError(Exception):
    """The wrapper was asked to do something its current state forbids.

    Raised for a second rollback of the same transaction and for asking for the
    session of a transaction that is not open.
    """

    pass


class RollbackError(Exception):
    """Reverting the test transaction failed.

    This is a test-infrastructure error. It is raised from a finalizer so
    pytest reports it as a teardown error, separate from the test's outcome.
    """

    def __init__(self, test_id: str, original: BaseException) -> None:
        """Initialize Exception."""
        super().__init__(f"Rollback failed for {test_id}: {original!r}")
        self.test_id = test_id
        self.original = original


class AspectRegistrationError(Exception):
    """An aspect with the same name is already registered."""

    pass


class AspectError(Exception):
    """An aspect setup function misbehaved."""

    pass
