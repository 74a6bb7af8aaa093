"""
Errors raised by the repository/unit-of-work facade itself.

ORM and driver failures are never wrapped; they surface as sqlalchemy.exc.* exceptions.
"""


class UnitOfWorkError(Exception):
    """Base class for unit of work misuse."""


class TransactionNotStartedError(UnitOfWorkError):
    """commit()/rollback() called without begin_transaction()."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: no transaction was started with begin_transaction()")
        self.operation = operation


class TransactionAlreadyStartedError(UnitOfWorkError):
    """begin_transaction() called while an explicit transaction is open."""

    def __init__(self):
        super().__init__("A transaction is already in progress on this unit of work")


class IsolationLevelError(UnitOfWorkError):
    """An isolation level was requested while the session holds uncommitted changes."""

    def __init__(self, isolation_level: str):
        super().__init__(
            f"Cannot begin a {isolation_level} transaction: the session has uncommitted changes; "
            "call save_changes() first or begin the transaction before writing"
        )
        self.isolation_level = isolation_level


class UnitOfWorkDisposedError(UnitOfWorkError):
    """The unit of work was disposed and its session closed."""

    def __init__(self):
        super().__init__("Unit of work has been disposed")
