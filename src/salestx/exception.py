class SalesTxError(Exception):
    """Base exception for all errors raised by salestx"""


class SessionConnectionError(SalesTxError):
    """Raised when a session cannot be opened or closed"""


class MissingSQL(SalesTxError):
    """Raised when a statement file cannot be located"""


class TransactionError(SalesTxError):
    """Raised on an illegal transaction state transition"""


class StatementError(TransactionError):
    """Raised when preparing, binding or executing a statement fails"""


class RecordNotFound(StatementError):
    """Raised when a read expected a row but none was returned"""


class InvalidSavepointError(TransactionError):
    """Raised when a savepoint is used after it has been invalidated

    This indicates a logic error in the caller, not a data problem, and is
    therefore kept apart from StatementError.
    """


class CleanupError(SalesTxError):
    """Raised when releasing statement handles or restoring auto-commit
    fails"""
