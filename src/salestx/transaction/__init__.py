"""
Transaction handling over a single session, with savepoints for partial
rollback.
"""

from salestx.exception import (
    CleanupError,
    InvalidSavepointError,
    StatementError,
    TransactionError,
)

from .coordinator import TransactionCoordinator
from .interfaces import TransactionResult, TransactionState
from .savepoint import Savepoint

__all__ = [
    "TransactionCoordinator",
    "TransactionError",
    "TransactionResult",
    "TransactionState",
    "StatementError",
    "InvalidSavepointError",
    "CleanupError",
    "Savepoint",
]
