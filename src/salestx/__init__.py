from importlib.metadata import version

from .base.interface import BaseInterface
from .base.session import PreparedStatement, RowCursor, Session
from .executor import TransactionExecutor
from .hydrator import Hydrator
from .models import MonthlySales, Order, Product
from .query import QuerySet, SQLQuery
from .sql.mysql.interface import MysqlInterface
from .sql.postgres.interface import PostgresInterface
from .sql.sqlite.interface import SQLiteInterface
from .transaction import (
    Savepoint,
    TransactionCoordinator,
    TransactionResult,
    TransactionState,
)

__version__ = version("salestx")

__all__ = (
    "BaseInterface",
    "Hydrator",
    "MonthlySales",
    "MysqlInterface",
    "Order",
    "PostgresInterface",
    "PreparedStatement",
    "Product",
    "QuerySet",
    "RowCursor",
    "SQLQuery",
    "SQLiteInterface",
    "Savepoint",
    "Session",
    "TransactionCoordinator",
    "TransactionExecutor",
    "TransactionResult",
    "TransactionState",
)
