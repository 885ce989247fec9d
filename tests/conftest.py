import sqlite3
from contextlib import closing
from decimal import Decimal
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from salestx import TransactionExecutor
from salestx.exception import StatementError
from salestx.sql.sqlite.interface import SQLiteSession

SCHEMA = """
CREATE TABLE products (
    product_id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_name TEXT NOT NULL,
    price NUMERIC NOT NULL
);
CREATE TABLE orders (
    order_id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL,
    order_date TEXT NOT NULL,
    amount NUMERIC NOT NULL CHECK (amount > 0)
);
CREATE TABLE monthly_sales (
    product_id INTEGER NOT NULL,
    report_month INTEGER NOT NULL,
    total_amount NUMERIC NOT NULL CHECK (total_amount < 1000000),
    PRIMARY KEY (product_id, report_month)
);
INSERT INTO products (product_name, price) VALUES ('iPhone', 199);
"""


class SalesDatabase:
    def __init__(self, path: str) -> None:
        self.path = path
        with closing(sqlite3.connect(path)) as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    def _query(self, sql: str, params: Tuple = ()) -> List[Tuple]:
        with closing(sqlite3.connect(self.path)) as conn:
            return conn.execute(sql, params).fetchall()

    def _write(self, sql: str, params: Tuple = ()) -> None:
        with closing(sqlite3.connect(self.path)) as conn:
            conn.execute(sql, params)
            conn.commit()

    def set_total(self, product_id: int, month: int, total) -> None:
        self._write(
            "INSERT OR REPLACE INTO monthly_sales "
            "(product_id, report_month, total_amount) VALUES (?, ?, ?)",
            (product_id, month, str(total)),
        )

    def total(self, product_id: int, month: int) -> Optional[Decimal]:
        rows = self._query(
            "SELECT total_amount FROM monthly_sales "
            "WHERE product_id = ? AND report_month = ?",
            (product_id, month),
        )
        return Decimal(str(rows[0][0])) if rows else None

    def orders(self) -> List[Tuple]:
        return self._query(
            "SELECT product_id, order_date, amount FROM orders "
            "ORDER BY order_id"
        )

    def product_names(self) -> List[str]:
        return [
            row[0]
            for row in self._query(
                "SELECT product_name FROM products ORDER BY product_id"
            )
        ]


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "sales.db")


@pytest.fixture
def sales_db(db_path):
    return SalesDatabase(db_path)


@pytest.fixture
async def executor(sales_db):
    executor = TransactionExecutor(db_path=sales_db.path)
    assert await executor.connect()
    yield executor
    await executor.disconnect()


@pytest.fixture
async def session(sales_db, executor):
    return executor.session


@pytest.fixture
def prepared(monkeypatch):
    """Collect every statement prepared on a SQLite session"""
    statements = []
    original = SQLiteSession.prepare

    async def spy(self, sql_text):
        statement = await original(self, sql_text)
        statements.append(statement)
        return statement

    monkeypatch.setattr(SQLiteSession, "prepare", spy)
    return statements


@pytest.fixture
def fail_on(monkeypatch):
    """Make the SQLite session fail on the first statement starting with
    the given prefix"""

    def inject(prefix: str, error: Optional[Exception] = None):
        original = SQLiteSession._run

        async def run(self, query, params, fetch):
            if query.lstrip().upper().startswith(prefix.upper()):
                raise error or sqlite3.OperationalError(
                    f"injected failure on {prefix}"
                )
            return await original(self, query, params, fetch)

        monkeypatch.setattr(SQLiteSession, "_run", run)

    return inject


@pytest.fixture
def mock_session():
    """A session double driven by AsyncMocks, for coordinator tests that
    do not need a database"""
    session = MagicMock()
    session.set_autocommit = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.prepare = AsyncMock()
    session.set_savepoint = AsyncMock()
    session.release_savepoint = AsyncMock()
    session.__str__ = MagicMock(return_value="<MockSession>")
    return session


@pytest.fixture
def statement_error():
    return StatementError("boom")
