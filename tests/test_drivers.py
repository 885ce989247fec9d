from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from salestx import QuerySet
from salestx.exception import StatementError
from salestx.sql.mysql import interface as mysql_interface
from salestx.sql.mysql.interface import MysqlSession
from salestx.sql.postgres import interface as postgres_interface
from salestx.sql.postgres.interface import PostgresSession


class FakeCursor:
    def __init__(self, rows=(), rowcount=1):
        self.rows = list(rows)
        self.rowcount = rowcount
        self.executed = []
        self.error = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, query, params=None):
        if self.error and not query.startswith(("BEGIN", "ROLLBACK")):
            raise self.error
        self.executed.append((query, params))

    async def fetchall(self):
        return self.rows


@pytest.fixture
def cursor():
    return FakeCursor()


@pytest.fixture
def connection(cursor):
    connection = MagicMock()
    connection.cursor.return_value = cursor
    connection.close = AsyncMock()
    connection.ensure_closed = AsyncMock()
    return connection


@pytest.fixture(autouse=True)
def row_factories(monkeypatch):
    monkeypatch.setattr(
        postgres_interface, "dict_row", "dict_row", raising=False
    )
    monkeypatch.setattr(
        mysql_interface, "DictCursor", "DictCursor", raising=False
    )


async def save_order(session):
    queries = QuerySet()
    await session.set_autocommit(False)
    statement = await session.prepare(queries.insert_order.text)
    statement.bind(1, date(2017, 10, 24), Decimal("580"))
    rowcount = await statement.execute_update()
    await statement.close()
    await session.commit()
    await session.set_autocommit(True)
    return rowcount


async def test_postgres_session_issues_transaction_sql(connection, cursor):
    session = PostgresSession(connection)

    assert await save_order(session) == 1

    assert cursor.executed == [
        ("BEGIN", None),
        (
            "INSERT INTO orders (product_id, order_date, amount)\n"
            "VALUES (%s, %s, %s)",
            [1, date(2017, 10, 24), Decimal("580")],
        ),
        ("COMMIT", None),
    ]
    connection.cursor.assert_called_with(row_factory="dict_row")


async def test_mysql_session_issues_transaction_sql(connection, cursor):
    session = MysqlSession(connection)

    assert await save_order(session) == 1

    assert [query for query, _ in cursor.executed] == [
        "BEGIN",
        "INSERT INTO orders (product_id, order_date, amount)\n"
        "VALUES (%s, %s, %s)",
        "COMMIT",
    ]
    connection.cursor.assert_called_with(cursor="DictCursor")


async def test_savepoint_sql(connection, cursor):
    session = PostgresSession(connection)
    await session.set_autocommit(False)

    first = await session.set_savepoint()
    second = await session.set_savepoint()
    await session.rollback(first)
    await first.release()
    await session.rollback()

    assert [query for query, _ in cursor.executed] == [
        "BEGIN",
        "SAVEPOINT salestx_sp_1",
        "SAVEPOINT salestx_sp_2",
        "ROLLBACK TO SAVEPOINT salestx_sp_1",
        "RELEASE SAVEPOINT salestx_sp_1",
        "ROLLBACK",
    ]
    assert not second.is_valid


async def test_query_rows(connection, cursor):
    cursor.rows = [
        {"product_id": 1, "report_month": 7, "total_amount": Decimal("9500")}
    ]
    session = PostgresSession(connection)
    statement = await session.prepare(QuerySet().select_monthly_sales.text)
    statement.bind(1, 7)

    rows = await statement.execute_query()

    assert rows.fetchall() == cursor.rows
    assert cursor.executed[-1][1] == [1, 7]


async def test_driver_error_is_wrapped(connection, cursor):
    cursor.error = RuntimeError("deadlock detected")
    session = MysqlSession(connection)
    await session.set_autocommit(False)
    statement = await session.prepare(QuerySet().insert_order.text)
    statement.bind(1, date(2017, 10, 24), Decimal("580"))

    with pytest.raises(StatementError, match="deadlock detected"):
        await statement.execute_update()

    await session.rollback()
    assert [query for query, _ in cursor.executed] == ["BEGIN", "ROLLBACK"]


async def test_close(connection):
    postgres = PostgresSession(connection)
    mysql = MysqlSession(connection)

    await postgres.close()
    await mysql.close()
    await mysql.close()

    connection.close.assert_awaited_once_with()
    connection.ensure_closed.assert_awaited_once_with()
