from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from sqlite3 import Cursor
from typing import Any, Dict, List, Sequence, Tuple

from salestx.base.interface import BaseInterface
from salestx.base.session import Session
from salestx.exception import SalesTxError

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False


class SQLiteSession(Session):
    """Session over an aiosqlite connection opened without implicit
    transactions"""

    POSITIONAL_SUB = r"?"

    async def _run(
        self, query: str, params: Sequence[Any], fetch: bool
    ) -> Tuple[int, List[Dict[str, Any]]]:
        cursor = await self._connection.execute(query, list(params))
        try:
            if fetch:
                return cursor.rowcount, list(await cursor.fetchall())
            return cursor.rowcount, []
        finally:
            await cursor.close()

    async def _close(self) -> None:
        await self._connection.close()

    def _adapt_params(self, params: Sequence[Any]) -> Sequence[Any]:
        return [self._adapt(value) for value in params]

    @staticmethod
    def _adapt(value: Any) -> Any:
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value

    @staticmethod
    def _dict_factory(cursor: Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return {val[0]: row[idx] for idx, val in enumerate(cursor.description)}


class SQLiteInterface(BaseInterface):
    """Interface for connecting to a SQLite database"""

    scheme = "sqlite"
    session_class = SQLiteSession

    def __init__(self, db_path: str):
        self._db_path = db_path
        super().__init__()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _check_driver(self):
        if not AIOSQLITE_ENABLED:
            raise SalesTxError(
                "SQLite driver not found. Try reinstalling salestx: "
                "pip install salestx[sqlite]"
            )

    def _populate_connection_args(self): ...

    def _populate_dsn(self):
        self._dsn = f"{self.scheme}:///{self._db_path}"
        self._full_dsn = self._dsn

    async def _connect(self):
        connection = await aiosqlite.connect(
            self._db_path, isolation_level=None
        )
        connection.row_factory = SQLiteSession._dict_factory
        return connection

    @classmethod
    def from_dsn(cls, dsn: str) -> SQLiteInterface:
        """Build an interface from `sqlite:///path/to/file.db`"""
        _, _, path = dsn.partition("://")
        if path.startswith("/"):
            path = path[1:]
        return cls(path or ":memory:")
