from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from salestx.base.interface import BaseInterface
from salestx.base.session import Session
from salestx.exception import SalesTxError

try:
    from psycopg import AsyncConnection
    from psycopg.rows import dict_row

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False


class PostgresSession(Session):
    """Session over a psycopg connection in autocommit mode, so that
    transaction boundaries are issued as SQL"""

    async def _run(
        self, query: str, params: Sequence[Any], fetch: bool
    ) -> Tuple[int, List[Dict[str, Any]]]:
        async with self._connection.cursor(row_factory=dict_row) as cursor:
            await cursor.execute(query, list(params) if params else None)
            if fetch:
                return cursor.rowcount, list(await cursor.fetchall())
            return cursor.rowcount, []

    async def _close(self) -> None:
        await self._connection.close()


class PostgresInterface(BaseInterface):
    """Interface for connecting to a Postgres database"""

    scheme = "postgres"
    aliases = ("postgresql",)
    default_port = 5432
    session_class = PostgresSession

    def _check_driver(self):
        if not POSTGRES_ENABLED:
            raise SalesTxError(
                "Postgres driver not found. Try reinstalling salestx: "
                "pip install salestx[postgres]"
            )

    async def _connect(self):
        return await AsyncConnection.connect(self.full_dsn, autocommit=True)
