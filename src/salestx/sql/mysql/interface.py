from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from salestx.base.interface import BaseInterface
from salestx.base.session import Session
from salestx.exception import SalesTxError

try:
    import asyncmy
    from asyncmy.cursors import DictCursor

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False


class MysqlSession(Session):
    """Session over an asyncmy connection in autocommit mode"""

    async def _run(
        self, query: str, params: Sequence[Any], fetch: bool
    ) -> Tuple[int, List[Dict[str, Any]]]:
        async with self._connection.cursor(cursor=DictCursor) as cursor:
            await cursor.execute(query, list(params) if params else None)
            if fetch:
                return cursor.rowcount, list(await cursor.fetchall())
            return cursor.rowcount, []

    async def _close(self) -> None:
        await self._connection.ensure_closed()


class MysqlInterface(BaseInterface):
    """Interface for connecting to a MySQL database"""

    scheme = "mysql"
    default_port = 3306
    session_class = MysqlSession

    def _check_driver(self):
        if not MYSQL_ENABLED:
            raise SalesTxError(
                "MySQL driver not found. Try reinstalling salestx: "
                "pip install salestx[mysql]"
            )

    async def _connect(self):
        return await asyncmy.connect(
            user=self.user,
            password=self.password or "",
            host=self.host,
            port=self.port,
            db=self.db,
            autocommit=True,
        )
