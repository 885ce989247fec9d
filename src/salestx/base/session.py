from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
)

from salestx.convert import convert_sql_params, count_sql_params
from salestx.exception import (
    InvalidSavepointError,
    SalesTxError,
    StatementError,
    TransactionError,
)
from salestx.transaction.savepoint import Savepoint

if TYPE_CHECKING:
    from salestx.base.interface import BaseInterface

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
SAVEPOINT_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RowCursor:
    """Materialized rows returned by `PreparedStatement.execute_query`"""

    def __init__(self, rows: Sequence[Row]) -> None:
        self._rows = list(rows)
        self._position = 0
        self._closed = False

    def fetchone(self) -> Optional[Row]:
        if self._closed:
            raise StatementError("Cursor is closed")
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def fetchall(self) -> List[Row]:
        if self._closed:
            raise StatementError("Cursor is closed")
        rows = self._rows[self._position :]
        self._position = len(self._rows)
        return rows

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Row]:
        while (row := self.fetchone()) is not None:
            yield row

    def __len__(self) -> int:
        return len(self._rows)


class PreparedStatement:
    """A statement bound to a session, with positional parameters

    Instances are created with `Session.prepare` and must be closed by
    whoever prepared them.
    """

    def __init__(self, session: Session, text: str, param_count: int) -> None:
        self.session = session
        self.text = text
        self.param_count = param_count
        self._params: Tuple[Any, ...] = ()
        self._bound = param_count == 0
        self._cursor: Optional[RowCursor] = None
        self._closed = False

    def bind(self, *params: Any) -> None:
        self._check_open()
        if len(params) != self.param_count:
            raise StatementError(
                f"Statement expects {self.param_count} parameters, "
                f"got {len(params)}"
            )
        self._params = tuple(params)
        self._bound = True

    async def execute_update(self) -> int:
        """Execute a mutation

        Returns:
            int: The number of affected rows
        """
        self._check_ready()
        rowcount, _ = await self.session.execute(self.text, self._params)
        return rowcount

    async def execute_query(self) -> RowCursor:
        """Execute a read

        Returns:
            RowCursor: The rows returned by the statement
        """
        self._check_ready()
        if self._cursor:
            self._cursor.close()
        _, rows = await self.session.execute(
            self.text, self._params, fetch=True
        )
        self._cursor = RowCursor(rows)
        return self._cursor

    async def close(self) -> None:
        if self._closed:
            return
        if self._cursor:
            self._cursor.close()
            self._cursor = None
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise StatementError("Statement is closed")

    def _check_ready(self) -> None:
        self._check_open()
        if not self._bound:
            raise StatementError("Statement parameters have not been bound")

    def __str__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"<PreparedStatement {self.text[:20]}... ({status})>"


class Session(ABC):
    """A single logical connection to the store

    Transactions are driven explicitly with SQL. While auto-commit is
    disabled, `BEGIN` is issued lazily before the first statement or
    savepoint, in the same way as a JDBC connection.
    """

    POSITIONAL_SUB: str = r"%s"
    savepoint_prefix: str = "salestx_sp_"

    def __init__(
        self, connection: Any, interface: Optional[BaseInterface] = None
    ) -> None:
        self._connection = connection
        self._interface = interface
        self._autocommit = True
        self._in_transaction = False
        self._closed = False
        self._savepoints: List[Savepoint] = []
        self._savepoint_counter = 0

    @abstractmethod
    async def _run(
        self, query: str, params: Sequence[Any], fetch: bool
    ) -> Tuple[int, List[Row]]: ...

    @abstractmethod
    async def _close(self) -> None: ...

    def _adapt_params(self, params: Sequence[Any]) -> Sequence[Any]:
        return params

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def autocommit(self) -> bool:
        return self._autocommit

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def savepoints(self) -> List[Savepoint]:
        return list(self._savepoints)

    async def prepare(self, sql_text: str) -> PreparedStatement:
        """Prepare a statement written with `$1..$n` placeholders

        Args:
            sql_text (str): The statement text

        Raises:
            StatementError: If the session is closed or the text is invalid

        Returns:
            PreparedStatement: The prepared statement
        """
        self._check_open()
        if not sql_text or not sql_text.strip():
            raise StatementError("Cannot prepare an empty statement")
        param_count = count_sql_params(sql_text)
        text = convert_sql_params(sql_text, self.POSITIONAL_SUB)
        logger.debug("Prepared statement: %s", text)
        return PreparedStatement(self, text, param_count)

    async def execute(
        self, query: str, params: Sequence[Any] = (), fetch: bool = False
    ) -> Tuple[int, List[Row]]:
        """Run an already converted statement inside the current
        transaction, beginning one if auto-commit is disabled"""
        self._check_open()
        await self._ensure_transaction()
        try:
            return await self._run(query, self._adapt_params(params), fetch)
        except SalesTxError:
            raise
        except Exception as e:
            raise StatementError(f"Statement failed: {e}") from e

    async def set_autocommit(self, autocommit: bool) -> None:
        """Switch auto-commit mode. Enabling it while a transaction is open
        commits that transaction."""
        self._check_open()
        if autocommit and self._in_transaction:
            logger.debug("Auto-commit enabled, committing open transaction")
            await self.commit()
        self._autocommit = autocommit

    async def commit(self) -> None:
        self._check_open()
        if self._autocommit:
            raise TransactionError(
                "Cannot commit while auto-commit is enabled"
            )
        if self._in_transaction:
            await self._command("COMMIT")
            self._in_transaction = False
        self._invalidate_savepoints()

    async def rollback(self, savepoint: Optional[Savepoint] = None) -> None:
        """Roll back the whole transaction, or only the statements issued
        after `savepoint`

        Raises:
            InvalidSavepointError: If the savepoint is no longer usable
            TransactionError: If auto-commit is enabled
        """
        self._check_open()
        if savepoint is not None:
            await self._rollback_to(savepoint)
            return
        if self._autocommit:
            raise TransactionError(
                "Cannot rollback while auto-commit is enabled"
            )
        try:
            if self._in_transaction:
                await self._command("ROLLBACK")
        finally:
            self._in_transaction = False
            self._invalidate_savepoints()

    async def set_savepoint(self, name: Optional[str] = None) -> Savepoint:
        self._check_open()
        if self._autocommit:
            raise TransactionError(
                "Cannot set a savepoint while auto-commit is enabled"
            )
        if name is None:
            self._savepoint_counter += 1
            name = f"{self.savepoint_prefix}{self._savepoint_counter}"
        if not SAVEPOINT_NAME.match(name):
            raise StatementError(f"Invalid savepoint name: {name!r}")
        if any(existing.name == name for existing in self._savepoints):
            raise TransactionError(f"Savepoint {name} already exists")

        await self._ensure_transaction()
        await self._command(f"SAVEPOINT {name}")
        savepoint = Savepoint(name, self)
        self._savepoints.append(savepoint)
        return savepoint

    async def release_savepoint(self, savepoint: Savepoint) -> None:
        index = self._savepoint_index(savepoint)
        await self._command(f"RELEASE SAVEPOINT {savepoint.name}")
        savepoint._released = True
        for released in self._savepoints[index:]:
            released._invalidate()
        del self._savepoints[index:]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._in_transaction = False
        self._invalidate_savepoints()
        await self._close()

    async def _rollback_to(self, savepoint: Savepoint) -> None:
        index = self._savepoint_index(savepoint)
        await self._command(f"ROLLBACK TO SAVEPOINT {savepoint.name}")
        for later in self._savepoints[index + 1 :]:
            later._invalidate()
        del self._savepoints[index + 1 :]

    def _savepoint_index(self, savepoint: Savepoint) -> int:
        self._check_open()
        if savepoint.session is not self:
            raise InvalidSavepointError(
                f"Savepoint {savepoint.name} belongs to another session"
            )
        if not savepoint.is_valid or savepoint not in self._savepoints:
            raise InvalidSavepointError(
                f"Savepoint {savepoint.name} is no longer valid"
            )
        return self._savepoints.index(savepoint)

    async def _ensure_transaction(self) -> None:
        if not self._autocommit and not self._in_transaction:
            await self._command("BEGIN")
            self._in_transaction = True

    async def _command(self, command: str) -> None:
        logger.debug("Executing %s", command)
        try:
            await self._run(command, (), False)
        except Exception as e:
            raise StatementError(f"Failed to execute {command}: {e}") from e

    def _invalidate_savepoints(self) -> None:
        for savepoint in self._savepoints:
            savepoint._invalidate()
        self._savepoints.clear()

    def _check_open(self) -> None:
        if self._closed:
            raise StatementError("Session is closed")

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self._interface}>"
