from __future__ import annotations

import logging
import time
from inspect import Parameter
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type
from uuid import uuid4

from salestx.exception import (
    CleanupError,
    InvalidSavepointError,
    RecordNotFound,
    SalesTxError,
    StatementError,
    TransactionError,
)
from salestx.hydrator import Hydrator

from .interfaces import TransactionState
from .savepoint import Savepoint

if TYPE_CHECKING:
    from salestx.base.session import PreparedStatement, Session
    from salestx.query import SQLQuery

logger = logging.getLogger(__name__)


class TransactionCoordinator:
    """One unit of work on a session

    Auto-commit is disabled by `begin` and restored by `close`, which also
    closes every statement prepared through the coordinator. `close` runs
    exactly once; later calls do nothing.

    Example:

    ```python
    async with TransactionCoordinator(session) as txn:
        await txn.execute_update(queries.insert_product, "iPod", 399)
        savepoint = await txn.savepoint()
        ...
        await txn.rollback_to(savepoint)
    ```
    """

    def __init__(self, session: Session, hydrator: Optional[Hydrator] = None):
        self.transaction_id = f"txn_{uuid4().hex[:8]}"
        self._session = session
        self._hydrator = hydrator or Hydrator()
        self._state = TransactionState.INIT
        self._statements: List[PreparedStatement] = []
        self._savepoints: Dict[str, Savepoint] = {}
        self._start_time = 0.0
        self._closed = False

        logger.debug(
            "Transaction %s created on %s", self.transaction_id, session
        )

    async def begin(self) -> None:
        """Begin the transaction by disabling auto-commit"""
        if self._state.is_terminal:
            raise TransactionError(
                f"Transaction {self.transaction_id} already finalized"
            )

        if self._state is not TransactionState.INIT:
            raise TransactionError(
                f"Transaction {self.transaction_id} already begun"
            )

        await self._session.set_autocommit(False)
        self._state = TransactionState.ACTIVE
        self._start_time = time.time()
        logger.debug("Transaction %s started", self.transaction_id)

    async def prepare(self, query: SQLQuery) -> PreparedStatement:
        """Prepare a statement that will be closed when the transaction
        is closed"""
        self._check_active()
        statement = await self._session.prepare(query.text)
        self._statements.append(statement)
        self._state = TransactionState.ACTIVE
        return statement

    async def execute_update(self, query: SQLQuery, *params: Any) -> int:
        statement = await self.prepare(query)
        statement.bind(*params)
        rowcount = await statement.execute_update()
        logger.debug(
            "Transaction %s: %s affected %d row(s)",
            self.transaction_id,
            query.name,
            rowcount,
        )
        return rowcount

    async def fetch_one(
        self,
        query: SQLQuery,
        *params: Any,
        model: Type[object] = Parameter.empty,
    ):
        """Read a single row and hydrate it

        Raises:
            RecordNotFound: If the query returned no row
        """
        statement = await self.prepare(query)
        statement.bind(*params)
        cursor = await statement.execute_query()
        try:
            row = cursor.fetchone()
        finally:
            cursor.close()
        if row is None:
            raise RecordNotFound(
                f"Query <{query.name}> did not find any record using {params}"
            )
        return self._hydrator.hydrate(row, model=model)

    async def savepoint(self, name: Optional[str] = None) -> Savepoint:
        """Create a savepoint to roll back to later"""
        self._check_active()
        savepoint = await self._session.set_savepoint(name)
        self._savepoints[savepoint.name] = savepoint
        self._state = TransactionState.SAVEPOINT_SET

        logger.debug(
            "Created savepoint %s in transaction %s",
            savepoint.name,
            self.transaction_id,
        )
        return savepoint

    async def rollback_to(self, savepoint: Savepoint) -> None:
        """Discard the statements issued after `savepoint`

        Raises:
            InvalidSavepointError: If the transaction is finalized or the
                savepoint was released or rolled past
        """
        self._check_savepoint(savepoint)
        await self._session.rollback(savepoint)
        self._forget_invalid_savepoints()
        self._state = TransactionState.ACTIVE

        logger.info(
            "Transaction %s rolled back to savepoint %s",
            self.transaction_id,
            savepoint.name,
        )

    async def release(self, savepoint: Savepoint) -> None:
        """Release `savepoint` and every savepoint created after it"""
        self._check_savepoint(savepoint)
        await self._session.release_savepoint(savepoint)
        self._forget_invalid_savepoints()
        self._state = TransactionState.ACTIVE

    async def commit(self) -> None:
        """Commit the transaction. A failed commit is followed by a full
        rollback."""
        self._check_active()

        try:
            await self._session.commit()
        except SalesTxError as e:
            logger.error(
                "Commit failed for %s, attempting rollback: %s",
                self.transaction_id,
                e,
            )
            try:
                await self._guaranteed_rollback()
            except SalesTxError as rollback_error:
                logger.critical(
                    "Rollback after failed commit also failed: %s",
                    rollback_error,
                )
            if isinstance(e, StatementError):
                raise
            raise StatementError(
                f"Failed to commit transaction {self.transaction_id}: {e}"
            ) from e

        self._state = TransactionState.COMMITTED
        self._savepoints.clear()
        logger.info(
            "Transaction %s committed in %.3fs",
            self.transaction_id,
            time.time() - self._start_time,
        )

    async def rollback(self) -> None:
        """Roll back everything since `begin`"""
        if self._state.is_terminal:
            raise TransactionError(
                f"Transaction {self.transaction_id} already finalized"
            )

        if self._state is TransactionState.INIT:
            raise TransactionError(
                f"Transaction {self.transaction_id} not begun"
            )

        try:
            await self._guaranteed_rollback()
        except SalesTxError as e:
            logger.critical(
                "CRITICAL: Rollback failed for %s: %s", self.transaction_id, e
            )
            raise
        logger.info("Transaction %s rolled back", self.transaction_id)

    async def close(self) -> List[CleanupError]:
        """Close every prepared statement, then restore auto-commit

        A transaction still open at this point is rolled back first.

        Returns:
            List[CleanupError]: Failures met along the way. They are
                reported, not raised.
        """
        if self._closed:
            return []
        self._closed = True
        errors: List[CleanupError] = []

        if self.is_active:
            logger.warning(
                "Transaction %s closed while active, rolling back",
                self.transaction_id,
            )
            try:
                await self._guaranteed_rollback()
            except Exception as e:
                errors.append(
                    self._cleanup_error(
                        f"Failed to roll back transaction "
                        f"{self.transaction_id} on close",
                        e,
                    )
                )

        for statement in self._statements:
            try:
                await statement.close()
            except Exception as e:
                errors.append(
                    self._cleanup_error(f"Failed to close {statement}", e)
                )

        try:
            await self._session.set_autocommit(True)
        except Exception as e:
            errors.append(
                self._cleanup_error("Failed to restore auto-commit", e)
            )

        logger.debug(
            "Cleaned up transaction %s with %d error(s)",
            self.transaction_id,
            len(errors),
        )
        return errors

    async def _guaranteed_rollback(self) -> None:
        try:
            await self._session.rollback()
        finally:
            self._state = TransactionState.ABORTED
            self._savepoints.clear()

    def _cleanup_error(self, message: str, cause: Exception) -> CleanupError:
        logger.warning("%s: %s", message, cause)
        error = CleanupError(f"{message}: {cause}")
        error.__cause__ = cause
        return error

    def _check_active(self) -> None:
        if self._state.is_terminal:
            raise TransactionError(
                f"Transaction {self.transaction_id} already finalized"
            )

        if self._state is TransactionState.INIT:
            raise TransactionError(
                f"Transaction {self.transaction_id} not begun"
            )

    def _check_savepoint(self, savepoint: Savepoint) -> None:
        if self._state.is_terminal:
            raise InvalidSavepointError(
                f"Savepoint {savepoint.name} is invalid, transaction "
                f"{self.transaction_id} already finalized"
            )
        if self._savepoints.get(savepoint.name) is not savepoint:
            raise InvalidSavepointError(
                f"Savepoint {savepoint.name} is not valid in transaction "
                f"{self.transaction_id}"
            )

    def _forget_invalid_savepoints(self) -> None:
        self._savepoints = {
            name: savepoint
            for name, savepoint in self._savepoints.items()
            if savepoint.is_valid
        }

    async def __aenter__(self):
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if self.is_active:
                if exc_type is None:
                    await self.commit()
                else:
                    await self.rollback()
        except Exception as e:
            logger.error(
                "Error in context manager exit for %s: %s",
                self.transaction_id,
                e,
            )
            if exc_type is None:
                raise
        finally:
            await self.close()

        return False

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (
            TransactionState.ACTIVE,
            TransactionState.SAVEPOINT_SET,
        )

    @property
    def is_committed(self) -> bool:
        return self._state is TransactionState.COMMITTED

    @property
    def is_rolled_back(self) -> bool:
        return self._state is TransactionState.ABORTED

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def statements(self) -> List[PreparedStatement]:
        return list(self._statements)

    @property
    def session(self) -> Session:
        return self._session
