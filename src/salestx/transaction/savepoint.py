"""
Savepoint handles for partial rollback within a transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from salestx.base.session import Session

logger = logging.getLogger(__name__)


class Savepoint:
    """
    A marker inside an open transaction. Rolling back to it undoes only the
    statements issued after it was set.

    A savepoint stops being valid when its transaction commits or is rolled
    back in full, when it is released, or when the session rolls back to a
    savepoint set before it.
    """

    def __init__(self, name: str, session: Session):
        self.name = name
        self.session = session
        self._valid = True
        self._released = False

        logger.debug(f"Created savepoint {self.name} on {session}")

    async def rollback(self) -> None:
        """Rollback to this savepoint"""
        await self.session.rollback(self)

    async def release(self) -> None:
        """Release this savepoint"""
        await self.session.release_savepoint(self)

    def _invalidate(self) -> None:
        if self._valid:
            logger.debug(f"Savepoint {self.name} invalidated")
        self._valid = False

    @property
    def is_valid(self) -> bool:
        """Check if this savepoint can still be rolled back to"""
        return self._valid

    @property
    def is_released(self) -> bool:
        """Check if this savepoint has been released"""
        return self._released

    def __str__(self) -> str:
        if self._released:
            status = "released"
        elif self._valid:
            status = "active"
        else:
            status = "invalid"
        return f"<Savepoint {self.name} ({status})>"
