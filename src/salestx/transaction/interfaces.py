from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from salestx.exception import CleanupError, SalesTxError


class TransactionState(Enum):
    """Lifecycle of a transaction

    INIT -> ACTIVE -> {SAVEPOINT_SET -> ACTIVE}* -> {COMMITTED | ABORTED}
    """

    INIT = "INIT"
    ACTIVE = "ACTIVE"
    SAVEPOINT_SET = "SAVEPOINT_SET"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.COMMITTED, TransactionState.ABORTED)


@dataclass
class TransactionResult:
    """Outcome of an executor operation

    Cleanup failures are reported in `cleanup_errors` and never change the
    commit or abort outcome carried by `state`.
    """

    transaction_id: str
    state: TransactionState
    error: Optional[SalesTxError] = None
    cleanup_errors: List[CleanupError] = field(default_factory=list)
    rolled_back_to_savepoint: bool = False

    @property
    def ok(self) -> bool:
        return self.state is TransactionState.COMMITTED and self.error is None

    @property
    def committed(self) -> bool:
        return self.state is TransactionState.COMMITTED

    @property
    def aborted(self) -> bool:
        return self.state is TransactionState.ABORTED
