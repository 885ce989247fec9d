from .interface import BaseInterface
from .session import PreparedStatement, RowCursor, Session

__all__ = ("BaseInterface", "PreparedStatement", "RowCursor", "Session")
