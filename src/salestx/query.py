from __future__ import annotations

import logging
from inspect import cleandoc
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from salestx.convert import count_sql_params
from salestx.exception import MissingSQL

logger = logging.getLogger(__name__)


class SQLQuery:
    __slots__ = ("name", "text", "param_count")
    name: str
    text: str
    param_count: int

    def __init__(self, name: str, text: str) -> None:
        self.name = name
        self.text = cleandoc(text)
        self.param_count = count_sql_params(self.text)

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} name={self.name} "
            f"text={self.text[:6]}... param_count={self.param_count}>"
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name} "
            f"text={self.text[:6]}...)"
        )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, SQLQuery)
            and self.text == other.text
            and self.param_count == other.param_count
        )

    def __hash__(self) -> int:
        return hash((self.name, self.text))


class QuerySet:
    """The statements used by the order workflows, loaded from `.sql` files

    Example:

    ```python
    queries = QuerySet(path="/srv/app/queries")
    queries.insert_order.text
    ```
    """

    names: Tuple[str, ...] = (
        "insert_product",
        "insert_order",
        "select_monthly_sales",
        "update_monthly_sales",
    )

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, str]] = None,
    ) -> None:
        """Load every statement in `names`

        Args:
            path (Union[str, Path], optional): Directory holding the `.sql`
                files. Defaults to the `queries` directory shipped with the
                package.
            overrides (Dict[str, str], optional): Statement text to use
                instead of a file, keyed by name. Defaults to `None`.

        Raises:
            MissingSQL: If a statement has neither an override nor a file
        """
        self.path = self.get_base_path(path)
        overrides = overrides or {}
        self._queries: Dict[str, SQLQuery] = {}
        for name in self.names:
            self._queries[name] = SQLQuery(
                name, self._load_sql(overrides.get(name), name)
            )
        logger.debug(
            "Loaded %d statements from %s", len(self._queries), self.path
        )

    def __getattr__(self, name: str) -> SQLQuery:
        try:
            return self.__dict__["_queries"][name]
        except KeyError:
            raise AttributeError(
                f"{self.__class__.__name__} has no query {name!r}"
            ) from None

    def __getitem__(self, name: str) -> SQLQuery:
        return self._queries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._queries

    def _load_sql(self, query: Optional[str], name: str) -> str:
        if query:
            return query
        path = self.path / f"{name}.sql"
        try:
            with open(path, "r") as f:
                return f.read()
        except FileNotFoundError as e:
            raise MissingSQL(
                f"Could not find SQL for {name}. "
                f"Looked for file named: {path}"
            ) from e

    @staticmethod
    def get_base_path(path: Optional[Union[str, Path]]) -> Path:
        if path is None:
            return Path(__file__).parent / "queries"
        return Path(path)
