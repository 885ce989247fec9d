from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import Any, Optional, Set, Tuple, Type
from urllib.parse import urlparse

from salestx.base.session import Session
from salestx.exception import SalesTxError, SessionConnectionError

logger = logging.getLogger(__name__)

UrlMapping = namedtuple("UrlMapping", ("key", "cast"))


URLPARSE_MAPPING = {
    "hostname": UrlMapping("_host", str),
    "username": UrlMapping("_user", str),
    "password": UrlMapping("_password", str),
    "port": UrlMapping("_port", int),
    "path": UrlMapping("_db", lambda value: value.replace("/", "")),
    "query": UrlMapping("_query", str),
}


class BaseInterface(ABC):
    scheme = "dummy"
    aliases: Tuple[str, ...] = ()
    default_port: Optional[int] = None
    session_class: Type[Session]
    registered_interfaces: Set[Type[BaseInterface]] = set()

    def __init_subclass__(cls) -> None:
        BaseInterface.registered_interfaces.add(cls)

    @abstractmethod
    def _check_driver(self): ...

    @abstractmethod
    async def _connect(self) -> Any: ...

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        query: Optional[str] = None,
    ) -> None:
        """DB interface initialization.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port. Defaults to the port of the
                database type
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            query (str, optional): DB query parameters. Defaults to None
        """

        if dsn and host:
            raise SalesTxError("Cannot connect to DB using host and dsn")

        if not dsn:
            if port is not None and (
                not isinstance(port, int) or port not in range(0, 65536)
            ):
                raise SalesTxError(
                    "port: must be an integer between 0 and 65535"
                )

            if host is not None and (
                not isinstance(host, str) or not len(host) > 0
            ):
                raise SalesTxError(
                    "host: must be a string at least 1 character long"
                )

        if password is not None and (
            not isinstance(password, str) or not len(password) > 0
        ):
            raise SalesTxError(
                "password: must be a string at least 1 character long"
            )

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._query = query
        self._full_dsn: Optional[str] = None

        self._populate_connection_args()
        self._populate_dsn()
        self._check_driver()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    @classmethod
    def matches_scheme(cls, scheme: str) -> bool:
        return scheme == cls.scheme or scheme in cls.aliases

    async def connect(self) -> Session:
        """Open a new session against the database

        Raises:
            SessionConnectionError: If the driver cannot connect

        Returns:
            Session: The opened session
        """
        try:
            connection = await self._connect()
        except Exception as e:
            raise SessionConnectionError(
                f"Could not connect to {self.dsn}: {e}"
            ) from e
        logger.debug("Opened connection to %s", self.dsn)
        return self.session_class(connection, self)

    def _populate_connection_args(self):
        dsn = self.dsn or ""
        if dsn:
            parts = urlparse(dsn)
            defaults = {
                "port": self.default_port,
                "hostname": "localhost",
                "username": None,
                "password": None,
                "path": "/",
                "query": "",
            }
            for key, mapping in URLPARSE_MAPPING.items():
                if not getattr(self, mapping.key):
                    value = getattr(parts, key, None)
                    if value is None:
                        value = defaults.get(key)
                    if value is not None:
                        setattr(self, mapping.key, mapping.cast(value))
        elif self._port is None:
            self._port = self.default_port

    def _populate_dsn(self):
        self._dsn = (
            (
                f"{self.scheme}://{self.user}:...@"
                f"{self.host}:{self.port}/{self.db}"
            )
            if self.password
            else (
                f"{self.scheme}://{self.user}@"
                f"{self.host}:{self.port}/{self.db}"
            )
        )
        self._full_dsn = (
            (
                f"{self.scheme}://{self.user}:{self.password}@"
                f"{self.host}:{self.port}/{self.db}"
            )
            if self.password
            else self.dsn
        )
        self._full_dsn += f"?{self._query}" if self._query else ""

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def full_dsn(self):
        return self._full_dsn
