"""SQLAlchemy engine adapter.

Runs the store over any SQLAlchemy engine URL whose backend is SQLite or
MySQL/MariaDB (``mysql+pymysql://``, ``mysql+mysqlconnector://``,
``sqlite:///file.db`` ...).  The store's own SQL is passed straight to the
DBAPI connection, so the dialect's placeholder style must match the driver
(qmark for pysqlite, format for the MySQL drivers).

Engine defaults follow the usual tweaks: SQLite gets
``check_same_thread=False`` and foreign keys switched on by a connect
listener; MySQL connections run in autocommit and start explicit
transactions.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from modelstore.core.errors import ConfigError, DatabaseConnectionError
from modelstore.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

_BACKENDS = {
    "sqlite": DatabaseType.SQLITE,
    "mysql": DatabaseType.MYSQL,
    "mariadb": DatabaseType.MYSQL,
}


def create_store_engine(url: str, *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine configured for the store."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    kwargs.setdefault("isolation_level", "AUTOCOMMIT")
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, echo=echo, **kwargs)


class SQLAlchemyAdapter(DatabaseAdapter):
    """Adapter over a SQLAlchemy engine.

    Usage:
        adapter = SQLAlchemyAdapter("mysql+pymysql://app:secret@db/music")
        store = SqlStore(adapter)
    """

    def __init__(self, url: str, *, echo: bool = False, engine: Engine | None = None, **kwargs: Any):
        try:
            backend = make_url(url).get_backend_name()
        except ArgumentError as e:
            raise ConfigError(f"Invalid database URL: {url}", cause=e) from e
        if backend not in _BACKENDS:
            raise ConfigError(f"Unsupported SQLAlchemy backend: {backend}")

        super().__init__(DatabaseConfig(db_type=_BACKENDS[backend], options={"url": url}))
        self._url = url
        self._echo = echo
        self._engine_kwargs = kwargs
        self._engine: Engine | None = engine
        self._conn: Any = None

    @property
    def engine(self) -> Engine:
        """The underlying engine (created on first use)."""
        if self._engine is None:
            self._engine = create_store_engine(self._url, echo=self._echo, **self._engine_kwargs)
        return self._engine

    @property
    def integrity_errors(self) -> tuple[type[BaseException], ...]:
        dbapi = self.engine.dialect.dbapi
        error = getattr(dbapi, "IntegrityError", None)
        return (error,) if error is not None else ()

    def connect(self) -> None:
        """Check out one DBAPI connection from the engine's pool."""
        if self._conn:
            return
        try:
            self._conn = self.engine.raw_connection()
            self._connected = True
        except Exception as e:
            raise DatabaseConnectionError(
                f"Failed to connect to {self._url.split('://')[0]}: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Return the connection to the pool and dispose the engine."""
        if self._conn:
            self._conn.close()
            self._conn = None
        if self._engine is not None:
            self._engine.dispose()
        self._connected = False

    def get_connection(self) -> Connection:
        if not self._conn:
            self.connect()
        return self._conn

    def _begin(self, conn: Any) -> None:
        statement = (
            "START TRANSACTION"
            if self.db_type is DatabaseType.MYSQL
            else "PRAGMA defer_foreign_keys=ON"
        )
        cursor = conn.cursor()
        try:
            cursor.execute(statement)
        finally:
            cursor.close()

    def _pragma(self, statement: str) -> None:
        conn = self.get_connection()
        conn.commit()
        cursor = conn.cursor()
        try:
            cursor.execute(statement)
        finally:
            cursor.close()

    def _begin_schema(self) -> None:
        if self.db_type is DatabaseType.SQLITE:
            self._pragma("PRAGMA foreign_keys=OFF")

    def _end_schema(self) -> None:
        if self.db_type is DatabaseType.SQLITE:
            self._pragma("PRAGMA foreign_keys=ON")


__all__ = [
    "SQLAlchemyAdapter",
    "create_store_engine",
]
