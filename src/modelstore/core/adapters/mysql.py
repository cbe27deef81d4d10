"""MySQL database adapter.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package.
MySQL uses **format** (``%s``) placeholder style.

Install the driver::

    pip install mysql-connector-python
    # or:  pip install modelstore[mysql]

This adapter is import-guarded: if ``mysql.connector`` is not installed
a clear :class:`~modelstore.core.errors.ConfigError` is raised at
``connect()`` time.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from modelstore.core.errors import ConfigError, DatabaseConnectionError
from modelstore.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class MySQLAdapter(DatabaseAdapter):
    """MySQL / MariaDB database adapter.

    Holds one connection in autocommit mode; ``transaction()`` starts an
    explicit transaction so reads outside it always see committed data.
    The connection charset is ``utf8mb4``.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        charset: str = "utf8mb4",
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.MYSQL,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            charset=charset,
            options=kwargs,
        )
        super().__init__(config)
        self._conn: Any = None

    @property
    def integrity_errors(self) -> tuple[type[BaseException], ...]:
        try:
            from mysql.connector import errors
        except ImportError:
            return ()
        return (errors.IntegrityError,)

    def connect(self) -> None:
        """Connect to MySQL database."""
        if self._conn:
            return

        try:
            import mysql.connector
        except ImportError:
            raise ConfigError(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install mysql-connector-python"
            ) from None

        try:
            self._conn = mysql.connector.connect(
                host=self._config.host,
                port=self._config.port,
                database=self._config.database,
                user=self._config.username,
                password=self._config.password,
                charset=self._config.charset,
                connect_timeout=self._config.connect_timeout,
                autocommit=True,
                **self._config.options,
            )
            self._connected = True
        except mysql.connector.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close MySQL connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
        self._connected = False

    def get_connection(self) -> Connection:
        """Get the MySQL connection."""
        if not self._conn:
            self.connect()
        return self._conn

    def _begin(self, conn: Any) -> None:
        conn.start_transaction()

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        conn = self.get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(sql, tuple(params) or None)
            return cursor.fetchall()
        finally:
            cursor.close()


__all__ = [
    "MySQLAdapter",
]
