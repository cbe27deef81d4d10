"""SQLite database adapter."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

from modelstore.core.errors import DatabaseConnectionError
from modelstore.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Uses the built-in sqlite3 module. Suitable for:
    - Tests (``:memory:``)
    - Embedded, single-process applications

    Foreign keys are enforced on every connection and switched off while a
    schema build rebuilds tables.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        readonly: bool = False,
        timeout: float = 5.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.SQLITE,
            path=path,
            readonly=readonly,
            options=kwargs,
        )
        super().__init__(config)
        self._timeout = timeout
        self._conn: Any = None

    @property
    def integrity_errors(self) -> tuple[type[BaseException], ...]:
        return (sqlite3.IntegrityError,)

    def connect(self) -> None:
        """Connect to SQLite database."""
        if self._conn:
            return

        path = self._config.path or ":memory:"
        uri = path.startswith("file:")

        try:
            self._conn = sqlite3.connect(
                path,
                timeout=self._timeout,
                check_same_thread=False,
                uri=uri,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")

            if self._config.readonly:
                self._conn.execute("PRAGMA query_only = ON")

            self._connected = True

        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the SQLite connection."""
        if not self._conn:
            self.connect()
        return self._conn

    def _begin(self, conn: Connection) -> None:
        # references among models written in one set() are checked at commit
        conn.execute("PRAGMA defer_foreign_keys = ON")

    def _begin_schema(self) -> None:
        conn = self.get_connection()
        conn.commit()
        conn.execute("PRAGMA foreign_keys = OFF")

    def _end_schema(self) -> None:
        conn = self.get_connection()
        conn.commit()
        conn.execute("PRAGMA foreign_keys = ON")

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        conn = self.get_connection()
        cursor = conn.execute(sql, tuple(params))
        return [dict(row) for row in cursor.fetchall()]


__all__ = [
    "SQLiteAdapter",
]
