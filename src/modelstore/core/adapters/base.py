"""Database adapter base class.

Manifesto:
    All database adapters share a common lifecycle (connect/disconnect),
    statement execution and transaction discipline.  The abstract base
    class defines the interface so the relational store never depends on a
    specific driver.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``get_connection()``
    - ``execute()`` / ``executemany()`` return affected row counts,
      ``query()`` returns rows as dicts
    - ``transaction()`` commits on success and rolls back and re-raises on
      any exception; nested use joins the outer transaction
    - Outside a transaction every statement commits on its own
    - ``schema_changes()`` hook for backends that must relax constraint
      enforcement while tables are rebuilt
    - ``integrity_errors`` names the driver exceptions that mean a
      unique or foreign-key constraint rejected a write

Tags:
    modelstore, database, abstract-base, adapter-pattern

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from modelstore.core.dialect import Dialect, get_dialect
from modelstore.core.protocols import Connection

from .types import DatabaseConfig, DatabaseType


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    One adapter owns exactly one live connection and is not meant to be
    shared between threads.
    """

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._connected = False
        self._dialect: Dialect = get_dialect(config.db_type.value)
        self._depth = 0

    @property
    def dialect(self) -> Dialect:
        """SQL dialect for this adapter's database type."""
        return self._dialect

    @property
    def db_type(self) -> DatabaseType:
        """Database type."""
        return self._config.db_type

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @property
    def in_transaction(self) -> bool:
        """Whether a ``transaction()`` block is currently open."""
        return self._depth > 0

    @property
    @abstractmethod
    def integrity_errors(self) -> tuple[type[BaseException], ...]:
        """Driver exception types raised for constraint violations."""
        ...

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to database."""
        ...

    @abstractmethod
    def get_connection(self) -> Connection:
        """Get the live connection, connecting on first use."""
        ...

    # -- Transactions -------------------------------------------------------

    def _begin(self, conn: Connection) -> None:
        """Start a transaction explicitly (drivers running in autocommit)."""

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Context manager for a transaction."""
        conn = self.get_connection()
        if self._depth:
            self._depth += 1
            try:
                yield conn
            finally:
                self._depth -= 1
            return

        self._begin(conn)
        self._depth = 1
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._depth = 0

    def _begin_schema(self) -> None:
        """Prepare the connection for DDL (override per backend)."""

    def _end_schema(self) -> None:
        """Restore the connection after DDL (override per backend)."""

    @contextmanager
    def schema_changes(self) -> Iterator[None]:
        """Bracket a schema build; not transactional."""
        self._begin_schema()
        try:
            yield
        finally:
            self._end_schema()

    # -- Statements ---------------------------------------------------------

    def _autocommit(self, conn: Connection) -> None:
        if not self._depth:
            conn.commit()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute SQL statement and return the affected row count."""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(sql, tuple(params))
            count = cursor.rowcount
        finally:
            cursor.close()
        self._autocommit(conn)
        return count

    def executemany(self, sql: str, params: list[Sequence[Any]]) -> int:
        """Execute SQL for multiple parameter sets."""
        if not params:
            return 0
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            cursor.executemany(sql, [tuple(p) for p in params])
            count = cursor.rowcount
        finally:
            cursor.close()
        self._autocommit(conn)
        return count

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(sql, tuple(params))
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Execute query and return single result."""
        results = self.query(sql, params)
        return results[0] if results else None

    def table_exists(self, table: str) -> bool:
        """Whether ``table`` exists in the connected database."""
        return self.query_one(self._dialect.table_exists_query(), (table,)) is not None

    def __enter__(self) -> DatabaseAdapter:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


__all__ = [
    "DatabaseAdapter",
]
