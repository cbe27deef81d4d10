"""
Protocol definitions for database access.

Every adapter hands out connections satisfying :class:`Connection` (the
PEP 249 subset the library relies on).  ``sqlite3.Connection``,
``mysql.connector`` connections and SQLAlchemy raw connections all qualify
without wrapping.

Guardrails:
    - SYNC-ONLY: every store operation blocks until the driver returns
    - runtime_checkable: protocols can be used with isinstance()

Tags:
    protocol, connection, database, dbapi, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cursor(Protocol):
    """Minimal PEP 249 cursor."""

    description: Any
    rowcount: int

    def execute(self, sql: str, params: Any = ()) -> Any:
        ...

    def executemany(self, sql: str, params: Any) -> Any:
        ...

    def fetchall(self) -> list:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface (PEP 249 subset).

    Examples:
        >>> cursor = conn.cursor()
        >>> cursor.execute("SELECT * FROM artist WHERE id = ?", ("a1",))
        >>> rows = cursor.fetchall()
        >>> conn.commit()
    """

    def cursor(self) -> Cursor:
        """Open a cursor."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...

    def close(self) -> None:
        """Close the connection."""
        ...


__all__ = [
    "Connection",
    "Cursor",
]
