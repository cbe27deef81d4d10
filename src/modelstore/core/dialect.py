"""SQL dialect abstraction for the relational store.

Provides a ``Dialect`` protocol and concrete implementations for the
supported backends.  The store, relation manager and restorer generate SQL
through ``Dialect`` methods (identifier quoting, placeholders, upserts, JSON
containment) without importing any database driver.

Manifesto:
    Storage code must run unchanged on SQLite (tests, embedded use) and
    MySQL (production).  Without a dialect layer every statement would
    carry backend-specific quoting and parameter syntax.

    - **One interface:** Dialect protocol for all DML generation
    - **Zero coupling:** Store code never imports database drivers
    - **Testable:** SQLiteDialect for tests, MySQLDialect for production

Architecture::

    Store / RelationTableManager / BatchRestorer
        sql = f"SELECT * FROM {d.quote(table)} WHERE {d.quote(pk)} = {d.placeholder(0)}"
                              │
                              ▼
    ┌──────────────────┐    ┌──────────────────┐
    │ SQLite           │    │ MySQL            │
    │ "name", ?        │    │ `name`, %s       │
    │ ON CONFLICT ...  │    │ ON DUPLICATE KEY │
    │ json_each(...)   │    │ JSON_CONTAINS()  │
    └──────────────────┘    └──────────────────┘

Examples:
    >>> from modelstore.core.dialect import SQLiteDialect
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.quote("artist")
    '"artist"'

Guardrails:
    ❌ DON'T: Interpolate values into SQL
    ✅ DO: Use placeholders and pass parameters separately

    ❌ DON'T: Quote identifiers by hand in store code
    ✅ DO: Use ``Dialect.quote``

Tags:
    dialect, sql, abstraction, portability, database, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) that is valid for the
    target database, except :meth:`json_contains_value` which converts a
    parameter value.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a table, column or index name."""
        ...

    # -- Placeholder generation --------------------------------------------

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index, ignored by ``?``/``%s`` styles)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list.

        >>> dialect.placeholders(3)
        '?, ?, ?'          # SQLite
        '%s, %s, %s'       # MySQL
        """
        ...

    # -- DML helpers -------------------------------------------------------

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """``INSERT … ON CONFLICT (keys) DO UPDATE SET …`` (or equivalent)."""
        ...

    # -- JSON helpers ------------------------------------------------------

    def json_contains(self, column: str) -> str:
        """Predicate: JSON array ``column`` contains the bound value."""
        ...

    def json_contains_value(self, value: Any) -> Any:
        """Convert a scalar into the parameter expected by :meth:`json_contains`."""
        ...

    # -- Introspection -----------------------------------------------------

    def table_exists_query(self) -> str:
        """SQL query returning a row if the table named by the single placeholder exists."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect -- ``"name"`` quoting, ``?`` placeholders."""

    @property
    def name(self) -> str:
        return "sqlite"

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    # -- DML ---------------------------------------------------------------

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        cols = ", ".join(self.quote(c) for c in columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(self.quote(c) for c in key_columns)
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols:
            return (
                f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({ph}) "
                f"ON CONFLICT ({keys}) DO NOTHING"
            )
        updates = ", ".join(f"{self.quote(c)} = excluded.{self.quote(c)}" for c in update_cols)
        return (
            f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )

    # -- JSON --------------------------------------------------------------

    def json_contains(self, column: str) -> str:
        return f"EXISTS (SELECT 1 FROM json_each({column}) WHERE json_each.value = ?)"

    def json_contains_value(self, value: Any) -> Any:
        return value

    # -- Introspection -----------------------------------------------------

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name=?"


class MySQLDialect:
    """MySQL dialect -- backtick quoting, ``%s`` placeholders.

    Compatible with ``mysql.connector`` and ``PyMySQL`` (both use
    ``%s`` format paramstyle).
    """

    @property
    def name(self) -> str:
        return "mysql"

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        cols = ", ".join(self.quote(c) for c in columns)
        ph = self.placeholders(len(columns))
        update_cols = [c for c in columns if c not in key_columns] or key_columns[:1]
        updates = ", ".join(f"{self.quote(c)} = VALUES({self.quote(c)})" for c in update_cols)
        return (
            f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({ph}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )

    def json_contains(self, column: str) -> str:
        return f"JSON_CONTAINS({column}, %s)"

    def json_contains_value(self, value: Any) -> Any:
        return json.dumps(value)

    def table_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s"
        )


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: One of ``'sqlite'``, ``'mysql'``, ``'mariadb'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower() if isinstance(db_type, str) else db_type.value
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'mariadb'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (e.g. a test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
