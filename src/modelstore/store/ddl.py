"""
Dialect-specific schema backends: introspection and DDL rendering.

A ``SchemaBackend`` reads the live definition of a table (columns, indexes,
foreign keys) into the same descriptors ``SchemaBuilder`` derives, and
renders the statements that move a table from its live definition to its
target.  The synchronizer decides *what* changes; backends only decide how
a dialect spells it.

Manifesto:
    Introspection normalizes what the database reports until a table built
    from a descriptor reads back as an equal descriptor.  Every quirk that
    breaks that equality (MySQL integer display widths, SQLite's quoted
    default literals, SQLite's table-scoped index names) is absorbed here.

Architecture:
    ::

        SchemaBackend (ABC)
        ├── SQLiteSchemaBackend   inline foreign keys; column or key change
        │                         rebuilds the table (<t>__new, copy, rename)
        └── MySQLSchemaBackend    one ALTER TABLE per table; foreign keys
                                  dropped/added by separate ALTER statements

Tags:
    ddl, introspection, sqlite, mysql, schema, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

from modelstore.core.adapters.base import DatabaseAdapter
from modelstore.core.adapters.types import DatabaseType
from modelstore.core.errors import ConfigError
from modelstore.store.schema import (
    PRIMARY,
    TEXT,
    Column,
    ColumnDelta,
    ForeignKey,
    Index,
    IndexKind,
    KeyDelta,
    TableSchema,
)


def _text(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


def _typed_default(sql_type: str, value: Any) -> Any:
    """Interpret a reported default according to its column type."""
    value = _text(value)
    if value is None:
        return None
    if sql_type.startswith(("tinyint", "smallint", "mediumint", "int", "bigint")):
        try:
            return int(value)
        except (TypeError, ValueError):
            return value
    if sql_type.startswith(("decimal", "float", "double")):
        try:
            return float(value)
        except (TypeError, ValueError):
            return value
    return str(value)


class SchemaBackend(ABC):
    """Introspects and alters tables for one dialect."""

    inline_foreign_keys: ClassVar[bool] = False

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter
        self.dialect = adapter.dialect

    def q(self, name: str) -> str:
        return self.dialect.quote(name)

    def q_list(self, names: Sequence[str]) -> str:
        return ", ".join(self.q(n) for n in names)

    # -- Introspection -----------------------------------------------------

    def table_exists(self, table: str) -> bool:
        return self.adapter.table_exists(table)

    @abstractmethod
    def read_columns(self, table: str) -> tuple[Column, ...]: ...

    @abstractmethod
    def read_indexes(self, table: str) -> tuple[Index, ...]: ...

    @abstractmethod
    def read_foreign_keys(self, table: str) -> tuple[ForeignKey, ...]: ...

    def read_table(self, table: str) -> TableSchema | None:
        """Live definition of ``table``, or None when it does not exist."""
        if not self.table_exists(table):
            return None
        return TableSchema(
            name=table,
            columns=self.read_columns(table),
            indexes=self.read_indexes(table),
            foreign_keys=self.read_foreign_keys(table),
        )

    # -- Rendering ---------------------------------------------------------

    @abstractmethod
    def literal(self, value: Any) -> str: ...

    def column_definition(self, column: Column) -> str:
        parts = [self.q(column.name), column.type]
        if column.required:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {self.literal(column.default)}")
        elif not column.required and column.type != TEXT:
            parts.append("DEFAULT NULL")
        return " ".join(parts)

    def foreign_key_definition(self, key: ForeignKey) -> str:
        return (
            f"CONSTRAINT {self.q(key.name)} FOREIGN KEY ({self.q_list(key.columns)}) "
            f"REFERENCES {self.q(key.ref_table)} ({self.q_list(key.ref_columns)}) "
            f"ON UPDATE {key.on_update} ON DELETE {key.on_delete}"
        )

    @abstractmethod
    def create_table(self, table: TableSchema) -> list[str]:
        """Statements creating ``table`` (foreign keys only when inline)."""

    @abstractmethod
    def alter_table(
        self,
        target: TableSchema,
        live: TableSchema,
        columns: ColumnDelta,
        indexes: KeyDelta,
        foreign_keys: KeyDelta,
    ) -> list[str]:
        """Statements moving ``live`` to ``target``."""

    def drop_foreign_keys(self, table: str, names: Sequence[str]) -> list[str]:
        return []

    def add_foreign_keys(self, table: str, keys: Sequence[ForeignKey]) -> list[str]:
        return []


# =============================================================================
# SQLite
# =============================================================================


class SQLiteSchemaBackend(SchemaBackend):
    """SQLite: foreign keys are part of the table definition.

    SQLite cannot alter columns or constraints in place, so any column or
    foreign-key change rebuilds the table.  Index names are global in
    SQLite; they are stored as ``<table>__<name>`` and read back as
    ``<name>``.
    """

    inline_foreign_keys = True

    def index_name(self, table: str, name: str) -> str:
        return f"{table}__{name}"

    def literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return repr(value)
        return "'" + str(value).replace("'", "''") + "'"

    def _parse_default(self, sql_type: str, raw: Any) -> Any:
        if raw is None or str(raw).upper() == "NULL":
            return None
        raw = str(raw)
        if len(raw) >= 2 and raw[0] == raw[-1] == "'":
            return _typed_default(sql_type, raw[1:-1].replace("''", "'"))
        return _typed_default(sql_type, raw)

    # -- Introspection -----------------------------------------------------

    def read_columns(self, table: str) -> tuple[Column, ...]:
        rows = self.adapter.query(f"PRAGMA table_info({self.q(table)})")
        columns = []
        for row in sorted(rows, key=lambda r: r["cid"]):
            sql_type = (row["type"] or "").lower()
            columns.append(
                Column(
                    name=row["name"],
                    type=sql_type,
                    required=bool(row["notnull"]),
                    default=self._parse_default(sql_type, row["dflt_value"]),
                )
            )
        return tuple(columns)

    def read_indexes(self, table: str) -> tuple[Index, ...]:
        indexes = []
        info = self.adapter.query(f"PRAGMA table_info({self.q(table)})")
        primary = [r["name"] for r in sorted(info, key=lambda r: r["pk"]) if r["pk"]]
        if primary:
            indexes.append(Index(PRIMARY, IndexKind.PRIMARY, tuple(primary)))

        prefix = self.index_name(table, "")
        for row in self.adapter.query(f"PRAGMA index_list({self.q(table)})"):
            name = row["name"]
            if row["origin"] != "c" or not name.startswith(prefix):
                continue
            columns = self.adapter.query(f"PRAGMA index_info({self.q(name)})")
            indexes.append(
                Index(
                    name[len(prefix):],
                    IndexKind.UNIQUE if row["unique"] else IndexKind.INDEX,
                    tuple(c["name"] for c in sorted(columns, key=lambda c: c["seqno"])),
                )
            )
        return tuple(indexes)

    def read_foreign_keys(self, table: str) -> tuple[ForeignKey, ...]:
        grouped: dict[int, list[dict[str, Any]]] = {}
        for row in self.adapter.query(f"PRAGMA foreign_key_list({self.q(table)})"):
            grouped.setdefault(row["id"], []).append(row)

        keys = []
        for rows in grouped.values():
            rows.sort(key=lambda r: r["seq"])
            columns = tuple(r["from"] for r in rows)
            keys.append(
                ForeignKey(
                    name=f"{table}_{'_'.join(columns)}",
                    columns=columns,
                    ref_table=rows[0]["table"],
                    ref_columns=tuple(r["to"] for r in rows),
                    on_update=rows[0]["on_update"].upper(),
                    on_delete=rows[0]["on_delete"].upper(),
                )
            )
        return tuple(sorted(keys, key=lambda k: k.name))

    # -- Rendering ---------------------------------------------------------

    def _table_body(self, table: TableSchema) -> str:
        parts = [self.column_definition(c) for c in table.columns]
        if table.primary is not None:
            parts.append(f"PRIMARY KEY ({self.q_list(table.primary.columns)})")
        parts.extend(self.foreign_key_definition(k) for k in table.foreign_keys)
        return ",\n  ".join(parts)

    def create_index(self, table: str, index: Index) -> str:
        unique = "UNIQUE " if index.kind is IndexKind.UNIQUE else ""
        return (
            f"CREATE {unique}INDEX IF NOT EXISTS {self.q(self.index_name(table, index.name))} "
            f"ON {self.q(table)} ({self.q_list(index.columns)})"
        )

    def _secondary_indexes(self, table: TableSchema) -> list[str]:
        return [
            self.create_index(table.name, i)
            for i in table.indexes
            if i.kind is not IndexKind.PRIMARY
        ]

    def create_table(self, table: TableSchema) -> list[str]:
        return [
            f"CREATE TABLE IF NOT EXISTS {self.q(table.name)} (\n  {self._table_body(table)}\n)",
            *self._secondary_indexes(table),
        ]

    def alter_table(
        self,
        target: TableSchema,
        live: TableSchema,
        columns: ColumnDelta,
        indexes: KeyDelta,
        foreign_keys: KeyDelta,
    ) -> list[str]:
        primary_changed = PRIMARY in indexes.drop
        if columns or foreign_keys or primary_changed:
            return self.rebuild_table(target, live, columns)

        statements = [
            f"DROP INDEX IF EXISTS {self.q(self.index_name(target.name, name))}"
            for name in indexes.drop
        ]
        statements.extend(
            self.create_index(target.name, i)
            for i in indexes.create
            if i.kind is not IndexKind.PRIMARY
        )
        return statements

    def rebuild_table(self, target: TableSchema, live: TableSchema, columns: ColumnDelta) -> list[str]:
        """Create ``<t>__new``, copy surviving data, swap it in, recreate indexes."""
        new_name = f"{target.name}__new"
        sources = {col.name: old for old, col in columns.alter}
        live_names = {c.name for c in live.columns}
        for column in target.columns:
            if column.name not in sources and column.name in live_names and column.name not in columns.drop:
                sources[column.name] = column.name

        copied = [c.name for c in target.columns if c.name in sources]
        statements = [
            f"DROP TABLE IF EXISTS {self.q(new_name)}",
            f"CREATE TABLE {self.q(new_name)} (\n  {self._table_body(target)}\n)",
        ]
        if copied:
            statements.append(
                f"INSERT INTO {self.q(new_name)} ({self.q_list(copied)}) "
                f"SELECT {self.q_list([sources[c] for c in copied])} FROM {self.q(target.name)}"
            )
        statements.extend(
            [
                f"DROP TABLE {self.q(target.name)}",
                f"ALTER TABLE {self.q(new_name)} RENAME TO {self.q(target.name)}",
                *self._secondary_indexes(target),
            ]
        )
        return statements


# =============================================================================
# MySQL
# =============================================================================

_DISPLAY_WIDTH = re.compile(r"^(tinyint|smallint|mediumint|int|integer|bigint)\(\d+\)")

_FOREIGN_KEYS_QUERY = """
SELECT k.CONSTRAINT_NAME AS name,
       k.COLUMN_NAME AS column_name,
       k.REFERENCED_TABLE_NAME AS ref_table,
       k.REFERENCED_COLUMN_NAME AS ref_column,
       r.UPDATE_RULE AS on_update,
       r.DELETE_RULE AS on_delete
FROM information_schema.KEY_COLUMN_USAGE k
JOIN information_schema.REFERENTIAL_CONSTRAINTS r
  ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA
 AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME
 AND r.TABLE_NAME = k.TABLE_NAME
WHERE k.TABLE_SCHEMA = DATABASE()
  AND k.TABLE_NAME = %s
  AND k.REFERENCED_TABLE_NAME IS NOT NULL
ORDER BY k.CONSTRAINT_NAME, k.ORDINAL_POSITION
"""


def normalize_mysql_type(sql_type: Any) -> str:
    """Lower-case and drop integer display widths, except ``tinyint(1)``."""
    sql_type = str(_text(sql_type)).lower().strip()
    if sql_type.startswith("tinyint(1)"):
        return "tinyint(1)"
    return _DISPLAY_WIDTH.sub(r"\1", sql_type)


class MySQLSchemaBackend(SchemaBackend):
    """MySQL/MariaDB: in-place ALTER TABLE, utf8mb4 tables."""

    charset: ClassVar[str] = "utf8mb4"

    def literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return repr(value)
        escaped = str(value).replace("\\", "\\\\").replace("'", "''")
        return f"'{escaped}'"

    # -- Introspection -----------------------------------------------------

    def read_columns(self, table: str) -> tuple[Column, ...]:
        columns = []
        for row in self.adapter.query(f"SHOW COLUMNS FROM {self.q(table)}"):
            sql_type = normalize_mysql_type(row["Type"])
            columns.append(
                Column(
                    name=_text(row["Field"]),
                    type=sql_type,
                    required=_text(row["Null"]) == "NO",
                    default=_typed_default(sql_type, row["Default"]),
                )
            )
        return tuple(columns)

    def read_indexes(self, table: str) -> tuple[Index, ...]:
        grouped: dict[str, list[tuple[int, str]]] = {}
        kinds: dict[str, IndexKind] = {}
        for row in self.adapter.query(f"SHOW INDEX FROM {self.q(table)}"):
            name = _text(row["Key_name"])
            grouped.setdefault(name, []).append((int(row["Seq_in_index"]), _text(row["Column_name"])))
            if name == PRIMARY:
                kinds[name] = IndexKind.PRIMARY
            else:
                kinds[name] = IndexKind.INDEX if int(row["Non_unique"]) else IndexKind.UNIQUE
        return tuple(
            Index(name, kinds[name], tuple(col for _, col in sorted(parts)))
            for name, parts in grouped.items()
        )

    def read_foreign_keys(self, table: str) -> tuple[ForeignKey, ...]:
        grouped: dict[str, list[dict[str, Any]]] = {}
        for row in self.adapter.query(_FOREIGN_KEYS_QUERY, (table,)):
            row = {key: _text(value) for key, value in row.items()}
            grouped.setdefault(row["name"], []).append(row)
        return tuple(
            ForeignKey(
                name=name,
                columns=tuple(r["column_name"] for r in rows),
                ref_table=rows[0]["ref_table"],
                ref_columns=tuple(r["ref_column"] for r in rows),
                on_update=rows[0]["on_update"].upper(),
                on_delete=rows[0]["on_delete"].upper(),
            )
            for name, rows in grouped.items()
        )

    # -- Rendering ---------------------------------------------------------

    def index_definition(self, index: Index) -> str:
        if index.kind is IndexKind.PRIMARY:
            return f"PRIMARY KEY ({self.q_list(index.columns)})"
        keyword = "UNIQUE INDEX" if index.kind is IndexKind.UNIQUE else "INDEX"
        return f"{keyword} {self.q(index.name)} ({self.q_list(index.columns)})"

    def create_table(self, table: TableSchema) -> list[str]:
        parts = [self.column_definition(c) for c in table.columns]
        parts.extend(self.index_definition(i) for i in table.indexes)
        body = ",\n  ".join(parts)
        return [
            f"CREATE TABLE IF NOT EXISTS {self.q(table.name)} (\n  {body}\n) "
            f"DEFAULT CHARSET={self.charset}"
        ]

    def alter_table(
        self,
        target: TableSchema,
        live: TableSchema,
        columns: ColumnDelta,
        indexes: KeyDelta,
        foreign_keys: KeyDelta,
    ) -> list[str]:
        clauses = [
            "DROP PRIMARY KEY" if name == PRIMARY else f"DROP INDEX {self.q(name)}"
            for name in indexes.drop
        ]
        clauses.extend(f"DROP COLUMN {self.q(name)}" for name in columns.drop)
        for old, column in columns.alter:
            if old != column.name:
                clauses.append(f"CHANGE COLUMN {self.q(old)} {self.column_definition(column)}")
            else:
                clauses.append(f"MODIFY COLUMN {self.column_definition(column)}")
        clauses.extend(f"ADD COLUMN {self.column_definition(c)}" for c in columns.create)
        clauses.extend(f"ADD {self.index_definition(i)}" for i in indexes.create)
        if not clauses:
            return []
        return [f"ALTER TABLE {self.q(target.name)} " + ", ".join(clauses)]

    def drop_foreign_keys(self, table: str, names: Sequence[str]) -> list[str]:
        if not names:
            return []
        clauses = ", ".join(f"DROP FOREIGN KEY {self.q(n)}" for n in names)
        return [f"ALTER TABLE {self.q(table)} {clauses}"]

    def add_foreign_keys(self, table: str, keys: Sequence[ForeignKey]) -> list[str]:
        if not keys:
            return []
        clauses = ", ".join(f"ADD {self.foreign_key_definition(k)}" for k in keys)
        return [f"ALTER TABLE {self.q(table)} {clauses}"]


_BACKENDS: dict[DatabaseType, type[SchemaBackend]] = {
    DatabaseType.SQLITE: SQLiteSchemaBackend,
    DatabaseType.MYSQL: MySQLSchemaBackend,
}


def get_schema_backend(adapter: DatabaseAdapter) -> SchemaBackend:
    """Schema backend matching the adapter's database type."""
    try:
        backend = _BACKENDS[adapter.db_type]
    except KeyError:
        raise ConfigError(f"No schema backend for database type: {adapter.db_type}") from None
    return backend(adapter)


__all__ = [
    "SchemaBackend",
    "SQLiteSchemaBackend",
    "MySQLSchemaBackend",
    "normalize_mysql_type",
    "get_schema_backend",
]
