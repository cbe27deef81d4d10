"""
Relational store.

``SqlStore`` composes the schema synchronizer, row codec, relation-table
manager and batch restorer over one database adapter.

Manifesto:
    One ``set`` is one transaction.  The whole graph (nested models, their
    relation rows, the model itself) is written inside it, so a failure
    anywhere leaves nothing behind.  Integrity failures reported by the
    driver surface as ``ConstraintViolation`` with the driver error chained.

Architecture:
    ::

        set(model) ──► validate ──► transaction
                                     └─ persist(model)
                                        ├─ RowCodec.split ──► persist(nested) ...
                                        ├─ upsert row
                                        └─ RelationTableManager.update (links)

        get/list/filter ──► SELECT rows ──► BatchRestorer.restore
                                            (or RowCodec.join when batch=False)

Examples:
    >>> store = SqlStore(SQLiteAdapter(":memory:"))
    >>> store.build([Artist])
    True
    >>> artist = store.set(Artist(first_name="Tom", last_name="Waits"))
    >>> store.filter(Artist, {"last_name": "Waits"}) == [artist]
    True

Tags:
    store, sql, sqlite, mysql, transactions, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from modelstore.core.adapters.base import DatabaseAdapter
from modelstore.core.errors import ConstraintViolation
from modelstore.core.hashing import compute_hash
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.model.properties import is_reference, is_relation
from modelstore.store.base import Op, Predicate, Store, normalize_predicates
from modelstore.store.codec import RowCodec
from modelstore.store.relations import RelationTableManager, unique_ids
from modelstore.store.restorer import MAX_IN_LIST, BatchRestorer
from modelstore.store.schema import RELATION_CHILD, RELATION_PARENT, SchemaBuilder
from modelstore.store.synchronizer import RenamePolicy, SchemaSynchronizer

logger = get_logger(__name__)


class StatementCache:
    """Generated SQL keyed by a hash of the statement's shape.

    Owned by one store; cleared whenever the schema is rebuilt.
    """

    def __init__(self):
        self._statements: dict[str, str] = {}

    def get(self, shape: Iterable[Any], render: Callable[[], str]) -> str:
        key = compute_hash(*shape)
        sql = self._statements.get(key)
        if sql is None:
            sql = self._statements[key] = render()
        return sql

    def clear(self) -> None:
        self._statements.clear()

    def __len__(self) -> int:
        return len(self._statements)


class SqlStore(Store):
    """Store over a relational database.

    Args:
        adapter: Database adapter (SQLite, MySQL or SQLAlchemy)
        relation_tables: Keep collections of identifiable models in relation
            tables (True) or as JSON id lists in the parent row (False)
        batch: Hydrate nested references with the batch restorer; False
            resolves them row by row
        rename_policy: Column rename detection used by ``build``
    """

    kind = "sql"

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        relation_tables: bool = True,
        batch: bool = True,
        rename_policy: RenamePolicy | str = RenamePolicy.UNAMBIGUOUS,
    ):
        self.adapter = adapter
        self.batch = batch
        self.builder = SchemaBuilder(relation_tables=relation_tables)
        self.relations = RelationTableManager(adapter, self.builder)
        self.codec = RowCodec(self, relation_tables=relation_tables, encode=True)
        self.restorer = BatchRestorer(adapter, self.codec, self.builder)
        self.synchronizer = SchemaSynchronizer(
            adapter,
            self.builder,
            policy=rename_policy,
            relations=self.relations,
        )
        self.statements = StatementCache()
        self._built: set[type[Model]] = set()

    @property
    def relation_tables(self) -> bool:
        return self.builder.relation_tables

    def q(self, name: str) -> str:
        return self.adapter.dialect.quote(name)

    # =========================================================================
    # Schema
    # =========================================================================

    def build(
        self,
        model_types: Iterable[type[Model]],
        *,
        renames: Mapping[str, Mapping[str, str]] | None = None,
        rename_policy: RenamePolicy | str | None = None,
        **options: Any,
    ) -> bool:
        """Create or migrate the tables of ``model_types``; True when DDL ran."""
        model_types = list(model_types)
        changes = self.synchronizer.build(model_types, renames=renames, rename_policy=rename_policy)
        self.statements.clear()
        self._built.update(model_types)
        return changes > 0

    # =========================================================================
    # Reads
    # =========================================================================

    def exists(self, model_type: type[Model], model_id: Any) -> bool:
        self.require_key(model_type)
        if model_id is None:
            return False
        sql = self.statements.get(
            ("exists", model_type.table_name()),
            lambda: (
                f"SELECT 1 AS found FROM {self.q(model_type.table_name())} "
                f"WHERE {self.q(model_type.primary)} = {self.adapter.dialect.placeholder(0)}"
            ),
        )
        return self.adapter.query_one(sql, (model_id,)) is not None

    def list(self, model_type: type[Model], ids: Iterable[Any] | None = None) -> list[Model]:
        self.require_key(model_type)
        ids = unique_ids(ids or [])
        if not ids:
            rows = self.adapter.query(f"SELECT * FROM {self.q(model_type.table_name())}")
        else:
            rows = self.fetch(model_type, ids)
        return self._restore(model_type, rows)

    def filter(self, model_type: type[Model], predicates: Mapping[str, Any] | None = None) -> list[Model]:
        self.require_key(model_type)
        if not predicates:
            return self.list(model_type)
        normalized = normalize_predicates(model_type, predicates, relation_tables=self.relation_tables)
        if any(p.op is Op.IN and not p.value for p in normalized):
            return []

        sql = self.statements.get(
            ("filter", model_type.table_name(), *(p.shape() for p in normalized)),
            lambda: self._filter_sql(model_type, normalized),
        )
        params: list[Any] = []
        for predicate in normalized:
            params.extend(self._params(predicate))
        return self._restore(model_type, self.adapter.query(sql, params))

    def _restore(self, model_type: type[Model], rows: list[dict[str, Any]]) -> list[Model]:
        if self.batch:
            return self.restorer.restore(model_type, rows)
        return [self.codec.join(model_type, row) for row in rows]

    # -- Filter SQL ----------------------------------------------------------

    def _filter_sql(self, model_type: type[Model], predicates: list[Predicate]) -> str:
        clauses = [self._clause(model_type, p) for p in predicates]
        return f"SELECT * FROM {self.q(model_type.table_name())} WHERE " + " AND ".join(clauses)

    def _clause(self, model_type: type[Model], predicate: Predicate) -> str:
        dialect = self.adapter.dialect
        column = self.q(predicate.key)

        if is_relation(predicate.prop) and self.relation_tables:
            parents = (
                f"SELECT {self.q(RELATION_PARENT)} FROM "
                f"{self.q(self.builder.relation_table_name(model_type, predicate.key))}"
            )
            pk = self.q(model_type.primary)
            child = self.q(RELATION_CHILD)
            if predicate.op is Op.NULL:
                return f"{pk} NOT IN ({parents})"
            if predicate.op is Op.IN:
                return f"{pk} IN ({parents} WHERE {child} IN ({dialect.placeholders(len(predicate.value))}))"
            return f"{pk} IN ({parents} WHERE {child} = {dialect.placeholder(0)})"

        if is_relation(predicate.prop):
            if predicate.op is Op.NULL:
                return f"({column} IS NULL OR {column} = '[]')"
            contains = dialect.json_contains(column)
            if predicate.op is Op.IN:
                return "(" + " OR ".join(contains for _ in predicate.value) + ")"
            return contains

        if predicate.op is Op.NULL:
            return f"{column} IS NULL"
        if predicate.op is Op.IN:
            return f"{column} IN ({dialect.placeholders(len(predicate.value))})"
        if predicate.op is Op.BETWEEN:
            return f"{column} BETWEEN {dialect.placeholder(0)} AND {dialect.placeholder(1)}"
        return f"{column} = {dialect.placeholder(0)}"

    def _params(self, predicate: Predicate) -> list[Any]:
        if predicate.op is Op.NULL:
            return []
        values = list(predicate.value) if predicate.op in (Op.IN, Op.BETWEEN) else [predicate.value]
        if is_relation(predicate.prop):
            if self.relation_tables:
                return values
            return [self.adapter.dialect.json_contains_value(v) for v in values]
        if is_reference(predicate.prop):
            # references are stored as the bare id of the nested model
            return values
        return [self.codec.encode_value(predicate.prop, v) for v in values]

    # -- Row sources (used by RowCodec.join) -----------------------------------

    def fetch(self, model_type: type[Model], ids: list[Any]) -> list[dict[str, Any]]:
        """Rows of ``ids`` in requested order; missing ids are skipped."""
        if not ids:
            return []
        table = model_type.table_name()
        found: dict[str, dict[str, Any]] = {}
        for start in range(0, len(ids), MAX_IN_LIST):
            chunk = ids[start:start + MAX_IN_LIST]
            sql = self.statements.get(
                ("fetch", table, len(chunk)),
                lambda size=len(chunk): (
                    f"SELECT * FROM {self.q(table)} WHERE {self.q(model_type.primary)} "
                    f"IN ({self.adapter.dialect.placeholders(size)})"
                ),
            )
            for row in self.adapter.query(sql, chunk):
                found[str(row[model_type.primary])] = row
        return [found[str(i)] for i in ids if str(i) in found]

    def fetch_matching(self, model_type: type[Model], key: str, value: Any) -> list[dict[str, Any]]:
        sql = (
            f"SELECT * FROM {self.q(model_type.table_name())} "
            f"WHERE {self.q(key)} = {self.adapter.dialect.placeholder(0)}"
        )
        return self.adapter.query(sql, (value,))

    def related_ids(self, parent: type[Model], prop_id: str, parent_id: Any) -> list[Any]:
        return self.relations.stored_ids(parent, prop_id, parent_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def set(self, model: Model) -> Model:
        """Validate and write ``model`` with everything nested in it."""
        self.require_key(type(model))
        model.validate()
        try:
            with self.adapter.transaction():
                self.persist(model, set())
        except self.adapter.integrity_errors as e:
            raise ConstraintViolation(
                f"{model.type_name()} {model.pk!r} violates a database constraint: {e}",
                cause=e,
            ).with_context(model_type=model.type_name(), model_id=model.pk) from e
        logger.debug("model_saved", model_type=model.type_name(), model_id=model.pk)
        return model

    def persist(self, model: Model, visited: set[tuple[str, str]]) -> Any:
        """Write one model of a graph (inside the caller's transaction); returns its id."""
        model_type = type(model)
        self.require_key(model_type)
        split = self.codec.split(model, visited)
        columns = list(split.row)
        table = model_type.table_name()
        sql = self.statements.get(
            ("upsert", table, *columns),
            lambda: self.adapter.dialect.upsert(table, columns, [model_type.primary]),
        )
        self.adapter.execute(sql, [split.row[c] for c in columns])
        for prop_id, ids in split.links.items():
            self.relations.update(model_type, prop_id, model.pk, ids)
        return model.pk

    def delete(self, model_type: type[Model], model_id: Any) -> bool:
        self.require_key(model_type)
        if model_id is None:
            return False
        sql = self.statements.get(
            ("delete", model_type.table_name()),
            lambda: (
                f"DELETE FROM {self.q(model_type.table_name())} "
                f"WHERE {self.q(model_type.primary)} = {self.adapter.dialect.placeholder(0)}"
            ),
        )
        try:
            with self.adapter.transaction():
                if self.relation_tables:
                    for prop in model_type.properties:
                        if is_relation(prop):
                            self.relations.delete(model_type, prop.id, model_id)
                deleted = self.adapter.execute(sql, (model_id,))
        except self.adapter.integrity_errors as e:
            raise ConstraintViolation(
                f"{model_type.type_name()} {model_id!r} is still referenced: {e}",
                cause=e,
            ).with_context(model_type=model_type.type_name(), model_id=model_id) from e
        return deleted > 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _info(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "dialect": self.adapter.dialect.name,
            "ready": bool(self._built),
            "connected": self.adapter.is_connected,
            "relation_tables": self.relation_tables,
            "statements": len(self.statements),
        }

    def close(self) -> None:
        self.adapter.disconnect()


__all__ = [
    "SqlStore",
    "StatementCache",
]
