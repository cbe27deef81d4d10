"""
Schema synchronizer: derive, diff, apply.

``SchemaSynchronizer.build`` brings the database in line with a set of
model types.  It derives the target schema of every table the types need
(their closure plus relation tables), reads the live schema, diffs the two
and executes the difference.

Manifesto:
    Building is idempotent.  A second ``build`` with unchanged models finds
    no differences and executes nothing; the return value (statements
    executed) is what ``Store.build`` reports as "changed".

    Foreign keys are applied in three passes so that no statement ever
    references a table or column that is about to change:

    1. drop changed foreign keys on every table
    2. create or alter every table
    3. add new foreign keys on every table

Rename detection:
    A column present only in the live table and a column present only in
    the target may be one column that was renamed.  ``RenamePolicy``
    decides when they are paired:

    - ``EXPLICIT``     only pairs listed in ``renames``
    - ``UNAMBIGUOUS``  also the sole dropped/created pair of one SQL type
                       (default; ambiguous candidates are logged and
                       dropped + created)
    - ``GREEDY``       also any dropped/created pair of equal type,
                       first come first served

    An explicit ``renames`` entry always wins.

Tags:
    schema, migration, ddl, synchronizer, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from modelstore.core.adapters.base import DatabaseAdapter
from modelstore.core.errors import SchemaError
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.store.ddl import SchemaBackend, get_schema_backend
from modelstore.store.relations import RelationTableManager
from modelstore.store.schema import (
    Column,
    ColumnDelta,
    ForeignKey,
    Index,
    KeyDelta,
    SchemaBuilder,
    TableSchema,
    closure,
    relation_properties,
)

logger = get_logger(__name__)


class RenamePolicy(str, Enum):
    EXPLICIT = "explicit"
    UNAMBIGUOUS = "unambiguous"
    GREEDY = "greedy"


# =============================================================================
# Diffing
# =============================================================================


def diff_columns(
    target: Sequence[Column],
    live: Sequence[Column],
    *,
    renames: Mapping[str, str] | None = None,
    policy: RenamePolicy = RenamePolicy.UNAMBIGUOUS,
) -> ColumnDelta:
    """Column changes turning ``live`` into ``target``.

    ``renames`` maps live column names to target column names.
    """
    target_map = {c.name: c for c in target}
    live_map = {c.name: c for c in live}

    drop = [name for name in live_map if name not in target_map]
    create = [name for name in target_map if name not in live_map]
    alter = [
        (name, target_map[name])
        for name in target_map
        if name in live_map and live_map[name] != target_map[name]
    ]

    def pair(old: str, new: str) -> None:
        drop.remove(old)
        create.remove(new)
        alter.append((old, target_map[new]))

    for old, new in (renames or {}).items():
        if old in drop and new in create:
            pair(old, new)

    ambiguous: list[str] = []
    if policy is RenamePolicy.GREEDY:
        for new in list(create):
            old = next((o for o in drop if live_map[o].type == target_map[new].type), None)
            if old is not None:
                pair(old, new)
    elif policy is RenamePolicy.UNAMBIGUOUS:
        for sql_type in dict.fromkeys(target_map[n].type for n in create):
            created = [n for n in create if target_map[n].type == sql_type]
            dropped = [o for o in drop if live_map[o].type == sql_type]
            if len(created) == 1 and len(dropped) == 1:
                pair(dropped[0], created[0])
            elif created and dropped:
                ambiguous.append(sql_type)

    return ColumnDelta(
        drop=tuple(drop),
        create=tuple(target_map[n] for n in create),
        alter=tuple(alter),
        ambiguous=tuple(ambiguous),
    )


def _diff_keys(target: Iterable[Any], live: Iterable[Any]) -> KeyDelta:
    target_map = {k.name: k for k in target}
    live_map = {k.name: k for k in live}
    return KeyDelta(
        drop=tuple(n for n, k in live_map.items() if target_map.get(n) != k),
        create=tuple(k for n, k in target_map.items() if live_map.get(n) != k),
    )


def diff_indexes(target: Iterable[Index], live: Iterable[Index]) -> KeyDelta:
    """Index changes, matched by name; a changed index is dropped and recreated."""
    return _diff_keys(target, live)


def diff_foreign_keys(target: Iterable[ForeignKey], live: Iterable[ForeignKey]) -> KeyDelta:
    """Foreign-key changes, matched by their deterministic names."""
    return _diff_keys(target, live)


# =============================================================================
# Synchronizer
# =============================================================================


class SchemaSynchronizer:
    """Keeps the tables of a relational store in line with model types.

    Args:
        adapter: Connected database adapter
        builder: Schema derivation (carries the relation-table switch)
        policy: Rename detection policy
        backend: Dialect backend (derived from the adapter when omitted)
        relations: Relation-table manager that records the link tables built
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        builder: SchemaBuilder | None = None,
        *,
        policy: RenamePolicy | str = RenamePolicy.UNAMBIGUOUS,
        backend: SchemaBackend | None = None,
        relations: RelationTableManager | None = None,
    ):
        self.adapter = adapter
        self.builder = builder or SchemaBuilder()
        self.policy = RenamePolicy(policy)
        self.backend = backend or get_schema_backend(adapter)
        self.relations = relations

    def target_tables(self, models: Iterable[type[Model]]) -> list[tuple[str, TableSchema]]:
        """Tables needed by ``models``: ``(owner label, schema)`` pairs.

        Model tables are labelled by type name, relation tables by their
        own table name.
        """
        models = list(models)
        for model in models:
            if not model.primary:
                raise SchemaError(f"{model.type_name()} has no primary key and cannot be stored")

        types = closure(models)
        tables = [(model.type_name(), self.builder.table(model)) for model in types]
        if self.builder.relation_tables:
            for model in types:
                for prop in relation_properties(model):
                    if self.relations is not None:
                        rel = self.relations.ensure(model, prop.nested_model, prop.id)
                    else:
                        rel = self.builder.relation_table(model, prop.nested_model, prop.id)
                    tables.append((rel.name, rel))
        return tables

    def _policy(self, override: RenamePolicy | str | None) -> RenamePolicy:
        return self.policy if override is None else RenamePolicy(override)

    def plan(
        self,
        models: Iterable[type[Model]],
        *,
        renames: Mapping[str, Mapping[str, str]] | None = None,
        rename_policy: RenamePolicy | str | None = None,
    ) -> list[str]:
        """Statements ``build`` would execute, without executing them."""
        return list(self._statements(models, renames or {}, self._policy(rename_policy)))

    def build(
        self,
        models: Iterable[type[Model]],
        *,
        renames: Mapping[str, Mapping[str, str]] | None = None,
        rename_policy: RenamePolicy | str | None = None,
    ) -> int:
        """Create or alter every table ``models`` need.

        Args:
            models: Model types to build (their closure is built too)
            renames: ``{type name or table: {old column: new column}}``
            rename_policy: Overrides the synchronizer's policy for this call

        Returns:
            Number of DDL statements executed (0 when already in sync)
        """
        executed = 0
        with self.adapter.schema_changes():
            for sql in self._statements(models, renames or {}, self._policy(rename_policy)):
                logger.info("schema_ddl", statement=sql)
                self.adapter.execute(sql)
                executed += 1
        logger.info("schema_build_completed", statements=executed)
        return executed

    def _statements(
        self,
        models: Iterable[type[Model]],
        renames: Mapping[str, Mapping[str, str]],
        policy: RenamePolicy,
    ) -> Iterable[str]:
        backend = self.backend
        tables = self.target_tables(models)
        live = {table.name: backend.read_table(table.name) for _, table in tables}

        # pass 1: foreign keys that change are dropped everywhere first
        foreign: dict[str, KeyDelta] = {}
        for _, table in tables:
            current = live[table.name]
            delta = diff_foreign_keys(table.foreign_keys, current.foreign_keys if current else ())
            foreign[table.name] = delta
            if current is not None and not backend.inline_foreign_keys:
                yield from backend.drop_foreign_keys(table.name, delta.drop)

        # pass 2: tables
        for label, table in tables:
            current = live[table.name]
            if current is None:
                yield from backend.create_table(table)
                continue
            columns = diff_columns(
                table.columns,
                current.columns,
                renames=renames.get(label) or renames.get(table.name),
                policy=policy,
            )
            if columns.ambiguous:
                logger.warning(
                    "schema_rename_ambiguous",
                    table=table.name,
                    types=list(columns.ambiguous),
                    dropped=list(columns.drop),
                    created=[c.name for c in columns.create],
                )
            indexes = diff_indexes(table.indexes, current.indexes)
            yield from backend.alter_table(table, current, columns, indexes, foreign[table.name])

        # pass 3: foreign keys
        if not backend.inline_foreign_keys:
            for _, table in tables:
                yield from backend.add_foreign_keys(table.name, foreign[table.name].create)


__all__ = [
    "RenamePolicy",
    "diff_columns",
    "diff_indexes",
    "diff_foreign_keys",
    "SchemaSynchronizer",
]
