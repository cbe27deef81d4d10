"""
Table schema descriptors and their derivation from model types.

``SchemaBuilder`` turns a model type into a ``TableSchema`` (columns,
indexes, foreign keys) and a collection property into its relation-table
schema.  Derivation is a pure function of the property descriptors: the
same model always yields an equal ``TableSchema``, which is what makes a
second ``build`` a no-op.

Architecture:
    ::

        Model ──► SchemaBuilder.table() ──► TableSchema
                                            ├── Column(name, type, required, default)
                                            ├── Index(name, kind, columns)
                                            └── ForeignKey(name, columns, ref_table,
                                                           ref_columns, on_update, on_delete)

Column types:
    ::

        mixed                 varbinary(255)
        bool                  tinyint(1)
        int                   bigint
        float                 decimal(32,10)
        uuid                  char(36)
        string/url/email      varchar(n)  (n <= 255, capped when indexed,
                                           unique or defaulted), else text
        datetime/date/time    varchar(32) / varchar(10) / varchar(8)
        identifiable object   type of the nested model's primary key
        other object/array    text (JSON)

Tags:
    schema, ddl, columns, indexes, foreign-keys, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from modelstore.core.errors import SchemaError
from modelstore.model.model import Model
from modelstore.model.properties import (
    ArrayProperty,
    BoolProperty,
    DateProperty,
    DateTimeProperty,
    EmailProperty,
    FloatProperty,
    IntProperty,
    MixedProperty,
    ObjectProperty,
    Property,
    StringProperty,
    TimeProperty,
    UuidProperty,
    is_column,
    is_identifiable,
    is_reference,
    is_relation,
    needs_foreign_key,
)

PRIMARY = "PRIMARY"
TEXT = "text"
MAX_VARCHAR = 255

RELATION_PARENT = "parent_id"
RELATION_CHILD = "child_id"
RELATION_POSITION = "position"


class IndexKind(str, Enum):
    PRIMARY = "primary"
    UNIQUE = "unique"
    INDEX = "index"


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class Index:
    name: str
    kind: IndexKind
    columns: tuple[str, ...]


@dataclass(frozen=True)
class ForeignKey:
    name: str
    columns: tuple[str, ...]
    ref_table: str
    ref_columns: tuple[str, ...]
    on_update: str = "CASCADE"
    on_delete: str = "CASCADE"


@dataclass(frozen=True)
class TableSchema:
    """Complete definition of one table."""

    name: str
    columns: tuple[Column, ...] = ()
    indexes: tuple[Index, ...] = ()
    foreign_keys: tuple[ForeignKey, ...] = ()

    def column(self, name: str) -> Column | None:
        return next((c for c in self.columns if c.name == name), None)

    @property
    def primary(self) -> Index | None:
        return next((i for i in self.indexes if i.kind is IndexKind.PRIMARY), None)


# =============================================================================
# Deltas
# =============================================================================


@dataclass(frozen=True)
class ColumnDelta:
    """Column changes for one table.

    ``alter`` pairs the live column name with its target definition; a
    differing name means a rename.  ``ambiguous`` lists SQL types for which
    several dropped and created columns could have been paired.
    """

    drop: tuple[str, ...] = ()
    create: tuple[Column, ...] = ()
    alter: tuple[tuple[str, Column], ...] = ()
    ambiguous: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.drop or self.create or self.alter)

    @property
    def renames(self) -> dict[str, str]:
        return {old: col.name for old, col in self.alter if old != col.name}


@dataclass(frozen=True)
class KeyDelta:
    """Index or foreign-key changes: names to drop, definitions to create.

    A changed key appears in both (drop, then recreate under the same name).
    """

    drop: tuple[str, ...] = ()
    create: tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.drop or self.create)


# =============================================================================
# Derivation
# =============================================================================


@dataclass
class SchemaBuilder:
    """Derives table schemas from model types.

    ``relation_tables`` selects the storage of identifiable collections:
    relation tables (the collection is not a column) or an inline JSON id
    list (a ``text`` column).
    """

    relation_tables: bool = True
    _tables: dict[type[Model], TableSchema] = field(default_factory=dict, repr=False)

    # -- Columns -----------------------------------------------------------

    def column_type(self, prop: Property) -> str:
        if is_reference(prop):
            return self._key_type(prop.nested_model)
        if isinstance(prop, (ObjectProperty, ArrayProperty)):
            return TEXT
        if isinstance(prop, BoolProperty):
            return "tinyint(1)"
        if isinstance(prop, IntProperty):
            return "bigint"
        if isinstance(prop, FloatProperty):
            return "decimal(32,10)"
        if isinstance(prop, UuidProperty):
            return "char(36)"
        if isinstance(prop, EmailProperty):
            return f"varchar({min(prop.max_len or MAX_VARCHAR, MAX_VARCHAR)})"
        if isinstance(prop, StringProperty):
            length = prop.max_len
            if prop.unique or prop.index or prop.default is not None or needs_foreign_key(prop):
                length = min(length or MAX_VARCHAR, MAX_VARCHAR)
            if length is None or length > MAX_VARCHAR:
                return TEXT
            return f"varchar({length})"
        if isinstance(prop, DateTimeProperty):
            return "varchar(32)"
        if isinstance(prop, DateProperty):
            return "varchar(10)"
        if isinstance(prop, TimeProperty):
            return "varchar(8)"
        if isinstance(prop, MixedProperty):
            return "varbinary(255)"
        return TEXT

    def _key_type(self, model: type[Model]) -> str:
        key = model.get_property(model.primary)
        if is_reference(key):
            raise SchemaError(f"{model.type_name()}.{key.id}: a primary key cannot be a nested model")
        return self.column_type(key)

    def column_default(self, prop: Property) -> Any:
        default = prop.default
        if default is None or isinstance(prop, (ObjectProperty, ArrayProperty, MixedProperty)):
            return None
        if isinstance(prop, BoolProperty):
            return int(bool(default))
        if isinstance(prop, FloatProperty):
            return float(default)
        if isinstance(prop, IntProperty):
            return int(default)
        return str(default)

    def columns(self, model: type[Model]) -> tuple[Column, ...]:
        return tuple(
            Column(
                name=prop.id,
                type=self.column_type(prop),
                required=prop.required or prop.id == model.primary,
                default=self.column_default(prop),
            )
            for prop in model.properties
            if is_column(prop, relation_tables=self.relation_tables)
        )

    # -- Indexes -----------------------------------------------------------

    def indexes(self, model: type[Model]) -> tuple[Index, ...]:
        props = [p for p in model.properties if is_column(p, relation_tables=self.relation_tables)]
        indexes: dict[str, Index] = {}

        if model.primary:
            indexes[PRIMARY] = Index(PRIMARY, IndexKind.PRIMARY, (model.primary,))

        for kind, attr in ((IndexKind.UNIQUE, "unique"), (IndexKind.INDEX, "index")):
            groups: dict[str, list[str]] = {}
            for prop in props:
                label = getattr(prop, attr)
                if label:
                    groups.setdefault(label, []).append(prop.id)
            for label, columns in groups.items():
                indexes.setdefault(label, Index(label, kind, tuple(columns)))

        for prop in props:
            if needs_foreign_key(prop):
                indexes.setdefault(prop.id, Index(prop.id, IndexKind.INDEX, (prop.id,)))

        return tuple(indexes.values())

    # -- Foreign keys ------------------------------------------------------

    def foreign_keys(self, model: type[Model]) -> tuple[ForeignKey, ...]:
        table = model.table_name()
        keys = []
        for prop in model.properties:
            if not is_column(prop, relation_tables=self.relation_tables) or not needs_foreign_key(prop):
                continue
            ref = prop.nested_model if is_reference(prop) else prop.foreign_model
            keys.append(
                ForeignKey(
                    name=f"{table}_{prop.id}",
                    columns=(prop.id,),
                    ref_table=ref.table_name(),
                    ref_columns=(ref.primary,),
                    on_update="CASCADE",
                    on_delete="CASCADE" if prop.required else "SET NULL",
                )
            )
        return tuple(keys)

    # -- Tables ------------------------------------------------------------

    def table(self, model: type[Model]) -> TableSchema:
        """Table schema of a model type (memoized per type)."""
        if model not in self._tables:
            self._tables[model] = TableSchema(
                name=model.table_name(),
                columns=self.columns(model),
                indexes=self.indexes(model),
                foreign_keys=self.foreign_keys(model),
            )
        return self._tables[model]

    def relation_table_name(self, parent: type[Model], prop_id: str) -> str:
        return f"{parent.table_name()}_{prop_id}"

    def relation_table(self, parent: type[Model], child: type[Model], prop_id: str) -> TableSchema:
        """Schema of the link table for ``parent.prop_id`` holding ``child`` models."""
        if not is_identifiable(parent) or not is_identifiable(child):
            raise SchemaError(
                f"{parent.type_name()}.{prop_id}: relation tables need primary keys on both sides"
            )
        name = self.relation_table_name(parent, prop_id)
        return TableSchema(
            name=name,
            columns=(
                Column(RELATION_PARENT, self._key_type(parent), required=True),
                Column(RELATION_CHILD, self._key_type(child), required=True),
                Column(RELATION_POSITION, "bigint", required=True, default=0),
            ),
            indexes=(
                Index(RELATION_PARENT, IndexKind.INDEX, (RELATION_PARENT,)),
                Index(RELATION_CHILD, IndexKind.INDEX, (RELATION_CHILD,)),
            ),
            foreign_keys=(
                ForeignKey(
                    f"{name}_{RELATION_PARENT}",
                    (RELATION_PARENT,),
                    parent.table_name(),
                    (parent.primary,),
                ),
                ForeignKey(
                    f"{name}_{RELATION_CHILD}",
                    (RELATION_CHILD,),
                    child.table_name(),
                    (child.primary,),
                ),
            ),
        )


def closure(models: Iterable[type[Model]]) -> list[type[Model]]:
    """Identifiable model types reachable from ``models``, inputs first.

    Follows nested models of object/array properties and ``foreign``
    references; keyless (embedded-only) types are passed through, not
    collected.
    """
    found: list[type[Model]] = []
    seen: set[type[Model]] = set()
    queue = deque(models)
    while queue:
        model = queue.popleft()
        if model in seen:
            continue
        seen.add(model)
        if is_identifiable(model):
            found.append(model)
        for prop in model.properties:
            for ref in (prop.nested_model, prop.foreign_model):
                if ref is not None:
                    queue.append(ref)
    return found


def relation_properties(model: type[Model]) -> list[ArrayProperty]:
    """Collection properties of identifiable models without a match key."""
    return [prop for prop in model.properties if is_relation(prop)]


__all__ = [
    "PRIMARY",
    "RELATION_PARENT",
    "RELATION_CHILD",
    "RELATION_POSITION",
    "IndexKind",
    "Column",
    "Index",
    "ForeignKey",
    "TableSchema",
    "ColumnDelta",
    "KeyDelta",
    "SchemaBuilder",
    "closure",
    "relation_properties",
]
