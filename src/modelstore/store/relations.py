"""
Relation tables: ordered parent→child id links for collection properties.

A collection of identifiable models (``ArrayProperty`` without ``match``)
is not a column of its parent's table.  It lives in ``<parent>_<prop>``
with one ``(parent_id, child_id, position)`` row per member; ``position``
records collection order.

Update policy:
    ``update`` compares the stored ids with the new ids.  When the
    surviving stored ids keep their order and every new id comes after
    them, it deletes the removed ids and appends the new ones.  Otherwise
    it replaces the parent's rows wholesale.  Duplicate ids are kept once,
    at their first position.

Examples:
    >>> relations.update(Album, "tracks", "al1", ["t1", "t2"])
    >>> relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"])   # appends t3
    >>> relations.stored_ids(Album, "tracks", "al1")
    ['t1', 't2', 't3']

Tags:
    relations, collections, link-table, modelstore
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from modelstore.core.adapters.base import DatabaseAdapter
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.store.schema import (
    RELATION_CHILD,
    RELATION_PARENT,
    RELATION_POSITION,
    SchemaBuilder,
    TableSchema,
)

logger = get_logger(__name__)


def unique_ids(ids: Iterable[Any]) -> list[Any]:
    """``ids`` without repeats, first occurrence wins."""
    return list(dict.fromkeys(i for i in ids if i is not None))


class RelationTableManager:
    """Reads and writes relation-table rows."""

    def __init__(self, adapter: DatabaseAdapter, builder: SchemaBuilder | None = None):
        self.adapter = adapter
        self.builder = builder or SchemaBuilder()
        self._tables: dict[str, TableSchema] = {}

    @property
    def q(self):
        return self.adapter.dialect.quote

    def table_name(self, parent: type[Model], prop_id: str) -> str:
        return self.builder.relation_table_name(parent, prop_id)

    def ensure(self, parent: type[Model], child: type[Model], prop_id: str) -> TableSchema:
        """Register and return the relation table schema for ``parent.prop_id``."""
        name = self.table_name(parent, prop_id)
        if name not in self._tables:
            self._tables[name] = self.builder.relation_table(parent, child, prop_id)
        return self._tables[name]

    def tables(self) -> list[TableSchema]:
        return list(self._tables.values())

    # -- Reads -------------------------------------------------------------

    def _stored(self, parent: type[Model], prop_id: str, parent_id: Any) -> list[dict[str, Any]]:
        q = self.q
        sql = (
            f"SELECT {q(RELATION_CHILD)}, {q(RELATION_POSITION)} "
            f"FROM {q(self.table_name(parent, prop_id))} "
            f"WHERE {q(RELATION_PARENT)} = {self.adapter.dialect.placeholder(0)} "
            f"ORDER BY {q(RELATION_POSITION)}"
        )
        return self.adapter.query(sql, (parent_id,))

    def stored_ids(self, parent: type[Model], prop_id: str, parent_id: Any) -> list[Any]:
        """Child ids linked to ``parent_id``, in collection order."""
        return [row[RELATION_CHILD] for row in self._stored(parent, prop_id, parent_id)]

    # -- Writes ------------------------------------------------------------

    def update(self, parent: type[Model], prop_id: str, parent_id: Any, child_ids: Iterable[Any]) -> int:
        """Make the stored links of ``parent_id`` equal ``child_ids``.

        Returns the number of rows deleted plus inserted.
        """
        wanted = unique_ids(child_ids)
        stored = self._stored(parent, prop_id, parent_id)
        current = [row[RELATION_CHILD] for row in stored]
        if current == wanted:
            return 0

        kept = [c for c in current if c in wanted]
        if wanted[: len(kept)] == kept:
            removed = [c for c in current if c not in wanted]
            start = max((int(row[RELATION_POSITION]) for row in stored), default=-1) + 1
            changed = self._delete(parent, prop_id, parent_id, removed)
            changed += self._insert(parent, prop_id, parent_id, wanted[len(kept):], start)
        else:
            changed = self.delete(parent, prop_id, parent_id)
            changed += self._insert(parent, prop_id, parent_id, wanted)

        logger.debug(
            "relation_reconciled",
            table=self.table_name(parent, prop_id),
            parent_id=parent_id,
            size=len(wanted),
        )
        return changed

    def delete(self, parent: type[Model], prop_id: str, parent_id: Any) -> int:
        """Remove every link of ``parent_id``."""
        q = self.q
        return self.adapter.execute(
            f"DELETE FROM {q(self.table_name(parent, prop_id))} "
            f"WHERE {q(RELATION_PARENT)} = {self.adapter.dialect.placeholder(0)}",
            (parent_id,),
        )

    def _delete(self, parent: type[Model], prop_id: str, parent_id: Any, child_ids: list[Any]) -> int:
        if not child_ids:
            return 0
        q = self.q
        dialect = self.adapter.dialect
        return self.adapter.execute(
            f"DELETE FROM {q(self.table_name(parent, prop_id))} "
            f"WHERE {q(RELATION_PARENT)} = {dialect.placeholder(0)} "
            f"AND {q(RELATION_CHILD)} IN ({dialect.placeholders(len(child_ids))})",
            [parent_id, *child_ids],
        )

    def _insert(
        self, parent: type[Model], prop_id: str, parent_id: Any, child_ids: list[Any], start: int = 0
    ) -> int:
        if not child_ids:
            return 0
        q = self.q
        sql = (
            f"INSERT INTO {q(self.table_name(parent, prop_id))} "
            f"({q(RELATION_PARENT)}, {q(RELATION_CHILD)}, {q(RELATION_POSITION)}) "
            f"VALUES ({self.adapter.dialect.placeholders(3)})"
        )
        self.adapter.executemany(
            sql, [(parent_id, child, start + offset) for offset, child in enumerate(child_ids)]
        )
        return len(child_ids)


__all__ = [
    "RelationTableManager",
    "unique_ids",
]
