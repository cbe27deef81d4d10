"""
Batch restorer: hydrate nested references of many rows at once.

``RowCodec.join`` resolves references row by row, which costs one query
per reference per row.  ``BatchRestorer.restore`` produces the same object
graphs level by level: every nested property of every model type present
on a level is resolved with one query for all rows of that level, so the
query count depends on the depth of the graph, not on the number of rows.

Per level and nested property:
    ::

        object (stored by id)      SELECT * FROM child WHERE pk IN (distinct ids)
        array in relation table    SELECT R.parent_id AS __parent__, C.*
                                     FROM rel R JOIN child C ON C.pk = R.child_id
                                    WHERE R.parent_id IN (parent ids)
        array stored inline        SELECT * FROM child WHERE pk IN (union of ids)
        array matched on child     SELECT * FROM child WHERE match IN (parent ids)

    A reference back to one of a model's ancestors stays an id, exactly as
    ``join`` leaves it.

Tags:
    restore, batching, n+1, hydration, modelstore
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from modelstore.core.adapters.base import DatabaseAdapter
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.model.properties import ArrayProperty, Property, is_match, is_reference, is_relation
from modelstore.store.codec import Path, RowCodec, model_key
from modelstore.store.relations import unique_ids
from modelstore.store.schema import (
    RELATION_CHILD,
    RELATION_PARENT,
    RELATION_POSITION,
    SchemaBuilder,
)

logger = get_logger(__name__)

PARENT_ALIAS = "__parent__"
MAX_IN_LIST = 500


@dataclass
class _Node:
    """A decoded row being hydrated, with its ancestor path (itself included)."""

    model_type: type[Model]
    data: dict[str, Any]
    path: Path

    @property
    def pk(self) -> Any:
        return self.data.get(self.model_type.primary)


def _has_nested(model_type: type[Model]) -> bool:
    return any(is_reference(p) or is_relation(p) or is_match(p) for p in model_type.properties)


class BatchRestorer:
    """Turns rows of one model type into fully hydrated models.

    Args:
        adapter: Database adapter the rows came from
        codec: Codec decoding column values (shares the relation-table switch)
        builder: Schema derivation (table and relation-table names)
    """

    def __init__(self, adapter: DatabaseAdapter, codec: RowCodec, builder: SchemaBuilder):
        self.adapter = adapter
        self.codec = codec
        self.builder = builder

    @property
    def q(self):
        return self.adapter.dialect.quote

    def restore(self, model_type: type[Model], rows: Iterable[dict[str, Any]]) -> list[Model]:
        nodes = [self._node(model_type, row, frozenset()) for row in rows]
        if nodes and _has_nested(model_type):
            level = nodes
            depth = 0
            while level:
                level = self._hydrate_level(level)
                depth += 1
            logger.debug("restore_completed", model_type=model_type.type_name(), rows=len(nodes), depth=depth)
        return [model_type(node.data) for node in nodes]

    def _node(self, model_type: type[Model], row: dict[str, Any], path: Path) -> _Node:
        data = self.codec.decode(model_type, row)
        pk = data.get(model_type.primary)
        return _Node(model_type, data, path | {model_key(model_type, pk)})

    def _hydrate_level(self, level: list[_Node]) -> list[_Node]:
        groups: dict[type[Model], list[_Node]] = {}
        for node in level:
            groups.setdefault(node.model_type, []).append(node)

        children: list[_Node] = []
        for model_type, nodes in groups.items():
            for prop in model_type.properties:
                if is_reference(prop):
                    children.extend(self._objects(prop, nodes))
                elif is_relation(prop):
                    if self.codec.relation_tables:
                        children.extend(self._relation_arrays(model_type, prop, nodes))
                    else:
                        children.extend(self._inline_arrays(prop, nodes))
                elif is_match(prop):
                    children.extend(self._match_arrays(prop, nodes))
        return children

    # -- Queries -----------------------------------------------------------

    def _select_in(self, model_type: type[Model], column: str, values: list[Any]) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        dialect = self.adapter.dialect
        for start in range(0, len(values), MAX_IN_LIST):
            chunk = values[start:start + MAX_IN_LIST]
            sql = (
                f"SELECT * FROM {self.q(model_type.table_name())} "
                f"WHERE {self.q(column)} IN ({dialect.placeholders(len(chunk))})"
            )
            rows.extend(self.adapter.query(sql, chunk))
        return rows

    def _select_related(self, parent: type[Model], prop: ArrayProperty, parent_ids: list[Any]) -> list[dict[str, Any]]:
        q = self.q
        child = prop.nested_model
        rel = q(self.builder.relation_table_name(parent, prop.id))
        rows: list[dict[str, Any]] = []
        for start in range(0, len(parent_ids), MAX_IN_LIST):
            chunk = parent_ids[start:start + MAX_IN_LIST]
            sql = (
                f"SELECT R.{q(RELATION_PARENT)} AS {q(PARENT_ALIAS)}, C.* "
                f"FROM {rel} R JOIN {q(child.table_name())} C "
                f"ON C.{q(child.primary)} = R.{q(RELATION_CHILD)} "
                f"WHERE R.{q(RELATION_PARENT)} IN ({self.adapter.dialect.placeholders(len(chunk))})"
                f" ORDER BY R.{q(RELATION_POSITION)}"
            )
            rows.extend(self.adapter.query(sql, chunk))
        return rows

    # -- Attachment --------------------------------------------------------

    def _attach(self, child: type[Model], row: dict[str, Any], parent: _Node, out: list[_Node]) -> Any:
        """Hydratable data for ``row`` under ``parent``, or its id when it is an ancestor."""
        pk = row.get(child.primary)
        if model_key(child, pk) in parent.path:
            return pk
        node = self._node(child, row, parent.path)
        out.append(node)
        return node.data

    def _objects(self, prop: Property, nodes: list[_Node]) -> list[_Node]:
        child = prop.nested_model
        pending = [
            (node, node.data[prop.id])
            for node in nodes
            if node.data.get(prop.id) is not None
            and model_key(child, node.data[prop.id]) not in node.path
        ]
        if not pending:
            return []
        rows = self._select_in(child, child.primary, unique_ids(ref for _, ref in pending))
        by_id = {str(row[child.primary]): row for row in rows}

        out: list[_Node] = []
        for node, ref in pending:
            row = by_id.get(str(ref))
            if row is not None:
                node.data[prop.id] = self._attach(child, row, node, out)
        return out

    def _inline_arrays(self, prop: ArrayProperty, nodes: list[_Node]) -> list[_Node]:
        child = prop.nested_model
        wanted = unique_ids(
            ref
            for node in nodes
            for ref in node.data.get(prop.id) or []
            if model_key(child, ref) not in node.path
        )
        by_id = {}
        if wanted:
            by_id = {str(row[child.primary]): row for row in self._select_in(child, child.primary, wanted)}

        out: list[_Node] = []
        for node in nodes:
            items = []
            for ref in node.data.get(prop.id) or []:
                row = by_id.get(str(ref))
                if model_key(child, ref) in node.path:
                    items.append(ref)
                elif row is not None:
                    items.append(self._attach(child, row, node, out))
            node.data[prop.id] = items
        return out

    def _relation_arrays(self, parent: type[Model], prop: ArrayProperty, nodes: list[_Node]) -> list[_Node]:
        child = prop.nested_model
        parent_ids = unique_ids(node.pk for node in nodes)
        grouped: dict[str, list[dict[str, Any]]] = {}
        if parent_ids:
            for row in self._select_related(parent, prop, parent_ids):
                key = str(row.pop(PARENT_ALIAS))
                grouped.setdefault(key, []).append(row)

        out: list[_Node] = []
        for node in nodes:
            rows = grouped.get(str(node.pk), [])
            node.data[prop.id] = [self._attach(child, row, node, out) for row in rows]
        return out

    def _match_arrays(self, prop: ArrayProperty, nodes: list[_Node]) -> list[_Node]:
        child = prop.nested_model
        parent_ids = unique_ids(node.pk for node in nodes)
        grouped: dict[str, list[dict[str, Any]]] = {}
        if parent_ids:
            for row in self._select_in(child, prop.match, parent_ids):
                grouped.setdefault(str(row[prop.match]), []).append(row)

        out: list[_Node] = []
        for node in nodes:
            rows = grouped.get(str(node.pk), [])
            node.data[prop.id] = [self._attach(child, row, node, out) for row in rows]
        return out


__all__ = [
    "BatchRestorer",
]
